import logging
from pathlib import Path

from satsuma.errors import code_frame
from satsuma.logging import configure_logging, get_logger
from satsuma.utils import (
    content_hash,
    is_partial,
    is_path_inside,
    iter_files,
    normalize_path,
    unique_paths,
)


def test_is_path_inside():
    assert is_path_inside("/site/public", "/site/public/a/index.html")
    assert not is_path_inside("/site/public", "/site/public")
    assert not is_path_inside("/site/public", "/site/public/../source/x")
    assert not is_path_inside("/site/public", "/site/publicity/x")


def test_normalize_and_unique_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert normalize_path("a/../b.txt") == tmp_path / "b.txt"
    assert unique_paths(["b", "a", str(tmp_path / "b")]) == [tmp_path / "b", tmp_path / "a"]


def test_content_hash_matches_for_str_and_bytes():
    assert content_hash("héllo") == content_hash("héllo".encode("utf-8"))
    assert content_hash("a") != content_hash("b")


def test_iter_files_sorted_and_missing_root(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "z.txt").write_text("z", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    assert iter_files(tmp_path) == [tmp_path / "a.txt", tmp_path / "b" / "z.txt"]
    assert iter_files(tmp_path / "missing") == []


def test_is_partial():
    assert is_partial(Path("_colors.scss"))
    assert not is_partial(Path("main.scss"))


def test_code_frame_marks_error_line():
    source = "one\ntwo\nthree\nfour\nfive"
    frame = code_frame(source, 3, column=2, context=1)
    assert frame.splitlines() == [
        "     2  two",
        ">    3  three",
        "          ^",
        "     4  four",
    ]


def test_get_logger_names():
    assert get_logger("satsuma.commit").name == "satsuma.commit"
    assert get_logger("commit").name == "satsuma.commit"
    assert get_logger().name == "satsuma"


def test_configure_logging_formats_messages(capsys):
    configure_logging(verbose=True)
    get_logger("planner").debug("planning %s", "pages")
    configure_logging()
    get_logger("planner").debug("hidden")
    get_logger("planner").info("Rendered: %s", "/public/index.html")
    err = capsys.readouterr().err
    assert "[satsuma] DEBUG planning pages" in err
    assert "hidden" not in err
    assert "[satsuma] INFO Rendered: /public/index.html" in err
    assert len(logging.getLogger("satsuma").handlers) == 1
