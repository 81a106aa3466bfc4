from pathlib import Path

import pytest

from satsuma.config import load_config, resolve_directories
from satsuma.content import PageLoader, extract_config_block, output_target
from satsuma.errors import ConfigurationError


def test_extract_config_block():
    config, body = extract_config_block("---\ntemplate: post\ntags: [a]\n---\n<h1>Hi</h1>\n")
    assert config == {"template": "post", "tags": ["a"]}
    assert body == "<h1>Hi</h1>\n"


def test_extract_config_block_without_block():
    config, body = extract_config_block("<p>plain</p>")
    assert config == {}
    assert body == "<p>plain</p>"


def test_extract_config_block_invalid_yaml_is_stripped(caplog):
    config, body = extract_config_block("---\ntemplate: [oops\n---\nbody", Path("page.jinja"))
    assert config == {}
    assert body == "body"
    assert "Invalid configuration block" in caplog.text


def test_extract_config_block_non_mapping():
    config, body = extract_config_block("---\n- a\n- b\n---\nbody")
    assert config == {}
    assert body == "body"


def test_output_target_for_index_and_regular_pages(tmp_path):
    pages = tmp_path / "source" / "pages"
    public = tmp_path / "public"

    out_dir, out_path, url = output_target(pages / "index.jinja", pages, public)
    assert out_path == public / "index.html"
    assert url == "/"

    out_dir, out_path, url = output_target(pages / "blog" / "post.jinja", pages, public)
    assert out_dir == public / "blog" / "post"
    assert out_path == public / "blog" / "post" / "index.html"
    assert url == "/blog/post/"

    _, out_path, url = output_target(pages / "blog" / "INDEX.jinja", pages, public)
    assert out_path == public / "blog" / "index.html"
    assert url == "/blog/"


def test_page_loader_discovery(make_project):
    root = make_project(
        {
            "source/pages/index.jinja": "home",
            "source/pages/blog/post.jinja": "post",
            "source/pages/blog/_draft.jinja": "partial",
            "source/pages/partials/nav.jinja": "nav",
            "source/pages/Templates/base.jinja": "base",
            "source/pages/notes.txt": "not a page",
        }
    )
    directories = resolve_directories(load_config(root), root)
    loader = PageLoader(directories)
    pages = loader.iter_pages()
    assert pages == [
        directories.pages / "blog" / "post.jinja",
        directories.pages / "index.jinja",
    ]
    assert loader.is_renderable_page(directories.pages / "new.jinja")
    assert not loader.is_renderable_page(directories.pages / "blog" / "_draft.jinja")
    assert not loader.is_renderable_page(directories.pages / "partials" / "nav.jinja")
    assert not loader.is_renderable_page(directories.templates / "post.jinja")
    assert not loader.is_renderable_page(directories.pages / "style.scss")


def test_page_loader_load_entry(make_project):
    root = make_project(
        {"source/pages/blog/post.jinja": "---\ntemplate: post\ntags: [a]\n---\nHello"}
    )
    directories = resolve_directories(load_config(root), root)
    entry = PageLoader(directories).load(directories.pages / "blog" / "post.jinja")
    assert entry.collection == "blog"
    assert entry.collection_key == "collection:blog"
    assert entry.template == "post"
    assert entry.tags == ["a"]
    assert entry.body == "Hello"
    assert entry.output_path == directories.public / "blog" / "post" / "index.html"
    assert entry.summary() == {
        "config": {"template": "post", "tags": ["a"], "slug": "post"},
        "public_path": "/blog/post/",
    }


def test_pages_in_root_have_no_collection(make_project):
    root = make_project({"source/pages/about.jinja": "About"})
    directories = resolve_directories(load_config(root), root)
    entry = PageLoader(directories).load(directories.pages / "about.jinja")
    assert entry.collection is None
    assert entry.collection_key is None
    assert not entry.is_index


def test_load_config_merges_directories(make_project):
    root = make_project(config="port: 4000\ndirectories:\n  pages: ''\n")
    config = load_config(root)
    assert config["port"] == 4000
    assert config["directories"]["source"] == "source"
    directories = resolve_directories(config, root)
    assert directories.pages == directories.source


@pytest.mark.parametrize(
    "config",
    [
        "directories: [a, b]\n",
        "directories:\n  source: ''\n",
        "directories:\n  public: source\n",
        "directories:\n  source: public/src\n",
        "- just\n- a list\n",
        "directories: {source: [unterminated\n",
    ],
)
def test_invalid_configuration_is_rejected(make_project, config):
    root = make_project(config=config)
    with pytest.raises(ConfigurationError):
        resolve_directories(load_config(root), root)


def test_extract_config_block_empty_block_is_stripped():
    config, body = extract_config_block("---\n---\nBody")
    assert config == {}
    assert body == "Body"
