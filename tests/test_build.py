import asyncio

import pytest

from satsuma import build as build_module
from satsuma.build import BuildState, SiteBuilder, build_site, clean_public
from satsuma.errors import ConfigurationError
from satsuma.storage import MemoryStorage


def test_build_state_create_loads_config_and_globals(make_project, fake_compiler):
    root = make_project(
        {
            "globals.yaml": "site:\n  title: Demo\n",
            "content/pages/index.jinja": "{{ site.title }}",
        },
        config="concurrency: 2\ndirectories:\n  source: content\n  public: dist\n",
    )
    state = BuildState.create(root, compiler=fake_compiler)
    assert state.config["concurrency"] == 2
    assert state.globals == {"site": {"title": "Demo"}}
    assert state.directories.public == root / "dist"
    assert state.renderer.list_pages() == [root / "content" / "pages" / "index.jinja"]
    assert state.assets == {}


def test_invalid_config_fails_before_any_work(make_project):
    root = make_project(config="directories:\n  public: ''\n")
    with pytest.raises(ConfigurationError):
        SiteBuilder(root)


def test_globals_must_be_a_mapping(make_project, caplog):
    root = make_project({"globals.yaml": "- a\n- b\n"})
    state = BuildState.create(root)
    assert state.globals == {}
    assert "does not contain a mapping" in caplog.text


def test_builder_with_memory_storage(make_project, fake_compiler):
    root = make_project({"source/pages/index.jinja": "Home", "source/pages/blog/a.jinja": "A"})
    storage = MemoryStorage()
    builder = SiteBuilder(root, storage=storage, compiler=fake_compiler)
    result = asyncio.run(builder.build_site())
    public = builder.directories.public
    assert result.changed == [public / "blog" / "a" / "index.html", public / "index.html"]
    assert storage.files[str(public / "index.html")] == b"Home"
    assert not public.exists()


def test_build_site_and_clean_helpers(make_project, monkeypatch):
    root = make_project(
        {
            "source/pages/index.jinja": "Home",
            "source/pages/docs/setup.jinja": "Setup",
            "source/favicon.ico": b"\x00",
        }
    )
    result = build_site(root)
    public = root / "public"
    assert result.output_dir == public
    assert len(result.pages) == 2
    assert (public / "docs" / "setup" / "index.html").read_text(encoding="utf-8") == "Setup"
    assert (public / "favicon.ico").read_bytes() == b"\x00"

    again = build_site(root, clean=False)
    assert again.changed == []

    cleaned = clean_public(root)
    assert sorted(p.name for p in cleaned.changed) == ["docs", "favicon.ico", "index.html"]
    assert list(public.iterdir()) == []


def test_build_site_uses_configured_concurrency(make_project, monkeypatch):
    root = make_project({"source/pages/index.jinja": "Home"}, config="concurrency: 3\n")
    seen = {}
    real_commit = build_module.commit

    async def spy(plan, storage=None, *, public_root, concurrency=None):
        seen["concurrency"] = concurrency
        return await real_commit(plan, storage, public_root=public_root, concurrency=concurrency)

    monkeypatch.setattr(build_module, "commit", spy)
    build_site(root)
    assert seen["concurrency"] == 3
