from pathlib import Path

from satsuma.graphs import DependencyGraph, ImportGraph


def test_dependency_graph_records_and_clears_edges():
    graph = DependencyGraph()
    page = Path("/s/pages/index.jinja")
    other = Path("/s/pages/about.jinja")
    nav = Path("/s/partials/nav.jinja")

    graph.record(page, nav)
    graph.record(page, "collection:blog")
    graph.record(other, nav)

    assert graph.pages_affected_by(nav) == [other, page]
    assert graph.dependencies_of(page) == {nav, "collection:blog"}

    graph.clear_page(page)
    assert graph.pages_affected_by(nav) == [other]
    assert graph.pages_affected_by("collection:blog") == []
    assert page not in graph
    assert len(graph) == 1


def test_dependency_graph_operations_are_idempotent():
    graph = DependencyGraph()
    page = Path("/s/pages/index.jinja")
    graph.clear_page(page)
    graph.remove_dependency_key("collection:missing")
    graph.record(page, "collection:blog")
    graph.record(page, "collection:blog")
    assert graph.pages_affected_by("collection:blog") == [page]
    assert graph.pages_affected_by("unknown") == []


def test_dependency_graph_remove_key_prunes_pages():
    graph = DependencyGraph()
    page = Path("/s/pages/index.jinja")
    deleted = Path("/s/pages/old.jinja")
    graph.record(page, deleted)

    graph.remove_dependency_key(deleted)
    assert graph.pages_affected_by(deleted) == []
    assert graph.dependencies_of(page) == set()
    assert len(graph) == 0


def test_import_graph_tracks_entries(tmp_path):
    graph = ImportGraph()
    main = tmp_path / "main.scss"
    other = tmp_path / "other.scss"
    colors = tmp_path / "_colors.scss"

    graph.record(colors, main)
    graph.record(str(colors), other)
    assert graph.entries_affected_by(colors) == sorted([main, other])

    graph.clear_by(main)
    assert graph.entries_affected_by(colors) == [other]
    assert graph.imports_of(main) == set()

    graph.remove(colors)
    assert graph.entries_affected_by(colors) == []
    assert graph.imports_of(other) == set()

    graph.record(colors, main)
    graph.clear()
    assert graph.entries_affected_by(colors) == []
