from satsuma.actions import RemoveAction, WriteAction
from satsuma.config import load_config, load_globals, resolve_directories
from satsuma.renderer import Renderer

BLOG_FILES = {
    "globals.yaml": "site:\n  title: Satsuma\n",
    "source/templates/post.jinja": "<article>{{ site.title }}|{{ content }}</article>",
    "source/partials/nav.jinja": "<nav/>",
    "source/pages/index.jinja": (
        "{% for post in collections.get('blog') %}"
        "<a href=\"{{ post.public_path }}\">{{ post.config.title }}</a>"
        "{% endfor %}"
    ),
    "source/pages/about.jinja": '{% include "partials/nav" %}About',
    "source/pages/blog/post.jinja": "---\ntemplate: post\ntitle: Post\ntags: [a]\n---\n<b>{{ title }}</b>",
}


def make_renderer(root):
    directories = resolve_directories(load_config(root), root)
    renderer = Renderer(directories, load_globals(root))
    renderer.initialize()
    return renderer


def test_render_page_with_template(make_project):
    root = make_project(BLOG_FILES)
    renderer = make_renderer(root)
    post = renderer.directories.pages / "blog" / "post.jinja"

    entry, html = renderer.render_page(post)
    assert html == "<article>Satsuma|<b>Post</b></article>"
    assert entry.output_path == renderer.directories.public / "blog" / "post" / "index.html"
    assert renderer.graph.pages_affected_by(renderer.directories.templates / "post.jinja") == [post]


def test_render_records_exactly_what_was_read(make_project):
    root = make_project(BLOG_FILES)
    renderer = make_renderer(root)
    pages = renderer.directories.pages
    nav = renderer.directories.source / "partials" / "nav.jinja"

    renderer.plan_pages(renderer.list_pages())
    assert renderer.graph.pages_affected_by(nav) == [pages / "about.jinja"]
    assert renderer.graph.pages_affected_by("collection:blog") == [pages / "index.jinja"]
    assert renderer.graph.dependencies_of(pages / "index.jinja") == {"collection:blog"}


def test_rerender_drops_stale_edges(make_project):
    root = make_project(BLOG_FILES)
    renderer = make_renderer(root)
    about = renderer.directories.pages / "about.jinja"
    nav = renderer.directories.source / "partials" / "nav.jinja"

    renderer.render_page(about)
    about.write_text("No nav any more", encoding="utf-8")
    renderer.render_page(about)
    assert renderer.graph.pages_affected_by(nav) == []


def test_plan_pages_emits_one_write_per_page(make_project):
    root = make_project(BLOG_FILES)
    renderer = make_renderer(root)
    actions = renderer.plan_pages(renderer.list_pages())
    public = renderer.directories.public
    assert all(isinstance(action, WriteAction) for action in actions)
    assert sorted(action.output for action in actions) == [
        public / "about" / "index.html",
        public / "blog" / "post" / "index.html",
        public / "index.html",
    ]
    home = next(a for a in actions if a.output == public / "index.html")
    assert home.content == '<a href="/blog/post/">Post</a>'


def test_missing_template_skips_page_but_records_edge(make_project, caplog):
    files = dict(BLOG_FILES)
    files["source/pages/blog/post.jinja"] = "---\ntemplate: nope\n---\nbody"
    root = make_project(files)
    renderer = make_renderer(root)
    post = renderer.directories.pages / "blog" / "post.jinja"

    assert renderer.plan_pages([post]) == []
    assert "template 'nope' not found" in caplog.text
    assert renderer.graph.pages_affected_by(renderer.directories.templates / "nope.jinja") == [post]


def test_template_error_only_skips_that_page(make_project, caplog):
    files = dict(BLOG_FILES)
    files["source/pages/about.jinja"] = "{% if %}"
    root = make_project(files)
    renderer = make_renderer(root)

    actions = renderer.plan_pages(renderer.list_pages())
    assert len(actions) == 2
    assert "Template syntax error" in caplog.text


def test_plan_removal_targets(make_project):
    root = make_project({**BLOG_FILES, "source/pages/blog/index.jinja": "Blog"})
    renderer = make_renderer(root)
    public = renderer.directories.public
    pages = renderer.directories.pages

    [remove_post] = renderer.plan_removal(pages / "blog" / "post.jinja")
    assert remove_post == RemoveAction(public / "blog" / "post")
    assert "blog" in renderer.collections
    assert len(renderer.collections["blog"]) == 1

    [remove_index] = renderer.plan_removal(pages / "blog" / "index.jinja")
    assert remove_index == RemoveAction(public / "blog" / "index.html")
    assert "blog" not in renderer.collections


def test_plan_removal_keeps_outputs_nested_in_the_page_directory(make_project):
    root = make_project({**BLOG_FILES, "source/pages/blog.jinja": "Blog"})
    renderer = make_renderer(root)
    public = renderer.directories.public
    pages = renderer.directories.pages

    [remove_blog] = renderer.plan_removal(pages / "blog.jinja")
    assert remove_blog == RemoveAction(public / "blog" / "index.html")

    logo = public / "about" / "logo.svg"
    [remove_about] = renderer.plan_removal(pages / "about.jinja", keep=[logo])
    assert remove_about == RemoveAction(public / "about" / "index.html")
