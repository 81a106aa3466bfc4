"""Satsuma incremental static site generator.

This package turns a tree of Jinja page templates and SCSS stylesheets into a
static site, and keeps that site up to date incrementally while a development
server watches the sources.

The build is split into small, separately testable stages:
- Discovery and rendering of pages (content, collections, templates, renderer).
- Dependency tracking for pages and stylesheets (graphs).
- Planning: pure generation of filesystem Actions (planner, styles).
- Committing: applying Actions through a storage adapter (commit, storage, limiter).
- Incremental orchestration of watch events (orchestrator, server).
"""

__all__ = ["__version__"]
__version__ = "0.2.0"
