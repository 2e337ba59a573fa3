from __future__ import annotations
from typing import Any, Dict, List, Optional
import os
from jinja2 import Environment, FileSystemLoader, select_autoescape

from sitegen.models import Project

# Jinja environment that looks in sitegen/templates; html output is autoescaped
_env = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
    enable_async=False,
)

_BODY_OPEN = "<body>"
_BODY_CLOSE = "</body>"


def stylesheet() -> str:
    """The shared themed stylesheet, inlined in standalone pages and shipped as styles.css."""
    return _env.get_template("site.css").render()


def script() -> str:
    return _env.get_template("script.js").render()


def _render_section(section: Any) -> str:
    """
    Map a section to its partial template (partials/<type>.html).
    Section variants are closed, so a missing partial is a packaging bug.
    """
    tpl = _env.get_template(f"partials/{section.type}.html")
    return tpl.render(section=section)


def render_page_html(project: Project, slug: Optional[str] = None) -> str:
    """
    Build a self-contained HTML document for one page of the project
    (the first page when `slug` is absent or unknown).
    """
    page = project.page(slug)
    rendered = [_render_section(s) for s in page.sections]
    base = _env.get_template("page.html")
    return base.render(
        title=page.title,
        theme=project.theme,
        stylesheet=stylesheet(),
        rendered_sections=rendered,
    )


def body_content(html: str) -> str:
    start = html.find(_BODY_OPEN)
    end = html.rfind(_BODY_CLOSE)
    if start == -1 or end == -1 or end < start:
        return ""
    return html[start + len(_BODY_OPEN) : end]


def render_bundle_page(project: Project, slug: str, nav: List[Dict[str, Any]]) -> str:
    """Wrap the standalone page body with links to the shared styles.css/script.js."""
    page = project.page(slug)
    base = _env.get_template("bundle_page.html")
    return base.render(
        title=page.title,
        theme=project.theme,
        nav=nav,
        body=body_content(render_page_html(project, slug)),
    )


def render_readme(project: Project, files: List[Dict[str, str]]) -> str:
    return _env.get_template("README.md").render(site_name=project.site_name, pages=files)
