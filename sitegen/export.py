"""Static-site export: single standalone pages and multi-file bundles.

Everything here is a pure function of the Project passed in; exporting the
same project twice yields identical bytes.
"""
from __future__ import annotations

import io
import json
import re
import zipfile
from typing import Dict, List, Optional, Tuple

from sitegen.models import SLUG_PATTERN, Project
from sitegen.render import render_bundle_page, render_page_html, render_readme, script, stylesheet

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_SLUG_RE = re.compile(SLUG_PATTERN)

# Fixed entry metadata so archives are byte-for-byte reproducible.
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_ZIP_FILE_MODE = 0o644 << 16


def slugify(text: str) -> str:
    slug = _NON_ALNUM_RE.sub("-", (text or "").lower()).strip("-")
    return slug or "site"


def filename_for_site(title: str) -> str:
    return f"{slugify(title or 'site')}.html"


def page_filename(slug: str) -> str:
    if not _SLUG_RE.match(slug or ""):
        raise ValueError(f"unsafe page slug {slug!r}")
    return f"{slug}.html"


def export_page(project: Project, slug: Optional[str] = None) -> Tuple[str, str]:
    """Return (filename, html) for one self-contained page."""
    page = project.page(slug)
    return filename_for_site(page.title), render_page_html(project, page.slug)


def export_bundle(project: Project) -> Dict[str, str]:
    """Render the multi-file project: one html per page, shared assets, manifest, README."""
    files: List[Dict[str, str]] = [
        {"slug": p.slug, "title": p.title, "file": page_filename(p.slug)} for p in project.pages
    ]
    bundle: Dict[str, str] = {}
    for entry in files:
        nav = [
            {"href": f["file"], "title": f["title"], "current": f["slug"] == entry["slug"]}
            for f in files
        ]
        bundle[entry["file"]] = render_bundle_page(project, entry["slug"], nav)
    bundle["styles.css"] = stylesheet() + "\n"
    bundle["script.js"] = script() + "\n"
    bundle["site.json"] = json.dumps(project.to_wire(), indent=2, ensure_ascii=False) + "\n"
    bundle["README.md"] = render_readme(project, files) + "\n"
    return bundle


def build_zip(bundle: Dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path, content in bundle.items():
            info = zipfile.ZipInfo(path, date_time=_ZIP_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = 3
            info.external_attr = _ZIP_FILE_MODE
            zf.writestr(info, content.encode("utf-8"))
    return buf.getvalue()


def zip_filename(project: Project) -> str:
    return f"{slugify(project.site_name)}.zip"


def export_zip(project: Project) -> Tuple[str, bytes]:
    return zip_filename(project), build_zip(export_bundle(project))
