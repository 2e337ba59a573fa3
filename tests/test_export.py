import io
import json
import zipfile

import pytest

from sitegen import export
from sitegen.models import Project
from sitegen.render import body_content, stylesheet
from sitegen.validators import validate_project


def _project(**overrides):
    data = {
        "siteName": "Acme Bakery",
        "theme": "dark",
        "pages": [
            {
                "slug": "home",
                "title": "Home",
                "sections": [
                    {"type": "hero", "headline": "Fresh bread", "subheadline": "Daily", "ctaLabel": "Order"},
                    {
                        "type": "features",
                        "title": "Why us",
                        "items": [
                            {"title": "Local", "description": "Sourced nearby", "icon": "*"},
                            {"title": "Fast", "description": "Same day"},
                        ],
                    },
                ],
            },
            {
                "slug": "about",
                "title": "About Us!",
                "sections": [
                    {"type": "testimonial", "quote": "Best loaf in town", "author": "Sam"},
                    {"type": "cta", "headline": "Visit today", "ctaLabel": "Directions"},
                ],
            },
        ],
    }
    data.update(overrides)
    return validate_project(data)


def test_bundle_has_one_file_per_page_then_assets():
    bundle = export.export_bundle(_project())
    assert list(bundle) == ["home.html", "about.html", "styles.css", "script.js", "site.json", "README.md"]


def test_site_json_round_trips():
    project = _project()
    bundle = export.export_bundle(project)
    assert Project.model_validate(json.loads(bundle["site.json"])) == project
    assert json.loads(bundle["site.json"]) == project.to_wire()


def test_bundle_pages_link_shared_assets_and_nav():
    bundle = export.export_bundle(_project())
    home = bundle["home.html"]
    assert 'href="styles.css"' in home
    assert 'src="script.js"' in home
    assert "<style>" not in home
    assert 'href="about.html"' in home
    assert '<a href="home.html" aria-current="page">Home</a>' in home
    assert "<h1>Fresh bread</h1>" in home
    assert 'data-theme="dark"' in home
    assert bundle["styles.css"] == stylesheet() + "\n"


def test_single_page_bundle_has_no_nav():
    project = validate_project({"title": "Solo", "sections": [{"type": "cta", "headline": "Go"}]})
    bundle = export.export_bundle(project)
    assert "index.html" in bundle
    assert "site-nav" not in bundle["index.html"]


def test_user_text_is_escaped():
    project = _project(
        pages=[
            {
                "slug": "home",
                "title": "<b>Home</b>",
                "sections": [
                    {"type": "hero", "headline": "<script>alert(1)</script>"},
                    {"type": "testimonial", "quote": "Tom's \"best\" & only", "author": "A&B"},
                ],
            }
        ]
    )
    _, html = export.export_page(project)
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "<script>alert(1)" not in html
    assert "Tom&#39;s &#34;best&#34; &amp; only" in html
    assert "A&amp;B" in html
    assert "<title>&lt;b&gt;Home&lt;/b&gt;</title>" in html

    bundle = export.export_bundle(project)
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in bundle["home.html"]


def test_export_is_deterministic():
    project = _project()
    assert export.export_bundle(project) == export.export_bundle(project)
    assert export.export_page(project, "about") == export.export_page(project, "about")
    assert export.build_zip(export.export_bundle(project)) == export.build_zip(export.export_bundle(project))


def test_zip_contents():
    project = _project()
    filename, data = export.export_zip(project)
    assert filename == "acme-bakery.zip"
    bundle = export.export_bundle(project)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == list(bundle)
        for info in zf.infolist():
            assert info.date_time == (1980, 1, 1, 0, 0, 0)
            assert info.compress_type == zipfile.ZIP_DEFLATED
            assert zf.read(info.filename).decode("utf-8") == bundle[info.filename]


def test_export_page_filename_and_fallback():
    project = _project()
    filename, html = export.export_page(project, "about")
    assert filename == "about-us.html"
    assert "Best loaf in town" in html
    assert "<style>" in html

    fallback_name, fallback_html = export.export_page(project, "missing")
    assert fallback_name == "home.html"
    assert fallback_html == export.export_page(project)[1]


def test_standalone_page_structure():
    _, html = export.export_page(_project())
    assert html.startswith("<!doctype html>")
    assert 'data-theme="dark"' in html
    assert '<span class="icon" aria-hidden="true">*</span>' in html
    assert html.count('class="card"') == 2
    body = body_content(html)
    assert "<h1>Fresh bread</h1>" in body
    assert "<style>" not in body


def test_body_content_without_body_is_empty():
    assert body_content("<p>no body</p>") == ""


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Acme Bakery", "acme-bakery"),
        ("Hello, World!", "hello-world"),
        ("  --Trim--  ", "trim"),
        ("", "site"),
        ("!!!", "site"),
        ("Café 2024", "caf-2024"),
    ],
)
def test_slugify(text, expected):
    assert export.slugify(text) == expected


def test_page_filename_rejects_unsafe_slugs():
    assert export.page_filename("index") == "index.html"
    for slug in ("../etc", "a/b", "Home", ""):
        with pytest.raises(ValueError):
            export.page_filename(slug)


def test_export_does_not_mutate_project():
    project = _project()
    before = project.to_wire()
    export.export_bundle(project)
    export.export_page(project, "about")
    assert project.to_wire() == before


def test_readme_lists_pages():
    readme = export.export_bundle(_project())["README.md"]
    assert readme.startswith("# Acme Bakery")
    assert "Open `home.html`" in readme
    assert "- [Home](home.html)" in readme
    assert "- [About Us!](about.html)" in readme


def test_default_theme_is_green():
    project = validate_project({"title": "T", "sections": [{"type": "cta", "headline": "Go"}]})
    _, html = export.export_page(project)
    assert 'data-theme="green"' in html


def test_readme_points_out_missing_index():
    readme = export.export_bundle(_project())["README.md"]
    assert "There is no `index.html`" in readme

    legacy = validate_project({"title": "Solo", "sections": [{"type": "cta", "headline": "Go"}]})
    assert "There is no `index.html`" not in export.export_bundle(legacy)["README.md"]
