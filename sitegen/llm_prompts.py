from __future__ import annotations

from typing import Dict

_SECTION_TYPES = """\
type HeroSection = { type: "hero"; headline: string; subheadline?: string; ctaLabel?: string };
type FeaturesSection = { type: "features"; title?: string; items: { title: string; description: string; icon?: string }[] };
type TestimonialSection = { type: "testimonial"; quote: string; author: string };
type CtaSection = { type: "cta"; headline: string; ctaLabel?: string };
type Section = HeroSection | FeaturesSection | TestimonialSection | CtaSection;"""

PROJECT_SHAPE_HINT = f"""\
{_SECTION_TYPES}
type ProjectPage = {{ slug: string; title: string; sections: Section[] }};
type GeneratedProject = {{ siteName: string; theme?: "green"|"light"|"dark"; pages: ProjectPage[] }};"""

SITE_SHAPE_HINT = f"""\
{_SECTION_TYPES}
type GeneratedSite = {{ title: string; theme?: "green"|"light"|"dark"; sections: Section[] }};"""

_FORMAT_RULES = """\
 - Slugs must be lowercase kebab-case (letters, digits and hyphens only) and unique
 - Every page must have at least one section; sections use only the four types above
 - Output pure JSON, no markdown fences, no comments, no trailing commas, no backticks."""

_KIND_CONSTRAINTS: Dict[str, str] = {
    "preview": """\
 - title must be short and brandable
 - theme should be "green" by default
 - Provide 3-5 sections, typically hero, features, testimonial, cta""",
    "project": """\
 - siteName must be short and brandable
 - theme should be "green" by default
 - Provide 4-6 pages, for example: Home (hero, features, testimonial, cta), Services (features list), Pricing (features and cta), About (hero/testimonial), Contact (cta)
 - Each page must include 1-3 sections appropriate to the page""",
    "fullstack": """\
 - siteName must be short and brandable
 - theme should be "green" by default
 - Provide 5-8 pages covering marketing, product, pricing, about, documentation and contact
 - Each page must include 2-4 sections with specific, concrete copy (no lorem ipsum)""",
}


def shape_hint(kind: str) -> str:
    """Compact structural description of the shape targeted by `kind`."""
    return SITE_SHAPE_HINT if kind == "preview" else PROJECT_SHAPE_HINT


def build_system_prompt(kind: str) -> str:
    root_type = "GeneratedSite" if kind == "preview" else "GeneratedProject"
    constraints = _KIND_CONSTRAINTS.get(kind, _KIND_CONSTRAINTS["project"])
    return (
        "You are an expert product designer and front-end architect. Generate only JSON, no prose. "
        f"The JSON must be a {root_type} and conform to these TypeScript types without extra fields:\n\n"
        f"{shape_hint(kind)}\n\n"
        "Constraints:\n"
        f"{constraints}\n"
        f"{_FORMAT_RULES}"
    )


def build_repair_prompt(schema_description: str, diagnostic: str = "") -> str:
    note = f"\nThe previous attempt failed with: {diagnostic}\n" if diagnostic else ""
    return (
        "You repair malformed JSON produced by another model. "
        "Return ONLY valid JSON conforming to these TypeScript types:\n\n"
        f"{schema_description}\n"
        f"{note}\n"
        "Rules:\n"
        " - Keep all content that fits the shape; infer sensible defaults for missing required fields.\n"
        " - Discard fields the shape does not define.\n"
        " - Slugs must be lowercase kebab-case.\n"
        " - No markdown fences, no comments, no trailing commas, no explanations.\n"
        "The text to repair follows in the next message."
    )
