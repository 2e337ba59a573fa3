from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Theme = Literal["green", "light", "dark"]
GenerationKind = Literal["preview", "fullstack", "project"]
ResponseStatus = Literal["ok", "transient-overload", "hard-error"]

SLUG_PATTERN = r"^[a-z0-9-]+$"


class _WireModel(BaseModel):
    # Extra keys from the model are ignored; wire names are camelCase.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class HeroSection(_WireModel):
    type: Literal["hero"]
    headline: str
    subheadline: Optional[str] = None
    cta_label: Optional[str] = Field(default=None, alias="ctaLabel")


class FeatureItem(_WireModel):
    title: str
    description: str
    icon: Optional[str] = None


class FeaturesSection(_WireModel):
    type: Literal["features"]
    title: Optional[str] = None
    items: List[FeatureItem]


class TestimonialSection(_WireModel):
    __test__ = False

    type: Literal["testimonial"]
    quote: str
    author: str


class CtaSection(_WireModel):
    type: Literal["cta"]
    headline: str
    cta_label: Optional[str] = Field(default=None, alias="ctaLabel")


Section = Annotated[
    Union[HeroSection, FeaturesSection, TestimonialSection, CtaSection],
    Field(discriminator="type"),
]


def _theme_or_default(value):
    return "green" if value is None else value


class Page(_WireModel):
    slug: str = Field(pattern=SLUG_PATTERN)
    title: str
    sections: List[Section] = Field(min_length=1)


class Project(_WireModel):
    """Canonical multi-page site description."""

    site_name: str = Field(alias="siteName")
    theme: Theme = "green"
    pages: List[Page] = Field(min_length=1)

    @field_validator("theme", mode="before")
    @classmethod
    def default_theme(cls, value):
        return _theme_or_default(value)

    @model_validator(mode="after")
    def check_unique_slugs(self) -> "Project":
        seen = set()
        for page in self.pages:
            if page.slug in seen:
                raise ValueError(f"duplicate page slug '{page.slug}'")
            seen.add(page.slug)
        return self

    def page(self, slug: Optional[str] = None) -> Page:
        """Return the page with `slug`, or the first page when absent/unknown."""
        for p in self.pages:
            if p.slug == slug:
                return p
        return self.pages[0]

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LegacySite(_WireModel):
    """Older single-page shape: {title, theme?, sections}."""

    title: str
    theme: Theme = "green"
    sections: List[Section] = Field(min_length=1)

    @field_validator("theme", mode="before")
    @classmethod
    def default_theme(cls, value):
        return _theme_or_default(value)

    def to_project(self) -> Project:
        return Project(
            site_name=self.title,
            theme=self.theme,
            pages=[Page(slug="index", title=self.title, sections=self.sections)],
        )


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    kind: GenerationKind = "project"
    model: str
    temperature: float
    max_output_tokens: int = Field(gt=0)


class ModelCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    max_retries: int = Field(default=2, ge=0)
    backoff_secs: float = Field(default=1.0, ge=0)

    def delay_before(self, attempt_index: int) -> float:
        # Linear: no wait before the first attempt, then 1x, 2x, ...
        return attempt_index * self.backoff_secs


class RawModelResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ResponseStatus
    text: Optional[str] = None
    http_status: Optional[int] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class GenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: Project
    model: str
    attempts: int
    repaired: bool = False
