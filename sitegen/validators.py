from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from sitegen.models import LegacySite, Project

log = logging.getLogger(__name__)


class ProjectValidationError(ValueError):
    """Parsed value matched neither accepted shape.

    `errors` holds the multi-page schema diagnostics as {"path", "message"} dicts.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        super().__init__("model output did not match the site schema: " + format_errors(errors))


def _errors_from(exc: ValidationError) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", ())) or "(root)"
        errors.append({"path": loc, "message": e.get("msg", "invalid")})
    return errors


def format_errors(errors: List[Dict[str, str]], limit: int = 8) -> str:
    shown = [f"{e['path']}: {e['message']}" for e in errors[:limit]]
    if len(errors) > limit:
        shown.append(f"(+{len(errors) - limit} more)")
    return "; ".join(shown)


def validate_project(value: Any) -> Project:
    """Normalize a parsed value into the canonical Project or raise.

    The multi-page shape is tried first and its diagnostics are the ones
    reported. The legacy single-page shape is a compatibility path only and
    is wrapped into a one-page project with slug "index".
    """
    try:
        return Project.model_validate(value)
    except ValidationError as exc:
        primary = _errors_from(exc)

    try:
        legacy = LegacySite.model_validate(value)
    except ValidationError:
        raise ProjectValidationError(primary) from None
    log.info("accepted legacy single-page shape; wrapping as slug=index")
    return legacy.to_project()


def collect_errors(value: Any) -> List[Dict[str, str]]:
    """Return the diagnostics `validate_project` would raise, or [] when valid."""
    try:
        validate_project(value)
    except ProjectValidationError as exc:
        return exc.errors
    return []
