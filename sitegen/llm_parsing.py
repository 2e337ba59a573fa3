from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Tuple

import json5

log = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\r?\n?```$")
_TRAILING_COMMA_RE = re.compile(r"(?:,\s*)+([}\]])")

_QUOTE_MAP = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
    "`": '"',
})


class RecoveryError(ValueError):
    """Raised when no repair strategy yields a parseable value."""


def strip_code_fence(text: str) -> str:
    """Remove one leading ```json / ``` fence and one trailing ``` fence."""
    t = (text or "").strip()
    t = _LEADING_FENCE_RE.sub("", t, count=1)
    t = _TRAILING_FENCE_RE.sub("", t, count=1)
    return t.strip()


def normalize_quotes(text: str) -> str:
    return text.translate(_QUOTE_MAP)


def extract_json_like(raw: str) -> str:
    """Isolate the best-guess JSON object/array substring from model output.

    Strategy:
    - Strip a surrounding markdown fence and normalize curly quotes/backticks.
    - Start at the first `{` or `[`, whichever comes first.
    - Scan once, tracking depth and string state (either quote style, honoring
      backslash escapes) so braces inside strings do not count.
    - Return up to the point where depth returns to zero, or the remainder of
      the text when it never does; the repairer reports the failure.
    """
    text = normalize_quotes(strip_code_fence(raw))
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)

    depth = 0
    quote = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in ('"', "'"):
            quote = ch
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return text[start:]


def strip_trailing_commas(text: str) -> str:
    """Drop commas (and any whitespace between them) that sit right before `}` or `]`."""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def parse_strict(text: str) -> Any:
    return json.loads(text)


def parse_without_trailing_commas(text: str) -> Any:
    return json.loads(strip_trailing_commas(text))


def parse_permissive(text: str) -> Any:
    # JSON5 tolerates unquoted/single-quoted keys, comments and trailing commas.
    return json5.loads(text)


REPAIR_STRATEGIES: List[Tuple[str, Callable[[str], Any]]] = [
    ("strict", parse_strict),
    ("trailing_commas", parse_without_trailing_commas),
    ("json5", parse_permissive),
]


def repair_json(text: str) -> Any:
    """Run the strategy chain over extractor output; raise RecoveryError if all fail."""
    failures: List[str] = []
    for name, strategy in REPAIR_STRATEGIES:
        try:
            value = strategy(text)
        except (ValueError, RecursionError) as exc:
            # json and json5 both recurse; deep nesting raises RecursionError
            failures.append(f"{name}: {exc}")
            continue
        if failures:
            log.info("json repair succeeded with strategy=%s after %d failure(s)", name, len(failures))
        return value
    log.warning("json repair exhausted all strategies: %s", "; ".join(failures)[:400])
    raise RecoveryError("model output is not recoverable JSON")


def json_from_text(raw: str) -> Any:
    """Extract then repair; the local half of the recovery pipeline."""
    return repair_json(extract_json_like(raw))
