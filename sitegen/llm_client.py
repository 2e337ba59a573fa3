from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from sitegen.llm_parsing import RecoveryError, json_from_text
from sitegen.llm_prompts import build_repair_prompt, build_system_prompt, shape_hint
from sitegen.models import (
    GenerationRequest,
    GenerationResult,
    ModelCandidate,
    Project,
    RawModelResponse,
)
from sitegen.validators import ProjectValidationError, validate_project

log = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_ENDPOINT_BASE = os.getenv(
    "GEMINI_ENDPOINT_BASE", "https://generativelanguage.googleapis.com/v1beta/models"
).strip().rstrip("/")
GEMINI_MODELS = [
    m.strip()
    for m in os.getenv("GEMINI_MODELS", "gemini-2.5-flash,gemini-2.0-flash,gemini-1.5-flash").split(",")
    if m.strip()
]

try:
    LLM_MAX_RETRIES = max(0, int(os.getenv("LLM_MAX_RETRIES", "2")))
except Exception:
    LLM_MAX_RETRIES = 2
try:
    LLM_BACKOFF_SECS = max(0.0, float(os.getenv("LLM_BACKOFF_SECS", "1.0")))
except Exception:
    LLM_BACKOFF_SECS = 1.0
try:
    LLM_TIMEOUT_SECS = int(os.getenv("LLM_TIMEOUT_SECS", "75"))
except Exception:
    LLM_TIMEOUT_SECS = 75
try:
    TEMPERATURE = float(os.getenv("TEMPERATURE", "0.2"))
except Exception:
    TEMPERATURE = 0.2


def _env_tokens(name: str, default: int, minimum: int) -> int:
    try:
        return max(minimum, int(os.getenv(name, str(default))))
    except Exception:
        return default


# Token budgets; the repair budget is kept below the primary one.
# Primary budgets are at least 2 so half of one is still a positive repair budget.
LLM_MAX_TOKENS = _env_tokens("LLM_MAX_TOKENS", 8192, 2)
PREVIEW_MAX_TOKENS = _env_tokens("PREVIEW_MAX_TOKENS", 4096, 2)
REPAIR_MAX_TOKENS = _env_tokens("REPAIR_MAX_TOKENS", 4096, 1)

# The only transient-overload signal: HTTP 503 with error.status == "UNAVAILABLE".
OVERLOAD_HTTP_STATUS = 503
OVERLOAD_ERROR_STATUS = "UNAVAILABLE"


class GenerationError(RuntimeError):
    """Terminal failure: the only error that leaves the generation core."""

    def __init__(self, message: str, attempts: int = 0, last_reason: str = ""):
        super().__init__(message)
        self.attempts = attempts
        self.last_reason = last_reason


class GenerationCancelled(GenerationError):
    pass


def status() -> Dict[str, Any]:
    return {
        "provider": "gemini",
        "models": list(GEMINI_MODELS),
        "has_token": bool(GEMINI_API_KEY),
        "max_retries": LLM_MAX_RETRIES,
    }


def default_candidates(preferred_model: Optional[str] = None) -> List[ModelCandidate]:
    """Build the configured priority list; `preferred_model` goes first, once."""
    models = list(GEMINI_MODELS)
    if preferred_model and preferred_model.strip():
        preferred = preferred_model.strip()
        models = [preferred] + [m for m in models if m != preferred]
    return [
        ModelCandidate(model=m, max_retries=LLM_MAX_RETRIES, backoff_secs=LLM_BACKOFF_SECS)
        for m in models
    ]


def build_request(prompt: str, kind: str = "project", model: Optional[str] = None) -> GenerationRequest:
    max_tokens = PREVIEW_MAX_TOKENS if kind == "preview" else LLM_MAX_TOKENS
    return GenerationRequest(
        prompt=prompt,
        kind=kind,
        model=model or (GEMINI_MODELS[0] if GEMINI_MODELS else ""),
        temperature=TEMPERATURE,
        max_output_tokens=max_tokens,
    )


def _endpoint_for(model: str) -> str:
    return f"{GEMINI_ENDPOINT_BASE}/{quote(model, safe='')}:generateContent"


def _request_body(system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
    return {
        "contents": [
            {"role": "user", "parts": [{"text": system_prompt}]},
            {"role": "user", "parts": [{"text": user_prompt}]},
        ],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        },
    }


def _extract_gemini_text(payload: Any) -> Optional[str]:
    """Read candidates[0].content.parts[0].text; None if the path is absent."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text.strip():
        return None
    return text


def _classify_failure(resp: Any) -> RawModelResponse:
    code = resp.status_code
    try:
        snippet = resp.text[:400]
    except Exception:
        snippet = ""
    try:
        body = resp.json()
    except ValueError:
        return RawModelResponse(
            status="hard-error", http_status=code, reason=f"HTTP {code} with non-JSON body: {snippet}"
        )
    error = body.get("error") if isinstance(body, dict) else None
    error_status = error.get("status") if isinstance(error, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    label = f"HTTP {code} {error_status}" if error_status else f"HTTP {code}"
    reason = f"{label}: {message or snippet}"
    if code == OVERLOAD_HTTP_STATUS and error_status == OVERLOAD_ERROR_STATUS:
        return RawModelResponse(status="transient-overload", http_status=code, reason=reason)
    return RawModelResponse(status="hard-error", http_status=code, reason=reason)


def call_model(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    temperature: float,
    max_tokens: int,
    api_key: str,
) -> RawModelResponse:
    """POST one generateContent request and classify the outcome. Never raises."""
    body = _request_body(system_prompt, user_prompt, temperature, max_tokens)
    try:
        resp = requests.post(
            _endpoint_for(model),
            params={"key": api_key},
            json=body,
            timeout=LLM_TIMEOUT_SECS,
        )
    except requests.RequestException as exc:
        return RawModelResponse(status="hard-error", reason=f"transport error: {exc!r}")

    if not 200 <= resp.status_code < 300:
        return _classify_failure(resp)

    try:
        payload = resp.json()
    except ValueError:
        return RawModelResponse(status="hard-error", http_status=resp.status_code, reason="non-JSON success body")
    text = _extract_gemini_text(payload)
    if text is None:
        return RawModelResponse(
            status="hard-error", http_status=resp.status_code, reason="no content returned by model"
        )
    return RawModelResponse(status="ok", text=text, http_status=resp.status_code)


def parse_project(text: str) -> Project:
    """Extractor -> Repairer -> ShapeValidator; raises RecoveryError or ProjectValidationError."""
    return validate_project(json_from_text(text))


def repair_remotely(
    bad_text: str,
    schema_description: str,
    *,
    model: str,
    api_key: str,
    diagnostic: str = "",
    max_tokens: int = REPAIR_MAX_TOKENS,
) -> str:
    """Ask the model once to coerce `bad_text` into the target shape."""
    log.info("remote repair: requesting schema coercion from model=%s", model)
    resp = call_model(
        build_repair_prompt(schema_description, diagnostic),
        bad_text,
        model=model,
        temperature=0.0,
        max_tokens=max_tokens,
        api_key=api_key,
    )
    if not resp.ok or resp.text is None:
        raise GenerationError(f"Repair call failed: {resp.reason}", attempts=1, last_reason=resp.reason)
    return resp.text


def _recover(
    text: str,
    request: GenerationRequest,
    model: str,
    api_key: str,
    cancel: Optional[threading.Event] = None,
) -> Tuple[Project, bool]:
    try:
        return parse_project(text), False
    except (RecoveryError, ProjectValidationError) as exc:
        diagnostic = str(exc)
        log.warning("local recovery failed for model=%s: %s", model, diagnostic[:300])

    if cancel is not None and cancel.is_set():
        raise GenerationCancelled("Generation cancelled before remote repair", last_reason=diagnostic)

    repaired_text = repair_remotely(
        text,
        shape_hint(request.kind),
        model=model,
        api_key=api_key,
        diagnostic=diagnostic,
        max_tokens=max(1, min(REPAIR_MAX_TOKENS, request.max_output_tokens // 2)),
    )
    try:
        return parse_project(repaired_text), True
    except (RecoveryError, ProjectValidationError) as exc:
        raise GenerationError(
            f"The model response did not match the expected schema after repair: {exc}",
            last_reason=str(exc),
        ) from exc


def _work_list(candidates: List[ModelCandidate]) -> List[Tuple[ModelCandidate, int]]:
    return [(c, attempt) for c in candidates for attempt in range(c.max_retries + 1)]


def generate_project(
    prompt: str,
    kind: str = "project",
    candidates: Optional[List[ModelCandidate]] = None,
    api_key: Optional[str] = None,
    sleep: Optional[Callable[[float], None]] = None,
    cancel: Optional[threading.Event] = None,
) -> GenerationResult:
    """Generate a canonical Project, walking the model list with bounded retries.

    Each (model, attempt) pair is tried in order; transient overloads and hard
    errors both consume the attempt and move on. The first response that makes
    it through recovery (with one remote repair allowed) wins. Everything else
    ends in a single GenerationError.
    """
    key = api_key if api_key is not None else GEMINI_API_KEY
    if not key:
        raise GenerationError("Missing API key. Set GEMINI_API_KEY.")
    if candidates is None:
        candidates = default_candidates()
    sleep = sleep or time.sleep
    request = build_request(prompt, kind, candidates[0].model if candidates else None)
    system_prompt = build_system_prompt(request.kind)

    attempts = 0
    last_reason = "no candidate models configured"
    for candidate, attempt_index in _work_list(candidates):
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled("Generation cancelled", attempts=attempts, last_reason=last_reason)
        delay = candidate.delay_before(attempt_index)
        if delay > 0:
            log.info("llm backoff model=%s attempt=%d sleeping %.2fs", candidate.model, attempt_index + 1, delay)
            sleep(delay)
        attempts += 1
        log.info("llm attempting model=%s attempt=%d/%d", candidate.model, attempt_index + 1, candidate.max_retries + 1)
        resp = call_model(
            system_prompt,
            request.prompt,
            model=candidate.model,
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
            api_key=key,
        )
        if not resp.ok:
            last_reason = resp.reason
            log.warning("llm model=%s status=%s reason=%s", candidate.model, resp.status, resp.reason[:300])
            continue

        try:
            project, repaired = _recover(resp.text or "", request, candidate.model, key, cancel)
        except GenerationError as exc:
            exc.attempts = attempts
            raise
        log.info("llm chosen model=%s attempts=%d repaired=%s", candidate.model, attempts, repaired)
        return GenerationResult(project=project, model=candidate.model, attempts=attempts, repaired=repaired)

    raise GenerationError(
        f"All {attempts} model attempts failed. Last error: {last_reason}",
        attempts=attempts,
        last_reason=last_reason,
    )
