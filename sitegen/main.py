import logging
import os
import time
import uuid
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, Field

from sitegen import export
from sitegen.llm_client import (
    GenerationError,
    default_candidates,
    generate_project,
    parse_project,
    status as llm_status,
)
from sitegen.llm_parsing import RecoveryError
from sitegen.validators import ProjectValidationError, validate_project


if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)

app = FastAPI()

allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="Free-text description of the site to create")
    kind: Literal["preview", "fullstack", "project"] = "project"
    model: Optional[str] = Field(default=None, description="Optional model to try first")


class ValidateRequest(BaseModel):
    # Either an already-parsed object or raw model text
    project: Any


class ExportRequest(BaseModel):
    project: Dict[str, Any]
    slug: Optional[str] = None


def _invalid(errors) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": {"valid": False, "errors": errors}})


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint() -> Dict[str, Any]:
    return llm_status()


@app.post("/generate")
def generate_endpoint(req: GenerateRequest):
    if not llm_status().get("has_token"):
        return JSONResponse(status_code=503, content={"error": "Missing LLM credentials"})
    try:
        result = generate_project(req.prompt, kind=req.kind, candidates=default_candidates(req.model))
    except GenerationError as e:
        log.warning("generation failed after %d attempt(s): %s", e.attempts, e)
        return JSONResponse(status_code=502, content={"error": str(e), "attempts": e.attempts})
    return {
        "project": result.project.to_wire(),
        "model": result.model,
        "attempts": result.attempts,
        "repaired": result.repaired,
    }


@app.post("/validate")
def validate_endpoint(req: ValidateRequest):
    """
    Run the local recovery pipeline over `project` (raw text or parsed JSON).
    Returns 200 and {"detail":{"valid":true,"project":{...}}} on success,
            422 and {"detail":{"valid":false,"errors":[...]}} on failure.
    """
    try:
        if isinstance(req.project, str):
            project = parse_project(req.project)
        else:
            project = validate_project(req.project)
    except RecoveryError as e:
        return _invalid([{"path": "(root)", "message": str(e)}])
    except ProjectValidationError as e:
        return _invalid(e.errors)
    return {"detail": {"valid": True, "project": project.to_wire()}}


def _project_or_422(raw: Dict[str, Any]):
    try:
        return validate_project(raw), None
    except ProjectValidationError as e:
        return None, _invalid(e.errors)


@app.post("/export/page", response_class=HTMLResponse)
def export_page_endpoint(req: ExportRequest):
    project, error = _project_or_422(req.project)
    if error is not None:
        return error
    filename, html = export.export_page(project, req.slug)
    return HTMLResponse(html, headers=_attachment(filename))


@app.post("/export/bundle")
def export_bundle_endpoint(req: ExportRequest):
    project, error = _project_or_422(req.project)
    if error is not None:
        return error
    return {"files": export.export_bundle(project)}


@app.post("/export/zip")
def export_zip_endpoint(req: ExportRequest):
    project, error = _project_or_422(req.project)
    if error is not None:
        return error
    filename, data = export.export_zip(project)
    return Response(content=data, media_type="application/zip", headers=_attachment(filename))
