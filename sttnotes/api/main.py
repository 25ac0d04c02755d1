from __future__ import annotations

"""
API surface for the sttnotes service.

Design intent:
- Authenticate before reading the body; reject bad bodies before any session write.
- Run the blocking pipeline off the event loop.
- Never expose stack detail to callers, only summarized messages.
"""

import json
import logging
import threading
from typing import Any

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sttnotes.internal_core.auth import authenticate
from sttnotes.internal_core.config import load_config
from sttnotes.internal_core.errors import AuthError, ValidationError, summarize_error
from sttnotes.internal_core.logging_utils import setup_logging
from sttnotes.internal_core.services import PipelineServices, build_services
from sttnotes.pipeline import TranscriptPipeline, parse_request

app = FastAPI(title="sttnotes service")
logger = logging.getLogger(__name__)
_services_lock = threading.Lock()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_services() -> PipelineServices:
    existing = getattr(app.state, "services", None)
    if existing is not None:
        return existing
    with _services_lock:
        existing = getattr(app.state, "services", None)
        if existing is not None:
            return existing
        cfg = load_config()
        setup_logging(cfg.STTNOTES_LOG_LEVEL, cfg.STTNOTES_LOG_DIR if cfg.STTNOTES_LOG_TO_FILE else None)
        created = build_services(cfg)
        setattr(app.state, "services", created)
        return created


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/generateTranscript")
async def generate_transcript(request: Request) -> JSONResponse:
    try:
        services = _get_services()
    except Exception as exc:
        logger.exception("service construction failed")
        return _failure(500, summarize_error(exc))
    try:
        await run_in_threadpool(authenticate, services.verifier, request.headers.get("authorization"))
    except AuthError as exc:
        return _failure(exc.status_code, exc.message)

    raw = await request.body()
    try:
        payload: Any = json.loads(raw or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _failure(400, "Request body must be a JSON object")
    try:
        body = parse_request(payload)
    except ValidationError as exc:
        return _failure(400, exc.message)

    outcome = await run_in_threadpool(TranscriptPipeline(services).run_and_record, body)
    if not outcome.success:
        return _failure(400, outcome.message)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "transcript": outcome.transcript,
            "formattedConversation": outcome.formatted_conversation,
            "url": outcome.doc_url,
            "message": outcome.message,
        },
    )
