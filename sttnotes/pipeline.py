from __future__ import annotations

"""
Session-to-document pipeline.

Design intent:
- Run one sequential chain per request: acquire, normalize, transcribe,
  resolve, generate, export, persist.
- Abort on the first stage failure; record the summarized error on the
  session and hand the caller a definitive outcome.
- Remove every scratch file on every exit path.
"""

import logging
import time
from datetime import date
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from sttnotes.internal_core.audio_utils import scratch_scope
from sttnotes.internal_core.contracts import GenerateTranscriptRequest, PipelineOutcome
from sttnotes.internal_core.errors import ValidationError, summarize_error
from sttnotes.internal_core.services import PipelineServices

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Transcript generated successfully"


def _validation_message(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value"))
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Missing details in request body: " + "; ".join(parts)


def parse_request(payload: Any) -> GenerateTranscriptRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return GenerateTranscriptRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_validation_message(exc)) from exc


class TranscriptPipeline:
    def __init__(self, services: PipelineServices):
        self._services = services

    def _transcribe(self, request: GenerateTranscriptRequest) -> tuple[str, Optional[float]]:
        supplied = (request.transcript or "").strip()
        if supplied:
            logger.info("using supplied transcript session_id=%s chars=%d", request.sessionId, len(supplied))
            return supplied, None

        svc = self._services
        with scratch_scope(svc.tmp_dir) as scratch:
            source = svc.acquisition.acquire(str(request.audioUrl or ""), scratch)
            wav_path = svc.normalizer.normalize(source, scratch)
            result = svc.transcription.transcribe(wav_path)
        return result.transcript, result.billed_duration_sec

    def run(self, request: GenerateTranscriptRequest, *, today: Optional[date] = None) -> PipelineOutcome:
        svc = self._services
        started = time.perf_counter()
        logger.info("pipeline start session_id=%s tracks=%d", request.sessionId, len(request.tracks))

        transcript, billed = self._transcribe(request)
        resolved = svc.resolver.resolve(
            name=request.name,
            tracks=request.tracks,
            next_session_plans=request.nextSessionPlans,
            session_notes=request.sessionNotes,
            today=today,
        )
        logger.info("template resolved session_id=%s variant=%s", request.sessionId, resolved.variant.name)
        note = svc.generator.generate(resolved.text, transcript)
        exported = svc.exporter.export(note.summary)

        outcome = PipelineOutcome(
            success=True,
            session_id=request.sessionId,
            transcript=transcript,
            formatted_conversation=note.formattedConversation,
            summary=note.summary,
            doc_url=exported.url,
            billed_duration_sec=billed,
            message=SUCCESS_MESSAGE,
        )
        svc.tracker.record_success(request.sessionId, outcome)
        logger.info(
            "pipeline done session_id=%s elapsed_ms=%.2f",
            request.sessionId,
            (time.perf_counter() - started) * 1000.0,
        )
        return outcome

    def run_and_record(self, request: GenerateTranscriptRequest, *, today: Optional[date] = None) -> PipelineOutcome:
        try:
            return self.run(request, today=today)
        except Exception as exc:
            message = summarize_error(exc)
            logger.exception("pipeline failed session_id=%s", request.sessionId)
            self._services.tracker.report_failure(request.sessionId, message)
            return PipelineOutcome(success=False, session_id=request.sessionId, message=message)
