from __future__ import annotations

from typing import Optional

_MAX_SUMMARY_CHARS = 300


class PipelineError(RuntimeError):
    code = "pipeline_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class AuthError(PipelineError):
    code = "auth_error"

    def __init__(self, message: str, *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(PipelineError):
    code = "validation_error"


class SourceResolutionError(PipelineError):
    code = "source_resolution_error"


class InvalidSourceFormat(SourceResolutionError):
    code = "invalid_source_format"


class TranscodeError(PipelineError):
    code = "transcode_error"


class TranscriptionError(PipelineError):
    code = "transcription_error"


class AudioTooLargeOrInvalid(TranscriptionError):
    code = "audio_too_large_or_invalid"


class TranscriptionFailed(TranscriptionError):
    code = "transcription_failed"


class GenerationError(PipelineError):
    code = "generation_error"


class GenerationContractViolation(GenerationError):
    code = "generation_contract_violation"


class ExportError(PipelineError):
    code = "export_error"

    def __init__(self, message: str, *, stage: str):
        super().__init__(message)
        self.stage = stage


class PersistenceError(PipelineError):
    code = "persistence_error"


def summarize_error(exc: BaseException) -> str:
    # Caller-facing text only: one line, no traceback, bounded length.
    if isinstance(exc, PipelineError):
        detail = exc.message
    else:
        detail = f"Failed to generate transcript: {exc}"
    detail = " ".join(str(detail or "").split())
    if not detail:
        detail = "Failed to generate transcript"
    if len(detail) > _MAX_SUMMARY_CHARS:
        detail = detail[:_MAX_SUMMARY_CHARS] + "…"
    return detail
