from __future__ import annotations

from typing import Any, Optional

from .base import ASRError, RecognitionResponse, RecognitionSettings, SpeechRecognizer

# google.rpc.Code.INVALID_ARGUMENT
_GRPC_INVALID_ARGUMENT = 3


def _duration_seconds(value: Any) -> Optional[float]:
    if value is None:
        return None
    if hasattr(value, "total_seconds"):
        return float(value.total_seconds())
    seconds = float(getattr(value, "seconds", 0) or 0)
    nanos = float(getattr(value, "nanos", 0) or 0)
    return seconds + nanos / 1e9


def _is_invalid_argument(exc: Exception) -> bool:
    code = getattr(exc, "code", None)
    if callable(code):
        try:
            code = code()
        except Exception:
            code = None
    grpc_code = getattr(exc, "grpc_status_code", None)
    for candidate in (code, grpc_code):
        if candidate is None:
            continue
        if getattr(candidate, "value", None) is not None:
            value = candidate.value
            candidate = value[0] if isinstance(value, tuple) else value
        if candidate == _GRPC_INVALID_ARGUMENT:
            return True
    return type(exc).__name__ == "InvalidArgument"


class GoogleSpeechRecognizer(SpeechRecognizer):
    """Synchronous Cloud Speech-to-Text v1 recognition of inline audio."""

    def __init__(self, client: Any = None):
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                from google.cloud import speech  # type: ignore
            except Exception as exc:
                raise ASRError("unavailable", f"google-cloud-speech import failed: {exc}", self.name()) from exc
            try:
                self._client = speech.SpeechClient()
            except Exception as exc:
                raise ASRError("unavailable", f"google-cloud-speech client init failed: {exc}", self.name()) from exc
        return self._client

    def recognize(
        self, audio_content: bytes, settings: RecognitionSettings, timeout_sec: float = 300.0
    ) -> RecognitionResponse:
        client = self._get_client()
        request = {
            # The client library base64-encodes `content` on the wire.
            "audio": {"content": audio_content},
            "config": {
                "encoding": settings.encoding,
                "sample_rate_hertz": settings.sample_rate_hertz,
                "language_code": settings.language_code,
                "enable_automatic_punctuation": settings.enable_automatic_punctuation,
                "model": settings.model,
                "use_enhanced": settings.use_enhanced,
            },
        }
        try:
            response = client.recognize(request=request, timeout=timeout_sec)
        except Exception as exc:
            code = "invalid_argument" if _is_invalid_argument(exc) else "upstream_error"
            message = getattr(exc, "message", None) or str(exc)
            raise ASRError(code, str(message), self.name()) from exc

        texts = []
        for result in getattr(response, "results", None) or []:
            alternatives = getattr(result, "alternatives", None) or []
            if not alternatives:
                continue
            texts.append(str(alternatives[0].transcript or ""))
        return RecognitionResponse(
            texts=texts,
            billed_duration_sec=_duration_seconds(getattr(response, "total_billed_time", None)),
        )

    def name(self) -> str:
        return "google_speech"
