from __future__ import annotations

"""
Submit normalized session audio to a speech recognizer.

Design intent:
- Keep the recognition config fixed (LINEAR16, 16kHz, en-US, punctuation, enhanced model).
- Map recognizer error codes onto the pipeline's transcription errors.
"""

import logging
import time
from pathlib import Path

from sttnotes.internal_core.asr import ASRError, RecognitionSettings, SpeechRecognizer
from sttnotes.internal_core.contracts import TranscriptionResult, TranscriptSegment
from sttnotes.internal_core.errors import AudioTooLargeOrInvalid, TranscriptionFailed

logger = logging.getLogger(__name__)

RECOGNITION_SETTINGS = RecognitionSettings()
AUDIO_TOO_LARGE_MESSAGE = "Audio file is too large or invalid format"


class TranscriptionService:
    def __init__(
        self,
        recognizer: SpeechRecognizer,
        *,
        max_audio_bytes: int = 10 * 1024 * 1024,
        timeout_sec: float = 300.0,
    ):
        self._recognizer = recognizer
        self._max_audio_bytes = max_audio_bytes
        self._timeout_sec = timeout_sec

    def transcribe(self, wav_path: Path) -> TranscriptionResult:
        audio = wav_path.read_bytes()
        if self._max_audio_bytes > 0 and len(audio) > self._max_audio_bytes:
            logger.warning(
                "audio exceeds recognition limit bytes=%d max=%d", len(audio), self._max_audio_bytes
            )
            raise AudioTooLargeOrInvalid(AUDIO_TOO_LARGE_MESSAGE)
        return self.transcribe_bytes(audio)

    def transcribe_bytes(self, audio: bytes) -> TranscriptionResult:
        logger.info(
            "starting speech recognition provider=%s bytes=%d", self._recognizer.name(), len(audio)
        )
        started = time.perf_counter()
        try:
            response = self._recognizer.recognize(
                audio, RECOGNITION_SETTINGS, timeout_sec=self._timeout_sec
            )
        except ASRError as exc:
            if exc.code == "invalid_argument":
                raise AudioTooLargeOrInvalid(AUDIO_TOO_LARGE_MESSAGE) from exc
            raise TranscriptionFailed(f"Failed to generate transcript: {exc.message}") from exc
        except Exception as exc:
            raise TranscriptionFailed(f"Failed to generate transcript: {exc}") from exc
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)

        segments = [
            TranscriptSegment(index=i, text=text)
            for i, text in enumerate(response.texts)
        ]
        logger.info(
            "speech recognition done segments=%d billed_sec=%s elapsed_ms=%.2f",
            len(segments),
            response.billed_duration_sec,
            elapsed_ms,
        )
        return TranscriptionResult(
            segments=segments,
            billed_duration_sec=response.billed_duration_sec,
            provider=self._recognizer.name(),
        )
