from __future__ import annotations

from .base import RecognitionResponse, RecognitionSettings, SpeechRecognizer


class MockSpeechRecognizer(SpeechRecognizer):
    def __init__(self) -> None:
        self._counter = 0

    def recognize(
        self, audio_content: bytes, settings: RecognitionSettings, timeout_sec: float = 300.0
    ) -> RecognitionResponse:
        self._counter += 1
        seconds = len(audio_content) / float(settings.sample_rate_hertz * 2)
        return RecognitionResponse(
            texts=[f"(mock) simulated transcript for request {self._counter}."],
            billed_duration_sec=round(seconds, 3),
        )

    def name(self) -> str:
        return "mock"
