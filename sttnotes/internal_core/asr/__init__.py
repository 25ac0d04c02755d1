from __future__ import annotations

from .base import ASRError, RecognitionResponse, RecognitionSettings, SpeechRecognizer
from .google_speech import GoogleSpeechRecognizer
from .mock import MockSpeechRecognizer

__all__ = [
    "ASRError",
    "GoogleSpeechRecognizer",
    "MockSpeechRecognizer",
    "RecognitionResponse",
    "RecognitionSettings",
    "SpeechRecognizer",
]
