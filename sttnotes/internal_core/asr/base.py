from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


class ASRError(RuntimeError):
    def __init__(self, code: str, message: str, provider_name: str):
        super().__init__(message)
        self.code = code
        self.message = message
        self.provider_name = provider_name


@dataclass(frozen=True)
class RecognitionSettings:
    encoding: str = "LINEAR16"
    sample_rate_hertz: int = 16000
    language_code: str = "en-US"
    enable_automatic_punctuation: bool = True
    model: str = "default"
    use_enhanced: bool = True


@dataclass(frozen=True)
class RecognitionResponse:
    # One entry per recognized result, first alternative only, recognition order.
    texts: List[str] = field(default_factory=list)
    billed_duration_sec: Optional[float] = None


class SpeechRecognizer(ABC):
    @abstractmethod
    def recognize(
        self, audio_content: bytes, settings: RecognitionSettings, timeout_sec: float = 300.0
    ) -> RecognitionResponse: ...

    @abstractmethod
    def name(self) -> str: ...
