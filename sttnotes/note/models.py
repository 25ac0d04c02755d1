from __future__ import annotations

"""
Generative-model backends used to draft the clinical note.

Design intent:
- Expose one `generate(prompt, settings) -> str` seam for every backend.
- Import heavy client libraries lazily so the service starts without them.
"""

import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from sttnotes.internal_core.errors import GenerationError


@dataclass(frozen=True)
class SamplingSettings:
    temperature: float = 0.3
    top_p: float = 0.8
    top_k: int = 40
    max_output_tokens: int = 8192


class GenerativeModel(ABC):
    @abstractmethod
    def generate(self, prompt: str, settings: SamplingSettings) -> str: ...

    @abstractmethod
    def name(self) -> str: ...


class GeminiGenerativeModel(GenerativeModel):
    def __init__(self, *, api_key: str = "", model_name: str = "gemini-2.5-flash", client: Any = None):
        self._api_key = api_key
        self._model_name = model_name
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                from google import genai  # type: ignore
            except Exception as exc:
                raise GenerationError(f"google-genai import failed: {exc}") from exc
            self._client = genai.Client(api_key=self._api_key or None)
        return self._client

    def generate(self, prompt: str, settings: SamplingSettings) -> str:
        client = self._get_client()
        config = {
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "top_k": settings.top_k,
            "max_output_tokens": settings.max_output_tokens,
        }
        try:
            response = client.models.generate_content(
                model=self._model_name, contents=prompt, config=config
            )
        except Exception as exc:
            raise GenerationError(f"Generative model request failed: {exc}") from exc
        return str(getattr(response, "text", "") or "").strip()

    def name(self) -> str:
        return f"gemini:{self._model_name}"


class LlamaCppGenerativeModel(GenerativeModel):
    def __init__(
        self,
        *,
        model_path: str,
        n_ctx: int = 16384,
        n_gpu_layers: int = -1,
        chat_format: Optional[str] = "gemma",
    ):
        self._model_path = model_path
        self._n_ctx = n_ctx
        self._n_gpu_layers = n_gpu_layers
        self._chat_format = chat_format
        self._llm: Any = None
        self._lock = threading.Lock()

    def _get_llm(self) -> Any:
        with self._lock:
            if self._llm is not None:
                return self._llm
            if not self._model_path:
                raise GenerationError("llama_cpp model path is missing. Set STTNOTES_LLAMA_CPP_MODEL.")
            if not os.path.exists(self._model_path):
                raise GenerationError(f"llama_cpp model file not found: {self._model_path}")
            try:
                from llama_cpp import Llama  # type: ignore
            except Exception as exc:
                raise GenerationError(f"llama_cpp import failed: {exc}") from exc

            llm_kwargs: dict[str, Any] = {
                "model_path": self._model_path,
                "n_ctx": int(self._n_ctx),
                "n_gpu_layers": int(self._n_gpu_layers),
                "verbose": False,
            }
            if self._chat_format:
                llm_kwargs["chat_format"] = self._chat_format
            try:
                self._llm = Llama(**llm_kwargs)
            except TypeError as exc:
                if "chat_format" not in str(exc):
                    raise
                llm_kwargs.pop("chat_format", None)
                self._llm = Llama(**llm_kwargs)
            return self._llm

    def generate(self, prompt: str, settings: SamplingSettings) -> str:
        llm = self._get_llm()
        try:
            resp = llm.create_chat_completion(
                messages=[{"role": "user", "content": prompt}],
                temperature=float(settings.temperature),
                top_p=float(settings.top_p),
                top_k=int(settings.top_k),
                max_tokens=int(settings.max_output_tokens),
            )
        except Exception as exc:
            raise GenerationError(f"llama_cpp inference failed: {exc}") from exc
        return str(resp["choices"][0]["message"]["content"] or "").strip()

    def name(self) -> str:
        return "llama_cpp"
