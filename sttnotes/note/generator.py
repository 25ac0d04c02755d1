from __future__ import annotations

"""
Draft the speaker-labelled dialogue and the filled clinical note.

Design intent:
- One prompt per session: fixed instructions, resolved template, raw transcript.
- The model must answer with one JSON object holding exactly two string fields.
- Any parse or shape failure is fatal for the run (no retry, no partial result).
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from sttnotes.internal_core.contracts import GeneratedNote
from sttnotes.internal_core.errors import GenerationContractViolation, GenerationError
from sttnotes.note.models import GenerativeModel, SamplingSettings

logger = logging.getLogger(__name__)

SAMPLING_SETTINGS = SamplingSettings(temperature=0.3, top_p=0.8, top_k=40, max_output_tokens=8192)

_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\n?(.*?)\n?```$", re.DOTALL | re.IGNORECASE)


def build_prompt(template_text: str, transcript: str) -> str:
    return (
        "Task: Turn a speech-therapy session transcript into a speaker-labelled dialogue "
        "and a completed clinical note.\n"
        "Output requirements:\n"
        "- Format the transcript as a dialogue, one turn per line, each line prefixed with the speaker label "
        "(for example 'Therapist:', 'Client:', 'Parent:').\n"
        "- Infer who is speaking from the content of each turn.\n"
        "- Fill the TEMPLATE using only events that appear in the TRANSCRIPT. Do not invent activities, "
        "results or observations.\n"
        "- For 'Session Type', choose Face-to-face or Online, and am or pm, based on the transcript. "
        "Remove the option that does not apply.\n"
        "- Keep any pre-filled Session Objectives and Next Session text exactly as written.\n"
        "- Respond with JSON only, shaped as "
        '{"formattedConversation": "<dialogue>", "summary": "<completed note>"}, '
        "with no other keys and no commentary.\n\n"
        "TEMPLATE:\n"
        "<template>\n"
        f"{template_text}\n"
        "</template>\n\n"
        "TRANSCRIPT:\n"
        "<transcript>\n"
        f"{transcript}\n"
        "</transcript>\n"
    )


def strip_code_fence(raw: str) -> str:
    text = str(raw or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_generated_note(raw: str) -> GeneratedNote:
    body = strip_code_fence(raw)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise GenerationContractViolation(f"Generated output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationContractViolation("Generated output is not a JSON object")
    try:
        return GeneratedNote.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(str(err.get("loc", ("?",))[0]) for err in exc.errors())
        raise GenerationContractViolation(
            f"Generated output does not match the note contract ({fields})"
        ) from exc


def _append_debug_log(path: Optional[Path], *, stage: str, raw: str, metadata: dict[str, Any] | None = None) -> None:
    if path is None:
        return
    try:
        target = path.expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat()
        meta = json.dumps(metadata or {}, ensure_ascii=True)
        payload = (
            f"[{stamp}] stage={stage} meta={meta}\n"
            "-----BEGIN LLM RAW-----\n"
            f"{raw}\n"
            "-----END LLM RAW-----\n"
        )
        with target.open("a", encoding="utf-8") as f:
            f.write(payload)
    except OSError as exc:
        # Debug logging must never break generation.
        logger.warning("llm debug log write failed path=%s error=%s", path, exc)


class DocumentGenerator:
    def __init__(
        self,
        model: GenerativeModel,
        *,
        settings: SamplingSettings = SAMPLING_SETTINGS,
        debug_log_path: Optional[Path] = None,
    ):
        self._model = model
        self._settings = settings
        self._debug_log_path = debug_log_path

    def generate(self, template_text: str, transcript: str) -> GeneratedNote:
        prompt = build_prompt(template_text, transcript)
        _append_debug_log(
            self._debug_log_path,
            stage="generation_start",
            raw=prompt,
            metadata={"model": self._model.name()},
        )
        logger.info(
            "generating note model=%s prompt_chars=%d", self._model.name(), len(prompt)
        )
        started = time.perf_counter()
        try:
            raw = self._model.generate(prompt, self._settings)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"Generative model request failed: {exc}") from exc
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        _append_debug_log(
            self._debug_log_path,
            stage="generation_raw",
            raw=raw,
            metadata={"model": self._model.name(), "elapsed_ms": elapsed_ms},
        )
        logger.info("note generated raw_chars=%d elapsed_ms=%.2f", len(raw), elapsed_ms)
        return parse_generated_note(raw)
