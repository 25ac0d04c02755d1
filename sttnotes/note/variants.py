from __future__ import annotations

"""
Clinical-note template variants, one per therapy domain plus a generic fallback.

Design intent:
- Keep note templates as plain text files for clinician-friendly editing.
- Make variant selection a closed enumeration with a total lookup.
"""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class TemplateVariant(enum.Enum):
    ARTICULATION = "Articulation"
    AUDITORY_VERBAL_THERAPY = "Auditory Verbal Therapy"
    DYSFLUENCY = "Dysfluency"
    LANGUAGE = "Language"
    PLAY_SKILLS = "Play Skills"
    PREVERBAL_SKILLS = "Preverbal Skills"
    GENERAL = "General"

    @property
    def track_name(self) -> str:
        return self.value

    @property
    def file_stem(self) -> str:
        return self.name.lower()

    @classmethod
    def for_track_name(cls, track_name: str) -> "TemplateVariant":
        key = str(track_name or "").strip()
        for variant in cls:
            if variant.value == key:
                return variant
        return cls.GENERAL


@dataclass(frozen=True)
class TemplateSpec:
    variant: TemplateVariant
    template_name: str
    template_text: str
    path: Path


def _default_template_root() -> Path:
    return Path(__file__).resolve().parent / "templates"


def _decode_template_file_content(raw: str, *, default_name: str) -> tuple[str, str]:
    lines = raw.splitlines()
    template_name = ""
    body_start = 0
    for idx, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.lower().startswith("title:"):
            template_name = stripped.split(":", 1)[1].strip()
            body_start = idx + 1
        else:
            body_start = idx
        break
    body = "\n".join(lines[body_start:]).strip()
    if not template_name:
        template_name = default_name.replace("_", " ").strip().title()
    return template_name, body


def load_template(variant: TemplateVariant, template_dir: Optional[Path] = None) -> TemplateSpec:
    """
    Load one variant's text. A configured override directory wins when it
    holds a file for the variant; otherwise the packaged template is used.
    """
    candidates = []
    if template_dir is not None:
        candidates.append(template_dir / f"{variant.file_stem}.txt")
    candidates.append(_default_template_root() / f"{variant.file_stem}.txt")

    for path in candidates:
        if not path.is_file():
            continue
        name, text = _decode_template_file_content(
            path.read_text(encoding="utf-8"), default_name=variant.file_stem
        )
        if not text:
            raise ValueError(f"Template text is missing: {path}")
        return TemplateSpec(variant=variant, template_name=name, template_text=text, path=path)
    raise ValueError(f"Template file not found for variant '{variant.value}'")
