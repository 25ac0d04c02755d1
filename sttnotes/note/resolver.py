from __future__ import annotations

"""
Merge therapist-supplied session metadata into a clinical-note template.

Design intent:
- Pick the variant from the session's tracks (one track: its domain; several: generic).
- Substitute placeholders in a fixed order, first occurrence only.
- Leave unknown or missing placeholders untouched.
"""

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from sttnotes.internal_core.contracts import Track
from sttnotes.note.variants import TemplateVariant, load_template

SIGNED_MARKER = "Signed:"
_PLAN_SPLIT_RE = re.compile(r"[\n,]")


@dataclass(frozen=True)
class ResolvedTemplate:
    variant: TemplateVariant
    text: str
    objectives_block: str
    next_session_block: str
    track_label: str


def _numbered(objectives: Sequence[str], *, indent: str = "") -> list[str]:
    return [f"{indent}{i}. {objective}" for i, objective in enumerate(objectives, start=1)]


def build_objectives_block(tracks: Sequence[Track]) -> str:
    if not tracks:
        return ""
    if len(tracks) == 1:
        return "\n".join(_numbered(tracks[0].objectives))
    groups = []
    for track in tracks:
        lines = [f"Domain: {track.track_name}"] + _numbered(track.objectives, indent="  ")
        groups.append("\n".join(lines))
    return "\n\n".join(groups)


def build_next_session_block(next_session_plans: Optional[str]) -> str:
    raw = str(next_session_plans or "")
    items = [part.strip() for part in _PLAN_SPLIT_RE.split(raw)]
    return "\n".join(f"- {item}" for item in items if item)


def select_variant(tracks: Sequence[Track]) -> TemplateVariant:
    if len(tracks) == 1:
        return TemplateVariant.for_track_name(tracks[0].track_name)
    return TemplateVariant.GENERAL


def track_label(tracks: Sequence[Track]) -> str:
    return ", ".join(track.track_name for track in tracks)


def format_today(today: date) -> str:
    return f"{today.day:02d}/{today.month:02d}/{today.year}"


def substitute_placeholders(template_text: str, values: Sequence[tuple[str, str]]) -> str:
    rendered = template_text
    for token, value in values:
        rendered = rendered.replace(token, value, 1)
    return rendered


def insert_session_notes(text: str, session_notes: Optional[str]) -> str:
    notes = str(session_notes or "").strip()
    if not notes:
        return text
    block = f"Session Notes:\n{notes}\n\n"
    # Anchor on the template's last marker; notes are inserted verbatim.
    marker_at = text.rfind(SIGNED_MARKER)
    if marker_at < 0:
        return f"{text.rstrip()}\n\n{block}".rstrip() + "\n"
    return text[:marker_at] + block + text[marker_at:]


class TemplateResolver:
    def __init__(self, template_dir: Optional[Path] = None):
        self._template_dir = template_dir

    def resolve(
        self,
        *,
        name: str,
        tracks: Sequence[Track],
        next_session_plans: Optional[str] = None,
        session_notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ResolvedTemplate:
        if not tracks:
            raise ValueError("At least one track is required to resolve a template.")

        variant = select_variant(tracks)
        template = load_template(variant, self._template_dir)
        objectives_block = build_objectives_block(tracks)
        next_session_block = build_next_session_block(next_session_plans)
        label = track_label(tracks)

        rendered = substitute_placeholders(
            template.template_text,
            [
                ("{name}", str(name or "")),
                ("{track}", label),
                ("{today}", format_today(today or date.today())),
                ("{objectives}", objectives_block),
                ("{tracksAndObjectives}", objectives_block),
                ("{nextSessionPlans}", next_session_block),
            ],
        )
        rendered = insert_session_notes(rendered, session_notes)
        return ResolvedTemplate(
            variant=variant,
            text=rendered,
            objectives_block=objectives_block,
            next_session_block=next_session_block,
            track_label=label,
        )
