from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from sttnotes.internal_core.contracts import EmphasisRange

# Body text is inserted at this document index; plain-text offsets shift by it.
CONTENT_START_INDEX = 1
# Literals whose bold span stops short of the match end ("S-" bolds only the "S").
END_ADJUSTMENTS = {"S-": -1}

TITLE_LITERAL = "CLINICAL NOTES"
REPEATED_LITERALS = frozenset({"Domain:"})
HEADING_LITERALS: tuple[str, ...] = (
    TITLE_LITERAL,
    "S-",
    "Session Objectives:",
    "Domain:",
    "Observations",
    "Home Practise:",
    "Next Session:",
    "Signed:",
)


@dataclass(frozen=True)
class TextRange:
    start: int
    end: int


def find_first(text: str, literal: str) -> Optional[TextRange]:
    if not literal:
        return None
    at = text.find(literal)
    if at < 0:
        return None
    return TextRange(start=at, end=at + len(literal))


def find_all_nonoverlapping(text: str, literal: str) -> List[TextRange]:
    if not literal:
        return []
    found: List[TextRange] = []
    at = text.find(literal)
    while at >= 0:
        found.append(TextRange(start=at, end=at + len(literal)))
        at = text.find(literal, at + len(literal))
    return found


def utf16_offset(text: str, offset: int) -> int:
    """Code-point offset into `text` expressed in UTF-16 code units."""
    return len(text[:offset].encode("utf-16-le")) // 2


def compute_emphasis_ranges(
    text: str,
    literals: Sequence[str] = HEADING_LITERALS,
    *,
    repeated: frozenset[str] = REPEATED_LITERALS,
) -> List[EmphasisRange]:
    """
    Locate heading literals in the plain note text and translate them into
    document coordinates (UTF-16 code units, shifted by CONTENT_START_INDEX).
    Literals in `repeated` are matched everywhere; the rest only at their
    first occurrence. Absent literals are skipped.
    """
    out: List[EmphasisRange] = []
    for literal in literals:
        if literal in repeated:
            matches = find_all_nonoverlapping(text, literal)
        else:
            first = find_first(text, literal)
            matches = [first] if first is not None else []
        for match in matches:
            end = match.end + END_ADJUSTMENTS.get(literal, 0)
            out.append(
                EmphasisRange(
                    literal=literal,
                    start_index=utf16_offset(text, match.start) + CONTENT_START_INDEX,
                    end_index=utf16_offset(text, end) + CONTENT_START_INDEX,
                )
            )
    return out
