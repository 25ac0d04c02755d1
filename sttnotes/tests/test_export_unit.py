import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import pytest

from sttnotes.export.documents import DocumentService, GoogleDocumentService, LocalDocumentService
from sttnotes.export.emphasis import (
    CONTENT_START_INDEX,
    END_ADJUSTMENTS,
    compute_emphasis_ranges,
    find_all_nonoverlapping,
    find_first,
)
from sttnotes.export.exporter import ClinicalDocExporter, document_title
from sttnotes.internal_core.contracts import EmphasisRange
from sttnotes.internal_core.errors import ExportError

_NOTE = (
    "CLINICAL NOTES\n"
    "S- Clinic room, mother present.\n"
    "Session Objectives:\n"
    "Domain: Language\n"
    "Domain: Play Skills\n"
    "Observations\n"
    "Observations repeated\n"
    "Home Practise:\n"
    "Next Session:\n"
    "Signed:\n"
)


def _fixed_clock() -> datetime:
    return datetime(2024, 3, 5, 10, 11, 12, tzinfo=timezone.utc)


class _RecordingDocs(DocumentService):
    def __init__(self, fail_stage: str = ""):
        self.fail_stage = fail_stage
        self.calls: list[tuple] = []

    def _maybe_fail(self, stage: str) -> None:
        if stage == self.fail_stage:
            raise RuntimeError(f"{stage} exploded")

    def create(self, title: str) -> str:
        self.calls.append(("create", title))
        self._maybe_fail("create")
        return "doc123"

    def insert_text(self, document_id: str, index: int, text: str) -> None:
        self.calls.append(("insert", document_id, index, text))
        self._maybe_fail("insert")

    def bold_ranges(self, document_id: str, ranges: Sequence[EmphasisRange]) -> None:
        self.calls.append(("bold", document_id, list(ranges)))
        self._maybe_fail("style")

    def share_public_read(self, document_id: str) -> None:
        self.calls.append(("share", document_id))
        self._maybe_fail("share")

    def document_url(self, document_id: str) -> str:
        return f"https://docs.google.com/document/d/{document_id}/edit"


def test_finders_return_plain_text_ranges() -> None:
    found = find_first("abc abc", "abc")
    assert (found.start, found.end) == (0, 3)
    assert find_first("abc", "zzz") is None
    assert [(r.start, r.end) for r in find_all_nonoverlapping("aaaa", "aa")] == [(0, 2), (2, 4)]


def test_emphasis_ranges_shift_by_content_start() -> None:
    ranges = compute_emphasis_ranges("CLINICAL NOTES")
    assert CONTENT_START_INDEX == 1
    assert [(r.literal, r.start_index, r.end_index) for r in ranges] == [("CLINICAL NOTES", 1, 15)]


def test_domain_matches_every_occurrence_others_only_first() -> None:
    ranges = compute_emphasis_ranges(_NOTE)
    by_literal: dict[str, list[EmphasisRange]] = {}
    for r in ranges:
        by_literal.setdefault(r.literal, []).append(r)

    assert len(by_literal["Domain:"]) == 2
    assert len(by_literal["Observations"]) == 1
    first_domain = _NOTE.index("Domain:")
    second_domain = _NOTE.index("Domain:", first_domain + 1)
    assert [r.start_index for r in by_literal["Domain:"]] == [first_domain + 1, second_domain + 1]
    s_dash = by_literal["S-"][0]
    assert (s_dash.start_index, s_dash.end_index) == (_NOTE.index("S-") + 1, _NOTE.index("S-") + 2)
    for r in ranges:
        assert r.end_index - r.start_index == len(r.literal) + END_ADJUSTMENTS.get(r.literal, 0)


def test_section_marker_bolds_only_the_letter() -> None:
    ranges = compute_emphasis_ranges("X\nS- Clinic room")
    assert [(r.literal, r.start_index, r.end_index) for r in ranges] == [("S-", 3, 4)]


def test_ranges_count_utf16_units_for_astral_characters() -> None:
    ranges = compute_emphasis_ranges("\U0001F600 CLINICAL NOTES\nSigned:")
    title, signed = ranges
    assert (title.start_index, title.end_index) == (4, 18)
    assert (signed.start_index, signed.end_index) == (19, 26)

    plain = compute_emphasis_ranges("\u00e9 CLINICAL NOTES")
    assert (plain[0].start_index, plain[0].end_index) == (3, 17)


def test_absent_headings_are_skipped() -> None:
    ranges = compute_emphasis_ranges("CLINICAL NOTES\nSigned:")
    assert [r.literal for r in ranges] == ["CLINICAL NOTES", "Signed:"]
    assert compute_emphasis_ranges("nothing to see") == []


def test_document_title_format() -> None:
    assert document_title(_fixed_clock()) == "Clinical Notes 2024-03-05 10:11:12"


def test_exporter_runs_steps_in_order() -> None:
    docs = _RecordingDocs()
    exported = ClinicalDocExporter(docs, clock=_fixed_clock).export(_NOTE)

    assert [c[0] for c in docs.calls] == ["create", "insert", "bold", "share"]
    assert docs.calls[0] == ("create", "Clinical Notes 2024-03-05 10:11:12")
    assert docs.calls[1] == ("insert", "doc123", 1, _NOTE)
    assert exported.url == "https://docs.google.com/document/d/doc123/edit"
    assert exported.emphasis_ranges == docs.calls[2][2]


def test_exporter_skips_styling_without_headings() -> None:
    docs = _RecordingDocs()
    ClinicalDocExporter(docs, clock=_fixed_clock).export("plain text only")
    assert [c[0] for c in docs.calls] == ["create", "insert", "share"]


@pytest.mark.parametrize("stage", ["create", "insert", "style", "share"])
def test_exporter_failures_name_the_stage(stage: str) -> None:
    docs = _RecordingDocs(fail_stage=stage)
    with pytest.raises(ExportError) as exc_info:
        ClinicalDocExporter(docs, clock=_fixed_clock).export(_NOTE)
    assert exc_info.value.stage == stage
    assert f"{stage} exploded" in exc_info.value.message


def test_local_document_service_round_trip(tmp_path: Path) -> None:
    docs = LocalDocumentService(tmp_path / "docs")
    exported = ClinicalDocExporter(docs, clock=_fixed_clock).export(_NOTE)

    assert exported.url.startswith("file://")
    stored = docs.load(exported.document_id)
    assert stored is not None
    assert stored["title"] == "Clinical Notes 2024-03-05 10:11:12"
    assert stored["body"] == _NOTE
    assert stored["shared"] is True
    assert len(stored["bold"]) == len(exported.emphasis_ranges)
    on_disk = json.loads((tmp_path / "docs" / f"{exported.document_id}.json").read_text(encoding="utf-8"))
    assert on_disk["body"] == _NOTE


class _Executable:
    def __init__(self, result=None):
        self.result = result or {}

    def execute(self):
        return self.result


class _FakeDrive:
    def __init__(self):
        self.created: list[dict] = []
        self.permissions_created: list[dict] = []

    def files(self):
        return self

    def permissions(self):
        drive = self

        class _Perms:
            def create(self, **kwargs):
                drive.permissions_created.append(kwargs)
                return _Executable()

        return _Perms()

    def create(self, **kwargs):
        self.created.append(kwargs)
        return _Executable({"id": "gdoc1"})


class _FakeDocs:
    def __init__(self):
        self.batches: list[dict] = []

    def documents(self):
        return self

    def batchUpdate(self, **kwargs):
        self.batches.append(kwargs)
        return _Executable()


def test_google_document_service_request_shapes() -> None:
    drive, gdocs = _FakeDrive(), _FakeDocs()
    service = GoogleDocumentService(folder_id="folder9", docs_client=gdocs, drive_client=drive)
    exported = ClinicalDocExporter(service, clock=_fixed_clock).export("CLINICAL NOTES\nbody")

    assert drive.created[0]["body"] == {
        "name": "Clinical Notes 2024-03-05 10:11:12",
        "mimeType": "application/vnd.google-apps.document",
        "parents": ["folder9"],
    }
    insert = gdocs.batches[0]["body"]["requests"][0]["insertText"]
    assert insert == {"location": {"index": 1}, "text": "CLINICAL NOTES\nbody"}
    style = gdocs.batches[1]["body"]["requests"][0]["updateTextStyle"]
    assert style["range"] == {"startIndex": 1, "endIndex": 15}
    assert style["textStyle"] == {"bold": True}
    assert drive.permissions_created[0]["body"] == {"type": "anyone", "role": "reader"}
    assert exported.url == "https://docs.google.com/document/d/gdoc1/edit"
