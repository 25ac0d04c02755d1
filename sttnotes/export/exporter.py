from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sttnotes.export.documents import DocumentService
from sttnotes.export.emphasis import CONTENT_START_INDEX, compute_emphasis_ranges
from sttnotes.internal_core.contracts import ExportedDocument
from sttnotes.internal_core.errors import ExportError

logger = logging.getLogger(__name__)

TITLE_PREFIX = "Clinical Notes"


def document_title(now: datetime) -> str:
    return f"{TITLE_PREFIX} {now.strftime('%Y-%m-%d %H:%M:%S')}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClinicalDocExporter:
    def __init__(self, documents: DocumentService, *, clock: Optional[Callable[[], datetime]] = None):
        self._documents = documents
        self._clock = clock or _utc_now

    def export(self, note_text: str) -> ExportedDocument:
        """
        Publish the note as a new document and return its shareable link.

        A document created before a later step fails is left in place.
        """
        title = document_title(self._clock())
        ranges = compute_emphasis_ranges(note_text)

        try:
            document_id = self._documents.create(title)
        except Exception as exc:
            raise ExportError(f"Failed to create document: {exc}", stage="create") from exc
        logger.info("document created document_id=%s title=%s", document_id, title)

        try:
            self._documents.insert_text(document_id, CONTENT_START_INDEX, note_text)
        except Exception as exc:
            raise ExportError(f"Failed to insert note text: {exc}", stage="insert") from exc

        if ranges:
            try:
                self._documents.bold_ranges(document_id, ranges)
            except Exception as exc:
                raise ExportError(f"Failed to style headings: {exc}", stage="style") from exc

        try:
            self._documents.share_public_read(document_id)
        except Exception as exc:
            raise ExportError(f"Failed to share document: {exc}", stage="share") from exc

        url = self._documents.document_url(document_id)
        logger.info("document published document_id=%s headings=%d", document_id, len(ranges))
        return ExportedDocument(document_id=document_id, title=title, url=url, emphasis_ranges=ranges)
