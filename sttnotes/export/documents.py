from __future__ import annotations

"""
Document backends for published clinical notes.

Design intent:
- Keep the exporter independent of the document provider.
- Expose the four steps the exporter needs: create, insert, bold, share.
"""

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Sequence

from sttnotes.internal_core.contracts import EmphasisRange

logger = logging.getLogger(__name__)

GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"
GOOGLE_DOC_URL = "https://docs.google.com/document/d/{document_id}/edit"
DOCUMENT_SCOPES = (
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/drive",
)


class DocumentService(ABC):
    @abstractmethod
    def create(self, title: str) -> str: ...

    @abstractmethod
    def insert_text(self, document_id: str, index: int, text: str) -> None: ...

    @abstractmethod
    def bold_ranges(self, document_id: str, ranges: Sequence[EmphasisRange]) -> None: ...

    @abstractmethod
    def share_public_read(self, document_id: str) -> None: ...

    @abstractmethod
    def document_url(self, document_id: str) -> str: ...


class GoogleDocumentService(DocumentService):
    def __init__(
        self,
        *,
        folder_id: str = "",
        credentials_path: str = "",
        docs_client: Any = None,
        drive_client: Any = None,
    ):
        self._folder_id = folder_id
        self._credentials_path = credentials_path
        self._docs = docs_client
        self._drive = drive_client
        self._lock = threading.Lock()

    def _clients(self) -> tuple[Any, Any]:
        with self._lock:
            if self._docs is None or self._drive is None:
                from google.oauth2 import service_account  # type: ignore
                from googleapiclient.discovery import build  # type: ignore

                credentials = None
                if self._credentials_path:
                    credentials = service_account.Credentials.from_service_account_file(
                        self._credentials_path, scopes=list(DOCUMENT_SCOPES)
                    )
                if self._docs is None:
                    self._docs = build("docs", "v1", credentials=credentials, cache_discovery=False)
                if self._drive is None:
                    self._drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
            return self._docs, self._drive

    def create(self, title: str) -> str:
        _, drive = self._clients()
        body: dict[str, Any] = {"name": title, "mimeType": GOOGLE_DOC_MIME_TYPE}
        if self._folder_id:
            body["parents"] = [self._folder_id]
        created = drive.files().create(body=body, fields="id", supportsAllDrives=True).execute()
        return str(created["id"])

    def insert_text(self, document_id: str, index: int, text: str) -> None:
        docs, _ = self._clients()
        requests = [{"insertText": {"location": {"index": index}, "text": text}}]
        docs.documents().batchUpdate(documentId=document_id, body={"requests": requests}).execute()

    def bold_ranges(self, document_id: str, ranges: Sequence[EmphasisRange]) -> None:
        docs, _ = self._clients()
        requests = [
            {
                "updateTextStyle": {
                    "range": {"startIndex": r.start_index, "endIndex": r.end_index},
                    "textStyle": {"bold": True},
                    "fields": "bold",
                }
            }
            for r in ranges
        ]
        docs.documents().batchUpdate(documentId=document_id, body={"requests": requests}).execute()

    def share_public_read(self, document_id: str) -> None:
        _, drive = self._clients()
        drive.permissions().create(
            fileId=document_id,
            body={"type": "anyone", "role": "reader"},
            supportsAllDrives=True,
        ).execute()

    def document_url(self, document_id: str) -> str:
        return GOOGLE_DOC_URL.format(document_id=document_id)


class LocalDocumentService(DocumentService):
    """Writes each document as a JSON file under `root`; for development runs."""

    def __init__(self, root: Path):
        self._root = root.expanduser()
        self._lock = threading.Lock()

    def _path(self, document_id: str) -> Path:
        return self._root / f"{document_id}.json"

    def _read(self, document_id: str) -> dict[str, Any]:
        path = self._path(document_id)
        if not path.is_file():
            raise FileNotFoundError(f"Document not found: {document_id}")
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, document_id: str, doc: dict[str, Any]) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        self._path(document_id).write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")

    def create(self, title: str) -> str:
        document_id = uuid.uuid4().hex
        with self._lock:
            self._write(
                document_id,
                {"id": document_id, "title": title, "body": "", "bold": [], "shared": False},
            )
        return document_id

    def insert_text(self, document_id: str, index: int, text: str) -> None:
        with self._lock:
            doc = self._read(document_id)
            body = str(doc.get("body") or "")
            # Document index 1 is the first body character.
            offset = max(0, min(len(body), index - 1))
            doc["body"] = body[:offset] + text + body[offset:]
            self._write(document_id, doc)

    def bold_ranges(self, document_id: str, ranges: Sequence[EmphasisRange]) -> None:
        with self._lock:
            doc = self._read(document_id)
            doc["bold"] = list(doc.get("bold") or []) + [r.model_dump() for r in ranges]
            self._write(document_id, doc)

    def share_public_read(self, document_id: str) -> None:
        with self._lock:
            doc = self._read(document_id)
            doc["shared"] = True
            self._write(document_id, doc)

    def document_url(self, document_id: str) -> str:
        return self._path(document_id).resolve().as_uri()

    def load(self, document_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            try:
                return self._read(document_id)
            except FileNotFoundError:
                return None
