from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, Optional

from .contracts import PipelineOutcome, SessionRecord
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    @abstractmethod
    def update(self, session_id: str, fields: Dict[str, Any]) -> None:
        """Keyed upsert of a partial field set."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionRecord]: ...


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._lock = RLock()
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def create_session(self, session_id: Optional[str] = None) -> str:
        session_id = session_id or uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = {"id": session_id, "status": "pending", "error": False}
        return session_id

    def update(self, session_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            session = self._sessions.setdefault(session_id, {"id": session_id})
            session.update(fields)

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return SessionRecord.model_validate(dict(session))


class FirestoreSessionStore(SessionStore):
    def __init__(self, client: Any, collection: str = "sessions"):
        self._client = client
        self._collection = collection

    def _doc(self, session_id: str) -> Any:
        return self._client.collection(self._collection).document(session_id)

    def update(self, session_id: str, fields: Dict[str, Any]) -> None:
        self._doc(session_id).set(fields, merge=True)

    def get(self, session_id: str) -> Optional[SessionRecord]:
        snapshot = self._doc(session_id).get()
        if not snapshot.exists:
            return None
        return SessionRecord.model_validate({**(snapshot.to_dict() or {}), "id": session_id})


class SessionStateTracker:
    """
    Writes the terminal pipeline state onto the session record.

    Success overwrites content fields and clears error flags; failure only
    touches the status/error fields so earlier content survives.
    """

    def __init__(self, store: SessionStore):
        self._store = store

    def record_success(self, session_id: str, outcome: PipelineOutcome) -> None:
        fields: Dict[str, Any] = {
            "transcript": outcome.transcript,
            "formattedConversation": outcome.formatted_conversation,
            "summary": outcome.summary,
            "docUrl": outcome.doc_url,
            "status": "succeeded",
            "error": False,
            "errorMessage": None,
        }
        if outcome.billed_duration_sec is not None:
            fields["billedDuration"] = outcome.billed_duration_sec
        try:
            self._store.update(session_id, fields)
        except Exception as exc:
            raise PersistenceError(f"Failed to update session {session_id}: {exc}") from exc
        logger.info("session updated session_id=%s status=succeeded", session_id)

    def report_failure(self, session_id: str, message: str) -> bool:
        fields = {"status": "failed", "error": True, "errorMessage": message}
        try:
            self._store.update(session_id, fields)
        except Exception:
            logger.exception("failed to record pipeline error session_id=%s", session_id)
            return False
        logger.info("session updated session_id=%s status=failed", session_id)
        return True
