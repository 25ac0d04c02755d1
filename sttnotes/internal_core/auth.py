from __future__ import annotations

import hmac
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import AuthError

logger = logging.getLogger(__name__)

NOT_AUTHORIZED_MESSAGE = "Not authorized to access this route"
_BEARER_RE = re.compile(r"^Bearer (.*)$")


class IdentityVerifier(ABC):
    @abstractmethod
    def verify(self, token: str) -> Dict[str, Any]:
        """Return decoded claims or raise."""


class FirebaseIdentityVerifier(IdentityVerifier):
    def __init__(self, app: Any):
        self._app = app

    def verify(self, token: str) -> Dict[str, Any]:
        from firebase_admin import auth  # type: ignore

        return dict(auth.verify_id_token(token, app=self._app))


class StaticTokenVerifier(IdentityVerifier):
    def __init__(self, expected_token: str):
        self._expected = expected_token

    def verify(self, token: str) -> Dict[str, Any]:
        if not self._expected or not hmac.compare_digest(token, self._expected):
            raise ValueError("token mismatch")
        return {"uid": "static"}


def extract_bearer_token(authorization: Optional[str]) -> str:
    match = _BEARER_RE.match(authorization or "")
    if not match:
        raise AuthError(NOT_AUTHORIZED_MESSAGE, status_code=401)
    return match.group(1)


def authenticate(verifier: IdentityVerifier, authorization: Optional[str]) -> Dict[str, Any]:
    token = extract_bearer_token(authorization)
    try:
        claims = verifier.verify(token)
    except Exception as exc:
        logger.warning("token verification failed: %s", exc)
        raise AuthError(NOT_AUTHORIZED_MESSAGE, status_code=403) from exc
    logger.info("authenticated uid=%s", claims.get("uid", ""))
    return claims
