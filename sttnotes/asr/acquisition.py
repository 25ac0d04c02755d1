from __future__ import annotations

"""
Resolve storage download URLs and materialize the referenced audio locally.

Design intent:
- Treat the download URL as opaque apart from its `/o/<object-path>` marker.
- Keep storage access behind a narrow read-by-path interface.
"""

import logging
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import unquote

from sttnotes.internal_core.audio_utils import ScratchFiles
from sttnotes.internal_core.errors import InvalidSourceFormat, SourceResolutionError

logger = logging.getLogger(__name__)

OBJECT_PATH_MARKER = "/o/"
_OBJECT_PATH_RE = re.compile(r"/o/([^?#]+)")
DEFAULT_AUDIO_SUFFIX = ".aac"


class ObjectStorage(ABC):
    @abstractmethod
    def download_to(self, object_path: str, destination: Path) -> None: ...


class FirebaseObjectStorage(ObjectStorage):
    def __init__(self, bucket: Any, timeout_sec: float = 300.0):
        self._bucket = bucket
        self._timeout_sec = timeout_sec

    def download_to(self, object_path: str, destination: Path) -> None:
        blob = self._bucket.blob(object_path)
        blob.download_to_filename(str(destination), timeout=self._timeout_sec)


class LocalObjectStorage(ObjectStorage):
    def __init__(self, root: Path):
        self._root = root.expanduser().resolve()

    def download_to(self, object_path: str, destination: Path) -> None:
        source = (self._root / object_path).resolve()
        if self._root not in source.parents:
            raise FileNotFoundError(f"Object path escapes storage root: {object_path}")
        if not source.is_file():
            raise FileNotFoundError(f"Object not found: {object_path}")
        shutil.copyfile(source, destination)


def resolve_storage_path(url: str) -> str:
    raw = str(url or "").strip()
    if OBJECT_PATH_MARKER not in raw:
        raise InvalidSourceFormat("Invalid Firebase Storage URL format")
    match = _OBJECT_PATH_RE.search(raw)
    if not match:
        raise InvalidSourceFormat("Invalid Firebase Storage URL format")
    object_path = unquote(match.group(1)).strip()
    if not object_path:
        raise InvalidSourceFormat("Invalid Firebase Storage URL format")
    return object_path


def _suffix_for(object_path: str) -> str:
    suffix = PurePosixPath(object_path).suffix.lower()
    if not suffix or len(suffix) > 8 or not suffix[1:].isalnum():
        return DEFAULT_AUDIO_SUFFIX
    return suffix


class AudioAcquisition:
    def __init__(self, storage: ObjectStorage):
        self._storage = storage

    def acquire(self, audio_url: str, scratch: ScratchFiles) -> Path:
        object_path = resolve_storage_path(audio_url)
        destination = scratch.path("input", _suffix_for(object_path))
        logger.info("downloading audio object_path=%s", object_path)
        try:
            self._storage.download_to(object_path, destination)
        except Exception as exc:
            raise SourceResolutionError(f"Failed to download audio '{object_path}': {exc}") from exc
        if not destination.exists():
            raise SourceResolutionError(f"Failed to download audio '{object_path}': no file written")
        logger.info("audio downloaded bytes=%d", destination.stat().st_size)
        return destination
