from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _project_root() -> Path:
    # sttnotes/internal_core/config.py -> sttnotes -> repo root
    return Path(__file__).resolve().parents[2]


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_choice(name: str, default: str, allowed: set[str]) -> str:
    value = _getenv_str(name, default).strip().lower() or default
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {value!r}")
    return value


AUTH_BACKENDS = {"firebase", "static"}
STORAGE_BACKENDS = {"firebase", "local"}
ASR_PROVIDERS = {"google", "mock"}
LLM_BACKENDS = {"gemini", "llama_cpp"}
SESSION_BACKENDS = {"firestore", "memory"}
DOCS_BACKENDS = {"google", "local"}


@dataclass(frozen=True)
class AppConfig:
    STTNOTES_AUTH_BACKEND: str
    STTNOTES_STATIC_TOKEN: str
    STTNOTES_FIREBASE_CREDENTIALS: str
    STTNOTES_FIREBASE_APP_NAME: str
    STTNOTES_STORAGE_BACKEND: str
    STTNOTES_STORAGE_BUCKET: str
    STTNOTES_LOCAL_STORAGE_DIR: str
    STTNOTES_TMP_DIR: str
    STTNOTES_FFMPEG_BIN: str
    STTNOTES_ASR_PROVIDER: str
    STTNOTES_MAX_AUDIO_BYTES: int
    STTNOTES_LLM_BACKEND: str
    STTNOTES_GEMINI_API_KEY: str
    STTNOTES_GEMINI_MODEL: str
    STTNOTES_LLAMA_CPP_MODEL: str
    STTNOTES_LLAMA_CPP_N_CTX: int
    STTNOTES_LLAMA_CPP_N_GPU_LAYERS: int
    STTNOTES_LLAMA_CPP_CHAT_FORMAT: str
    STTNOTES_LLM_DEBUG_LOG: str
    STTNOTES_TEMPLATE_DIR: str
    STTNOTES_SESSION_BACKEND: str
    STTNOTES_SESSIONS_COLLECTION: str
    STTNOTES_DOCS_BACKEND: str
    STTNOTES_DOCS_FOLDER_ID: str
    STTNOTES_DOCS_CREDENTIALS: str
    STTNOTES_LOCAL_DOCS_DIR: str
    STTNOTES_EXTERNAL_TIMEOUT_SECONDS: float
    STTNOTES_LOG_LEVEL: str
    STTNOTES_LOG_DIR: str
    STTNOTES_LOG_TO_FILE: bool

    def tmp_dir_path(self) -> Path:
        return Path(self.STTNOTES_TMP_DIR).expanduser().resolve()

    def template_dir_path(self) -> Optional[Path]:
        raw = self.STTNOTES_TEMPLATE_DIR.strip()
        if not raw:
            return None
        return Path(raw).expanduser().resolve()


def load_config() -> AppConfig:
    project_root = _project_root()
    default_tmp = str(Path(tempfile.gettempdir()) / "sttnotes")

    return AppConfig(
        STTNOTES_AUTH_BACKEND=_getenv_choice("STTNOTES_AUTH_BACKEND", "firebase", AUTH_BACKENDS),
        STTNOTES_STATIC_TOKEN=_getenv_str("STTNOTES_STATIC_TOKEN", ""),
        STTNOTES_FIREBASE_CREDENTIALS=_getenv_str(
            "STTNOTES_FIREBASE_CREDENTIALS",
            _getenv_str("GOOGLE_APPLICATION_CREDENTIALS", str(project_root / "key.json")),
        ),
        STTNOTES_FIREBASE_APP_NAME=_getenv_str("STTNOTES_FIREBASE_APP_NAME", "sttnotes"),
        STTNOTES_STORAGE_BACKEND=_getenv_choice(
            "STTNOTES_STORAGE_BACKEND", "firebase", STORAGE_BACKENDS
        ),
        STTNOTES_STORAGE_BUCKET=_getenv_str(
            "STTNOTES_STORAGE_BUCKET", "stt-notes-474506.firebasestorage.app"
        ),
        STTNOTES_LOCAL_STORAGE_DIR=_getenv_str(
            "STTNOTES_LOCAL_STORAGE_DIR", str(project_root / "assets" / "storage")
        ),
        STTNOTES_TMP_DIR=_getenv_str("STTNOTES_TMP_DIR", default_tmp),
        STTNOTES_FFMPEG_BIN=_getenv_str("STTNOTES_FFMPEG_BIN", ""),
        STTNOTES_ASR_PROVIDER=_getenv_choice("STTNOTES_ASR_PROVIDER", "google", ASR_PROVIDERS),
        # Synchronous recognition rejects inline audio above 10MB.
        STTNOTES_MAX_AUDIO_BYTES=_getenv_int("STTNOTES_MAX_AUDIO_BYTES", 10 * 1024 * 1024),
        STTNOTES_LLM_BACKEND=_getenv_choice("STTNOTES_LLM_BACKEND", "gemini", LLM_BACKENDS),
        STTNOTES_GEMINI_API_KEY=_getenv_str(
            "STTNOTES_GEMINI_API_KEY", _getenv_str("GEMINI_API_KEY", "")
        ),
        STTNOTES_GEMINI_MODEL=_getenv_str("STTNOTES_GEMINI_MODEL", "gemini-2.5-flash"),
        STTNOTES_LLAMA_CPP_MODEL=_getenv_str("STTNOTES_LLAMA_CPP_MODEL", ""),
        STTNOTES_LLAMA_CPP_N_CTX=_getenv_int("STTNOTES_LLAMA_CPP_N_CTX", 16384),
        STTNOTES_LLAMA_CPP_N_GPU_LAYERS=_getenv_int("STTNOTES_LLAMA_CPP_N_GPU_LAYERS", -1),
        STTNOTES_LLAMA_CPP_CHAT_FORMAT=_getenv_str("STTNOTES_LLAMA_CPP_CHAT_FORMAT", "gemma"),
        STTNOTES_LLM_DEBUG_LOG=_getenv_str("STTNOTES_LLM_DEBUG_LOG", ""),
        STTNOTES_TEMPLATE_DIR=_getenv_str("STTNOTES_TEMPLATE_DIR", ""),
        STTNOTES_SESSION_BACKEND=_getenv_choice(
            "STTNOTES_SESSION_BACKEND", "firestore", SESSION_BACKENDS
        ),
        STTNOTES_SESSIONS_COLLECTION=_getenv_str("STTNOTES_SESSIONS_COLLECTION", "sessions"),
        STTNOTES_DOCS_BACKEND=_getenv_choice("STTNOTES_DOCS_BACKEND", "google", DOCS_BACKENDS),
        STTNOTES_DOCS_FOLDER_ID=_getenv_str("STTNOTES_DOCS_FOLDER_ID", ""),
        STTNOTES_DOCS_CREDENTIALS=_getenv_str("STTNOTES_DOCS_CREDENTIALS", ""),
        STTNOTES_LOCAL_DOCS_DIR=_getenv_str(
            "STTNOTES_LOCAL_DOCS_DIR", str(Path(default_tmp) / "documents")
        ),
        STTNOTES_EXTERNAL_TIMEOUT_SECONDS=_getenv_float("STTNOTES_EXTERNAL_TIMEOUT_SECONDS", 300.0),
        STTNOTES_LOG_LEVEL=_getenv_str("STTNOTES_LOG_LEVEL", "INFO"),
        STTNOTES_LOG_DIR=_getenv_str("STTNOTES_LOG_DIR", str(project_root / "logs")),
        STTNOTES_LOG_TO_FILE=_getenv_bool("STTNOTES_LOG_TO_FILE", False),
    )
