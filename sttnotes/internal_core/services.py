from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from sttnotes.asr.acquisition import (
    AudioAcquisition,
    FirebaseObjectStorage,
    LocalObjectStorage,
    ObjectStorage,
)
from sttnotes.asr.transcription import TranscriptionService
from sttnotes.export.documents import DocumentService, GoogleDocumentService, LocalDocumentService
from sttnotes.export.exporter import ClinicalDocExporter
from sttnotes.internal_core.asr import GoogleSpeechRecognizer, MockSpeechRecognizer, SpeechRecognizer
from sttnotes.internal_core.audio_utils import AudioNormalizer
from sttnotes.internal_core.auth import FirebaseIdentityVerifier, IdentityVerifier, StaticTokenVerifier
from sttnotes.internal_core.config import AppConfig
from sttnotes.internal_core.session_store import (
    FirestoreSessionStore,
    InMemorySessionStore,
    SessionStateTracker,
    SessionStore,
)
from sttnotes.note.generator import DocumentGenerator
from sttnotes.note.models import GeminiGenerativeModel, GenerativeModel, LlamaCppGenerativeModel
from sttnotes.note.resolver import TemplateResolver

logger = logging.getLogger(__name__)

_firebase_lock = threading.Lock()


@dataclass
class PipelineServices:
    verifier: IdentityVerifier
    acquisition: AudioAcquisition
    normalizer: AudioNormalizer
    transcription: TranscriptionService
    resolver: TemplateResolver
    generator: DocumentGenerator
    exporter: ClinicalDocExporter
    tracker: SessionStateTracker
    tmp_dir: Path


def _firebase_app(cfg: AppConfig) -> Any:
    """Initialize (once) and return the named firebase-admin app."""
    import firebase_admin  # type: ignore
    from firebase_admin import credentials  # type: ignore

    name = cfg.STTNOTES_FIREBASE_APP_NAME
    with _firebase_lock:
        try:
            return firebase_admin.get_app(name)
        except ValueError:
            pass
        cred_path = cfg.STTNOTES_FIREBASE_CREDENTIALS
        cred = credentials.Certificate(cred_path) if cred_path and Path(cred_path).is_file() else None
        options = {"storageBucket": cfg.STTNOTES_STORAGE_BUCKET} if cfg.STTNOTES_STORAGE_BUCKET else None
        logger.info("initializing firebase app name=%s credentials=%s", name, bool(cred))
        return firebase_admin.initialize_app(cred, options, name=name)


def _build_verifier(cfg: AppConfig) -> IdentityVerifier:
    if cfg.STTNOTES_AUTH_BACKEND == "static":
        return StaticTokenVerifier(cfg.STTNOTES_STATIC_TOKEN)
    return FirebaseIdentityVerifier(_firebase_app(cfg))


def _build_storage(cfg: AppConfig) -> ObjectStorage:
    if cfg.STTNOTES_STORAGE_BACKEND == "local":
        return LocalObjectStorage(Path(cfg.STTNOTES_LOCAL_STORAGE_DIR))
    from firebase_admin import storage  # type: ignore

    bucket = storage.bucket(cfg.STTNOTES_STORAGE_BUCKET or None, app=_firebase_app(cfg))
    return FirebaseObjectStorage(bucket, timeout_sec=cfg.STTNOTES_EXTERNAL_TIMEOUT_SECONDS)


def _build_recognizer(cfg: AppConfig) -> SpeechRecognizer:
    if cfg.STTNOTES_ASR_PROVIDER == "mock":
        return MockSpeechRecognizer()
    return GoogleSpeechRecognizer()


def _build_model(cfg: AppConfig) -> GenerativeModel:
    if cfg.STTNOTES_LLM_BACKEND == "llama_cpp":
        return LlamaCppGenerativeModel(
            model_path=cfg.STTNOTES_LLAMA_CPP_MODEL,
            n_ctx=cfg.STTNOTES_LLAMA_CPP_N_CTX,
            n_gpu_layers=cfg.STTNOTES_LLAMA_CPP_N_GPU_LAYERS,
            chat_format=cfg.STTNOTES_LLAMA_CPP_CHAT_FORMAT.strip() or None,
        )
    return GeminiGenerativeModel(
        api_key=cfg.STTNOTES_GEMINI_API_KEY,
        model_name=cfg.STTNOTES_GEMINI_MODEL,
    )


def _build_documents(cfg: AppConfig) -> DocumentService:
    if cfg.STTNOTES_DOCS_BACKEND == "local":
        return LocalDocumentService(Path(cfg.STTNOTES_LOCAL_DOCS_DIR))
    return GoogleDocumentService(
        folder_id=cfg.STTNOTES_DOCS_FOLDER_ID,
        credentials_path=cfg.STTNOTES_DOCS_CREDENTIALS or cfg.STTNOTES_FIREBASE_CREDENTIALS,
    )


def _build_session_store(cfg: AppConfig) -> SessionStore:
    if cfg.STTNOTES_SESSION_BACKEND == "memory":
        return InMemorySessionStore()
    from firebase_admin import firestore  # type: ignore

    client = firestore.client(app=_firebase_app(cfg))
    return FirestoreSessionStore(client, collection=cfg.STTNOTES_SESSIONS_COLLECTION)


def _debug_log_path(cfg: AppConfig) -> Optional[Path]:
    raw = cfg.STTNOTES_LLM_DEBUG_LOG.strip()
    if not raw:
        return None
    if raw.lower() in {"1", "true", "on", "yes"}:
        return cfg.tmp_dir_path() / "sttnotes_llm_raw.log"
    return Path(raw).expanduser()


def build_services(cfg: AppConfig) -> PipelineServices:
    timeout = cfg.STTNOTES_EXTERNAL_TIMEOUT_SECONDS
    services = PipelineServices(
        verifier=_build_verifier(cfg),
        acquisition=AudioAcquisition(_build_storage(cfg)),
        normalizer=AudioNormalizer(ffmpeg_bin=cfg.STTNOTES_FFMPEG_BIN, timeout_sec=timeout),
        transcription=TranscriptionService(
            _build_recognizer(cfg),
            max_audio_bytes=cfg.STTNOTES_MAX_AUDIO_BYTES,
            timeout_sec=timeout,
        ),
        resolver=TemplateResolver(cfg.template_dir_path()),
        generator=DocumentGenerator(_build_model(cfg), debug_log_path=_debug_log_path(cfg)),
        exporter=ClinicalDocExporter(_build_documents(cfg)),
        tracker=SessionStateTracker(_build_session_store(cfg)),
        tmp_dir=cfg.tmp_dir_path(),
    )
    logger.info(
        "services ready auth=%s storage=%s asr=%s llm=%s docs=%s sessions=%s",
        cfg.STTNOTES_AUTH_BACKEND,
        cfg.STTNOTES_STORAGE_BACKEND,
        cfg.STTNOTES_ASR_PROVIDER,
        cfg.STTNOTES_LLM_BACKEND,
        cfg.STTNOTES_DOCS_BACKEND,
        cfg.STTNOTES_SESSION_BACKEND,
    )
    return services
