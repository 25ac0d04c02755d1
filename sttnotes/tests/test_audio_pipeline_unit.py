import subprocess
import sys
import wave
from datetime import timedelta
from pathlib import Path
from types import ModuleType, SimpleNamespace

import pytest

from sttnotes.asr.acquisition import AudioAcquisition, LocalObjectStorage, resolve_storage_path
from sttnotes.asr.transcription import AUDIO_TOO_LARGE_MESSAGE, TranscriptionService
from sttnotes.internal_core import audio_utils
from sttnotes.internal_core.asr import (
    ASRError,
    GoogleSpeechRecognizer,
    MockSpeechRecognizer,
    RecognitionResponse,
    RecognitionSettings,
    SpeechRecognizer,
)
from sttnotes.internal_core.audio_utils import AudioNormalizer, ScratchFiles, scratch_scope
from sttnotes.internal_core.errors import (
    AudioTooLargeOrInvalid,
    InvalidSourceFormat,
    SourceResolutionError,
    TranscodeError,
    TranscriptionFailed,
)

_URL = (
    "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o/"
    "sessions%2Fabc123%2Frecording.m4a?alt=media&token=t0k3n"
)


def _write_wav(path: Path, *, rate: int = 16000, channels: int = 1, frames: int = 1600) -> None:
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(b"\x10\x00" * frames * channels)


class _ScriptedRecognizer(SpeechRecognizer):
    def __init__(self, response: RecognitionResponse | None = None, error: Exception | None = None):
        self.response = response or RecognitionResponse()
        self.error = error
        self.received: list[tuple[bytes, RecognitionSettings, float]] = []

    def recognize(self, audio_content, settings, timeout_sec=300.0):
        self.received.append((audio_content, settings, timeout_sec))
        if self.error is not None:
            raise self.error
        return self.response

    def name(self) -> str:
        return "scripted"


def test_resolve_storage_path_decodes_object_path() -> None:
    assert resolve_storage_path(_URL) == "sessions/abc123/recording.m4a"


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/sessions/abc123/recording.m4a",
        "https://firebasestorage.googleapis.com/v0/b/demo/o/?alt=media",
        "",
    ],
)
def test_resolve_storage_path_rejects_bad_urls(url: str) -> None:
    with pytest.raises(InvalidSourceFormat) as exc_info:
        resolve_storage_path(url)
    assert exc_info.value.message == "Invalid Firebase Storage URL format"
    assert isinstance(exc_info.value, SourceResolutionError)


def test_acquire_copies_object_into_scratch(tmp_path: Path) -> None:
    store_root = tmp_path / "store"
    (store_root / "sessions" / "abc123").mkdir(parents=True)
    (store_root / "sessions" / "abc123" / "recording.m4a").write_bytes(b"audio-bytes")

    with scratch_scope(tmp_path / "scratch") as scratch:
        local = AudioAcquisition(LocalObjectStorage(store_root)).acquire(_URL, scratch)
        assert local.read_bytes() == b"audio-bytes"
        assert local.name.startswith("input_")
        assert local.suffix == ".m4a"
    assert not local.exists()


def test_acquire_missing_object_is_source_error(tmp_path: Path) -> None:
    scratch = ScratchFiles(tmp_path / "scratch")
    with pytest.raises(SourceResolutionError):
        AudioAcquisition(LocalObjectStorage(tmp_path / "store")).acquire(_URL, scratch)


def test_local_storage_refuses_paths_outside_root(tmp_path: Path) -> None:
    (tmp_path / "secret.aac").write_bytes(b"x")
    (tmp_path / "store").mkdir()
    with pytest.raises(FileNotFoundError):
        LocalObjectStorage(tmp_path / "store").download_to("../secret.aac", tmp_path / "out.aac")


def test_scratch_scope_removes_files_on_failure(tmp_path: Path) -> None:
    created: list[Path] = []
    with pytest.raises(RuntimeError):
        with scratch_scope(tmp_path) as scratch:
            p = scratch.path("output", ".wav")
            p.write_bytes(b"x")
            created.append(p)
            raise RuntimeError("stage failed")
    assert created and not created[0].exists()


def test_scratch_paths_are_unique(tmp_path: Path) -> None:
    scratch = ScratchFiles(tmp_path)
    first, second = scratch.path("input", ".aac"), scratch.path("input", ".aac")
    assert first != second
    assert scratch.paths == [first, second]


def test_normalizer_command_targets_mono_16k_pcm() -> None:
    cmd = AudioNormalizer().build_command("ffmpeg", Path("in.aac"), Path("out.wav"))
    joined = " ".join(cmd)
    assert "-ac 1" in joined
    assert "-ar 16000" in joined
    assert "-acodec pcm_s16le" in joined
    assert "-af loudnorm" in joined
    assert cmd[-1] == "out.wav"


def test_normalize_verifies_ffmpeg_output(monkeypatch, tmp_path: Path) -> None:
    source = tmp_path / "in.aac"
    source.write_bytes(b"aac")

    def fake_run(cmd, **kwargs):
        _write_wav(Path(cmd[-1]))
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(audio_utils.subprocess, "run", fake_run)
    with scratch_scope(tmp_path / "scratch") as scratch:
        out = AudioNormalizer(ffmpeg_bin="ffmpeg").normalize(source, scratch)
        assert audio_utils.load_wav_info(out)[1:] == (16000, 1, 2)


def test_normalize_rejects_wrong_format(monkeypatch, tmp_path: Path) -> None:
    source = tmp_path / "in.aac"
    source.write_bytes(b"aac")

    def fake_run(cmd, **kwargs):
        _write_wav(Path(cmd[-1]), rate=8000)
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(audio_utils.subprocess, "run", fake_run)
    with pytest.raises(TranscodeError):
        AudioNormalizer(ffmpeg_bin="ffmpeg").normalize(source, ScratchFiles(tmp_path / "scratch"))


def test_normalize_reports_ffmpeg_stderr_tail(monkeypatch, tmp_path: Path) -> None:
    source = tmp_path / "in.aac"
    source.write_bytes(b"aac")

    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, b"", b"header\nInvalid data found when processing input\n")

    monkeypatch.setattr(audio_utils.subprocess, "run", fake_run)
    with pytest.raises(TranscodeError) as exc_info:
        AudioNormalizer(ffmpeg_bin="ffmpeg").normalize(source, ScratchFiles(tmp_path / "scratch"))
    assert "Invalid data found when processing input" in exc_info.value.message


def test_normalize_missing_input(tmp_path: Path) -> None:
    with pytest.raises(TranscodeError):
        AudioNormalizer(ffmpeg_bin="ffmpeg").normalize(tmp_path / "nope.aac", ScratchFiles(tmp_path))


def test_transcription_joins_segments_in_order(tmp_path: Path) -> None:
    wav = tmp_path / "a.wav"
    wav.write_bytes(b"\x00" * 64)
    recognizer = _ScriptedRecognizer(RecognitionResponse(texts=["hello there", "how are you"], billed_duration_sec=15.0))
    result = TranscriptionService(recognizer, timeout_sec=42.0).transcribe(wav)

    assert result.transcript == "hello there\nhow are you"
    assert result.billed_duration_sec == 15.0
    audio, settings, timeout = recognizer.received[0]
    assert audio == b"\x00" * 64
    assert timeout == 42.0
    assert (settings.encoding, settings.sample_rate_hertz, settings.language_code) == ("LINEAR16", 16000, "en-US")
    assert settings.enable_automatic_punctuation and settings.use_enhanced and settings.model == "default"


def test_transcription_invalid_argument_maps_to_too_large() -> None:
    recognizer = _ScriptedRecognizer(error=ASRError("invalid_argument", "payload too big", "scripted"))
    with pytest.raises(AudioTooLargeOrInvalid) as exc_info:
        TranscriptionService(recognizer).transcribe_bytes(b"x")
    assert exc_info.value.message == AUDIO_TOO_LARGE_MESSAGE


def test_transcription_other_errors_are_failed() -> None:
    recognizer = _ScriptedRecognizer(error=ASRError("upstream_error", "quota exceeded", "scripted"))
    with pytest.raises(TranscriptionFailed) as exc_info:
        TranscriptionService(recognizer).transcribe_bytes(b"x")
    assert exc_info.value.message == "Failed to generate transcript: quota exceeded"


def test_transcription_unexpected_recognizer_errors_are_failed() -> None:
    recognizer = _ScriptedRecognizer(error=RuntimeError("could not load default credentials"))
    with pytest.raises(TranscriptionFailed) as exc_info:
        TranscriptionService(recognizer).transcribe_bytes(b"x")
    assert exc_info.value.message == "Failed to generate transcript: could not load default credentials"


def test_transcription_enforces_size_limit(tmp_path: Path) -> None:
    wav = tmp_path / "big.wav"
    wav.write_bytes(b"\x00" * 100)
    recognizer = _ScriptedRecognizer()
    with pytest.raises(AudioTooLargeOrInvalid):
        TranscriptionService(recognizer, max_audio_bytes=10).transcribe(wav)
    assert recognizer.received == []


class InvalidArgument(Exception):
    pass


class _FakeSpeechClient:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def recognize(self, request, timeout):
        self.requests.append({"request": request, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_google_recognizer_takes_first_alternative_and_billed_time() -> None:
    response = SimpleNamespace(
        results=[
            SimpleNamespace(alternatives=[SimpleNamespace(transcript="first"), SimpleNamespace(transcript="alt")]),
            SimpleNamespace(alternatives=[]),
            SimpleNamespace(alternatives=[SimpleNamespace(transcript="second")]),
        ],
        total_billed_time=timedelta(seconds=15),
    )
    client = _FakeSpeechClient(response=response)
    out = GoogleSpeechRecognizer(client=client).recognize(b"pcm", RecognitionSettings(), timeout_sec=9.0)

    assert out.texts == ["first", "second"]
    assert out.billed_duration_sec == 15.0
    sent = client.requests[0]
    assert sent["timeout"] == 9.0
    assert sent["request"]["audio"] == {"content": b"pcm"}
    assert sent["request"]["config"]["sample_rate_hertz"] == 16000


def test_google_recognizer_maps_invalid_argument() -> None:
    client = _FakeSpeechClient(error=InvalidArgument("Inline audio exceeds duration limit"))
    with pytest.raises(ASRError) as exc_info:
        GoogleSpeechRecognizer(client=client).recognize(b"pcm", RecognitionSettings())
    assert exc_info.value.code == "invalid_argument"


def test_google_recognizer_maps_numeric_code_three() -> None:
    err = RuntimeError("bad request")
    err.code = 3  # type: ignore[attr-defined]
    with pytest.raises(ASRError) as exc_info:
        GoogleSpeechRecognizer(client=_FakeSpeechClient(error=err)).recognize(b"pcm", RecognitionSettings())
    assert exc_info.value.code == "invalid_argument"


def test_google_recognizer_other_failures_are_upstream_errors() -> None:
    client = _FakeSpeechClient(error=RuntimeError("deadline exceeded"))
    with pytest.raises(ASRError) as exc_info:
        GoogleSpeechRecognizer(client=client).recognize(b"pcm", RecognitionSettings())
    assert exc_info.value.code == "upstream_error"
    assert "deadline exceeded" in exc_info.value.message


def test_google_recognizer_client_init_failure_is_unavailable(monkeypatch) -> None:
    def _no_credentials():
        raise RuntimeError("could not load default credentials")

    speech = ModuleType("google.cloud.speech")
    speech.SpeechClient = _no_credentials  # type: ignore[attr-defined]
    cloud = ModuleType("google.cloud")
    cloud.speech = speech  # type: ignore[attr-defined]
    google = ModuleType("google")
    google.cloud = cloud  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "google", google)
    monkeypatch.setitem(sys.modules, "google.cloud", cloud)
    monkeypatch.setitem(sys.modules, "google.cloud.speech", speech)

    recognizer = GoogleSpeechRecognizer()
    with pytest.raises(ASRError) as exc_info:
        recognizer.recognize(b"pcm", RecognitionSettings())
    assert exc_info.value.code == "unavailable"
    assert "default credentials" in exc_info.value.message

    with pytest.raises(TranscriptionFailed):
        TranscriptionService(recognizer).transcribe_bytes(b"pcm")


def test_mock_recognizer_reports_billed_seconds() -> None:
    out = MockSpeechRecognizer().recognize(b"\x00" * 32000, RecognitionSettings())
    assert out.billed_duration_sec == 1.0
    assert out.texts
