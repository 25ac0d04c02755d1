from __future__ import annotations

import contextlib
import logging
import shutil
import subprocess
import time
import uuid
import wave
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .errors import TranscodeError

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1
TARGET_SAMPLE_WIDTH = 2


def _which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


def _safe_unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("scratch cleanup failed path=%s error=%s", path, exc)


class ScratchFiles:
    """Hands out unique scratch paths for one pipeline invocation."""

    def __init__(self, tmp_dir: Path):
        self._tmp_dir = tmp_dir
        self._paths: List[Path] = []

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def path(self, prefix: str, suffix: str) -> Path:
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        out = self._tmp_dir / f"{prefix}_{stamp}_{uuid.uuid4().hex[:8]}{suffix}"
        self._paths.append(out)
        return out

    def cleanup(self) -> None:
        while self._paths:
            _safe_unlink(self._paths.pop())


@contextlib.contextmanager
def scratch_scope(tmp_dir: Path) -> Iterator[ScratchFiles]:
    scratch = ScratchFiles(tmp_dir)
    try:
        yield scratch
    finally:
        scratch.cleanup()


def load_wav_info(path: Path) -> Tuple[float, int, int, int]:
    with wave.open(str(path), "rb") as wf:
        frames = wf.getnframes()
        rate = wf.getframerate()
        channels = wf.getnchannels()
        width = wf.getsampwidth()
        duration = frames / float(rate) if rate else 0.0
        return duration, rate, channels, width


def load_wav16k_mono_float32(path: Path) -> np.ndarray:
    with wave.open(str(path), "rb") as wf:
        raw = wf.readframes(wf.getnframes())
    audio_i16 = np.frombuffer(raw, dtype="<i2")
    return (audio_i16.astype(np.float32) / 32768.0).clip(-1.0, 1.0)


def compute_rms(audio: np.ndarray) -> float:
    if audio.size == 0:
        return 0.0
    x = audio.astype(np.float32)
    return float(np.sqrt(np.mean(x * x)))


class AudioNormalizer:
    """
    Transcode arbitrary input audio into mono 16kHz signed 16-bit PCM WAV
    with a single-pass `loudnorm` filter.
    """

    def __init__(self, ffmpeg_bin: str = "", timeout_sec: float = 300.0):
        self._ffmpeg_bin = ffmpeg_bin
        self._timeout_sec = timeout_sec

    def _resolve_ffmpeg(self) -> str:
        if self._ffmpeg_bin:
            return self._ffmpeg_bin
        found = _which("ffmpeg")
        if not found:
            raise TranscodeError("Audio conversion requires `ffmpeg` on PATH.")
        return found

    def build_command(self, ffmpeg: str, input_path: Path, output_path: Path) -> List[str]:
        return [
            ffmpeg,
            "-y",
            "-hide_banner",
            "-i",
            str(input_path),
            "-ac",
            str(TARGET_CHANNELS),
            "-ar",
            str(TARGET_SAMPLE_RATE),
            "-acodec",
            "pcm_s16le",
            "-af",
            "loudnorm",
            "-f",
            "wav",
            str(output_path),
        ]

    def normalize(self, input_path: Path, scratch: ScratchFiles) -> Path:
        if not input_path.exists():
            raise TranscodeError(f"Audio file not found: {input_path}")

        out_path = scratch.path("output", ".wav")
        cmd = self.build_command(self._resolve_ffmpeg(), input_path, out_path)
        logger.debug("ffmpeg command: %s", " ".join(cmd))
        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self._timeout_sec,
            )
        except subprocess.TimeoutExpired as e:
            raise TranscodeError(f"Audio conversion timed out after {e.timeout:.0f}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (
                e.stderr.decode("utf-8", "ignore")
                if isinstance(e.stderr, (bytes, bytearray))
                else str(e.stderr)
            )
            tail = stderr.strip().splitlines()[-1] if stderr.strip() else "unknown error"
            raise TranscodeError(f"Audio conversion failed via ffmpeg: {tail}") from e
        except OSError as e:
            raise TranscodeError(f"Audio conversion could not start ffmpeg: {e}") from e

        self._verify_output(out_path)
        return out_path

    def _verify_output(self, out_path: Path) -> None:
        if not out_path.exists() or out_path.stat().st_size == 0:
            raise TranscodeError("Audio conversion produced no output.")
        try:
            duration, rate, channels, width = load_wav_info(out_path)
        except (wave.Error, EOFError) as e:
            raise TranscodeError(f"Audio conversion produced unreadable WAV: {e}") from e
        if (rate, channels, width) != (TARGET_SAMPLE_RATE, TARGET_CHANNELS, TARGET_SAMPLE_WIDTH):
            raise TranscodeError(
                f"Audio conversion produced {rate}Hz/{channels}ch/{width * 8}bit, "
                "expected 16000Hz/1ch/16bit"
            )
        if duration <= 0.0:
            raise TranscodeError("Audio conversion produced no output.")
        rms = compute_rms(load_wav16k_mono_float32(out_path))
        logger.info("audio normalized duration_sec=%.2f rms=%.4f", duration, rms)
