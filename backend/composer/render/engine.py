"""
External media engine capability.

The pipeline only needs two things from the engine:
- probe_duration(path) -> seconds or None
- encode(command, timeout_s) -> exit status + diagnostics

FFmpegEngine implements them with ffprobe/ffmpeg subprocesses. Tests swap in
a deterministic fake with the same shape.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Protocol

from composer.exceptions import EncodeTimeout
from composer.render.command import EncodeCommand
from composer.utils.media_info import probe_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodeResult:
    """Outcome of one engine invocation."""

    returncode: int
    diagnostics: str = ""
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class MediaEngine(Protocol):
    def probe_duration(self, path: str) -> float | None:
        ...

    def encode(self, command: EncodeCommand, timeout_s: float) -> EncodeResult:
        ...


class FFmpegEngine:
    """Engine backed by the ffmpeg/ffprobe executables."""

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        probe_timeout_s: float = 30.0,
        max_diagnostics_chars: int = 2000,
    ):
        self.ffprobe_path = ffprobe_path
        self.probe_timeout_s = probe_timeout_s
        self.max_diagnostics_chars = max_diagnostics_chars

    def probe_duration(self, path: str) -> float | None:
        return probe_duration(path, self.ffprobe_path, self.probe_timeout_s)

    def encode(self, command: EncodeCommand, timeout_s: float) -> EncodeResult:
        """Run the encode argv with a hard timeout.

        Raises:
            EncodeTimeout: If the process exceeds timeout_s (it is killed first)
        """
        logger.info(f"[ENCODE] Starting ffmpeg with timeout={timeout_s}s")
        logger.debug(f"[ENCODE] Command: {' '.join(command.args)}")

        start_time = time.monotonic()
        try:
            # subprocess.run kills the child before re-raising TimeoutExpired
            result = subprocess.run(
                list(command.args),
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout_s,
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode("utf-8", errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            logger.warning(f"[ENCODE] ffmpeg timeout after {timeout_s}s")
            raise EncodeTimeout(timeout_s, diagnostics=self._truncate(stderr) or None) from e
        except OSError as e:
            logger.error(f"[ENCODE] ffmpeg could not be started: {e}")
            return EncodeResult(
                returncode=127,
                diagnostics=str(e),
                elapsed_s=time.monotonic() - start_time,
            )

        elapsed = time.monotonic() - start_time
        if result.stdout:
            logger.info(f"[ENCODE] ffmpeg stdout (first 500): {result.stdout[:500]}")
        if result.returncode == 0:
            logger.info(f"[ENCODE] ffmpeg completed in {elapsed:.1f}s")
        else:
            logger.error(f"[ENCODE] ffmpeg failed with code {result.returncode}")

        return EncodeResult(
            returncode=result.returncode,
            diagnostics=self._truncate(result.stderr or ""),
            elapsed_s=elapsed,
        )

    def _truncate(self, text: str) -> str:
        # Keep the tail: ffmpeg prints the actual error last
        if len(text) > self.max_diagnostics_chars:
            return text[-self.max_diagnostics_chars:]
        return text


def validate_ffmpeg_available(ffmpeg_path: str = "ffmpeg") -> bool:
    """Check if FFmpeg is available and working."""
    try:
        result = subprocess.run(
            [ffmpeg_path, "-version"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"FFmpeg not available: {e}")
        return False
