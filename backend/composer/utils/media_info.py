"""Media duration lookup using FFprobe.

Duration is an optimization input: every failure mode here degrades to
``None`` ("unknown") instead of raising.
"""

import logging
import math
import subprocess

logger = logging.getLogger(__name__)


def _build_duration_command(ffprobe_path: str, file_path: str) -> list[str]:
    return [
        ffprobe_path,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        file_path,
    ]


def parse_duration(raw: str | None) -> float | None:
    """Parse ffprobe's duration output into seconds.

    Returns None for empty output, ``N/A``, non-numeric text, and values that
    are not finite and positive.
    """
    if not raw:
        return None

    # ffprobe prints one value per line; a container duration is the first
    first_line = raw.strip().splitlines()[0].strip() if raw.strip() else ""
    try:
        duration = float(first_line)
    except ValueError:
        return None

    if not math.isfinite(duration) or duration <= 0:
        return None
    return duration


def probe_duration(
    file_path: str,
    ffprobe_path: str = "ffprobe",
    timeout_s: float = 30.0,
) -> float | None:
    """
    Get media container duration in seconds.

    Args:
        file_path: Path to media file
        ffprobe_path: FFprobe executable
        timeout_s: Upper bound for the probe process

    Returns:
        Duration in seconds, or None when it cannot be determined
    """
    cmd = _build_duration_command(ffprobe_path, file_path)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        logger.warning(f"[PROBE] ffprobe timed out after {timeout_s}s for {file_path}")
        return None
    except OSError as e:
        logger.warning(f"[PROBE] ffprobe could not be started for {file_path}: {e}")
        return None

    if result.returncode != 0:
        logger.warning(f"[PROBE] ffprobe failed for {file_path}: {result.stderr.strip()[:500]}")
        return None

    duration = parse_duration(result.stdout)
    if duration is None:
        logger.warning(f"[PROBE] No usable duration for {file_path}: {result.stdout.strip()!r}")
    return duration
