"""
Pytest fixtures for composer tests.

Most tests run against FakeEngine, a deterministic stand-in for ffmpeg/ffprobe
that records every call. Tests that need the real binaries are marked with
@pytest.mark.requires_ffmpeg and skipped when ffmpeg is not installed.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from composer.config import ComposerConfig
from composer.exceptions import EncodeTimeout
from composer.render.artifacts import ArtifactOwner, TempTrack
from composer.render.command import EncodeCommand
from composer.render.engine import EncodeResult

SAMPLE_ASS = (
    "[Script Info]\n"
    "ScriptType: v4.00+\n"
    "PlayResX: 1080\n"
    "PlayResY: 1920\n"
    "\n"
    "[V4+ Styles]\n"
    "Format: Name, Fontname, Fontsize, PrimaryColour, Bold, Italic, Underline, "
    "Alignment, MarginL, MarginR, MarginV, Encoding\n"
    "Style: Default,Arial,48,&H00FFFFFF,0,0,1,2,10,10,20,1\n"
    "Style: Big,Arial,70,&H00FFFFFF,1,0,0,2,10,10,40,1\n"
    "\n"
    "[Events]\n"
    "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    "Dialogue: 0,0:00:00.00,0:00:02.00,Default,,0,0,0,,Hello, world\n"
    "Comment: 0,0:00:02.00,0:00:03.00,Default,,0,0,35,,note\n"
)


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring real ffmpeg/ffprobe binaries"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def pytest_collection_modifyitems(config, items):
    """Skip requires_ffmpeg tests when the binaries are missing."""
    if _ffmpeg_available():
        return
    skip_ffmpeg = pytest.mark.skip(reason="ffmpeg/ffprobe not installed")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


class FakeEngine:
    """MediaEngine double with scripted durations and encode outcomes."""

    def __init__(
        self,
        durations: dict[str, float | None] | None = None,
        returncode: int = 0,
        diagnostics: str = "",
        output_bytes: bytes | None = b"\x00\x00\x00\x18ftypmp42",
        timeout: bool = False,
    ):
        self.durations = durations or {}
        self.returncode = returncode
        self.diagnostics = diagnostics
        self.output_bytes = output_bytes
        self.timeout = timeout
        self.probe_calls: list[str] = []
        self.encode_calls: list[EncodeCommand] = []

    def probe_duration(self, path: str) -> float | None:
        self.probe_calls.append(path)
        return self.durations.get(path)

    def encode(self, command: EncodeCommand, timeout_s: float) -> EncodeResult:
        self.encode_calls.append(command)
        if self.output_bytes is not None:
            # Written even on failure, like a partial ffmpeg output
            Path(command.output_path).write_bytes(self.output_bytes)
        if self.timeout:
            raise EncodeTimeout(timeout_s, diagnostics="frame=  120 fps= 30")
        return EncodeResult(returncode=self.returncode, diagnostics=self.diagnostics)


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="composer_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def composer_config(temp_output_dir: Path) -> ComposerConfig:
    """Pipeline configuration writing into the temp dir."""
    return ComposerConfig(work_dir=str(temp_output_dir))


@pytest.fixture
def track(temp_output_dir: Path) -> TempTrack:
    return TempTrack(work_dir=str(temp_output_dir))


@pytest.fixture
def media_inputs(track: TempTrack) -> dict[str, str]:
    """Uploaded video/audio/subtitle files registered the way the upload layer does."""
    paths = {
        "video": track.path_for("video", ".mp4"),
        "audio": track.path_for("audio", ".mp3"),
        "subtitles": track.path_for("subtitles", ".ass"),
    }
    Path(paths["video"]).write_bytes(b"fake video")
    Path(paths["audio"]).write_bytes(b"fake audio")
    Path(paths["subtitles"]).write_text(SAMPLE_ASS, encoding="utf-8")
    for path in paths.values():
        track.register(path, ArtifactOwner.UPLOAD)
    return paths


@pytest.fixture
def sample_ass() -> str:
    return SAMPLE_ASS


@pytest.fixture
def make_engine():
    """Factory for FakeEngine instances."""
    return FakeEngine
