"""
Smoke test: compose a real vertical video with ffmpeg.

Generates a short portrait clip and a shorter tone, runs the full pipeline
with FFmpegEngine and checks the result with ffprobe.
"""

import json
import os
import subprocess
from pathlib import Path

import pytest

from composer.config import ComposerConfig
from composer.render.artifacts import ArtifactOwner, TempTrack
from composer.render.filter_graph import FilterGraphBuilder
from composer.render.pipeline import CompositionPipeline, CompositionRequest
from composer.utils.media_info import probe_duration


def _generate(args: list[str]) -> None:
    subprocess.run(["ffmpeg", "-y", *args], capture_output=True, check=True)


@pytest.mark.requires_ffmpeg
class TestFFmpegSmoke:
    """End-to-end composition with the real engine."""

    @pytest.mark.asyncio
    async def test_compose_slows_short_audio(self, temp_output_dir: Path):
        track = TempTrack(work_dir=str(temp_output_dir))
        video = track.register(track.path_for("video", ".mp4"), ArtifactOwner.UPLOAD)
        audio = track.register(track.path_for("audio", ".m4a"), ArtifactOwner.UPLOAD)
        _generate(["-f", "lavfi", "-i", "testsrc=duration=2:size=720x1280:rate=30", "-pix_fmt", "yuv420p", video])
        _generate(["-f", "lavfi", "-i", "sine=frequency=440:duration=0.8", "-c:a", "aac", audio])

        config = ComposerConfig(work_dir=str(temp_output_dir), ffmpeg_timeout_s=60)
        pipeline = CompositionPipeline(config)
        request = CompositionRequest.from_form(video, audio)

        artifact = await pipeline.compose(request, track)
        try:
            assert artifact.size_bytes > 0
            assert artifact.tempo_factor == pytest.approx(0.4, abs=0.05)

            result = subprocess.run(
                [
                    "ffprobe", "-v", "error",
                    "-select_streams", "v:0",
                    "-show_entries", "stream=width,height",
                    "-of", "json",
                    artifact.output_path,
                ],
                capture_output=True,
                text=True,
                check=True,
            )
            stream = json.loads(result.stdout)["streams"][0]
            assert (stream["width"], stream["height"]) == (1080, 1920)

            duration = probe_duration(artifact.output_path)
            assert duration is not None
            assert 1.8 <= duration <= 2.3
        finally:
            artifact.release()

        assert not Path(artifact.output_path).exists()


def _has_filters(*names: str) -> bool:
    result = subprocess.run(["ffmpeg", "-hide_banner", "-filters"], capture_output=True, text=True)
    listed = {line.split()[1] for line in result.stdout.splitlines() if len(line.split()) > 1}
    return all(name in listed for name in names)


@pytest.mark.requires_ffmpeg
def test_ffmpeg_accepts_quoted_subtitle_path_and_caption(temp_output_dir: Path, sample_ass: str):
    """Quotes, colons, percent signs and newlines must not break graph parsing."""
    font_file = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
    if not os.path.isfile(font_file):
        pytest.skip("DejaVu font not installed")
    if not _has_filters("subtitles", "drawtext"):
        pytest.skip("ffmpeg built without subtitles/drawtext")

    subtitle_dir = temp_output_dir / "it's dir"
    subtitle_dir.mkdir()
    subtitle_path = subtitle_dir / "caption's.ass"
    subtitle_path.write_text(sample_ass, encoding="utf-8")

    graph = (
        FilterGraphBuilder(320, font_file=font_file, caption_font_size=20, caption_bottom_offset=100)
        .add_base_filters()
        .add_subtitles(str(subtitle_path))
        .add_text_overlay("It's 10:30, 50% off\nsecond line")
        .build()
    )

    result = subprocess.run(
        [
            "ffmpeg", "-hide_banner", "-nostdin",
            "-f", "lavfi", "-i", "color=c=black:s=720x1440:d=1",
            "-filter_complex", graph.describe(),
            "-map", graph.video_map,
            "-frames:v", "5",
            "-f", "null", "-",
        ],
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 0, result.stderr[-2000:]
