"""
Encode command assembly.

The command is an argv tuple handed straight to the engine process. It is
never joined into a shell string, so the filter description only needs the
engine's own escaping.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from composer.constants.quality_presets import QualityProfile
from composer.render.filter_graph import FilterGraph


class DurationMatchPolicy(str, Enum):
    """How the output length relates to the input lengths."""

    VIDEO_LENGTH = "video-length"
    SHORTEST_OF_BOTH = "shortest-of-both"

    @classmethod
    def parse(cls, value: Any) -> "DurationMatchPolicy":
        """Parse a raw policy value, defaulting to VIDEO_LENGTH on empty or unknown input."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.VIDEO_LENGTH
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.VIDEO_LENGTH


@dataclass(frozen=True)
class EncodeCommand:
    """Fully resolved engine invocation."""

    args: tuple[str, ...]
    output_path: str


class CommandAssembler:
    """Builds the single ffmpeg invocation for a composition."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        threads: int = 2,
        fps: int = 30,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.threads = threads
        self.fps = fps

    def build(
        self,
        *,
        video_path: str,
        audio_path: str,
        output_path: str,
        profile: QualityProfile,
        graph: FilterGraph,
        policy: DurationMatchPolicy = DurationMatchPolicy.VIDEO_LENGTH,
        video_duration: float | None = None,
    ) -> EncodeCommand:
        """Build the encode command without executing it.

        Args:
            video_path: Input 0 (video)
            audio_path: Input 1 (audio)
            output_path: Rendered MP4 path
            profile: Resolved quality profile
            graph: Filter graph with final video/audio labels
            policy: Duration-match policy
            video_duration: Known video duration in seconds, if any

        Returns:
            EncodeCommand with the argv tuple
        """
        args = [
            self.ffmpeg_path,
            "-y",
            "-threads", str(self.threads),
            "-loglevel", "info",
            "-i", video_path,
            "-i", audio_path,
            "-filter_complex", graph.describe(),
            "-map", graph.video_map,
            "-map", graph.audio_map,
            "-c:v", "libx264",
            "-preset", profile.video_preset,
            "-crf", str(profile.video_crf),
            "-x264-params", f"threads={self.threads}",
            "-r", str(self.fps),
            "-c:a", "aac",
            "-b:a", profile.audio_bitrate,
            "-movflags", "+faststart",
        ]

        if policy is DurationMatchPolicy.SHORTEST_OF_BOTH:
            args.append("-shortest")
        elif video_duration:
            # Keep a longer audio track from extending past the video
            args.extend(["-t", f"{video_duration:.3f}"])

        args.append(output_path)
        return EncodeCommand(args=tuple(args), output_path=output_path)
