"""
Filter graph assembly for the vertical composition.

The graph is a set of linear chains wired by labels, not a general graph:
- video: [0:v] -> scale/blur [bg] -> crop [cv] -> subtitles [subbed] -> drawtext [final]
- audio: [1:a] -> atempo [atmp0] -> ... -> atempo [aout]

Optional stages are left out entirely when their input is absent, so the final
video label always names the last transform actually applied.
"""

import logging
from dataclasses import dataclass

from composer.render.tempo import RAW_AUDIO_LABEL, TempoPlan

logger = logging.getLogger(__name__)

VIDEO_INPUT_LABEL = "0:v"
BACKGROUND_LABEL = "bg"
CROPPED_LABEL = "cv"
SUBTITLED_LABEL = "subbed"
CAPTIONED_LABEL = "final"


def escape_filter_value(value: str) -> str:
    """Escape user text for a single-quoted filter option value.

    ffmpeg unescapes a -filter_complex argument twice: once when splitting
    the graph into filters and once when splitting each filter's options.
    The value sits inside graph-level quotes, so its content reaches the
    option parser verbatim and carries option-level escapes:

    - backslash -> \\\\, colon -> \\: (option-level escapes, inside quotes)
    - single quote -> '\\\\\\'' (close the quote, an escaped backslash and
      an escaped quote at graph level, reopen)
    - CRLF / CR -> LF; the newline itself needs no escape because the
      command is an argv, and it reaches drawtext as a real line break
    """
    return (
        value.replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\\", "\\\\")
        .replace(":", "\\:")
        .replace("'", "'\\\\\\''")
    )


def _is_stream_specifier(label: str) -> bool:
    # Input stream specifiers like "1:a" are mapped bare; synthesized labels are bracketed
    return ":" in label


@dataclass(frozen=True)
class FilterNode:
    """One transform step wired from input_label to output_label."""

    description: str
    input_label: str
    output_label: str

    def render(self) -> str:
        return f"[{self.input_label}]{self.description}[{self.output_label}]"


@dataclass(frozen=True)
class FilterGraph:
    """Ordered filter nodes plus the labels to map for output."""

    nodes: tuple[FilterNode, ...]
    video_label: str
    audio_label: str = RAW_AUDIO_LABEL

    def describe(self) -> str:
        """The complete -filter_complex argument."""
        return ";".join(node.render() for node in self.nodes)

    @property
    def video_map(self) -> str:
        return self.video_label if _is_stream_specifier(self.video_label) else f"[{self.video_label}]"

    @property
    def audio_map(self) -> str:
        return self.audio_label if _is_stream_specifier(self.audio_label) else f"[{self.audio_label}]"


class FilterGraphBuilder:
    """Builds the filter graph for one composition request.

    Not shared between requests; label uniqueness is enforced per builder.
    """

    def __init__(
        self,
        base_width: int,
        *,
        font_file: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        caption_font_size: int = 56,
        caption_bottom_offset: int = 400,
        caption_box_opacity: float = 0.45,
    ):
        self.base_width = base_width
        self.target_height = round(base_width * 16 / 9)
        self.font_file = font_file
        self.caption_font_size = caption_font_size
        self.caption_bottom_offset = caption_bottom_offset
        self.caption_box_opacity = caption_box_opacity

        self._nodes: list[FilterNode] = []
        self._labels: set[str] = set()
        self.current_label = VIDEO_INPUT_LABEL
        self.audio_label = RAW_AUDIO_LABEL

    def _add_node(self, description: str, input_label: str, output_label: str) -> None:
        if output_label in self._labels or output_label == VIDEO_INPUT_LABEL:
            raise ValueError(f"Filter label already in use: {output_label}")
        self._labels.add(output_label)
        self._nodes.append(FilterNode(description, input_label, output_label))

    def add_base_filters(self) -> "FilterGraphBuilder":
        """Scale + blur to the base width, then center-crop to 9:16."""
        width = self.base_width
        height = self.target_height
        self._add_node(
            f"scale={width}:-2,setsar=1:1,boxblur=luma_radius=10:luma_power=1",
            self.current_label,
            BACKGROUND_LABEL,
        )
        self._add_node(
            f"crop={width}:{height}:(in_w-{width})/2:(in_h-{height})/2",
            BACKGROUND_LABEL,
            CROPPED_LABEL,
        )
        self.current_label = CROPPED_LABEL
        return self

    def add_subtitles(self, subtitle_path: str | None) -> "FilterGraphBuilder":
        """Burn in a subtitle file. No-op when no path is given."""
        if not subtitle_path:
            return self

        escaped = escape_filter_value(subtitle_path)
        self._add_node(f"subtitles='{escaped}'", self.current_label, SUBTITLED_LABEL)
        self.current_label = SUBTITLED_LABEL

        logger.info(f"[FILTER] Subtitles filter added for: {subtitle_path}")
        return self

    def add_text_overlay(self, text: str | None) -> "FilterGraphBuilder":
        """Burn in caption text near the bottom edge. No-op for empty text."""
        if not text:
            return self

        escaped_text = escape_filter_value(text)
        escaped_font = escape_filter_value(self.font_file)
        # expansion=none keeps the caption literal; a bare % would otherwise start a directive
        self._add_node(
            f"drawtext=fontfile='{escaped_font}':"
            f"text='{escaped_text}':expansion=none:x=(w-text_w)/2:y=h-{self.caption_bottom_offset}:"
            f"fontsize={self.caption_font_size}:fontcolor=white:"
            f"box=1:boxcolor=black@{self.caption_box_opacity}:boxborderw=20:line_spacing=20",
            self.current_label,
            CAPTIONED_LABEL,
        )
        self.current_label = CAPTIONED_LABEL

        logger.info("[FILTER] Text overlay added")
        return self

    def add_audio_tempo(self, plan: TempoPlan) -> "FilterGraphBuilder":
        """Append the atempo chain from a tempo plan. Pass-through plans add nothing."""
        if not plan.adjusted:
            return self
        for stage in plan.stages:
            self._add_node(stage.description, stage.input_label, stage.output_label)
        self.audio_label = plan.audio_label
        return self

    def build(self) -> FilterGraph:
        if not self._nodes:
            raise ValueError("Filter graph has no nodes; call add_base_filters() first")
        return FilterGraph(
            nodes=tuple(self._nodes),
            video_label=self.current_label,
            audio_label=self.audio_label,
        )
