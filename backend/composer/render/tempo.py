"""
Audio tempo reconciliation.

When the audio track is shorter than the video, the audio is slowed down so it
spans the whole video. ffmpeg's atempo filter only accepts factors in
[0.5, 2.0], so slow-downs below 0.5 are split into a chain of stages whose
product equals the overall factor.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

RAW_AUDIO_LABEL = "1:a"
FINAL_AUDIO_LABEL = "aout"
INTERMEDIATE_AUDIO_PREFIX = "atmp"

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0

# Tolerance for treating the remaining factor as fully applied
_EPSILON = 1e-9


@dataclass(frozen=True)
class TempoStage:
    """One atempo application: input label -> output label."""

    factor: float
    input_label: str
    output_label: str

    @property
    def description(self) -> str:
        return f"atempo={self.factor:.3f}"


@dataclass(frozen=True)
class TempoPlan:
    """Result of reconciling audio and video durations."""

    factor: float | None = None
    stages: tuple[TempoStage, ...] = ()
    audio_label: str = RAW_AUDIO_LABEL

    @property
    def adjusted(self) -> bool:
        return bool(self.stages)


def split_tempo_factor(factor: float) -> list[float]:
    """Split a slow-down factor (0 < factor < 1) into atempo-safe stages.

    Each stage is clamped to >= 0.5; the remaining factor strictly moves
    toward 1.0 every iteration and the last stage lands on it exactly.
    """
    if not 0 < factor < 1:
        raise ValueError(f"Tempo factor must be in (0, 1), got {factor}")

    stages: list[float] = []
    remaining = factor
    while remaining < 1.0 - _EPSILON:
        stage = max(ATEMPO_MIN, remaining)
        stages.append(stage)
        remaining = remaining / stage
    return stages


def reconcile_tempo(
    video_duration: float | None,
    audio_duration: float | None,
) -> TempoPlan:
    """
    Compute the audio tempo plan for the given durations (seconds).

    - Either duration unknown (None or non-positive): pass audio through
    - Audio at least as long as video: pass audio through
    - Audio shorter: slow it down by audio/video, chained when below 0.5

    Returns:
        TempoPlan whose audio_label is the label to map for output
    """
    if not video_duration or not audio_duration or video_duration <= 0 or audio_duration <= 0:
        logger.info("[TEMPO] Skipping audio processing - duration info not available")
        return TempoPlan()

    if audio_duration >= video_duration:
        logger.info("[TEMPO] Audio duration is sufficient, no processing needed")
        return TempoPlan()

    factor = audio_duration / video_duration
    logger.info(
        f"[TEMPO] Audio is shorter ({audio_duration}s vs {video_duration}s), "
        f"tempo factor: {factor:.3f}"
    )

    factors = split_tempo_factor(factor)
    if not factors:
        # Shortfall is below rounding precision
        return TempoPlan()

    stages: list[TempoStage] = []
    input_label = RAW_AUDIO_LABEL
    for index, stage_factor in enumerate(factors):
        is_last = index == len(factors) - 1
        output_label = FINAL_AUDIO_LABEL if is_last else f"{INTERMEDIATE_AUDIO_PREFIX}{index}"
        stages.append(TempoStage(stage_factor, input_label, output_label))
        input_label = output_label

    if len(stages) > 1:
        logger.info(f"[TEMPO] Audio will be slowed down with {len(stages)} chained filters")
    else:
        logger.info("[TEMPO] Audio will be slowed down to match video duration")

    return TempoPlan(factor=factor, stages=tuple(stages), audio_label=FINAL_AUDIO_LABEL)
