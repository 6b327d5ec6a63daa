"""
Composition pipeline for vertical videos.

This module orchestrates one composition request end to end:
1. Validate the required inputs
2. Probe video and audio durations
3. Rewrite subtitle styles (optional)
4. Build the filter graph (scale/blur, crop, subtitles, caption)
5. Reconcile audio tempo with the video length
6. Assemble and run the encode command
7. Validate the rendered output

Every pipeline-owned artifact is registered on the request's TempTrack, and
the track is cleaned up on every failure path. On success the caller releases
the returned artifact once it has been delivered.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter

from composer.config import ComposerConfig
from composer.constants.quality_presets import QualityTier, resolve_quality_profile
from composer.exceptions import ComposerError, EncodeFailed, OutputInvalid, ValidationError
from composer.render.artifacts import TempTrack
from composer.render.command import CommandAssembler, DurationMatchPolicy, EncodeCommand
from composer.render.engine import FFmpegEngine, MediaEngine
from composer.render.filter_graph import FilterGraphBuilder
from composer.render.subtitle_styler import (
    StyleRewriteRules,
    process_subtitle_file,
    processed_subtitle_path,
)
from composer.render.tempo import reconcile_tempo

logger = logging.getLogger(__name__)

PROBE_DEGRADED = "PROBE_DEGRADED"


class PipelineState(Enum):
    """States of one composition run."""

    RECEIVED = "received"
    DURATIONS_PROBED = "durations_probed"
    SUBTITLES_REWRITTEN = "subtitles_rewritten"
    GRAPH_BUILT = "graph_built"
    TEMPO_RECONCILED = "tempo_reconciled"
    COMMAND_ASSEMBLED = "command_assembled"
    ENCODING = "encoding"
    VALIDATED = "validated"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.RECEIVED: {PipelineState.DURATIONS_PROBED},
    PipelineState.DURATIONS_PROBED: {PipelineState.SUBTITLES_REWRITTEN, PipelineState.GRAPH_BUILT},
    PipelineState.SUBTITLES_REWRITTEN: {PipelineState.GRAPH_BUILT},
    PipelineState.GRAPH_BUILT: {PipelineState.TEMPO_RECONCILED},
    PipelineState.TEMPO_RECONCILED: {PipelineState.COMMAND_ASSEMBLED},
    PipelineState.COMMAND_ASSEMBLED: {PipelineState.ENCODING},
    PipelineState.ENCODING: {PipelineState.VALIDATED},
    PipelineState.VALIDATED: {PipelineState.DONE},
    PipelineState.DONE: set(),
    PipelineState.FAILED: set(),
}


@dataclass(frozen=True)
class CompositionRequest:
    """One accepted composition request."""

    video_path: str | None
    audio_path: str | None
    subtitle_path: str | None = None
    caption: str | None = None
    quality: QualityTier = QualityTier.DRAFT
    duration_match: DurationMatchPolicy = DurationMatchPolicy.VIDEO_LENGTH

    @classmethod
    def from_form(
        cls,
        video_path: str | None,
        audio_path: str | None,
        subtitle_path: str | None = None,
        script: str | None = None,
        quality: str | None = None,
        duration_match: str | None = None,
    ) -> "CompositionRequest":
        """Build a request from raw form values, defaulting permissively."""
        return cls(
            video_path=video_path or None,
            audio_path=audio_path or None,
            subtitle_path=subtitle_path or None,
            caption=script or None,
            quality=QualityTier.parse(quality),
            duration_match=DurationMatchPolicy.parse(duration_match),
        )

    def missing_inputs(self) -> list[str]:
        missing = []
        if not self.video_path or not os.path.isfile(self.video_path):
            missing.append("video")
        if not self.audio_path or not os.path.isfile(self.audio_path):
            missing.append("audio")
        return missing


@dataclass
class CompositionRun:
    """Per-request state; never shared between requests."""

    request: CompositionRequest
    track: TempTrack
    start_time: float = field(default_factory=perf_counter)
    state: PipelineState = PipelineState.RECEIVED
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.RECEIVED])
    warnings: list[str] = field(default_factory=list)
    failure: ComposerError | None = None

    @property
    def elapsed_ms(self) -> int:
        return int((perf_counter() - self.start_time) * 1000)

    def advance(self, state: PipelineState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition: {self.state.value} -> {state.value}")
        logger.info(f"[PIPELINE] {self.track.token}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: ComposerError | None) -> None:
        if self.state is PipelineState.FAILED:
            return
        logger.info(f"[PIPELINE] {self.track.token}: {self.state.value} -> failed")
        self.failure = error
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)


@dataclass
class ComposedArtifact:
    """Handle to a finished render. Call release() once it has been delivered."""

    output_path: str
    size_bytes: int
    elapsed_ms: int
    track: TempTrack
    command: EncodeCommand
    video_duration: float | None = None
    audio_duration: float | None = None
    tempo_factor: float | None = None
    warnings: list[str] = field(default_factory=list)
    history: list[PipelineState] = field(default_factory=list)

    def release(self) -> None:
        self.track.cleanup()


class CompositionPipeline:
    """Turns a CompositionRequest into one rendered vertical video."""

    def __init__(self, config: ComposerConfig | None = None, engine: MediaEngine | None = None):
        self.config = config or ComposerConfig()
        self.engine = engine or FFmpegEngine(
            ffprobe_path=self.config.ffprobe_path,
            probe_timeout_s=self.config.probe_timeout_s,
            max_diagnostics_chars=self.config.max_diagnostics_chars,
        )
        self.assembler = CommandAssembler(
            ffmpeg_path=self.config.ffmpeg_path,
            threads=self.config.ffmpeg_threads,
            fps=self.config.output_fps,
        )
        self.style_rules = StyleRewriteRules(
            font_size_delta=self.config.subtitle_font_size_delta,
            font_size_max=self.config.subtitle_font_size_max,
            margin_v=self.config.subtitle_margin_v,
        )

    def new_track(self) -> TempTrack:
        return TempTrack(work_dir=self.config.work_dir)

    async def compose(
        self,
        request: CompositionRequest,
        track: TempTrack | None = None,
    ) -> ComposedArtifact:
        """
        Run the full composition.

        Args:
            request: The accepted request
            track: Artifact registry for this request (created if omitted)

        Returns:
            ComposedArtifact; the caller must release() it after delivery

        Raises:
            ValidationError: Required inputs missing (no elapsed time attached)
            SubtitleProcessingFailed, EncodeFailed, EncodeTimeout, OutputInvalid:
                with elapsed_ms set; all artifacts already cleaned up
        """
        track = track or self.new_track()
        run = CompositionRun(request=request, track=track)
        succeeded = False

        try:
            artifact = await self._run(run)
            succeeded = True
            return artifact
        except ValidationError as e:
            run.fail(e)
            raise
        except ComposerError as e:
            e.elapsed_ms = run.elapsed_ms
            run.fail(e)
            logger.error(f"[PIPELINE] {track.token}: {e.code}: {e.message}")
            raise
        except Exception as e:
            logger.exception(f"[PIPELINE] {track.token}: unexpected error: {e}")
            error = EncodeFailed(f"Unexpected composition error: {e}", elapsed_ms=run.elapsed_ms)
            run.fail(error)
            raise error from e
        finally:
            if not succeeded:
                run.fail(run.failure)
                track.cleanup()

    async def _run(self, run: CompositionRun) -> ComposedArtifact:
        request = run.request
        track = run.track

        missing = request.missing_inputs()
        if missing:
            raise ValidationError(missing=missing)

        output_path = track.register(track.path_for("output", ".mp4"))
        profile = resolve_quality_profile(request.quality, self.config.quality_profiles)

        # Step 1: Durations
        video_duration, audio_duration = await asyncio.gather(
            asyncio.to_thread(self._probe, request.video_path),
            asyncio.to_thread(self._probe, request.audio_path),
        )
        logger.info(f"[PIPELINE] Video duration: {video_duration}s, Audio duration: {audio_duration}s")
        if video_duration is None or audio_duration is None:
            logger.warning("[PIPELINE] Duration unknown, duration matching disabled")
            run.warnings.append(PROBE_DEGRADED)
        run.advance(PipelineState.DURATIONS_PROBED)

        # Step 2: Subtitles
        subtitle_path = None
        if request.subtitle_path:
            track.register(processed_subtitle_path(request.subtitle_path))
            subtitle_path = await asyncio.to_thread(
                process_subtitle_file, request.subtitle_path, self.style_rules
            )
            run.advance(PipelineState.SUBTITLES_REWRITTEN)

        # Step 3: Video filter chain
        builder = (
            FilterGraphBuilder(
                profile.base_width,
                font_file=self.config.caption_font_file,
                caption_font_size=self.config.caption_font_size,
                caption_bottom_offset=self.config.caption_bottom_offset,
                caption_box_opacity=self.config.caption_box_opacity,
            )
            .add_base_filters()
            .add_subtitles(subtitle_path)
            .add_text_overlay(request.caption)
        )
        run.advance(PipelineState.GRAPH_BUILT)

        # Step 4: Audio tempo
        plan = reconcile_tempo(video_duration, audio_duration)
        graph = builder.add_audio_tempo(plan).build()
        run.advance(PipelineState.TEMPO_RECONCILED)

        # Step 5: Command
        command = self.assembler.build(
            video_path=request.video_path,
            audio_path=request.audio_path,
            output_path=output_path,
            profile=profile,
            graph=graph,
            policy=request.duration_match,
            video_duration=video_duration,
        )
        run.advance(PipelineState.COMMAND_ASSEMBLED)

        # Step 6: Encode
        run.advance(PipelineState.ENCODING)
        logger.info("[PIPELINE] Executing FFmpeg command...")
        result = await asyncio.to_thread(self.engine.encode, command, self.config.ffmpeg_timeout_s)
        if not result.ok:
            raise EncodeFailed(
                f"FFmpeg failed with code {result.returncode}",
                diagnostics=result.diagnostics or None,
            )

        # Step 7: Output must exist and be non-empty even when the engine reported success
        size_bytes = self._validate_output(output_path)
        run.advance(PipelineState.VALIDATED)
        run.advance(PipelineState.DONE)

        logger.info(f"[PIPELINE] Composition completed in {run.elapsed_ms} ms ({size_bytes} bytes)")
        return ComposedArtifact(
            output_path=output_path,
            size_bytes=size_bytes,
            elapsed_ms=run.elapsed_ms,
            track=track,
            command=command,
            video_duration=video_duration,
            audio_duration=audio_duration,
            tempo_factor=plan.factor,
            warnings=list(run.warnings),
            history=list(run.history),
        )

    def _probe(self, path: str) -> float | None:
        try:
            return self.engine.probe_duration(path)
        except Exception as e:
            logger.warning(f"[PIPELINE] Duration probe failed for {path}: {e}")
            return None

    @staticmethod
    def _validate_output(output_path: str) -> int:
        try:
            stats = os.stat(output_path)
        except OSError:
            raise OutputInvalid("Output file is missing")
        if not os.path.isfile(output_path) or stats.st_size <= 0:
            raise OutputInvalid("Output file is empty or missing")
        return stats.st_size
