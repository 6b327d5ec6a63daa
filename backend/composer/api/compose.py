"""Composition API endpoint.

Plays the upload layer for the pipeline: saves the multipart uploads into the
request's TempTrack, runs the composition and streams the rendered MP4 back.
Artifacts are released once the body has been sent or the send has failed.
"""

import logging
import os

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse
from starlette.types import Receive, Scope, Send

from composer.api.deps import Pipeline
from composer.config import get_settings
from composer.exceptions import UploadTooLargeError
from composer.render.artifacts import ArtifactOwner, TempTrack
from composer.render.pipeline import ComposedArtifact, CompositionRequest

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024
_DEFAULT_SUFFIXES = {"video": ".mp4", "audio": ".mp3", "subtitles": ".ass"}


class ArtifactFileResponse(FileResponse):
    """Streams a composed artifact and releases it once sending ends.

    Release runs in a finally block, so the artifacts are removed even when
    the client disconnects mid-body and the send fails.
    """

    def __init__(self, artifact: ComposedArtifact, **kwargs):
        super().__init__(path=artifact.output_path, **kwargs)
        self.artifact = artifact

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.artifact.release()


def _upload_suffix(field: str, upload: UploadFile) -> str:
    _, ext = os.path.splitext(upload.filename or "")
    if ext and len(ext) <= 10:
        return ext.lower()
    return _DEFAULT_SUFFIXES.get(field, "")


async def _save_upload(
    field: str,
    upload: UploadFile | None,
    track: TempTrack,
    limit_bytes: int,
) -> str | None:
    """Stream one upload into the work dir. Returns None when the field was not sent."""
    if upload is None or not upload.filename:
        return None

    path = track.register(track.path_for(field, _upload_suffix(field, upload)), ArtifactOwner.UPLOAD)
    written = 0
    with open(path, "wb") as f:
        while chunk := await upload.read(_CHUNK_SIZE):
            written += len(chunk)
            if written > limit_bytes:
                raise UploadTooLargeError(field, limit_bytes)
            f.write(chunk)

    logger.info(f"[UPLOAD] Saved {field} ({written} bytes) to {path}")
    return path


@router.post("/compose")
async def compose(
    pipeline: Pipeline,
    video: UploadFile | None = File(None),
    audio: UploadFile | None = File(None),
    subtitles: UploadFile | None = File(None),
    script: str = Form(""),
    quality: str | None = Form(None),
    duration_match: str | None = Form(None),
) -> FileResponse:
    """Compose a vertical video from the uploaded video, audio and overlays.

    Returns the rendered MP4 as an attachment. Failures are rendered as JSON
    by the ComposerError handler.
    """
    track = pipeline.new_track()
    limit_bytes = settings.max_upload_size_bytes

    try:
        video_path = await _save_upload("video", video, track, limit_bytes)
        audio_path = await _save_upload("audio", audio, track, limit_bytes)
        subtitle_path = await _save_upload("subtitles", subtitles, track, limit_bytes)
    except BaseException:
        track.cleanup()
        raise

    request = CompositionRequest.from_form(
        video_path=video_path,
        audio_path=audio_path,
        subtitle_path=subtitle_path,
        script=script,
        quality=quality,
        duration_match=duration_match,
    )
    logger.info(
        f"[UPLOAD] Request {track.token}: quality={request.quality.value}, "
        f"duration_match={request.duration_match.value}, "
        f"subtitles={bool(subtitle_path)}, caption={bool(request.caption)}"
    )

    # TODO: terminate the running ffmpeg process when the client disconnects mid-encode
    artifact = await pipeline.compose(request, track)

    return ArtifactFileResponse(
        artifact,
        media_type="video/mp4",
        filename="composed.mp4",
        headers={"X-Processing-Time-Ms": str(artifact.elapsed_ms)},
    )
