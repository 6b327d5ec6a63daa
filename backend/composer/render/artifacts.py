"""Temporary artifact tracking for one composition request."""

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

logger = logging.getLogger(__name__)


class ArtifactOwner(Enum):
    """Who wrote an artifact."""

    UPLOAD = "upload"  # Written by the upload layer, referenced by the pipeline
    PIPELINE = "pipeline"  # Rewritten subtitles, rendered output


@dataclass(frozen=True)
class TrackedArtifact:
    path: str
    owner: ArtifactOwner


class TempTrack:
    """
    Registry of every temp path created for one request.

    cleanup() deletes each registered path at most once. It is idempotent and
    best-effort: a failure on one path is logged and the rest are still
    attempted. Nothing is raised to the caller.
    """

    def __init__(self, work_dir: str = "/tmp", token: str | None = None):
        self.work_dir = work_dir
        self.token = token or uuid4().hex
        self._artifacts: dict[str, TrackedArtifact] = {}
        self._cleaned = False
        self._lock = threading.Lock()

    @property
    def artifacts(self) -> list[TrackedArtifact]:
        return list(self._artifacts.values())

    @property
    def paths(self) -> list[str]:
        return list(self._artifacts)

    @property
    def cleaned(self) -> bool:
        return self._cleaned

    def path_for(self, stem: str, suffix: str = "") -> str:
        """Per-request path inside the work dir, e.g. output_<token>.mp4."""
        return os.path.join(self.work_dir, f"{stem}_{self.token}{suffix}")

    def register(self, path: str | None, owner: ArtifactOwner = ArtifactOwner.PIPELINE) -> str | None:
        """Track a path for deletion. Registering the same path twice is a no-op."""
        if not path:
            return path
        with self._lock:
            if self._cleaned:
                raise RuntimeError(f"Cannot register {path}: artifacts already cleaned up")
            self._artifacts.setdefault(path, TrackedArtifact(path=path, owner=owner))
        return path

    def cleanup(self) -> list[str]:
        """Delete every tracked path.

        Returns:
            Paths whose deletion failed (already-missing paths are not failures)
        """
        with self._lock:
            if self._cleaned:
                return []
            self._cleaned = True
            artifacts = list(self._artifacts.values())

        failed: list[str] = []
        for artifact in artifacts:
            try:
                os.unlink(artifact.path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"[CLEANUP] Cleanup error for {artifact.path}: {e}")
                failed.append(artifact.path)

        logger.info(
            f"[CLEANUP] Request {self.token}: removed {len(artifacts) - len(failed)}"
            f"/{len(artifacts)} artifacts"
        )
        return failed
