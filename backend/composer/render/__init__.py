from composer.render.artifacts import ArtifactOwner, TempTrack
from composer.render.pipeline import (
    ComposedArtifact,
    CompositionPipeline,
    CompositionRequest,
    PipelineState,
)

__all__ = [
    "CompositionPipeline",
    "CompositionRequest",
    "ComposedArtifact",
    "PipelineState",
    "TempTrack",
    "ArtifactOwner",
]
