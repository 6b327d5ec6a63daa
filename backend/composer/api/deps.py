from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from composer.config import get_settings
from composer.render.pipeline import CompositionPipeline


@lru_cache
def get_pipeline() -> CompositionPipeline:
    """Process-wide pipeline. It holds only immutable configuration, so requests share it."""
    return CompositionPipeline(get_settings().composer_config())


Pipeline = Annotated[CompositionPipeline, Depends(get_pipeline)]
