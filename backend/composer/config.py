from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Literal, Mapping

from pydantic_settings import BaseSettings, SettingsConfigDict

from composer.constants.quality_presets import DEFAULT_QUALITY_PROFILES, QualityProfile


@dataclass(frozen=True)
class ComposerConfig:
    """Immutable configuration passed into a CompositionPipeline.

    Built from Settings for the running service; tests construct it directly
    so several pipelines with different values can coexist.
    """

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    work_dir: str = "/tmp"

    # Engine bounds
    ffmpeg_timeout_s: float = 240.0
    probe_timeout_s: float = 30.0
    ffmpeg_threads: int = 2
    output_fps: int = 30
    max_diagnostics_chars: int = 2000

    # Subtitle restyling
    subtitle_font_size_delta: int = 16
    subtitle_font_size_max: int = 72
    subtitle_margin_v: int = 180

    # Caption overlay
    caption_font_file: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
    caption_font_size: int = 56
    caption_bottom_offset: int = 400
    caption_box_opacity: float = 0.45

    quality_profiles: Mapping[str, QualityProfile] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_QUALITY_PROFILES))
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Reel Composer"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000

    # File Upload
    max_upload_size_mb: int = 100
    work_dir: str = "/tmp"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_timeout_s: float = 240.0
    ffprobe_timeout_s: float = 30.0
    # Maximum threads for FFmpeg (keeps concurrent encodes from starving each other)
    ffmpeg_threads: int = 2
    render_fps: int = 30

    # Subtitle restyling
    subtitle_font_size_delta: int = 16
    subtitle_font_size_max: int = 72
    subtitle_margin_v: int = 180

    # Caption overlay
    caption_font_file: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
    caption_font_size: int = 56
    caption_bottom_offset: int = 400
    caption_box_opacity: float = 0.45

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def composer_config(self) -> ComposerConfig:
        """Snapshot the settings into the immutable pipeline configuration."""
        return ComposerConfig(
            ffmpeg_path=self.ffmpeg_path,
            ffprobe_path=self.ffprobe_path,
            work_dir=self.work_dir,
            ffmpeg_timeout_s=self.ffmpeg_timeout_s,
            probe_timeout_s=self.ffprobe_timeout_s,
            ffmpeg_threads=self.ffmpeg_threads,
            output_fps=self.render_fps,
            subtitle_font_size_delta=self.subtitle_font_size_delta,
            subtitle_font_size_max=self.subtitle_font_size_max,
            subtitle_margin_v=self.subtitle_margin_v,
            caption_font_file=self.caption_font_file,
            caption_font_size=self.caption_font_size,
            caption_bottom_offset=self.caption_bottom_offset,
            caption_box_opacity=self.caption_box_opacity,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
