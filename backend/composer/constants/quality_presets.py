"""Quality tiers and their encode parameters.

Single source of truth for the preset / CRF / audio bitrate bundle used by
the encode command. Lookups are permissive: anything that is not a known tier
resolves to the draft profile.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class QualityTier(str, Enum):
    """Named quality tiers accepted from callers."""

    DRAFT = "draft"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "QualityTier":
        """Parse a raw tier value, defaulting to DRAFT on empty or unknown input."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.DRAFT
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.DRAFT


@dataclass(frozen=True)
class QualityProfile:
    """Encode parameters for one quality tier."""

    video_preset: str
    video_crf: int
    audio_bitrate: str
    base_width: int


DEFAULT_QUALITY_PROFILES: dict[str, QualityProfile] = {
    QualityTier.HIGH.value: QualityProfile(
        video_preset="fast",
        video_crf=18,
        audio_bitrate="256k",
        base_width=1080,
    ),
    QualityTier.DRAFT.value: QualityProfile(
        video_preset="veryfast",
        video_crf=23,
        audio_bitrate="192k",
        base_width=1080,
    ),
}


def resolve_quality_profile(
    tier: Any,
    profiles: Mapping[str, QualityProfile] = DEFAULT_QUALITY_PROFILES,
) -> QualityProfile:
    """Return the profile for a tier, falling back to the draft profile.

    Never raises: unknown strings, None and non-string values all resolve
    to draft.
    """
    parsed = QualityTier.parse(tier)
    return profiles.get(parsed.value) or profiles[QualityTier.DRAFT.value]
