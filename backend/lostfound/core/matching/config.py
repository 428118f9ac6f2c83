"""Matching configuration - scoring weights and thresholds."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields

import structlog

from lostfound.core.config import load_settings_section

logger = structlog.get_logger("lostfound.matching.config")


@dataclass(frozen=True)
class MatchingConfig:
    """Configuration for lost/found matching.

    Each group of weights forms one weighted sum and must add up to 1.
    """

    # Lexical sub-score weights
    jaccard_weight: float = 0.3
    word_overlap_weight: float = 0.4
    keyword_weight: float = 0.2
    length_weight: float = 0.1

    # Text/image weights when both reports have an image
    text_weight_with_images: float = 0.6
    image_weight_with_images: float = 0.4

    # Text/image weights otherwise (image score is always 0 here)
    text_weight_without_images: float = 0.9
    image_weight_without_images: float = 0.1

    # Text-only score multiplier when the combined computation fails
    fallback_text_factor: float = 0.8

    # Visual comparison
    max_compared_predictions: int = 3

    # Thresholds
    minimum_confidence: float = 0.3  # Candidates must score strictly above this

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"{f.name} must be non-negative, got {value}")

        weight_groups = {
            "lexical": (
                self.jaccard_weight,
                self.word_overlap_weight,
                self.keyword_weight,
                self.length_weight,
            ),
            "with_images": (self.text_weight_with_images, self.image_weight_with_images),
            "without_images": (
                self.text_weight_without_images,
                self.image_weight_without_images,
            ),
        }
        for group, weights in weight_groups.items():
            if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
                raise ValueError(f"{group} weights must sum to 1, got {sum(weights)}")

        if not 0.0 <= self.minimum_confidence <= 1.0:
            raise ValueError("minimum_confidence must be within [0, 1]")
        if not 0.0 <= self.fallback_text_factor <= 1.0:
            raise ValueError("fallback_text_factor must be within [0, 1]")
        if self.max_compared_predictions < 1:
            raise ValueError("max_compared_predictions must be at least 1")


# Default config instance
DEFAULT_CONFIG = MatchingConfig()

# Cached config instance (loaded from settings file)
_cached_config: MatchingConfig | None = None


def get_matching_config() -> MatchingConfig:
    """Get the current matching configuration.

    Loads the "matching" section of settings.json if available, otherwise
    returns defaults. Caches the result until reload_matching_config().
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    try:
        matching_settings = load_settings_section("matching")
        _cached_config = (
            MatchingConfig(**matching_settings) if matching_settings else DEFAULT_CONFIG
        )
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Invalid matching settings, using defaults", error=str(e))
        _cached_config = DEFAULT_CONFIG

    return _cached_config


def reload_matching_config() -> MatchingConfig:
    """Reload matching configuration from settings file.

    Call this after updating settings to ensure new values are used.
    """
    global _cached_config
    _cached_config = None
    return get_matching_config()
