"""
Configuration factory for reframing presets.

This module builds validated configurations from named presets and
environment overrides. Invalid configurations are rejected here, once,
before any frame is processed.
"""

import os
import logging
from typing import Any, Optional

from pydantic import ValidationError

from autoframe.config import (
    ReframeConfig,
    SmoothingStrategy,
    RESPONSIVE_CONFIG,
    STABLE_CONFIG,
    PODCAST_CONFIG,
    BALL_CONFIG,
)
from autoframe.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PRESETS: dict[str, ReframeConfig] = {
    "default": ReframeConfig(),
    "responsive": RESPONSIVE_CONFIG,
    "stable": STABLE_CONFIG,
    "podcast": PODCAST_CONFIG,
    "ball": BALL_CONFIG,
}


def get_preset_config(preset: str) -> ReframeConfig:
    """
    Get a copy of a named preset configuration.

    Raises:
        ConfigurationError: If the preset does not exist.
    """
    try:
        return PRESETS[preset].model_copy(deep=True)
    except KeyError:
        raise ConfigurationError(
            f"Unknown preset '{preset}', expected one of: {', '.join(PRESETS)}"
        ) from None


def build_config(
    base: Optional[ReframeConfig] = None,
    **overrides: Any,
) -> ReframeConfig:
    """
    Apply overrides to a base configuration and validate the result.

    Args:
        base: Starting configuration. Defaults to ReframeConfig().
        **overrides: Field values to replace. None values are ignored.

    Returns:
        Validated ReframeConfig instance.

    Raises:
        ConfigurationError: If the resulting configuration is invalid.
    """
    if base is None:
        base = ReframeConfig()

    data = base.model_dump()
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ReframeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid reframe configuration: {e}") from e


def _read_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}: {raw}")
        return None


def _read_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_config_from_env() -> ReframeConfig:
    """
    Get configuration from environment variables.

    Environment variables:
        REFRAME_PRESET: "default", "responsive", "stable", "podcast" or "ball"
        REFRAME_OBJECT: Comma-separated target classes (e.g. "face,head")
        REFRAME_SMOOTH_PERCENTAGE: Override smooth_percentage (float)
        REFRAME_SMOOTH_DURATION: Override smooth_duration in seconds (float)
        REFRAME_CUT_SIMILARITY: Override cut_similarity (float)
        REFRAME_CUT_START: Override cut_start (float)
        REFRAME_STACKING: Enable stacked crops (bool)
        REFRAME_SMOOTHING: "history", "simple" or "motion"

    Returns:
        Validated ReframeConfig instance.

    Raises:
        ConfigurationError: If the preset or the combined values are invalid.
    """
    preset = os.getenv("REFRAME_PRESET", "default").lower()
    config = get_preset_config(preset)

    overrides: dict[str, Any] = {
        "smooth_percentage": _read_float("REFRAME_SMOOTH_PERCENTAGE"),
        "smooth_duration": _read_float("REFRAME_SMOOTH_DURATION"),
        "cut_similarity": _read_float("REFRAME_CUT_SIMILARITY"),
        "cut_start": _read_float("REFRAME_CUT_START"),
        "enable_stacking": _read_bool("REFRAME_STACKING"),
    }

    if objects := os.getenv("REFRAME_OBJECT"):
        overrides["target_classes"] = [o.strip() for o in objects.split(",") if o.strip()]

    if smoothing := os.getenv("REFRAME_SMOOTHING"):
        try:
            overrides["smoothing_strategy"] = SmoothingStrategy(smoothing.lower())
        except ValueError:
            logger.warning(f"Invalid REFRAME_SMOOTHING: {smoothing}")

    return build_config(config, **overrides)
