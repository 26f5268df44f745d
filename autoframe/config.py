"""
Configuration for the reframing core.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from autoframe.models import AspectRatio


class SmoothingStrategy(str, Enum):
    """Temporal filter applied to raw crop windows."""

    HISTORY = "history"  # Time-weighted recent target (default)
    SIMPLE = "simple"  # Current raw window against previous emitted crop
    MOTION = "motion"  # Extrapolates fast, small subjects such as a ball


class ReframeConfig(BaseModel):
    """Configuration for crop calculation, cut detection and smoothing."""

    # Subject selection
    target_classes: list[str] = Field(
        default_factory=lambda: ["face"],
        min_length=1,
        description="Detection classes that drive the crop",
    )
    min_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence threshold for classes without an override",
    )
    class_confidence: dict[str, float] = Field(
        default_factory=dict,
        description="Per-class confidence thresholds",
    )
    min_area_fraction: float = Field(
        default=0.0025,
        ge=0.0,
        le=1.0,
        description="Minimum subject area as fraction of frame area",
    )
    area_exempt_classes: list[str] = Field(
        default_factory=lambda: ["ball"],
        description="Classes that skip the area threshold",
    )

    # Composition
    target_aspect: AspectRatio = Field(
        default_factory=lambda: AspectRatio(9, 16),
        description="Aspect ratio of the output canvas",
    )
    fallback_aspect: AspectRatio = Field(
        default_factory=lambda: AspectRatio(3, 4),
        description="Aspect ratio of the crop used when no subject is found",
    )
    subject_padding: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Padding around subjects as fraction of subject size",
    )
    min_crop_height_fraction: float = Field(
        default=1.0,
        gt=0.0,
        le=1.0,
        description="Single-rect crops are at least this fraction of frame height",
    )

    # Stacking
    enable_stacking: bool = Field(
        default=False,
        description="Allow stacked sub-crops for spread-out subjects",
    )
    stack_spread_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Horizontal spread (fraction of frame width) above which subjects are stacked",
    )
    equal_spacing_tolerance: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Relative tolerance for treating three subjects as equally spaced",
    )
    stack_min_height_fraction: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Minimum stacked sub-crop height as fraction of frame height",
    )
    max_group_subjects: int = Field(
        default=5,
        ge=2,
        description="Above this many subjects only the largest one is framed",
    )

    # Smoothing
    smoothing_strategy: SmoothingStrategy = Field(
        default=SmoothingStrategy.HISTORY,
        description="Temporal smoothing variant",
    )
    motion_classes: list[str] = Field(
        default_factory=lambda: ["ball"],
        description="Classes that select motion-predictive smoothing automatically",
    )
    smooth_percentage: float = Field(
        default=7.5,
        gt=0.0,
        le=100.0,
        description="Movement band and per-frame speed limit, percent of frame size",
    )
    smooth_duration: float = Field(
        default=1.0,
        gt=0.0,
        description="Smoothing window in seconds",
    )
    history_decay: float = Field(
        default=0.85,
        gt=0.0,
        le=1.0,
        description="Per-frame weight decay of older history entries",
    )

    # Cut detection
    cut_similarity: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Similarity below which a hard cut is declared",
    )
    cut_start: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Similarity below which a soft transition is declared",
    )
    soft_cut_speedup: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Easing rate multiplier during soft transitions",
    )

    # Text awareness
    keep_text: bool = Field(
        default=False,
        description="Extend the crop to include on-screen text",
    )
    prioritize_text: bool = Field(
        default=False,
        description="Treat on-screen text as subjects when choosing the crop",
    )
    text_class: str = Field(default="text", description="Label of text detections")
    text_confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for text boxes",
    )
    text_area_threshold: float = Field(
        default=0.009,
        ge=0.0,
        le=1.0,
        description="Combined text area, as fraction of frame, needed before text counts",
    )

    # Motion prediction
    prediction_weight: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Weight of the predicted position when a detection is present",
    )
    max_prediction_gap: int = Field(
        default=5,
        ge=0,
        description="Consecutive missed frames bridged by prediction",
    )

    # Pipelining
    max_pending_frames: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Frames in flight before intake blocks",
    )

    # Debug
    debug: bool = Field(default=False, description="Log per-frame decisions")

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ReframeConfig":
        if self.cut_similarity > self.cut_start:
            raise ValueError(
                f"cut_similarity ({self.cut_similarity}) must not exceed cut_start ({self.cut_start})"
            )
        for label, threshold in self.class_confidence.items():
            if not 0.0 <= threshold <= 1.0:
                raise ValueError(f"confidence threshold for '{label}' must be within [0, 1]")
        return self

    def confidence_for(self, label: str) -> float:
        """Confidence threshold for a detection class."""
        return self.class_confidence.get(label, self.min_confidence)

    def effective_strategy(self) -> SmoothingStrategy:
        """Motion-predictive smoothing wins whenever a motion class is targeted."""
        if any(label in self.motion_classes for label in self.target_classes):
            return SmoothingStrategy.MOTION
        return self.smoothing_strategy


# Default configurations for common use cases
RESPONSIVE_CONFIG = ReframeConfig(
    smoothing_strategy=SmoothingStrategy.SIMPLE,
    smooth_duration=0.5,
)

STABLE_CONFIG = ReframeConfig(
    smooth_duration=2.0,
    smooth_percentage=5.0,
    history_decay=0.92,
)

PODCAST_CONFIG = ReframeConfig(
    target_classes=["face", "head"],
    enable_stacking=True,
    keep_text=True,
)

BALL_CONFIG = ReframeConfig(
    target_classes=["ball"],
    min_confidence=0.5,
    smooth_duration=0.5,
)
