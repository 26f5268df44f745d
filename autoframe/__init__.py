"""
Autoframe - detection-driven portrait reframing.

This package turns per-frame object detections of a landscape video
into a smooth sequence of crop windows for a portrait canvas (9:16 by
default), following faces, heads or a ball, stacking spread-out
subjects, and snapping to new framings on scene cuts.

Usage:
    from autoframe import StreamReframer, VideoMeta, ReframeConfig

    reframer = StreamReframer(
        VideoMeta(width=1920, height=1080, fps=30),
        config=ReframeConfig(enable_stacking=True),
    )

    for index, (frame, detections) in enumerate(source):
        crop = reframer.process_frame(index, detections, frame=frame)
        canvas = compose_frame(frame, crop.window, 1080, 1920)

    reframer.to_crop_plan().to_json_file("plan.json")
"""

from autoframe.models import (
    AspectRatio,
    Rect,
    Detection,
    CropLayout,
    CropWindow,
    CutKind,
    CutEvent,
    CutSignal,
    HistoryEntry,
    VideoMeta,
    FrameCrop,
    CropPlan,
)
from autoframe.config import (
    ReframeConfig,
    SmoothingStrategy,
    RESPONSIVE_CONFIG,
    STABLE_CONFIG,
    PODCAST_CONFIG,
    BALL_CONFIG,
)
from autoframe.config_factory import build_config, get_config_from_env, get_preset_config
from autoframe.exceptions import ConfigurationError, DetectionError, ReframeError
from autoframe.crop_calculator import CropCalculator, calculate_crop
from autoframe.cut_detector import CutDetector
from autoframe.history import HistoryBuffer
from autoframe.motion import MotionPredictor
from autoframe.smoother import SmoothingEngine, SmoothingState
from autoframe.reframer import FrameInput, StreamReframer
from autoframe.pipeline import reframe_async, run_pipeline
from autoframe.compositor import canvas_slots, compose_frame

__all__ = [
    # Main class
    "StreamReframer",
    "FrameInput",
    "reframe_async",
    "run_pipeline",
    # Components
    "CropCalculator",
    "calculate_crop",
    "CutDetector",
    "HistoryBuffer",
    "MotionPredictor",
    "SmoothingEngine",
    "SmoothingState",
    "canvas_slots",
    "compose_frame",
    # Configuration
    "ReframeConfig",
    "SmoothingStrategy",
    "RESPONSIVE_CONFIG",
    "STABLE_CONFIG",
    "PODCAST_CONFIG",
    "BALL_CONFIG",
    "build_config",
    "get_config_from_env",
    "get_preset_config",
    # Errors
    "ReframeError",
    "ConfigurationError",
    "DetectionError",
    # Data models
    "AspectRatio",
    "Rect",
    "Detection",
    "CropLayout",
    "CropWindow",
    "CutKind",
    "CutEvent",
    "CutSignal",
    "HistoryEntry",
    "VideoMeta",
    "FrameCrop",
    "CropPlan",
]

__version__ = "1.0.0"
