"""
Per-stream orchestration of the reframing core.

StreamReframer is the primary entry point: feed it one frame's
detections at a time and it returns the crop window to compose.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from autoframe.config import ReframeConfig
from autoframe.crop_calculator import CropCalculator
from autoframe.cut_detector import CutDetector
from autoframe.detections import RawDetection, sanitize
from autoframe.exceptions import ConfigurationError
from autoframe.models import CropPlan, CropWindow, CutEvent, CutSignal, FrameCrop, VideoMeta
from autoframe.smoother import SmoothingEngine

logger = logging.getLogger(__name__)


@dataclass
class FrameInput:
    """One decoded frame and what the detector found in it."""

    frame_index: int
    detections: Sequence[RawDetection] = ()
    frame: Optional[np.ndarray] = None
    timestamp: Optional[float] = None
    text_boxes: Sequence[RawDetection] = ()


class StreamReframer:
    """
    Turn per-frame detections of one stream into smooth crop windows.

    Each instance owns the state of exactly one stream. Frames must be
    fed in increasing index order; several streams are handled by
    several instances.

    Example usage:
        meta = VideoMeta(width=1920, height=1080, fps=30)
        reframer = StreamReframer(meta, PODCAST_CONFIG)

        for index, (frame, detections) in enumerate(source):
            crop = reframer.process_frame(index, detections, frame=frame)
            canvas = compose_frame(frame, crop.window, 1080, 1920)

        reframer.to_crop_plan().to_json_file("plan.json")
    """

    def __init__(
        self,
        meta: VideoMeta,
        config: Optional[ReframeConfig] = None,
        keep_plan: bool = True,
    ):
        """
        Initialize the reframer.

        Args:
            meta: Source stream metadata (frame size and fps).
            config: Configuration options. Uses defaults if not provided.
            keep_plan: Record every emitted window for to_crop_plan().

        Raises:
            ConfigurationError: If the stream metadata is unusable.
        """
        if config is None:
            config = ReframeConfig()
        if meta.width <= 0 or meta.height <= 0 or meta.fps <= 0:
            raise ConfigurationError(
                f"Invalid stream {meta.width}x{meta.height} @ {meta.fps}fps"
            )

        self.meta = meta
        self.config = config
        self.keep_plan = keep_plan

        self.calculator = CropCalculator(config, meta.width, meta.height)
        self.cut_detector = CutDetector.from_config(config)
        self.engine = SmoothingEngine(config, meta, self.calculator)
        self.state = self.engine.new_state()
        self._frames: list[FrameCrop] = []
        self.cut_events: list[CutEvent] = []

        logger.info(
            f"Reframing {meta.width}x{meta.height} @ {meta.fps:.2f}fps to {config.target_aspect} "
            f"({self.state.strategy.value} smoothing, window {self.engine.window} frames)"
        )

    @classmethod
    def for_stream(
        cls,
        width: int,
        height: int,
        fps: float,
        config: Optional[ReframeConfig] = None,
    ) -> "StreamReframer":
        """Build a reframer from raw stream parameters, validating them first."""
        try:
            meta = VideoMeta(width=width, height=height, fps=fps)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid stream parameters: {e}") from e
        return cls(meta, config)

    def process_frame(
        self,
        frame_index: int,
        detections: Sequence[RawDetection],
        frame: Optional[np.ndarray] = None,
        timestamp: Optional[float] = None,
        text_boxes: Sequence[RawDetection] = (),
    ) -> FrameCrop:
        """
        Compute the final crop window for one frame.

        Args:
            frame_index: Index of the frame in the stream.
            detections: Detector output for the frame.
            frame: Decoded BGR frame. Without it no cut analysis is done.
            timestamp: Frame time in seconds. Derived from fps if omitted.
            text_boxes: Text detections for text-aware cropping.

        Returns:
            FrameCrop with the emitted window and the cut classification.
        """
        if timestamp is None:
            timestamp = frame_index / self.meta.fps

        if frame is not None:
            signal = self.cut_detector.observe(frame_index, frame)
        else:
            signal = CutSignal(frame_index=frame_index)
        if signal.event is not None:
            self.cut_events.append(signal.event)

        clean = sanitize(detections, self.meta.width, self.meta.height, frame_index)
        subjects = self.calculator.select_subjects(clean, frame_index)
        raw = self.calculator.calculate(clean, text_boxes, frame_index)
        window = self.engine.consume(
            self.state,
            frame_index,
            raw,
            signal=signal,
            timestamp=timestamp,
            subjects=subjects,
        )

        result = FrameCrop(
            frame_index=frame_index,
            timestamp=max(timestamp, 0.0),
            window=window,
            cut=signal.kind,
            similarity=signal.similarity,
        )
        if self.keep_plan:
            self._frames.append(result)
        return result

    def process(self, frames: Iterable[FrameInput]) -> Iterator[FrameCrop]:
        """Process frames in order, yielding one FrameCrop per frame."""
        for item in frames:
            yield self.process_frame(
                item.frame_index,
                item.detections,
                frame=item.frame,
                timestamp=item.timestamp,
                text_boxes=item.text_boxes,
            )

    @property
    def last_window(self) -> Optional[CropWindow]:
        return self.state.last_emitted

    @property
    def cut_count(self) -> int:
        return self.state.cuts

    def reset(self) -> None:
        """Forget everything about the stream, e.g. when seeking."""
        self.state = self.engine.new_state()
        self.cut_detector.reset()
        self._frames = []
        self.cut_events = []

    def finalize(self) -> Optional[CropWindow]:
        """
        Flush the stream.

        Returns:
            The last emitted window, or None if no frame was processed.
        """
        last = self.state.last_emitted
        logger.info(
            f"Stream finished after {self.state.frames_seen} frames ({self.state.cuts} hard cuts)"
        )
        self.state.reset()
        self.cut_detector.reset()
        return last

    def to_crop_plan(self) -> CropPlan:
        """Every emitted window so far, as a serializable plan."""
        return CropPlan(
            video=self.meta,
            target_aspect=self.config.target_aspect,
            frames=list(self._frames),
        )
