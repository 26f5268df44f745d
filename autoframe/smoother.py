"""
Temporal smoothing of raw crop windows.

This module turns the noisy per-frame decision of the crop calculator
into smooth virtual-camera motion that still reacts to scene cuts.

Easing curve: every transition toward a new target lasts N frames,
N being the smoothing window. Each frame moves the emitted window
(target - emitted) / remaining, with remaining counting down from N, so
a steady target is reached exactly after N frames along a straight
line. On top of that, the emitted center never moves more than
smooth_percentage percent of the frame diagonal in one frame.

Layout changes (single to stacked, or different slot weights) cannot be
interpolated. They switch in a single frame and are exempt from the
displacement cap, like hard cuts.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from autoframe.config import ReframeConfig, SmoothingStrategy
from autoframe.crop_calculator import CropCalculator
from autoframe.detections import primary_subject
from autoframe.history import HistoryBuffer, window_frames
from autoframe.models import CropWindow, CutKind, CutSignal, Detection, HistoryEntry, VideoMeta
from autoframe.motion import MotionPredictor

logger = logging.getLogger(__name__)


@dataclass
class SmoothingState:
    """Everything one stream's smoothing depends on between frames."""

    history: HistoryBuffer
    strategy: SmoothingStrategy
    last_emitted: Optional[CropWindow] = None
    anchor: Optional[CropWindow] = None  # raw window that started the current transition
    ease_step: float = 0.0
    predictor: Optional[MotionPredictor] = None
    frames_seen: int = 0
    cuts: int = 0

    def reset(self) -> None:
        """Clear history, easing and prediction; used at stream start and on hard cuts."""
        self.history.clear()
        self.last_emitted = None
        self.anchor = None
        self.ease_step = 0.0
        if self.predictor is not None:
            self.predictor.reset()


class SmoothingEngine:
    """
    Strategy-tagged temporal filter shared by every smoothing variant.

    The engine itself keeps no per-stream data: all of it lives in the
    SmoothingState passed to consume(), so one engine configuration can
    serve independent streams side by side.
    """

    def __init__(
        self,
        config: ReframeConfig,
        meta: VideoMeta,
        calculator: Optional[CropCalculator] = None,
    ):
        self.config = config
        self.meta = meta
        self.calculator = calculator or CropCalculator(config, meta.width, meta.height)
        self.window = window_frames(config.smooth_duration, meta.fps)
        self.max_step = config.smooth_percentage / 100 * meta.diagonal

    def new_state(self, strategy: Optional[SmoothingStrategy] = None) -> SmoothingState:
        """Create a fresh state; the strategy is fixed for the life of the stream."""
        if strategy is None:
            strategy = self.config.effective_strategy()
        predictor = None
        if strategy == SmoothingStrategy.MOTION:
            predictor = MotionPredictor(
                self.config.prediction_weight, self.config.max_prediction_gap
            )
        history = HistoryBuffer(self.window, self.config.history_decay)
        return SmoothingState(history=history, strategy=strategy, predictor=predictor)

    def consume(
        self,
        state: SmoothingState,
        frame_index: int,
        raw: CropWindow,
        signal: Optional[CutSignal] = None,
        timestamp: float = 0.0,
        subjects: Sequence[Detection] = (),
    ) -> CropWindow:
        """
        Emit the final window for a frame and record it in history.

        Args:
            state: The stream's smoothing state, updated in place.
            frame_index: Index of the frame, strictly increasing per stream.
            raw: Unsmoothed window from the crop calculator.
            signal: Cut classification for this frame, if available.
            timestamp: Frame time in seconds.
            subjects: Qualified detections the raw window was built from.

        Returns:
            The emitted CropWindow.
        """
        kind = signal.kind if signal is not None else CutKind.CONTINUITY

        if kind == CutKind.HARD:
            emitted, raw = self._hard_cut(state, frame_index, raw, signal, subjects)
        else:
            speedup = self.config.soft_cut_speedup if kind == CutKind.SOFT else 1.0
            if state.strategy == SmoothingStrategy.MOTION:
                raw = self._motion_raw(state, raw, subjects)
                target = self._history_target(state, frame_index, raw)
            elif state.strategy == SmoothingStrategy.SIMPLE:
                target = raw
            else:
                target = self._history_target(state, frame_index, raw)
            emitted = self._ease(state, raw, target, speedup)

        state.history.append(
            HistoryEntry(
                frame_index=frame_index,
                timestamp=max(timestamp, 0.0),
                detections=tuple(subjects),
                raw=raw,
                emitted=emitted,
            )
        )
        state.last_emitted = emitted
        state.frames_seen += 1

        if self.config.debug:
            logger.debug(
                f"Frame {frame_index}: {kind.value}, raw {raw.tag}, emitted {emitted.rects} "
                f"(step {state.ease_step:g}/{self.window})"
            )
        return emitted

    def _hard_cut(
        self,
        state: SmoothingState,
        frame_index: int,
        raw: CropWindow,
        signal: CutSignal,
        subjects: Sequence[Detection],
    ) -> tuple[CropWindow, CropWindow]:
        """Snap to the new raw target after clearing every bit of smoothing state."""
        previous = state.last_emitted
        state.reset()
        state.cuts += 1
        logger.info(
            f"Hard cut at frame {frame_index} (similarity {signal.similarity:.3f}), history cleared"
        )

        if state.strategy == SmoothingStrategy.MOTION:
            raw = self._motion_raw(state, raw, subjects)

        state.anchor = raw
        if raw.subject_count == 0 and previous is not None:
            # Nobody on screen after the cut: keep the old framing and ease
            # toward the fallback from there.
            state.ease_step = 0.0
            return previous, raw

        state.ease_step = float(self.window)
        return raw, raw

    def _history_target(self, state: SmoothingState, frame_index: int, raw: CropWindow) -> CropWindow:
        target = state.history.recent_target(current=raw, frame_index=frame_index)
        return target if target is not None else raw

    def _motion_raw(
        self,
        state: SmoothingState,
        raw: CropWindow,
        subjects: Sequence[Detection],
    ) -> CropWindow:
        """Replace the raw window with one framed on the predicted subject position."""
        primary = primary_subject(subjects)
        box = primary.box if primary is not None else None
        predicted = state.predictor.update(box, self.meta.width, self.meta.height)
        if predicted is None:
            return raw
        return self.calculator.window_for_subject(predicted, subject_count=max(raw.subject_count, 1))

    def _ease(
        self,
        state: SmoothingState,
        raw: CropWindow,
        target: CropWindow,
        speedup: float,
    ) -> CropWindow:
        """
        Move the last emitted window one easing step toward target.

        A new transition starts when the raw window leaves the band
        around the transition anchor, or when it changes at all after the
        previous transition has finished. Small changes during a running
        transition keep its step count.
        """
        previous = state.last_emitted
        if previous is None:
            state.anchor = raw
            state.ease_step = float(self.window)
            return target

        if target.layout_key != previous.layout_key:
            # Different layouts cannot be interpolated; switch outright.
            state.anchor = raw
            state.ease_step = 0.0
            return target

        width = self.meta.width
        percentage = self.config.smooth_percentage
        finished = state.ease_step >= self.window
        if (
            state.anchor is None
            or not raw.is_similar(state.anchor, width, percentage)
            or (finished and raw != state.anchor)
        ):
            state.anchor = raw
            state.ease_step = 0.0

        remaining = self.window - state.ease_step
        candidate = target if remaining <= 1 else previous.lerp(target, 1.0 / remaining)
        state.ease_step += speedup
        return self._limit_step(previous, candidate)

    def _limit_step(self, previous: CropWindow, candidate: CropWindow) -> CropWindow:
        """Scale the move back so no center travels more than max_step."""
        displacement = previous.center_displacement(candidate)
        if displacement <= self.max_step:
            return candidate
        return previous.lerp(candidate, self.max_step / displacement)
