"""
Raw crop window computation from a frame's detections.

This module decides, for a single frame and without looking at any
other frame, where to crop: a centered fallback when nobody is found,
a subject-centered window for one subject, a group window or a stacked
layout for a few subjects, and the largest subject for a crowd.
"""

import logging
from typing import Optional, Sequence

from autoframe.config import ReframeConfig
from autoframe.detections import (
    RawDetection,
    primary_subject,
    qualify_subjects,
    qualify_text_boxes,
    sanitize,
)
from autoframe.geometry import (
    centered_crop,
    fit_aspect,
    include_box,
    largest_fitting,
    place,
    shrink_to_frame,
)
from autoframe.models import AspectRatio, CropLayout, CropWindow, Detection, Rect

logger = logging.getLogger(__name__)

# Canvas band weights, top to bottom. With a 9:16 canvas these give
# 9:8 + 9:8 and 9:6 + 9:10 sub-crops.
EVEN_STACK_WEIGHTS = [1, 1]
ASYMMETRIC_STACK_WEIGHTS = [3, 5]


class CropCalculator:
    """
    Compute the unsmoothed crop window for one frame.

    The calculator holds no per-frame state, so calling calculate() twice
    with the same detections always returns the same window.
    """

    def __init__(
        self,
        config: ReframeConfig,
        frame_width: int,
        frame_height: int,
        target_aspect: Optional[AspectRatio] = None,
    ):
        self.config = config
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.target_aspect = target_aspect or config.target_aspect
        self.aspect = self.target_aspect.ratio

    def select_subjects(
        self,
        detections: Sequence[RawDetection],
        frame_index: int = 0,
    ) -> list[Detection]:
        """Sanitize detections and keep the qualifying subjects."""
        clean = sanitize(detections, self.frame_width, self.frame_height, frame_index)
        return qualify_subjects(clean, self.config, self.frame_width, self.frame_height)

    def select_text(
        self,
        text_boxes: Sequence[RawDetection],
        frame_index: int = 0,
    ) -> list[Detection]:
        """Sanitize text detections and keep the qualifying ones."""
        clean = sanitize(text_boxes, self.frame_width, self.frame_height, frame_index)
        return qualify_text_boxes(clean, self.config, self.frame_width, self.frame_height)

    def calculate(
        self,
        detections: Sequence[RawDetection],
        text_boxes: Sequence[RawDetection] = (),
        frame_index: int = 0,
    ) -> CropWindow:
        """
        Compute the raw crop window for a frame.

        Detections labelled with the configured text class count as text
        boxes alongside the separately supplied ones.

        Args:
            detections: Detector output for the frame.
            text_boxes: Text detections, used when text awareness is enabled.
            frame_index: Frame number, used for logging only.

        Returns:
            CropWindow fully inside the frame with positive dimensions.
        """
        clean = sanitize(detections, self.frame_width, self.frame_height, frame_index)
        subjects = qualify_subjects(clean, self.config, self.frame_width, self.frame_height)

        text: list[Detection] = []
        if self.config.keep_text or self.config.prioritize_text:
            in_stream = [d for d in clean if d.label == self.config.text_class]
            text = self.select_text(list(text_boxes) + in_stream, frame_index)

        if self.config.prioritize_text and text:
            subjects = subjects + text

        window = self.calculate_for_subjects(subjects)

        if self.config.keep_text and text:
            window = self._include_text(window, text)

        if self.config.debug:
            logger.debug(
                f"Frame {frame_index}: {len(subjects)} subject(s), "
                f"{len(text)} text box(es) -> {window.tag} {window.rects}"
            )
        return window

    def calculate_for_subjects(self, subjects: Sequence[Detection]) -> CropWindow:
        """Dispatch on the number of already-qualified subjects."""
        count = len(subjects)

        if count == 0:
            return self.default_window()

        if count == 1 or count > self.config.max_group_subjects:
            primary = primary_subject(subjects)
            return self.window_for_subject(primary.box, subject_count=count)

        boxes = [s.box for s in subjects]
        spread = (max(b.cx for b in boxes) - min(b.cx for b in boxes)) / self.frame_width

        if not self.config.enable_stacking or spread < self.config.stack_spread_threshold:
            return self._group_window(boxes)

        if count == 3 and self._equally_spaced(boxes):
            return self._stacked_window(boxes, ASYMMETRIC_STACK_WEIGHTS)

        return self._stacked_window(boxes, EVEN_STACK_WEIGHTS)

    def default_window(self) -> CropWindow:
        """Largest centered crop with the fallback aspect."""
        rect = centered_crop(self.frame_width, self.frame_height, self.config.fallback_aspect.ratio)
        return CropWindow.single(rect, subject_count=0)

    def window_for_subject(self, box: Rect, subject_count: int = 1) -> CropWindow:
        """
        Target-aspect crop centered on one subject.

        The crop covers the padded subject and is at least
        min_crop_height_fraction of the frame height. When centering would
        leave the frame the crop is translated, never shrunk.
        """
        padded = box.pad(self.config.subject_padding * max(box.width, box.height))
        width, height = fit_aspect(padded.width, padded.height, self.aspect)

        min_height = self.frame_height * self.config.min_crop_height_fraction
        if height < min_height:
            width, height = min_height * self.aspect, min_height

        if width > self.frame_width or height > self.frame_height:
            width, height = largest_fitting(self.frame_width, self.frame_height, self.aspect)

        rect = place(box.cx, box.cy, width, height, self.frame_width, self.frame_height)
        return CropWindow.single(rect, subject_count=subject_count)

    def _group_window(self, boxes: list[Rect]) -> CropWindow:
        """
        One target-aspect crop around every subject.

        The padded union is grown symmetrically to the target aspect and
        clipped to the frame when it does not fit.
        """
        union = Rect.union(boxes)
        padded = union.pad(self.config.subject_padding * max(max(b.width, b.height) for b in boxes))
        width, height = fit_aspect(padded.width, padded.height, self.aspect)

        min_height = self.frame_height * self.config.min_crop_height_fraction
        if height < min_height:
            width, height = min_height * self.aspect, min_height

        width = min(width, self.frame_width)
        height = min(height, self.frame_height)
        rect = place(union.cx, union.cy, width, height, self.frame_width, self.frame_height)
        return CropWindow.single(rect, subject_count=len(boxes))

    def _stacked_window(self, boxes: list[Rect], weights: list[int]) -> CropWindow:
        """
        Two sub-crops stacked vertically, left cluster on top.

        Each sub-crop has the aspect of its canvas band, so that once
        scaled to the canvas width the bands fill the canvas exactly.
        """
        top_group, bottom_group = self._split_groups(boxes, weights)
        total = sum(weights)
        rects = []
        for group, weight in zip((top_group, bottom_group), weights):
            band_aspect = self.aspect * total / weight
            rects.append(self._band_rect(group, band_aspect))
        return CropWindow.stacked(rects, list(weights), subject_count=len(boxes))

    def _band_rect(self, group: list[Rect], band_aspect: float) -> Rect:
        union = Rect.union(group)
        padded = union.pad(self.config.subject_padding * max(max(b.width, b.height) for b in group))
        width, height = fit_aspect(padded.width, padded.height, band_aspect)

        min_height = self.frame_height * self.config.stack_min_height_fraction
        if height < min_height:
            width, height = min_height * band_aspect, min_height

        width, height = shrink_to_frame(width, height, self.frame_width, self.frame_height)
        return place(union.cx, union.cy, width, height, self.frame_width, self.frame_height)

    def _split_groups(self, boxes: list[Rect], weights: list[int]) -> tuple[list[Rect], list[Rect]]:
        """
        Cluster subjects into a left and a right group.

        Groups are split at the widest horizontal gap between neighbouring
        centers. For the asymmetric layout the wider top band takes the
        left pair and the taller bottom band the remaining subject.
        """
        ordered = sorted(boxes, key=lambda b: b.cx)
        if weights == ASYMMETRIC_STACK_WEIGHTS:
            return ordered[:2], ordered[2:]

        gaps = [ordered[i + 1].cx - ordered[i].cx for i in range(len(ordered) - 1)]
        split = max(range(len(gaps)), key=lambda i: gaps[i]) + 1
        return ordered[:split], ordered[split:]

    def _equally_spaced(self, boxes: list[Rect]) -> bool:
        """Three subjects whose neighbouring center distances agree within tolerance."""
        ordered = sorted(boxes, key=lambda b: b.cx)
        first = ordered[0].center_distance(ordered[1])
        second = ordered[1].center_distance(ordered[2])
        longest = max(first, second)
        if longest <= 0:
            return False
        return abs(first - second) <= self.config.equal_spacing_tolerance * longest

    def _include_text(self, window: CropWindow, text: list[Detection]) -> CropWindow:
        """
        Move or grow the window so each text box is covered.

        For stacked windows a box counts as covered when any band contains
        it; otherwise the band closest to the box is adjusted.
        """
        rects = list(window.rects)
        for det in text:
            box = det.box
            if any(r.contains(box) for r in rects):
                continue
            idx = min(range(len(rects)), key=lambda i: rects[i].center_distance(box))
            rects[idx] = include_box(rects[idx], box, self.frame_width, self.frame_height)

        if window.layout == CropLayout.SINGLE:
            return CropWindow.single(rects[0], subject_count=window.subject_count)
        return CropWindow.stacked(rects, list(window.slot_weights), subject_count=window.subject_count)


def calculate_crop(
    detections: Sequence[RawDetection],
    frame_width: int,
    frame_height: int,
    target_aspect: Optional[AspectRatio] = None,
    config: Optional[ReframeConfig] = None,
    text_boxes: Sequence[RawDetection] = (),
) -> CropWindow:
    """
    Convenience function for one-off crop calculation.

    Args:
        detections: Detector output for the frame.
        frame_width: Source frame width.
        frame_height: Source frame height.
        target_aspect: Canvas aspect. Defaults to config.target_aspect.
        config: Configuration options. Uses defaults if not provided.
        text_boxes: Optional text detections.

    Returns:
        Raw CropWindow for the frame.
    """
    if config is None:
        config = ReframeConfig()

    calculator = CropCalculator(config, frame_width, frame_height, target_aspect)
    return calculator.calculate(detections, text_boxes)
