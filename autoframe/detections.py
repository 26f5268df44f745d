"""
Detection ingestion and qualification.

Raw detector output is turned into Detection models here. Malformed
records and boxes are dropped with a warning instead of aborting the
frame.
"""

import logging
from typing import Any, Iterable, Optional, Sequence, Union

from pydantic import ValidationError

from autoframe.config import ReframeConfig
from autoframe.exceptions import DetectionError
from autoframe.geometry import clip_to_frame
from autoframe.models import Detection, Rect

logger = logging.getLogger(__name__)

RawDetection = Union[Detection, dict[str, Any]]


def parse_detection(raw: RawDetection, frame_index: int = 0) -> Detection:
    """
    Build a Detection from a detector record.

    Accepts either a Detection or a mapping with x, y, width, height
    (or a nested "box"), label (or "class"/"name") and confidence
    (or "score").

    Raises:
        DetectionError: If the record cannot be parsed.
    """
    if isinstance(raw, Detection):
        return raw

    try:
        box = raw.get("box")
        if box is None:
            box = {k: raw[k] for k in ("x", "y", "width", "height")}
        label = raw.get("label", raw.get("class", raw.get("name")))
        confidence = raw.get("confidence", raw.get("score"))
        return Detection(
            box=Rect.model_validate(box),
            label=label,
            confidence=confidence,
            frame_index=raw.get("frame_index", frame_index),
        )
    except (AttributeError, KeyError, TypeError, ValidationError) as e:
        raise DetectionError(f"Malformed detection record {raw!r}: {e}") from e


def parse_detections(raws: Iterable[RawDetection], frame_index: int = 0) -> list[Detection]:
    """Parse a frame's detector output, dropping records that fail to parse."""
    detections = []
    for raw in raws:
        try:
            detections.append(parse_detection(raw, frame_index))
        except DetectionError as e:
            logger.warning(f"Frame {frame_index}: dropping detection: {e}")
    return detections


def sanitize(
    detections: Sequence[RawDetection],
    frame_width: int,
    frame_height: int,
    frame_index: int = 0,
) -> list[Detection]:
    """
    Drop malformed detections and clip the remaining boxes to the frame.

    A detection is malformed when its box has non-finite coordinates,
    an inverted extent, zero area, or lies fully outside the frame.
    """
    clean = []
    for det in parse_detections(detections, frame_index):
        if not det.box.is_well_formed:
            logger.warning(f"Frame {frame_index}: dropping malformed {det.label} box {det.box}")
            continue
        clipped = clip_to_frame(det.box, frame_width, frame_height)
        if clipped is None:
            logger.warning(f"Frame {frame_index}: dropping {det.label} box outside frame {det.box}")
            continue
        clean.append(det if clipped == det.box else det.model_copy(update={"box": clipped}))
    return clean


def qualify_subjects(
    detections: Sequence[Detection],
    config: ReframeConfig,
    frame_width: int,
    frame_height: int,
) -> list[Detection]:
    """
    Keep detections of a target class that pass their confidence and area thresholds.

    The area threshold is skipped for area-exempt classes (small, fast
    objects such as a ball).
    """
    frame_area = frame_width * frame_height
    subjects = []
    for det in detections:
        if det.label not in config.target_classes:
            continue
        if det.confidence < config.confidence_for(det.label):
            continue
        if det.label not in config.area_exempt_classes:
            if det.box.area / frame_area < config.min_area_fraction:
                continue
        subjects.append(det)
    return subjects


def qualify_text_boxes(
    text_boxes: Sequence[Detection],
    config: ReframeConfig,
    frame_width: int,
    frame_height: int,
) -> list[Detection]:
    """
    Keep confident text boxes, but only when together they cover enough of the frame.

    Returns an empty list when the combined area of confident boxes is
    below text_area_threshold of the frame area.
    """
    confident = [t for t in text_boxes if t.confidence >= config.text_confidence]
    if not confident or config.text_area_threshold <= 0:
        return confident

    total_area = sum(t.box.area for t in confident)
    if total_area < frame_width * frame_height * config.text_area_threshold:
        return []
    return confident


def primary_subject(detections: Sequence[Detection]) -> Optional[Detection]:
    """The largest detection; ties go to the more confident one."""
    if not detections:
        return None
    return max(detections, key=lambda d: (d.box.area, d.confidence))
