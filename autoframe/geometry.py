"""
Geometry helpers for crop computation.

Everything here works in source-frame pixel coordinates and returns
rectangles that lie inside the frame with positive size.
"""

from typing import Optional

from autoframe.models import Rect

# Smallest crop edge we ever emit, in pixels.
MIN_EDGE = 1.0


def largest_fitting(frame_width: float, frame_height: float, aspect: float) -> tuple[float, float]:
    """
    Largest (width, height) with the given aspect that fits in the frame.
    """
    if frame_width / frame_height > aspect:
        height = float(frame_height)
        width = height * aspect
    else:
        width = float(frame_width)
        height = width / aspect
    return width, height


def fit_aspect(min_width: float, min_height: float, aspect: float) -> tuple[float, float]:
    """
    Smallest (width, height) with the given aspect that covers min_width x min_height.
    """
    min_width = max(min_width, MIN_EDGE)
    min_height = max(min_height, MIN_EDGE)
    if min_width / min_height > aspect:
        return min_width, min_width / aspect
    return min_height * aspect, min_height


def shrink_to_frame(
    width: float, height: float, frame_width: float, frame_height: float
) -> tuple[float, float]:
    """Scale (width, height) down uniformly until it fits in the frame."""
    scale = min(1.0, frame_width / width, frame_height / height)
    return width * scale, height * scale


def place(
    cx: float,
    cy: float,
    width: float,
    height: float,
    frame_width: float,
    frame_height: float,
) -> Rect:
    """
    Center a width x height rectangle on (cx, cy) and translate it into the frame.

    The size is only reduced when it exceeds the frame itself.
    """
    width = min(max(width, MIN_EDGE), frame_width)
    height = min(max(height, MIN_EDGE), frame_height)
    x = min(max(cx - width / 2, 0.0), frame_width - width)
    y = min(max(cy - height / 2, 0.0), frame_height - height)
    return Rect(x=x, y=y, width=width, height=height)


def clip_to_frame(rect: Rect, frame_width: float, frame_height: float) -> Optional[Rect]:
    """Intersect rect with the frame; None when nothing is left."""
    return rect.intersect(Rect(x=0, y=0, width=frame_width, height=frame_height))


def centered_crop(frame_width: float, frame_height: float, aspect: float) -> Rect:
    """Largest rectangle of the given aspect, centered in the frame."""
    width, height = largest_fitting(frame_width, frame_height, aspect)
    return place(frame_width / 2, frame_height / 2, width, height, frame_width, frame_height)


def include_box(rect: Rect, box: Rect, frame_width: float, frame_height: float) -> Rect:
    """
    Minimally change rect so it also covers box.

    Translation is tried first. The rectangle only grows, keeping its aspect,
    when box cannot fit inside its current size, and its aspect only breaks
    when the grown rectangle would exceed the frame.
    """
    if rect.contains(box):
        return rect

    width, height = rect.width, rect.height
    scale = max(1.0, box.width / width, box.height / height)
    if scale > 1.0:
        width, height = width * scale, height * scale
        width = min(width, frame_width)
        height = min(height, frame_height)

    x = rect.cx - width / 2
    y = rect.cy - height / 2
    if box.x < x:
        x = box.x
    elif box.x2 > x + width:
        x = box.x2 - width
    if box.y < y:
        y = box.y
    elif box.y2 > y + height:
        y = box.y2 - height

    x = min(max(x, 0.0), frame_width - width)
    y = min(max(y, 0.0), frame_height - height)
    return Rect(x=x, y=y, width=width, height=height)
