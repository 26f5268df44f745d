"""
Position prediction for fast, small subjects.

A tracked ball is often missed for a frame or two and moves faster
than a position-history filter can follow. The predictor extrapolates
the last three subject centers and blends the extrapolation with the
actual detection when there is one.
"""

from collections import deque
from typing import Optional

from autoframe.models import Rect


def extrapolate(centers: list[tuple[float, float]]) -> Optional[tuple[float, float]]:
    """
    Predict the next center from up to three previous centers.

    With three centers the prediction uses velocity and acceleration
    (last + v + a / 2), with two it is linear, with one it repeats it.
    """
    if not centers:
        return None
    if len(centers) == 1:
        return centers[0]

    (x1, y1), (x2, y2) = centers[-2], centers[-1]
    vx, vy = x2 - x1, y2 - y1
    if len(centers) == 2:
        return x2 + vx, y2 + vy

    x0, y0 = centers[-3]
    ax = vx - (x1 - x0)
    ay = vy - (y1 - y0)
    return x2 + vx + 0.5 * ax, y2 + vy + 0.5 * ay


class MotionPredictor:
    """
    Track one subject's recent centers and bridge missed detections.

    Args:
        prediction_weight: Weight of the predicted center when a detection exists.
        max_gap: Consecutive missed frames to bridge with prediction alone.
    """

    def __init__(self, prediction_weight: float = 0.4, max_gap: int = 5):
        self.prediction_weight = prediction_weight
        self.max_gap = max_gap
        self._centers: deque[tuple[float, float]] = deque(maxlen=3)
        self._last_size: Optional[tuple[float, float]] = None
        self._misses = 0

    @property
    def centers(self) -> list[tuple[float, float]]:
        return list(self._centers)

    def predict(self) -> Optional[tuple[float, float]]:
        return extrapolate(list(self._centers))

    def update(
        self,
        box: Optional[Rect],
        frame_width: float,
        frame_height: float,
    ) -> Optional[Rect]:
        """
        Feed the frame's detection (or None on a miss) and get the subject box to frame.

        Returns:
            Box centered on the blended or predicted position with the last
            known subject size, or None once the subject has been missing
            for more than max_gap frames.
        """
        predicted = self.predict()

        if box is not None:
            self._misses = 0
            self._last_size = (box.width, box.height)
            if predicted is None:
                cx, cy = box.cx, box.cy
            else:
                w = self.prediction_weight
                cx = (1 - w) * box.cx + w * predicted[0]
                cy = (1 - w) * box.cy + w * predicted[1]
        else:
            self._misses += 1
            if predicted is None or self._last_size is None or self._misses > self.max_gap:
                return None
            cx, cy = predicted

        cx = min(max(cx, 0.0), float(frame_width))
        cy = min(max(cy, 0.0), float(frame_height))
        self._centers.append((cx, cy))

        width, height = self._last_size
        return Rect.from_center(cx, cy, width, height)

    def reset(self) -> None:
        self._centers.clear()
        self._last_size = None
        self._misses = 0
