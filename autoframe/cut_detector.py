"""
Scene-cut detection using color histogram similarity.

This module compares HSV histograms of consecutive frames and
classifies the pair as continuous, a soft transition (fade, wipe) or
a hard cut.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from autoframe.config import ReframeConfig
from autoframe.models import CutKind, CutSignal

logger = logging.getLogger(__name__)

# Per-channel histogram bins for H, S and V.
HIST_BINS = 32
HIST_RANGES = ([0, 180], [0, 256], [0, 256])


class CutDetector:
    """
    Classify frame-to-frame continuity with histogram comparison.

    Each frame is reduced to a small signature (one normalized histogram
    per HSV channel). Similarity is one minus the largest per-channel
    Bhattacharyya distance, so a change in hue, saturation or brightness
    alone is enough to register as a cut.
    """

    def __init__(
        self,
        cut_similarity: float = 0.4,
        cut_start: float = 0.8,
        signature_size: tuple[int, int] = (160, 90),
    ):
        if not 0.0 <= cut_similarity <= cut_start <= 1.0:
            raise ValueError(
                f"Expected 0 <= cut_similarity <= cut_start <= 1, got {cut_similarity}, {cut_start}"
            )
        self.cut_similarity = cut_similarity
        self.cut_start = cut_start
        self.signature_size = signature_size
        self._prev_signature: Optional[np.ndarray] = None

    @classmethod
    def from_config(cls, config: ReframeConfig) -> "CutDetector":
        return cls(config.cut_similarity, config.cut_start)

    def compute_signature(self, frame: np.ndarray) -> np.ndarray:
        """
        Compute the histogram signature of a BGR (or grayscale) frame.

        Returns:
            Array of shape (3, HIST_BINS), each row summing to 1.
        """
        if frame is None or frame.size == 0:
            raise ValueError("empty frame")
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)

        # Downsample for faster processing
        small = cv2.resize(frame, self.signature_size, interpolation=cv2.INTER_AREA)
        hsv = cv2.cvtColor(small, cv2.COLOR_BGR2HSV)

        rows = []
        for channel, value_range in enumerate(HIST_RANGES):
            hist = cv2.calcHist([hsv], [channel], None, [HIST_BINS], value_range).flatten()
            rows.append(hist / (hist.sum() + 1e-6))
        return np.stack(rows).astype(np.float32)

    def similarity(self, signature_a: np.ndarray, signature_b: np.ndarray) -> float:
        """Similarity in [0, 1] between two signatures; 1.0 means identical."""
        distance = max(
            cv2.compareHist(a, b, cv2.HISTCMP_BHATTACHARYYA)
            for a, b in zip(signature_a, signature_b)
        )
        return float(np.clip(1.0 - distance, 0.0, 1.0))

    def compare(self, previous: np.ndarray, current: np.ndarray) -> float:
        """Similarity between two frames."""
        return self.similarity(self.compute_signature(previous), self.compute_signature(current))

    def classify(self, score: float) -> CutKind:
        """Map a similarity score to a continuity class."""
        if score < self.cut_similarity:
            return CutKind.HARD
        if score < self.cut_start:
            return CutKind.SOFT
        return CutKind.CONTINUITY

    def signal(self, frame_index: int, score: float) -> CutSignal:
        score = float(np.clip(score, 0.0, 1.0))
        return CutSignal(frame_index=frame_index, similarity=score, kind=self.classify(score))

    def observe(self, frame_index: int, frame: Optional[np.ndarray]) -> CutSignal:
        """
        Compare a frame with the previously observed one.

        The first frame of a stream, and any frame whose signature cannot be
        computed, is reported as continuous (similarity 1.0).
        """
        try:
            signature = self.compute_signature(frame)
        except (cv2.error, ValueError, AttributeError) as e:
            logger.warning(f"Frame {frame_index}: cut detection unavailable, assuming continuity: {e}")
            return self.signal(frame_index, 1.0)

        previous = self._prev_signature
        self._prev_signature = signature
        if previous is None:
            return self.signal(frame_index, 1.0)

        result = self.signal(frame_index, self.similarity(previous, signature))
        if result.kind != CutKind.CONTINUITY:
            logger.debug(
                f"Frame {frame_index}: {result.kind.value} cut (similarity {result.similarity:.3f})"
            )
        return result

    def reset(self) -> None:
        """Forget the previous frame, e.g. when a new stream starts."""
        self._prev_signature = None
