"""
Tests for histogram-based cut detection.
"""

import numpy as np
import pytest

from autoframe.config import ReframeConfig
from autoframe.cut_detector import HIST_BINS, CutDetector
from autoframe.models import CutKind


def solid(value, shape=(90, 160, 3)):
    return np.full(shape, value, dtype=np.uint8)


def half_white():
    frame = solid(0)
    frame[:, 80:] = 255
    return frame


class TestSignature:
    def test_shape_and_normalization(self):
        detector = CutDetector()
        frame = solid(0)
        frame[:, :, 0] = 128
        signature = detector.compute_signature(frame)
        assert signature.shape == (3, HIST_BINS)
        assert signature.sum(axis=1) == pytest.approx(np.ones(3), rel=0.01)

    def test_grayscale_frame(self):
        signature = CutDetector().compute_signature(np.zeros((90, 160), dtype=np.uint8))
        assert signature.shape == (3, HIST_BINS)

    def test_empty_frame_rejected(self):
        with pytest.raises(ValueError):
            CutDetector().compute_signature(np.zeros((0, 0, 3), dtype=np.uint8))


class TestSimilarity:
    def test_identical_frames(self):
        assert CutDetector().compare(solid(40), solid(40)) == pytest.approx(1.0, abs=1e-2)

    def test_black_to_white_is_hard_cut(self):
        detector = CutDetector()
        score = detector.compare(solid(0), solid(255))
        assert score == pytest.approx(0.0, abs=1e-3)
        assert detector.classify(score) == CutKind.HARD

    def test_partial_change_is_soft(self):
        detector = CutDetector()
        score = detector.compare(solid(0), half_white())
        assert 0.4 < score < 0.8
        assert detector.classify(score) == CutKind.SOFT


class TestClassify:
    def test_thresholds(self):
        detector = CutDetector(cut_similarity=0.4, cut_start=0.8)
        assert detector.classify(0.1) == CutKind.HARD
        assert detector.classify(0.4) == CutKind.SOFT
        assert detector.classify(0.79) == CutKind.SOFT
        assert detector.classify(0.8) == CutKind.CONTINUITY

    def test_signal_clamps_score(self):
        signal = CutDetector().signal(3, 1.7)
        assert signal.similarity == 1.0
        assert signal.kind == CutKind.CONTINUITY

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            CutDetector(cut_similarity=0.9, cut_start=0.5)

    def test_from_config(self):
        detector = CutDetector.from_config(ReframeConfig(cut_similarity=0.2, cut_start=0.6))
        assert (detector.cut_similarity, detector.cut_start) == (0.2, 0.6)


class TestObserve:
    def test_first_frame_is_continuous(self):
        signal = CutDetector().observe(0, solid(0))
        assert signal.similarity == 1.0
        assert signal.kind == CutKind.CONTINUITY

    def test_sequence(self):
        detector = CutDetector()
        kinds = [detector.observe(i, f).kind for i, f in enumerate([solid(0), solid(0), solid(255)])]
        assert kinds == [CutKind.CONTINUITY, CutKind.CONTINUITY, CutKind.HARD]

    def test_unreadable_frame_assumes_continuity(self):
        detector = CutDetector()
        detector.observe(0, solid(0))
        signal = detector.observe(1, None)
        assert signal.kind == CutKind.CONTINUITY
        assert signal.similarity == 1.0
        # The last good frame is still the reference
        assert detector.observe(2, solid(255)).kind == CutKind.HARD

    def test_reset(self):
        detector = CutDetector()
        detector.observe(0, solid(0))
        detector.reset()
        assert detector.observe(1, solid(255)).kind == CutKind.CONTINUITY
