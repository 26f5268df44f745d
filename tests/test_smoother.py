"""
Tests for the smoothing engine.

The scenario tests use a 1920x1080 stream at 30 fps with a 10% band
and a one-second window, so every transition lasts 30 frames.
"""

import numpy as np
import pytest

from autoframe.config import ReframeConfig, SmoothingStrategy
from autoframe.cut_detector import CutDetector
from autoframe.models import CropLayout, CutKind, CutSignal, Detection, Rect, VideoMeta
from autoframe.smoother import SmoothingEngine

META = VideoMeta(width=1920, height=1080, fps=30)


def make_engine(**overrides):
    config = ReframeConfig(smooth_percentage=10, smooth_duration=1.0, **overrides)
    return SmoothingEngine(config, META)


def face_window(engine, cx, cy=540):
    return engine.calculator.window_for_subject(Rect.from_center(cx, cy, 100, 100))


def face(cx, cy=540):
    return Detection(box=Rect.from_center(cx, cy, 100, 100), label="face", confidence=0.9)


def run(engine, state, windows, start=0, signals=None):
    emitted = []
    for offset, window in enumerate(windows):
        index = start + offset
        signal = signals.get(index) if signals else None
        emitted.append(engine.consume(state, index, window, signal=signal))
    return emitted


class TestEngineSetup:
    def test_window_and_step(self):
        engine = make_engine()
        assert engine.window == 30
        assert engine.max_step == pytest.approx(0.1 * META.diagonal)

    def test_strategy_from_config(self):
        assert make_engine().new_state().strategy == SmoothingStrategy.HISTORY
        state = make_engine(target_classes=["ball"]).new_state()
        assert state.strategy == SmoothingStrategy.MOTION
        assert state.predictor is not None


@pytest.mark.parametrize("strategy", [SmoothingStrategy.HISTORY, SmoothingStrategy.SIMPLE])
class TestConvergence:
    def test_first_frame_snaps(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        start = face_window(engine, 600)
        assert engine.consume(state, 0, start) == start

    def test_one_frame_moves_at_most_a_tenth(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        start, end = face_window(engine, 600), face_window(engine, 1300)
        engine.consume(state, 0, start)
        first = engine.consume(state, 1, end)

        delta = end.rects[0].x - start.rects[0].x
        moved = first.rects[0].x - start.rects[0].x
        assert 0 < moved <= 0.1 * delta

    def test_exact_after_window(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        start, end = face_window(engine, 600), face_window(engine, 1300)
        engine.consume(state, 0, start)
        emitted = run(engine, state, [end] * 30, start=1)

        xs = [w.rects[0].x for w in emitted]
        assert all(b >= a for a, b in zip(xs, xs[1:]))
        assert emitted[-2].rects[0].x < end.rects[0].x
        assert emitted[-1].rects[0].x == pytest.approx(end.rects[0].x)
        assert emitted[-1].rects[0].width == pytest.approx(end.rects[0].width)

    def test_jitter_barely_moves_settled_crop(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        end = face_window(engine, 1300)
        run(engine, state, [face_window(engine, 600)] + [end] * 30)
        settled = state.last_emitted

        jitter = [face_window(engine, 1300 + dx) for dx in (15, -20, 10, -5)]
        emitted = run(engine, state, jitter, start=31)
        for window in emitted:
            assert window.rects[0].x == pytest.approx(settled.rects[0].x, abs=2)

    def test_follows_small_move(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        before, after = face_window(engine, 960), face_window(engine, 1060)
        run(engine, state, [before] * 40)

        emitted = run(engine, state, [after] * 40, start=40)
        assert emitted[0].rects[0].x < after.rects[0].x
        assert emitted[-1].rects[0].x == pytest.approx(after.rects[0].x)
        assert emitted[-1].rects[0].width == pytest.approx(after.rects[0].width)
        assert emitted[-1] == emitted[-2]

    def test_bounded_motion(self, strategy):
        engine = make_engine()
        state = engine.new_state(strategy)
        rng = np.random.default_rng(7)
        windows = [face_window(engine, float(cx), float(cy))
                   for cx, cy in zip(rng.uniform(0, 1920, 120), rng.uniform(0, 1080, 120))]

        emitted = run(engine, state, windows)
        for previous, current in zip(emitted, emitted[1:]):
            assert previous.center_displacement(current) <= engine.max_step + 1e-6
            assert current.is_inside_frame(1920, 1080)


class TestCuts:
    def _settled(self, engine, state, cx=600, frames=5):
        return run(engine, state, [face_window(engine, cx)] * frames)

    def test_hard_cut_snaps_and_clears_history(self):
        engine = make_engine()
        state = engine.new_state()
        self._settled(engine, state)
        target = face_window(engine, 1500)

        signal = CutDetector(0.4, 0.8).signal(5, 0.1)
        assert signal.kind == CutKind.HARD
        emitted = engine.consume(state, 5, target, signal=signal)

        assert emitted == target
        assert len(state.history) == 1
        assert state.cuts == 1

    def test_similarity_at_threshold_does_not_snap(self):
        engine = make_engine()
        state = engine.new_state()
        self._settled(engine, state)
        target = face_window(engine, 1500)

        signal = CutDetector(0.4, 0.8).signal(5, 0.4)
        assert signal.kind == CutKind.SOFT
        emitted = engine.consume(state, 5, target, signal=signal)

        assert emitted != target
        assert len(state.history) == 6
        assert state.cuts == 0

    def test_hard_cut_to_empty_frame_keeps_previous(self):
        engine = make_engine()
        state = engine.new_state()
        previous = self._settled(engine, state)[-1]

        signal = CutSignal(frame_index=5, similarity=0.0, kind=CutKind.HARD)
        emitted = engine.consume(state, 5, engine.calculator.default_window(), signal=signal)
        assert emitted == previous

    def test_hard_cut_on_first_frame_with_nobody(self):
        engine = make_engine()
        state = engine.new_state()
        default = engine.calculator.default_window()
        signal = CutSignal(frame_index=0, similarity=0.0, kind=CutKind.HARD)
        assert engine.consume(state, 0, default, signal=signal) == default

    def test_settled_after_hard_cut(self):
        engine = make_engine()
        state = engine.new_state()
        self._settled(engine, state)
        target = face_window(engine, 1500)
        engine.consume(state, 5, target, signal=CutSignal(frame_index=5, similarity=0.1, kind=CutKind.HARD))
        assert engine.consume(state, 6, target) == target

    def test_soft_transition_eases_faster(self):
        start, end = 600, 1300
        normal, soft = make_engine(), make_engine()
        normal_state, soft_state = normal.new_state(), soft.new_state()
        run(normal, normal_state, [face_window(normal, start)])
        run(soft, soft_state, [face_window(soft, start)])

        soft_signals = {i: CutSignal(frame_index=i, similarity=0.6, kind=CutKind.SOFT) for i in range(1, 11)}
        slow = run(normal, normal_state, [face_window(normal, end)] * 10, start=1)
        fast = run(soft, soft_state, [face_window(soft, end)] * 10, start=1, signals=soft_signals)
        assert fast[-1].rects[0].cx > slow[-1].rects[0].cx


class TestLayoutSwitch:
    def _stacked(self, engine):
        return engine.calculator.calculate_for_subjects([face(400), face(1500)])

    def test_history_switches_on_majority(self):
        engine = make_engine(enable_stacking=True)
        state = engine.new_state()
        run(engine, state, [face_window(engine, 960)] * 10)
        stacked = self._stacked(engine)
        assert stacked.layout == CropLayout.STACKED

        emitted = run(engine, state, [stacked] * 8, start=10)
        assert emitted[0].layout == CropLayout.SINGLE
        assert emitted[-1].layout == CropLayout.STACKED

    def test_simple_switches_immediately(self):
        engine = make_engine(enable_stacking=True)
        state = engine.new_state(SmoothingStrategy.SIMPLE)
        run(engine, state, [face_window(engine, 960)] * 10)
        stacked = self._stacked(engine)
        # No easing or displacement cap across layouts
        assert engine.consume(state, 10, stacked) == stacked
        assert state.history.latest().emitted == stacked


class TestHistoryRecording:
    def test_every_frame_recorded(self):
        engine = make_engine()
        state = engine.new_state()
        window = face_window(engine, 960)
        engine.consume(state, 0, window, timestamp=0.0, subjects=[face(960)])
        entry = state.history.latest()
        assert entry.frame_index == 0
        assert entry.raw == window
        assert entry.emitted == window
        assert entry.detections[0].label == "face"
