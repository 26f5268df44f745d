"""
Tests for the per-stream reframer.
"""

import numpy as np
import pytest

from autoframe.config import BALL_CONFIG, ReframeConfig, SmoothingStrategy
from autoframe.exceptions import ConfigurationError
from autoframe.models import CropLayout, CropPlan, CutKind, VideoMeta
from autoframe.reframer import FrameInput, StreamReframer

META = VideoMeta(width=1920, height=1080, fps=30)


def face(cx, cy=540, size=100, label="face", confidence=0.9):
    return {
        "x": cx - size / 2,
        "y": cy - size / 2,
        "width": size,
        "height": size,
        "label": label,
        "confidence": confidence,
    }


def solid(value):
    return np.full((90, 160, 3), value, dtype=np.uint8)


class TestConstruction:
    def test_defaults(self):
        reframer = StreamReframer(META)
        assert reframer.config == ReframeConfig()
        assert reframer.engine.window == 30

    def test_invalid_stream_rejected(self):
        with pytest.raises(ConfigurationError):
            StreamReframer.for_stream(1920, 1080, 0)
        with pytest.raises(ConfigurationError):
            StreamReframer(VideoMeta.model_construct(width=1920, height=1080, fps=0))


class TestProcessFrame:
    def test_returns_frame_crop(self):
        reframer = StreamReframer(META)
        crop = reframer.process_frame(3, [face(960)])
        assert crop.frame_index == 3
        assert crop.timestamp == pytest.approx(0.1)
        assert crop.cut == CutKind.CONTINUITY
        assert crop.window.rects[0].cx == pytest.approx(960)

    def test_malformed_detections_do_not_raise(self):
        reframer = StreamReframer(META)
        crop = reframer.process_frame(0, [{"label": "face"}, None, face(960, confidence=3)])
        assert crop.window.subject_count == 0

    def test_random_stream_stays_inside_frame(self):
        reframer = StreamReframer(META, ReframeConfig(enable_stacking=True, min_crop_height_fraction=0.4))
        rng = np.random.default_rng(3)
        for index in range(150):
            count = int(rng.integers(0, 5))
            detections = [
                face(float(rng.uniform(-100, 2000)), float(rng.uniform(-100, 1200)),
                     size=float(rng.uniform(20, 400)))
                for _ in range(count)
            ]
            crop = reframer.process_frame(index, detections)
            assert crop.window.is_inside_frame(1920, 1080)

    def test_hard_cut_from_frames(self):
        reframer = StreamReframer(META)
        for index in range(5):
            reframer.process_frame(index, [face(500)], frame=solid(0))

        crop = reframer.process_frame(5, [face(1500)], frame=solid(255))
        assert crop.cut == CutKind.HARD
        assert crop.window.rects[0].cx == pytest.approx(1500)
        assert reframer.cut_count == 1
        assert len(reframer.state.history) == 1
        assert [e.frame_index for e in reframer.cut_events] == [5]

    @pytest.mark.parametrize("strategy", [SmoothingStrategy.HISTORY, SmoothingStrategy.SIMPLE])
    def test_small_move_is_followed(self, strategy):
        config = ReframeConfig(smooth_percentage=10, smooth_duration=1.0, smoothing_strategy=strategy)
        reframer = StreamReframer(META, config)
        for index in range(40):
            reframer.process_frame(index, [face(960)])
        for index in range(40, 140):
            crop = reframer.process_frame(index, [face(1060)])

        expected = reframer.calculator.calculate([face(1060)])
        assert crop.window.rects[0].x == pytest.approx(expected.rects[0].x)

    def test_no_frame_means_no_cut(self):
        reframer = StreamReframer(META)
        reframer.process_frame(0, [face(500)])
        crop = reframer.process_frame(1, [face(1500)])
        assert crop.cut == CutKind.CONTINUITY
        assert crop.similarity == 1.0
        assert crop.window.rects[0].cx < 1500

    def test_empty_frames_ease_toward_default(self):
        reframer = StreamReframer(META, ReframeConfig(smooth_percentage=10))
        default = reframer.calculator.default_window().rects[0]
        start = reframer.process_frame(0, [face(1600)]).window.rects[0]

        distances = [abs(start.x - default.x)]
        for index in range(1, 6):
            rect = reframer.process_frame(index, []).window.rects[0]
            distances.append(abs(rect.x - default.x))

        assert all(b < a for a, b in zip(distances, distances[1:]))
        assert distances[-1] > 0

    def test_stacked_podcast(self):
        reframer = StreamReframer(META, ReframeConfig(enable_stacking=True))
        crop = reframer.process_frame(0, [face(320), face(960), face(1600)])
        assert crop.window.layout == CropLayout.STACKED
        assert crop.window.slot_weights == [3, 5]


class TestMotion:
    def test_missed_ball_is_predicted(self):
        reframer = StreamReframer(META, BALL_CONFIG)
        reframer.process_frame(0, [face(500, size=20, label="ball")])
        reframer.process_frame(1, [face(520, size=20, label="ball")])
        reframer.process_frame(2, [])

        raw = reframer.state.history.latest().raw
        assert raw.subject_count == 1
        # 520 blended with the repeated 500 gives 512; linear step to 524
        assert raw.rects[0].cx == pytest.approx(524)

    def test_long_miss_falls_back_to_default(self):
        reframer = StreamReframer(META, BALL_CONFIG)
        reframer.process_frame(0, [face(500, size=20, label="ball")])
        for index in range(1, 10):
            reframer.process_frame(index, [])
        assert reframer.state.history.latest().raw.subject_count == 0


class TestLifecycle:
    def test_process_generator(self):
        reframer = StreamReframer(META)
        frames = [FrameInput(frame_index=i, detections=[face(960)]) for i in range(4)]
        crops = list(reframer.process(frames))
        assert [c.frame_index for c in crops] == [0, 1, 2, 3]

    def test_crop_plan_round_trip(self, tmp_path):
        reframer = StreamReframer(META)
        for index in range(3):
            reframer.process_frame(index, [face(960)])

        path = tmp_path / "plan.json"
        reframer.to_crop_plan().to_json_file(str(path))
        loaded = CropPlan.from_json_file(str(path))
        assert len(loaded.frames) == 3
        assert loaded.video.width == 1920

    def test_finalize(self):
        reframer = StreamReframer(META)
        assert reframer.finalize() is None
        crop = reframer.process_frame(0, [face(960)])
        assert reframer.finalize() == crop.window
        assert reframer.last_window is None
        assert len(reframer.state.history) == 0

    def test_reset(self):
        reframer = StreamReframer(META)
        reframer.process_frame(0, [face(960)], frame=solid(0))
        reframer.reset()
        assert reframer.to_crop_plan().frames == []
        assert reframer.state.frames_seen == 0
        # First frame after reset is not compared with the old stream
        assert reframer.process_frame(0, [], frame=solid(255)).cut == CutKind.CONTINUITY
