"""
Tests for pipelined detection.
"""

import asyncio
import logging
import threading

import numpy as np
import pytest

from autoframe.models import VideoMeta
from autoframe.pipeline import reframe_async, run_pipeline
from autoframe.reframer import FrameInput, StreamReframer

META = VideoMeta(width=1920, height=1080, fps=30)
FACE = {"x": 910, "y": 490, "width": 100, "height": 100, "label": "face", "confidence": 0.9}


def frames(count):
    items = []
    for index in range(count):
        frame = np.zeros((90, 160, 3), dtype=np.uint8)
        frame[0, 0, 0] = index
        items.append(FrameInput(frame_index=index, frame=frame))
    return items


class TestPipeline:
    def test_order_preserved(self):
        reframer = StreamReframer(META)
        results = run_pipeline(frames(20), lambda frame: [FACE], reframer, max_pending=3)
        assert [r.frame_index for r in results] == list(range(20))
        assert all(r.window.subject_count == 1 for r in results)

    def test_detector_failure_is_empty_frame(self, caplog):
        def detect(frame):
            if frame[0, 0, 0] == 2:
                raise RuntimeError("model crashed")
            return [FACE]

        reframer = StreamReframer(META)
        with caplog.at_level(logging.WARNING):
            results = run_pipeline(frames(5), detect, reframer)
        assert len(results) == 5
        assert "detector failed" in caplog.text

    def test_precomputed_detections(self):
        def detect(frame):
            raise AssertionError("detector must not run without pixels")

        items = [FrameInput(frame_index=i, detections=[FACE]) for i in range(3)]
        results = run_pipeline(items, detect, StreamReframer(META))
        assert len(results) == 3

    def test_stop_before_start(self):
        async def stopped():
            stop = asyncio.Event()
            stop.set()
            return await reframe_async(frames(5), lambda frame: [], StreamReframer(META), stop_event=stop)

        assert asyncio.run(stopped()) == []

    def test_stop_drains_queued_frames(self):
        async def stop_midway():
            stop = asyncio.Event()

            def source():
                for item in frames(10):
                    if item.frame_index == 4:
                        stop.set()
                    yield item

            return await reframe_async(source(), lambda frame: [FACE], StreamReframer(META), stop_event=stop)

        results = asyncio.run(stop_midway())
        assert [r.frame_index for r in results] == [0, 1, 2, 3]

    def test_invalid_max_pending(self):
        with pytest.raises(ValueError):
            run_pipeline(frames(1), lambda frame: [], StreamReframer(META), max_pending=0)

    def test_in_flight_frames_bounded(self):
        started = []
        gate = threading.Event()

        def detect(frame):
            started.append(int(frame[0, 0, 0]))
            gate.wait(timeout=5)
            return [FACE]

        async def blocked_detector():
            task = asyncio.create_task(
                reframe_async(frames(10), detect, StreamReframer(META), max_pending=2)
            )
            await asyncio.sleep(0.2)
            in_flight = len(started)
            gate.set()
            return in_flight, await task

        in_flight, results = asyncio.run(blocked_detector())
        assert in_flight == 2
        assert [r.frame_index for r in results] == list(range(10))
