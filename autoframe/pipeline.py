"""
Pipelined detection for one stream.

Detection is usually the slow stage. This module runs the detector on
worker threads for several frames ahead while feeding the results to
the reframer strictly in frame order. At most max_pending frames are
in flight; intake waits while the queue is full.
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional, Sequence

from autoframe.detections import RawDetection
from autoframe.models import FrameCrop
from autoframe.reframer import FrameInput, StreamReframer

logger = logging.getLogger(__name__)

Detector = Callable[..., Sequence[RawDetection]]


async def detect_frame(detect: Detector, item: FrameInput) -> Sequence[RawDetection]:
    """
    Run the detector for one frame on a worker thread.

    Frames without pixels keep their precomputed detections. A detector
    failure is logged and counts as a frame with no detections.
    """
    if item.frame is None:
        return item.detections
    try:
        return await asyncio.to_thread(detect, item.frame)
    except Exception as e:
        logger.warning(f"Frame {item.frame_index}: detector failed, treating as empty: {e}")
        return ()


async def reframe_async(
    frames: Iterable[FrameInput],
    detect: Detector,
    reframer: StreamReframer,
    max_pending: Optional[int] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> list[FrameCrop]:
    """
    Detect and reframe a stream with bounded, order-preserving pipelining.

    Args:
        frames: Frames in stream order.
        detect: Callable taking a BGR frame and returning its detections.
        reframer: The stream's reframer.
        max_pending: Frames in flight. Defaults to config.max_pending_frames.
        stop_event: When set, intake stops; frames already queued are
                    still reframed before returning.

    Returns:
        One FrameCrop per processed frame, in order.
    """
    if max_pending is None:
        max_pending = reframer.config.max_pending_frames
    if max_pending < 1:
        raise ValueError(f"max_pending must be positive, got {max_pending}")

    # A slot is held from task creation until the frame is reframed
    slots = asyncio.Semaphore(max_pending)
    queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending + 1)
    results: list[FrameCrop] = []

    async def produce() -> None:
        try:
            for item in frames:
                await slots.acquire()
                if stop_event is not None and stop_event.is_set():
                    slots.release()
                    logger.info(f"Stop requested, intake halted before frame {item.frame_index}")
                    break
                task = asyncio.create_task(detect_frame(detect, item))
                await queue.put((item, task))
        finally:
            await queue.put(None)

    async def consume() -> None:
        while True:
            entry = await queue.get()
            if entry is None:
                break
            item, task = entry
            try:
                detections = await task
                results.append(
                    reframer.process_frame(
                        item.frame_index,
                        detections,
                        frame=item.frame,
                        timestamp=item.timestamp,
                        text_boxes=item.text_boxes,
                    )
                )
            finally:
                slots.release()

    await asyncio.gather(produce(), consume())
    reframer.finalize()
    logger.info(f"Pipeline processed {len(results)} frames")
    return results


def run_pipeline(
    frames: Iterable[FrameInput],
    detect: Detector,
    reframer: StreamReframer,
    max_pending: Optional[int] = None,
) -> list[FrameCrop]:
    """Synchronous wrapper around reframe_async()."""
    return asyncio.run(reframe_async(frames, detect, reframer, max_pending))
