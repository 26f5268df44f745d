"""
OpenCV video access with FFmpeg warning suppression.

OpenCV's FFmpeg backend prints benign decoder warnings (AV1 hardware
acceleration and the like) straight to stderr. The helpers here
filter those out and route anything else to the log.
"""

import contextlib
import io
import logging
import re
from typing import Iterable, Iterator, Optional

import cv2
import numpy as np

from autoframe.models import VideoMeta
from autoframe.reframer import FrameInput

logger = logging.getLogger(__name__)

# Patterns for known benign warnings that should be filtered
BENIGN_WARNING_PATTERNS = [
    r"\[av1 @ .*\] Your platform doesn't suppport hardware accelerated AV1 decoding",
    r"\[av1 @ .*\] Failed to get pixel format",
    r"\[av1 @ .*\] Missing Sequence Header",
    r"\[.*\] .* does not support hardware acceleration",
    r"\[.*\] .* hardware acceleration disabled",
]


def filter_benign_warnings(stderr: str) -> tuple[str, list[str]]:
    """
    Filter out known benign warnings from FFmpeg stderr.

    Args:
        stderr: Raw stderr output.

    Returns:
        Tuple of (filtered_stderr, filtered_warnings_list).
    """
    kept = []
    dropped = []
    for line in stderr.split("\n"):
        if any(re.search(pattern, line, re.IGNORECASE) for pattern in BENIGN_WARNING_PATTERNS):
            dropped.append(line)
        else:
            kept.append(line)
    return "\n".join(kept), dropped


@contextlib.contextmanager
def decoder_output(source: str):
    """Capture decoder chatter on stderr and log whatever is not a known benign warning."""
    captured = io.StringIO()
    with contextlib.redirect_stderr(captured):
        yield
    kept, dropped = filter_benign_warnings(captured.getvalue())
    if dropped:
        logger.debug(f"{source}: suppressed {len(dropped)} benign decoder warning(s)")
    if kept.strip():
        logger.warning(f"{source}: {kept.strip()}")


def open_video(video_path: str) -> cv2.VideoCapture:
    """
    Open a video file with suppressed FFmpeg warnings.

    Raises:
        RuntimeError: If the file cannot be opened.
    """
    with decoder_output(video_path):
        cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video: {video_path}")
    return cap


def probe_video(video_path: str) -> VideoMeta:
    """Extract video metadata using OpenCV."""
    cap = open_video(video_path)
    try:
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        duration = frame_count / fps if fps > 0 else 0

        return VideoMeta(
            input_path=video_path,
            duration=duration,
            width=width,
            height=height,
            fps=fps,
        )
    finally:
        cap.release()


def read_frames(
    video_path: str,
    max_frames: Optional[int] = None,
) -> Iterator[FrameInput]:
    """
    Decode a video frame by frame.

    Yields:
        FrameInput with the BGR frame and its timestamp; detections are empty.
    """
    cap = open_video(video_path)
    fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
    try:
        index = 0
        while max_frames is None or index < max_frames:
            with decoder_output(video_path):
                ret, frame = cap.read()
            if not ret:
                break
            timestamp = index / fps if fps > 0 else None
            yield FrameInput(frame_index=index, frame=frame, timestamp=timestamp)
            index += 1
    finally:
        cap.release()


def write_video(
    output_path: str,
    canvases: Iterable[np.ndarray],
    fps: float,
    size: tuple[int, int],
) -> int:
    """
    Encode composed canvases to an mp4 file.

    Args:
        output_path: Destination file.
        canvases: BGR canvases of exactly `size` (width, height).
        fps: Output frame rate.
        size: (width, height) of the output.

    Returns:
        Number of frames written.
    """
    writer = cv2.VideoWriter(output_path, cv2.VideoWriter_fourcc(*"mp4v"), fps, size)
    if not writer.isOpened():
        raise RuntimeError(f"Failed to open video writer: {output_path}")
    written = 0
    try:
        for canvas in canvases:
            writer.write(canvas)
            written += 1
    finally:
        writer.release()
    logger.info(f"Wrote {written} frames to {output_path}")
    return written
