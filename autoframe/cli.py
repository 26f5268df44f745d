#!/usr/bin/env python3
"""
CLI interface for the reframing core.

Replays detector output stored as JSON through the reframer and writes
the resulting crop plan. With a source video, frames are also decoded
for cut detection and can be rendered to a portrait video.

Detections file format:
    {
        "width": 1920, "height": 1080, "fps": 30,
        "frames": [
            {"frame_index": 0, "timestamp": 0.0,
             "detections": [{"x": 10, "y": 20, "width": 100, "height": 120,
                             "label": "face", "confidence": 0.93}],
             "text_boxes": []}
        ]
    }

Usage:
    autoframe --detections dets.json --output plan.json --stack

    # Or using Python module:
    python -m autoframe.cli --detections dets.json --video in.mp4 --render out.mp4
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, Optional

from autoframe.compositor import compose_frame
from autoframe.config import ReframeConfig, SmoothingStrategy
from autoframe.config_factory import PRESETS, build_config, get_preset_config
from autoframe.exceptions import ConfigurationError
from autoframe.models import AspectRatio, VideoMeta
from autoframe.reframer import FrameInput, StreamReframer
from autoframe.video_io import probe_video, read_frames, write_video


def setup_logging(verbose: bool = False, json_logs: bool = False):
    """Configure logging for CLI usage."""
    level = logging.DEBUG if verbose else logging.INFO

    if json_logs:
        # JSON format for integration with other tools
        format_str = json.dumps({
            "time": "%(asctime)s",
            "level": "%(levelname)s",
            "module": "%(name)s",
            "message": "%(message)s",
        })
    else:
        format_str = "%(asctime)s [%(levelname)s] %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_aspect_ratio(s: str) -> AspectRatio:
    """Parse aspect ratio from string like '9:16' or '9x16'."""
    return AspectRatio.from_string(s)


def parse_resolution(s: str) -> tuple[int, int]:
    """Parse an output resolution like '1080x1920'."""
    parts = s.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"Invalid resolution: {s}")
    return int(parts[0]), int(parts[1])


def load_detections(path: str) -> tuple[dict[str, Any], dict[int, FrameInput]]:
    """
    Read a detections file.

    Returns:
        Tuple of (stream header without frames, frames keyed by index).
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    frames = {}
    for position, record in enumerate(data.pop("frames", [])):
        index = int(record.get("frame_index", position))
        frames[index] = FrameInput(
            frame_index=index,
            detections=record.get("detections", []),
            timestamp=record.get("timestamp"),
            text_boxes=record.get("text_boxes", []),
        )
    return data, frames


def build_cli_config(parsed: argparse.Namespace) -> ReframeConfig:
    """Preset plus command-line overrides, validated once."""
    config = get_preset_config(parsed.preset)
    overrides: dict[str, Any] = {
        "target_aspect": parsed.aspect,
        "smooth_percentage": parsed.smooth_percentage,
        "smooth_duration": parsed.smooth_duration,
        "cut_similarity": parsed.cut_similarity,
        "cut_start": parsed.cut_start,
        "debug": parsed.verbose or None,
    }
    if parsed.object:
        overrides["target_classes"] = [o.strip() for o in parsed.object.split(",") if o.strip()]
    if parsed.stack:
        overrides["enable_stacking"] = True
    if parsed.simple:
        overrides["smoothing_strategy"] = SmoothingStrategy.SIMPLE
    if parsed.keep_text:
        overrides["keep_text"] = True
    if parsed.prioritize_text:
        overrides["prioritize_text"] = True
    return build_config(config, **overrides)


def canvas_size(meta: VideoMeta, aspect: AspectRatio) -> tuple[int, int]:
    """Full-height canvas of the target aspect, with even dimensions."""
    height = meta.height - meta.height % 2
    width = int(round(height * aspect.ratio))
    return width - width % 2, height


def _video_frames(video_path: str, recorded: dict[int, FrameInput]) -> Iterator[FrameInput]:
    for item in read_frames(video_path):
        stored = recorded.get(item.frame_index)
        if stored is not None:
            item.detections = stored.detections
            item.text_boxes = stored.text_boxes
            if stored.timestamp is not None:
                item.timestamp = stored.timestamp
        yield item


def _render(
    reframer: StreamReframer,
    frames: Iterator[FrameInput],
    size: tuple[int, int],
) -> Iterator:
    for item in frames:
        crop = reframer.process_frame(
            item.frame_index,
            item.detections,
            frame=item.frame,
            timestamp=item.timestamp,
            text_boxes=item.text_boxes,
        )
        yield compose_frame(item.frame, crop.window, *size)


def main(args: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Detection-driven portrait reframing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Crop plan from recorded detections
  %(prog)s --detections dets.json --output plan.json

  # Stacked layout for a two-person podcast
  %(prog)s --detections dets.json --output plan.json --preset podcast

  # Follow a ball
  %(prog)s --detections dets.json --output plan.json --object ball

  # Cut detection and rendering from the source video
  %(prog)s --detections dets.json --video in.mp4 --render out.mp4
        """,
    )

    # Input/output
    parser.add_argument(
        "--detections", "-d",
        required=True,
        help="Path to detections JSON file",
    )
    parser.add_argument(
        "--video", "-i",
        help="Source video, used for cut detection and rendering",
    )
    parser.add_argument(
        "--output", "-o",
        help="Write the crop plan to this JSON file",
    )
    parser.add_argument(
        "--render",
        help="Render the portrait video to this file (requires --video)",
    )
    parser.add_argument(
        "--resolution",
        type=parse_resolution,
        help="Output resolution as WxH (default: full source height)",
    )

    # Presets and configuration
    parser.add_argument(
        "--preset",
        choices=list(PRESETS),
        default="default",
        help="Configuration preset (default: default)",
    )
    parser.add_argument(
        "--aspect", "-a",
        type=parse_aspect_ratio,
        help="Target aspect ratio (default: 9:16)",
    )
    parser.add_argument(
        "--object",
        help="Comma-separated target classes, e.g. face,head or ball",
    )
    parser.add_argument(
        "--stack",
        action="store_true",
        help="Allow stacked crops for spread-out subjects",
    )
    parser.add_argument(
        "--simple",
        action="store_true",
        help="Use simple smoothing instead of history-based smoothing",
    )
    parser.add_argument(
        "--keep-text",
        action="store_true",
        help="Extend crops to include on-screen text",
    )
    parser.add_argument(
        "--prioritize-text",
        action="store_true",
        help="Treat on-screen text as a subject",
    )
    parser.add_argument(
        "--smooth-percentage",
        type=float,
        help="Movement band and speed limit in percent of frame size (default: 7.5)",
    )
    parser.add_argument(
        "--smooth-duration",
        type=float,
        help="Smoothing window in seconds (default: 1.0)",
    )
    parser.add_argument(
        "--cut-similarity",
        type=float,
        help="Similarity below which a hard cut is declared (default: 0.4)",
    )
    parser.add_argument(
        "--cut-start",
        type=float,
        help="Similarity below which a soft transition is declared (default: 0.8)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress all output except errors",
    )

    parsed = parser.parse_args(args)

    # Setup logging
    if parsed.quiet:
        logging.basicConfig(level=logging.ERROR)
    else:
        setup_logging(parsed.verbose, parsed.json_logs)

    logger = logging.getLogger("autoframe.cli")

    if parsed.render and not parsed.video:
        logger.error("--render requires --video")
        return 2

    try:
        config = build_cli_config(parsed)
    except ConfigurationError as e:
        logger.error(f"{e}")
        return 2

    try:
        detections_path = Path(parsed.detections)
        if not detections_path.exists():
            logger.error(f"Detections file not found: {detections_path}")
            return 1

        header, recorded = load_detections(str(detections_path))

        if parsed.video:
            meta = probe_video(parsed.video)
            frames: Iterator[FrameInput] = _video_frames(parsed.video, recorded)
        else:
            meta = VideoMeta(
                width=header["width"],
                height=header["height"],
                fps=header["fps"],
                duration=header.get("duration", 0.0),
            )
            frames = (recorded[index] for index in sorted(recorded))

        reframer = StreamReframer(meta, config)

        if parsed.render:
            size = parsed.resolution or canvas_size(meta, config.target_aspect)
            write_video(parsed.render, _render(reframer, frames, size), meta.fps, size)
        else:
            for _ in reframer.process(frames):
                pass

        reframer.finalize()
        crop_plan = reframer.to_crop_plan()

        if parsed.output:
            crop_plan.to_json_file(parsed.output)
            logger.info(f"Saved crop plan to: {parsed.output}")

        if not parsed.quiet:
            print(f"\nProcessed {len(crop_plan.frames)} frames")
            if parsed.output:
                print(f"  crop plan: {parsed.output}")
            if parsed.render:
                print(f"  video: {parsed.render}")

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Error: {e}")
        if parsed.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
