"""
Data models for the reframing core.

All models use Pydantic for serialization and validation.
"""

import json
import math
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AspectRatio(BaseModel):
    """Aspect ratio of a crop or of the output canvas."""

    width: int = Field(..., ge=1, description="Aspect ratio width component")
    height: int = Field(..., ge=1, description="Aspect ratio height component")

    def __init__(self, width: int, height: int, **data):
        super().__init__(width=width, height=height, **data)

    def __hash__(self):
        return hash((self.width, self.height))

    def __eq__(self, other):
        if isinstance(other, AspectRatio):
            return self.width == other.width and self.height == other.height
        return False

    @property
    def ratio(self) -> float:
        """Returns width/height as float."""
        return self.width / self.height

    def __str__(self) -> str:
        return f"{self.width}:{self.height}"

    @classmethod
    def from_string(cls, s: str) -> "AspectRatio":
        """Parse aspect ratio from string like '9:16' or '9x16'."""
        for sep in [":", "x", "/"]:
            if sep in s:
                parts = s.split(sep)
                if len(parts) == 2:
                    return cls(width=int(parts[0]), height=int(parts[1]))
        raise ValueError(f"Invalid aspect ratio format: {s}")


class Rect(BaseModel):
    """Axis-aligned rectangle in source-frame pixel coordinates."""

    x: float = Field(..., description="Left edge x-coordinate")
    y: float = Field(..., description="Top edge y-coordinate")
    width: float = Field(..., description="Rectangle width")
    height: float = Field(..., description="Rectangle height")

    @property
    def cx(self) -> float:
        """Center x-coordinate."""
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        """Center y-coordinate."""
        return self.y + self.height / 2

    @property
    def x2(self) -> float:
        """Right edge x-coordinate."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge y-coordinate."""
        return self.y + self.height

    @property
    def area(self) -> float:
        """Area in pixels."""
        return self.width * self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def is_well_formed(self) -> bool:
        """True when every coordinate is finite and the box has positive size."""
        values = (self.x, self.y, self.width, self.height)
        return all(math.isfinite(v) for v in values) and self.width > 0 and self.height > 0

    def pad(self, padding: float) -> "Rect":
        """Return a new rectangle with padding added on all sides."""
        return Rect(
            x=self.x - padding,
            y=self.y - padding,
            width=self.width + 2 * padding,
            height=self.height + 2 * padding,
        )

    def contains(self, other: "Rect", tolerance: float = 1e-6) -> bool:
        """Check whether other lies fully inside this rectangle."""
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.x2 <= self.x2 + tolerance
            and other.y2 <= self.y2 + tolerance
        )

    def is_inside_frame(
        self, frame_width: float, frame_height: float, tolerance: float = 1e-6
    ) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and self.x >= -tolerance
            and self.y >= -tolerance
            and self.x2 <= frame_width + tolerance
            and self.y2 <= frame_height + tolerance
        )

    def intersect(self, other: "Rect") -> Optional["Rect"]:
        """Return the overlapping region, or None if the rectangles do not overlap."""
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.x2, other.x2)
        y2 = min(self.y2, other.y2)
        if x2 <= x1 or y2 <= y1:
            return None
        return Rect(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    def center_distance(self, other: "Rect") -> float:
        return math.hypot(self.cx - other.cx, self.cy - other.cy)

    def lerp(self, other: "Rect", t: float) -> "Rect":
        """Linear interpolation from this rectangle (t=0) to other (t=1)."""
        return Rect(
            x=self.x + t * (other.x - self.x),
            y=self.y + t * (other.y - self.y),
            width=self.width + t * (other.width - self.width),
            height=self.height + t * (other.height - self.height),
        )

    def is_within_percentage(
        self, other: "Rect", frame_width: float, percentage: float
    ) -> bool:
        """
        Check whether every edge and size differs from other by at most
        percentage of the frame width.
        """
        limit = frame_width * percentage / 100
        return (
            abs(self.x - other.x) <= limit
            and abs(self.y - other.y) <= limit
            and abs(self.width - other.width) <= limit
            and abs(self.height - other.height) <= limit
        )

    def to_pixels(self, frame_width: int, frame_height: int) -> tuple[int, int, int, int]:
        """
        Round to integer (x1, y1, x2, y2) inside the frame, at least one pixel wide.
        """
        x1 = min(max(int(round(self.x)), 0), frame_width - 1)
        y1 = min(max(int(round(self.y)), 0), frame_height - 1)
        x2 = min(max(int(round(self.x2)), x1 + 1), frame_width)
        y2 = min(max(int(round(self.y2)), y1 + 1), frame_height)
        return x1, y1, x2, y2

    @classmethod
    def from_center(cls, cx: float, cy: float, width: float, height: float) -> "Rect":
        return cls(x=cx - width / 2, y=cy - height / 2, width=width, height=height)

    @classmethod
    def union(cls, rects: list["Rect"]) -> Optional["Rect"]:
        """Compute the rectangle that contains all input rectangles."""
        if not rects:
            return None
        x = min(r.x for r in rects)
        y = min(r.y for r in rects)
        x2 = max(r.x2 for r in rects)
        y2 = max(r.y2 for r in rects)
        return cls(x=x, y=y, width=x2 - x, height=y2 - y)


class Detection(BaseModel):
    """A single object reported by the external detector for one frame."""

    box: Rect = Field(..., description="Bounding box in source coordinates")
    label: str = Field(..., description="Class label, e.g. 'face', 'head', 'ball', 'text'")
    confidence: float = Field(..., ge=0, le=1, description="Detection confidence")
    frame_index: int = Field(0, ge=0, description="Frame the detection belongs to")


class CropLayout(str, Enum):
    """How the rectangles of a crop window are arranged on the canvas."""

    SINGLE = "single"
    STACKED = "stacked"


class CropWindow(BaseModel):
    """
    One or more source rectangles composed into the portrait canvas.

    For stacked layouts the rectangles are placed top to bottom, each
    spanning the full canvas width, with band heights proportional to
    slot_weights.
    """

    rects: list[Rect] = Field(..., min_length=1, description="Source rectangles, top to bottom")
    layout: CropLayout = Field(CropLayout.SINGLE, description="Layout tag")
    slot_weights: list[int] = Field(
        default_factory=lambda: [1], description="Relative canvas band heights"
    )
    subject_count: int = Field(0, ge=0, description="Number of subjects the window was built from")

    @model_validator(mode="after")
    def _check_layout(self) -> "CropWindow":
        if len(self.slot_weights) != len(self.rects):
            raise ValueError("slot_weights must have one entry per rect")
        if any(w <= 0 for w in self.slot_weights):
            raise ValueError("slot_weights must be positive")
        if self.layout == CropLayout.SINGLE and len(self.rects) != 1:
            raise ValueError("single layout requires exactly one rect")
        if self.layout == CropLayout.STACKED and len(self.rects) < 2:
            raise ValueError("stacked layout requires at least two rects")
        return self

    @classmethod
    def single(cls, rect: Rect, subject_count: int = 0) -> "CropWindow":
        return cls(rects=[rect], layout=CropLayout.SINGLE, slot_weights=[1], subject_count=subject_count)

    @classmethod
    def stacked(
        cls, rects: list[Rect], slot_weights: list[int], subject_count: int = 0
    ) -> "CropWindow":
        return cls(
            rects=rects,
            layout=CropLayout.STACKED,
            slot_weights=slot_weights,
            subject_count=subject_count,
        )

    @property
    def k(self) -> int:
        """Number of stacked rectangles (1 for single)."""
        return len(self.rects)

    @property
    def layout_key(self) -> tuple[str, tuple[int, ...]]:
        """Windows are only interpolable when their layout keys match."""
        return self.layout.value, tuple(self.slot_weights)

    @property
    def tag(self) -> str:
        if self.layout == CropLayout.SINGLE:
            return "Single"
        return f"Stacked({self.k})"

    def center_displacement(self, other: "CropWindow") -> float:
        """Largest center movement between matching rectangles of two windows."""
        return max(a.center_distance(b) for a, b in zip(self.rects, other.rects))

    def lerp(self, other: "CropWindow", t: float) -> "CropWindow":
        """Interpolate rect-by-rect toward other; layouts must match."""
        return self.model_copy(
            update={
                "rects": [a.lerp(b, t) for a, b in zip(self.rects, other.rects)],
                "subject_count": other.subject_count,
            }
        )

    def is_similar(self, other: "CropWindow", frame_width: float, percentage: float) -> bool:
        """
        Two windows are similar when they share a layout and every rectangle
        is within percentage of the frame width of its counterpart.
        """
        if self.layout_key != other.layout_key:
            return False
        return all(
            a.is_within_percentage(b, frame_width, percentage)
            for a, b in zip(self.rects, other.rects)
        )

    def is_inside_frame(self, frame_width: float, frame_height: float) -> bool:
        return all(r.is_inside_frame(frame_width, frame_height) for r in self.rects)


class CutKind(str, Enum):
    """Scene-continuity classification between two consecutive frames."""

    CONTINUITY = "continuity"
    SOFT = "soft"
    HARD = "hard"


class CutEvent(BaseModel):
    """A hard scene cut."""

    frame_index: int = Field(..., ge=0)
    similarity: float = Field(..., ge=0, le=1)


class CutSignal(BaseModel):
    """Result of comparing a frame with its predecessor."""

    frame_index: int = Field(..., ge=0)
    similarity: float = Field(1.0, ge=0, le=1)
    kind: CutKind = Field(CutKind.CONTINUITY)

    @property
    def event(self) -> Optional[CutEvent]:
        """The CutEvent for a hard cut, None otherwise."""
        if self.kind != CutKind.HARD:
            return None
        return CutEvent(frame_index=self.frame_index, similarity=self.similarity)


class HistoryEntry(BaseModel):
    """What the smoothing engine decided for one frame."""

    model_config = ConfigDict(frozen=True)

    frame_index: int = Field(..., ge=0)
    timestamp: float = Field(0.0, ge=0)
    detections: tuple[Detection, ...] = Field(default=(), description="Snapshot of qualified subjects")
    raw: CropWindow = Field(..., description="Unsmoothed window for this frame")
    emitted: CropWindow = Field(..., description="Window handed to the compositor")


class VideoMeta(BaseModel):
    """Metadata about the source stream."""

    input_path: Optional[str] = Field(None, description="Path to input video, if any")
    width: int = Field(..., ge=1, description="Frame width in pixels")
    height: int = Field(..., ge=1, description="Frame height in pixels")
    fps: float = Field(..., gt=0, description="Video frame rate")
    duration: float = Field(0.0, ge=0, description="Video duration in seconds")

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)


class FrameCrop(BaseModel):
    """Final crop window emitted for one frame."""

    frame_index: int = Field(..., ge=0)
    timestamp: float = Field(0.0, ge=0)
    window: CropWindow
    cut: CutKind = Field(CutKind.CONTINUITY)
    similarity: float = Field(1.0, ge=0, le=1)


class CropPlan(BaseModel):
    """
    Every emitted crop window for a stream.

    This can be serialized to JSON for caching, debugging, or handing to
    an external compositor.
    """

    video: VideoMeta = Field(..., description="Source stream metadata")
    target_aspect: AspectRatio = Field(..., description="Canvas aspect ratio")
    frames: list[FrameCrop] = Field(default_factory=list, description="Per-frame windows")

    def to_json_file(self, path: str) -> None:
        """Serialize crop plan to JSON file."""
        Path(path).write_text(self.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def from_json_file(cls, path: str) -> "CropPlan":
        """Load crop plan from JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)
