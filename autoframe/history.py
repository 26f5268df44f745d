"""
Bounded history of per-frame crop decisions.

The buffer is a fixed-capacity ring addressed by frame index, sized to
the smoothing window, so memory use does not depend on stream length.
"""

import logging
from typing import Optional

from autoframe.models import CropWindow, HistoryEntry, Rect

logger = logging.getLogger(__name__)


def window_frames(smooth_duration: float, fps: float) -> int:
    """Convert a smoothing window in seconds to a frame count (at least 1)."""
    return max(1, int(round(smooth_duration * fps)))


class HistoryBuffer:
    """
    Ring of HistoryEntry keyed by frame index.

    An entry lives in slot frame_index % capacity and counts as evicted
    once the newest frame index is capacity or more frames ahead of it.
    """

    def __init__(self, capacity: int, decay: float = 0.85):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.decay = decay
        self._slots: list[Optional[HistoryEntry]] = [None] * capacity
        self._newest: Optional[int] = None

    @classmethod
    def for_duration(cls, smooth_duration: float, fps: float, decay: float = 0.85) -> "HistoryBuffer":
        return cls(window_frames(smooth_duration, fps), decay)

    def __len__(self) -> int:
        return len(self.entries())

    def append(self, entry: HistoryEntry) -> None:
        """
        Record a frame's decision, overwriting whatever the slot held.

        Entries older than the newest recorded frame are ignored.
        """
        if self._newest is not None and entry.frame_index < self._newest:
            logger.warning(
                f"Ignoring out-of-order history entry {entry.frame_index} "
                f"(newest is {self._newest})"
            )
            return
        self._slots[entry.frame_index % self.capacity] = entry
        self._newest = entry.frame_index

    def clear(self) -> None:
        """Drop every entry, e.g. on a hard cut."""
        self._slots = [None] * self.capacity
        self._newest = None

    def entries(self, newest: Optional[int] = None) -> list[HistoryEntry]:
        """
        Live entries, oldest first.

        Args:
            newest: Frame index the window ends at. Defaults to the newest entry.
        """
        if newest is None:
            newest = self._newest
        if newest is None:
            return []

        live = []
        for index in range(newest - self.capacity + 1, newest + 1):
            if index < 0:
                continue
            entry = self._slots[index % self.capacity]
            if entry is not None and entry.frame_index == index:
                live.append(entry)
        return live

    def latest(self) -> Optional[HistoryEntry]:
        if self._newest is None:
            return None
        return self._slots[self._newest % self.capacity]

    def last_emitted(self) -> Optional[CropWindow]:
        """The most recent emitted crop, if any."""
        entry = self.latest()
        return entry.emitted if entry is not None else None

    def recent_target(
        self,
        current: Optional[CropWindow] = None,
        frame_index: Optional[int] = None,
    ) -> Optional[CropWindow]:
        """
        Time-weighted average of recent raw windows.

        Each raw window is weighted by decay ** age, with age measured in
        frames. Windows of different layouts cannot be averaged, so only the
        layout holding the largest total weight contributes.

        Args:
            current: Raw window of the frame being processed, not yet appended.
            frame_index: Index of that frame. Required when current is given.

        Returns:
            Averaged CropWindow, or None when there is nothing to average.
        """
        samples: list[tuple[int, CropWindow]] = []
        if current is not None:
            if frame_index is None:
                raise ValueError("frame_index is required with current")
            window_end = frame_index
            for entry in self.entries(newest=frame_index - 1):
                if entry.frame_index > frame_index - self.capacity:
                    samples.append((entry.frame_index, entry.raw))
            samples.append((frame_index, current))
        else:
            window_end = self._newest
            samples = [(entry.frame_index, entry.raw) for entry in self.entries()]

        if not samples:
            return None

        weights: dict[tuple, float] = {}
        for index, window in samples:
            key = window.layout_key
            weights[key] = weights.get(key, 0.0) + self.decay ** (window_end - index)

        newest_key = samples[-1][1].layout_key
        best_key = max(weights, key=lambda k: (weights[k], k == newest_key))
        group = [(index, window) for index, window in samples if window.layout_key == best_key]

        return _weighted_average(group, window_end, self.decay)


def _weighted_average(
    group: list[tuple[int, CropWindow]], window_end: int, decay: float
) -> CropWindow:
    template = group[-1][1]
    total = 0.0
    sums = [[0.0, 0.0, 0.0, 0.0] for _ in template.rects]
    for index, window in group:
        weight = decay ** (window_end - index)
        total += weight
        for acc, rect in zip(sums, window.rects):
            acc[0] += weight * rect.x
            acc[1] += weight * rect.y
            acc[2] += weight * rect.width
            acc[3] += weight * rect.height

    if all(window == template for _, window in group):
        return template

    rects = [
        Rect(x=s[0] / total, y=s[1] / total, width=s[2] / total, height=s[3] / total)
        for s in sums
    ]
    return template.model_copy(update={"rects": rects})
