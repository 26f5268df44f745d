"""
Canvas composition of crop windows.

Maps a CropWindow onto the portrait canvas: a single crop fills the
canvas (letterboxed over a blurred copy of itself when its aspect
differs), stacked crops are resized into horizontal bands whose
heights follow the slot weights.
"""

import logging

import cv2
import numpy as np

from autoframe.models import CropWindow, Rect

logger = logging.getLogger(__name__)

# Relative aspect difference below which a crop is simply stretched.
ASPECT_TOLERANCE = 0.01


def canvas_slots(window: CropWindow, canvas_width: int, canvas_height: int) -> list[tuple[int, int]]:
    """
    Integer canvas bands for each rect of a window.

    Band boundaries are rounded from the cumulative weights, so the band
    heights always add up to canvas_height exactly.

    Returns:
        List of (y, height), top to bottom.
    """
    if canvas_width <= 0 or canvas_height <= 0:
        raise ValueError(f"Invalid canvas {canvas_width}x{canvas_height}")

    total = sum(window.slot_weights)
    slots = []
    cumulative = 0
    top = 0
    for weight in window.slot_weights:
        cumulative += weight
        bottom = int(round(canvas_height * cumulative / total))
        slots.append((top, bottom - top))
        top = bottom
    return slots


def crop_pixels(frame: np.ndarray, rect: Rect) -> np.ndarray:
    """Cut a rect out of a frame, rounded to whole pixels inside the frame."""
    height, width = frame.shape[:2]
    x1, y1, x2, y2 = rect.to_pixels(width, height)
    return frame[y1:y2, x1:x2]


def letterbox(
    crop: np.ndarray,
    canvas_width: int,
    canvas_height: int,
    blur_sigma: float = 30.0,
) -> np.ndarray:
    """
    Fit a crop inside the canvas over a blurred, scaled-to-fill copy of itself.
    """
    crop_h, crop_w = crop.shape[:2]

    # Background: scale to cover the canvas, center-crop, blur
    cover = max(canvas_width / crop_w, canvas_height / crop_h)
    bg_w = max(canvas_width, int(round(crop_w * cover)))
    bg_h = max(canvas_height, int(round(crop_h * cover)))
    background = cv2.resize(crop, (bg_w, bg_h), interpolation=cv2.INTER_LINEAR)
    x0 = (bg_w - canvas_width) // 2
    y0 = (bg_h - canvas_height) // 2
    background = background[y0:y0 + canvas_height, x0:x0 + canvas_width]
    canvas = cv2.GaussianBlur(background, (0, 0), blur_sigma)

    # Foreground: scale to fit, centered
    fit = min(canvas_width / crop_w, canvas_height / crop_h)
    fg_w = min(canvas_width, max(1, int(round(crop_w * fit))))
    fg_h = min(canvas_height, max(1, int(round(crop_h * fit))))
    foreground = cv2.resize(crop, (fg_w, fg_h), interpolation=cv2.INTER_AREA)
    x = (canvas_width - fg_w) // 2
    y = (canvas_height - fg_h) // 2
    canvas[y:y + fg_h, x:x + fg_w] = foreground
    return canvas


def compose_frame(
    frame: np.ndarray,
    window: CropWindow,
    canvas_width: int,
    canvas_height: int,
    blur_sigma: float = 30.0,
) -> np.ndarray:
    """
    Render one portrait canvas from a source frame and its crop window.

    Args:
        frame: Source BGR frame.
        window: Emitted crop window for the frame.
        canvas_width: Output width in pixels.
        canvas_height: Output height in pixels.
        blur_sigma: Blur strength of the letterbox background.

    Returns:
        Canvas array of shape (canvas_height, canvas_width, channels).
    """
    slots = canvas_slots(window, canvas_width, canvas_height)

    if window.k == 1:
        crop = crop_pixels(frame, window.rects[0])
        crop_aspect = crop.shape[1] / crop.shape[0]
        canvas_aspect = canvas_width / canvas_height
        if abs(crop_aspect - canvas_aspect) <= ASPECT_TOLERANCE * canvas_aspect:
            return cv2.resize(crop, (canvas_width, canvas_height), interpolation=cv2.INTER_AREA)
        return letterbox(crop, canvas_width, canvas_height, blur_sigma)

    bands = []
    for rect, (_, band_height) in zip(window.rects, slots):
        crop = crop_pixels(frame, rect)
        bands.append(cv2.resize(crop, (canvas_width, band_height), interpolation=cv2.INTER_AREA))
    return np.vstack(bands)
