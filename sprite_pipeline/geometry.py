"""Content cropping and nearest-neighbour resizing."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .buffer import PixelBuffer
from .components import opaque_bbox
from .config import CROP_PADDING_RATIO, OPACITY_THRESHOLD, TARGET_SIZE
from .errors import NoContentError, StageInvariantViolation

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]


def content_bbox(buffer: PixelBuffer, threshold: int = OPACITY_THRESHOLD) -> Box:
    """Tight inclusive box of pixels with alpha strictly above ``threshold``.

    Raises:
        NoContentError: when no pixel qualifies.
    """
    box = opaque_bbox(buffer.alpha > threshold)
    if box is None:
        raise NoContentError(
            f"No pixel with alpha > {threshold} in {buffer.width}x{buffer.height} buffer"
        )
    return box


def padded_box(box: Box, width: int, height: int, padding_ratio: float) -> Box:
    """Grow ``box`` by ``padding_ratio * max(box_w, box_h)``, clamped."""
    min_x, min_y, max_x, max_y = box
    crop_w = max_x - min_x + 1
    crop_h = max_y - min_y + 1
    pad = int(padding_ratio * max(crop_w, crop_h) + 0.5)
    return (
        max(0, min_x - pad),
        max(0, min_y - pad),
        min(width - 1, max_x + pad),
        min(height - 1, max_y + pad),
    )


def crop_to_content(
    buffer: PixelBuffer,
    threshold: int = OPACITY_THRESHOLD,
    padding_ratio: float = CROP_PADDING_RATIO,
    reference: Optional[PixelBuffer] = None,
) -> Tuple[PixelBuffer, Optional[Box]]:
    """Crop away transparent margins, keeping a small padding.

    The box is measured on ``reference`` when given (a same-sized buffer
    whose alpha has not been binarised yet), otherwise on ``buffer``.

    Returns ``(cropped, box)``.  With no content above ``threshold`` the
    buffer is returned unchanged together with ``None``.
    """
    measured = buffer if reference is None else reference
    if measured.size != buffer.size:
        raise StageInvariantViolation(
            f"Crop reference {measured.size} does not match buffer {buffer.size}"
        )
    try:
        box = content_bbox(measured, threshold)
    except NoContentError as e:
        logger.warning("Skipping crop: %s", e)
        return buffer, None

    x0, y0, x1, y1 = padded_box(box, buffer.width, buffer.height, padding_ratio)
    cropped = PixelBuffer(buffer.pixels[y0:y1 + 1, x0:x1 + 1].copy())
    logger.debug(
        "Cropped %dx%d -> %dx%d at (%d, %d)",
        buffer.width, buffer.height, cropped.width, cropped.height, x0, y0,
    )
    return cropped, (x0, y0, x1, y1)


def cover_box(width: int, height: int, target: Tuple[int, int]) -> Box:
    """Centred source region whose aspect ratio matches ``target``."""
    tw, th = target
    scale = max(tw / width, th / height)
    src_w = min(width, max(1, int(tw / scale + 0.5)))
    src_h = min(height, max(1, int(th / scale + 0.5)))
    x0 = (width - src_w) // 2
    y0 = (height - src_h) // 2
    return x0, y0, x0 + src_w - 1, y0 + src_h - 1


def resize_cover(buffer: PixelBuffer, size: Tuple[int, int] = TARGET_SIZE) -> PixelBuffer:
    """Crop-to-fill and resample to ``size`` (width, height).

    Only nearest-neighbour sampling is used; any interpolation would mix
    new intermediate colours into the sprite.
    """
    x0, y0, x1, y1 = cover_box(buffer.width, buffer.height, size)
    region = np.ascontiguousarray(buffer.pixels[y0:y1 + 1, x0:x1 + 1])
    if region.shape[1] == size[0] and region.shape[0] == size[1]:
        return PixelBuffer(region.copy())
    resized = cv2.resize(region, tuple(size), interpolation=cv2.INTER_NEAREST)
    return PixelBuffer(resized)
