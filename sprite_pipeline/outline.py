"""Outline rendering along every opaque/transparent boundary."""

import logging
from typing import Tuple

import cv2
import numpy as np

from .buffer import PixelBuffer
from .config import OUTLINE_COLOR, OUTLINE_THICKNESS

logger = logging.getLogger(__name__)

_SQUARE = np.ones((3, 3), dtype=np.uint8)
_CROSS = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))


def edge_mask(opaque: np.ndarray) -> np.ndarray:
    """Opaque pixels with at least one transparent 8-neighbour.

    Pixels on the image border count as touching transparency.
    """
    eroded = cv2.erode(
        opaque.astype(np.uint8), _SQUARE, iterations=1,
        borderType=cv2.BORDER_CONSTANT, borderValue=0,
    )
    return opaque & ~eroded.astype(bool)


def outline_mask(opaque: np.ndarray, thickness: int = OUTLINE_THICKNESS) -> np.ndarray:
    """Boolean mask of the ``thickness``-pixel band to paint.

    Starts from :func:`edge_mask` and grows ``thickness - 1`` times into
    unmarked opaque 4-neighbours.
    """
    if thickness <= 0:
        return np.zeros_like(opaque, dtype=bool)
    marked = edge_mask(opaque)
    for _ in range(thickness - 1):
        grown = cv2.dilate(marked.astype(np.uint8), _CROSS, iterations=1).astype(bool)
        marked = marked | (grown & opaque)
    return marked


def render_outline(
    buffer: PixelBuffer,
    thickness: int = OUTLINE_THICKNESS,
    color: Tuple[int, int, int] = OUTLINE_COLOR,
    alpha_threshold: int = 128,
) -> int:
    """Paint the outline band in place; alpha is left unchanged.

    Interior holes get an outline too, since they are transparent regions
    like any other.  Returns the number of painted pixels.
    """
    opaque = buffer.opaque_mask(alpha_threshold)
    marked = outline_mask(opaque, thickness)
    buffer.pixels[marked, :3] = color
    painted = int(np.count_nonzero(marked))
    logger.info("Outline: painted %d pixels (thickness %d)", painted, thickness)
    return painted
