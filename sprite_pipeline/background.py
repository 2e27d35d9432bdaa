"""Remove bright grey halo / backdrop pixels connected to the image border.

Image generators frequently paint a white or light-grey studio backdrop
even when asked for transparency.  Flooding inward from the border through
bright, chroma-neutral pixels strips that backdrop while stopping at the
first saturated or dark pixel, so the character silhouette survives.
"""

import logging

import numpy as np

from .buffer import PixelBuffer
from .components import border_seeds, flood_fill
from .config import BACKGROUND_BRIGHTNESS, BACKGROUND_CHROMA

logger = logging.getLogger(__name__)


def background_like_mask(
    buffer: PixelBuffer,
    brightness: float = BACKGROUND_BRIGHTNESS,
    chroma: int = BACKGROUND_CHROMA,
) -> np.ndarray:
    """Pixels the background fill may pass through.

    Bright (mean of r, g, b above ``brightness``) and grey (``|r-g|`` and
    ``|g-b|`` below ``chroma``), or already fully transparent.
    """
    rgb = buffer.rgb.astype(np.int16)
    r, g, b = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]
    bright = (r + g + b) > brightness * 3
    neutral = (np.abs(r - g) < chroma) & (np.abs(g - b) < chroma)
    passable = bright & neutral
    if buffer.has_alpha:
        passable |= buffer.pixels[:, :, 3] == 0
    return passable


def remove_background(
    buffer: PixelBuffer,
    brightness: float = BACKGROUND_BRIGHTNESS,
    chroma: int = BACKGROUND_CHROMA,
) -> int:
    """Clear border-connected background pixels to transparent, in place.

    The fill marks every reachable pixel first and clears them afterwards,
    so decisions made mid-fill never see a half-cleared buffer.

    Returns:
        Number of visible pixels that were cleared.
    """
    if not buffer.has_alpha:
        raise ValueError("remove_background needs an RGBA buffer")

    passable = background_like_mask(buffer, brightness, chroma)
    reached = flood_fill(passable, border_seeds(buffer.width, buffer.height))

    removed = int(np.count_nonzero(reached & (buffer.pixels[:, :, 3] > 0)))
    buffer.pixels[reached] = 0
    logger.info("Removed %d background pixels", removed)
    return removed
