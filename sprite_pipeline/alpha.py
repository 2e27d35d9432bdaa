"""Alpha mask extraction and colour un-premultiplication.

Generative models often emit premultiplied edge pixels which read as grey
once the alpha is binarised.  Dividing the colour back out by alpha before
the mask is snapped to 0/255 keeps those edges at their true hue.
"""

import logging
from typing import Tuple

import numpy as np

from .buffer import PixelBuffer

logger = logging.getLogger(__name__)


def extract_alpha_mask(buffer: PixelBuffer) -> np.ndarray:
    """Binary opacity mask: 255 where alpha > 0, else 0.

    Buffers without an alpha channel are fully opaque.
    """
    if not buffer.has_alpha:
        return np.full((buffer.height, buffer.width), 255, dtype=np.uint8)
    return np.where(buffer.pixels[:, :, 3] > 0, 255, 0).astype(np.uint8)


def unpremultiply(buffer: PixelBuffer) -> None:
    """Divide RGB by alpha in place for every pixel with 0 < alpha.

    ``rgb' = min(255, round(rgb * 255 / a))``.  Fully transparent pixels are
    left untouched; RGB buffers are a no-op.
    """
    if not buffer.has_alpha:
        return
    alpha = buffer.pixels[:, :, 3]
    partial = alpha > 0
    if not np.any(partial):
        return
    a = alpha[partial].astype(np.float64)[:, None]
    rgb = buffer.pixels[:, :, :3][partial].astype(np.float64)
    restored = np.minimum(255.0, np.floor(rgb * 255.0 / a + 0.5))
    buffer.pixels[:, :, :3][partial] = restored.astype(np.uint8)


def prepare_rgba(buffer: PixelBuffer) -> Tuple[PixelBuffer, np.ndarray]:
    """Return a fresh RGBA copy with restored colour and binary alpha.

    The source buffer is not modified.  The returned mask is the one written
    into the copy's alpha channel.
    """
    mask = extract_alpha_mask(buffer)
    rgba = buffer.to_rgba()
    unpremultiply(rgba)
    rgba.pixels[:, :, 3] = mask
    logger.debug(
        "Alpha mask: %d/%d opaque pixels",
        int(np.count_nonzero(mask)), mask.size,
    )
    return rgba, mask
