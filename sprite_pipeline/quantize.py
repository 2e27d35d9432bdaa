"""Frequency-ranked palette quantization.

Colours are keyed by their exact ``(r, g, b)`` value.  Histogram ties are
broken by first appearance in a row-major scan (``Counter.most_common`` is
a stable sort over insertion order), so results never depend on hash or
dict iteration order.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .buffer import PixelBuffer
from .config import PALETTE_SIZE

logger = logging.getLogger(__name__)

ColorKey = Tuple[int, int, int]


def _pack(rgb: np.ndarray) -> np.ndarray:
    """Pack an (..., 3) uint8 array into int32 ``0xRRGGBB`` keys."""
    rgb = rgb.astype(np.int32)
    return (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]


def _unpack(key: int) -> ColorKey:
    return (key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF


def color_histogram(buffer: PixelBuffer, alpha_threshold: int = 128) -> List[Tuple[ColorKey, int]]:
    """``[(color, count), ...]`` over opaque pixels, most frequent first."""
    opaque = buffer.opaque_mask(alpha_threshold)
    keys = _pack(buffer.rgb[opaque])
    counts = Counter(keys.tolist())
    return [(_unpack(k), n) for k, n in counts.most_common()]


@dataclass(frozen=True)
class Palette:
    """Ordered, immutable set of representative colours."""
    colors: Tuple[ColorKey, ...]

    def __len__(self) -> int:
        return len(self.colors)

    def to_hex(self) -> List[str]:
        return [f"{r:02x}{g:02x}{b:02x}" for r, g, b in self.colors]

    def as_array(self) -> np.ndarray:
        return np.array(self.colors, dtype=np.int32).reshape(-1, 3)

    def nearest_indices(self, rgb: np.ndarray) -> np.ndarray:
        """Index of the closest entry for each row of an (N, 3) array.

        Squared Euclidean distance; ``argmin`` returns the first minimum,
        so ties go to the more frequent entry.
        """
        pal = self.as_array()
        diff = rgb.astype(np.int32)[:, None, :] - pal[None, :, :]
        dist = np.einsum("ijk,ijk->ij", diff, diff)
        return np.argmin(dist, axis=1)

    def nearest(self, color: ColorKey) -> ColorKey:
        if not self.colors:
            raise ValueError("Empty palette has no nearest colour")
        idx = self.nearest_indices(np.array([color]))[0]
        return self.colors[int(idx)]

    def remap(self, buffer: PixelBuffer, alpha_threshold: int = 128) -> int:
        """Snap every opaque pixel to its nearest entry, in place.

        Returns the number of pixels whose colour changed.
        """
        if not self.colors:
            return 0
        opaque = buffer.opaque_mask(alpha_threshold)
        if not np.any(opaque):
            return 0
        rgb = buffer.rgb[opaque]
        mapped = self.as_array()[self.nearest_indices(rgb)].astype(np.uint8)
        changed = int(np.count_nonzero(np.any(mapped != rgb, axis=1)))
        buffer.pixels[:, :, :3][opaque] = mapped
        return changed


def build_palette(
    buffer: PixelBuffer,
    max_colors: int = PALETTE_SIZE,
    alpha_threshold: int = 128,
) -> Palette:
    """Top ``max_colors`` exact colours among opaque pixels."""
    if max_colors < 1:
        raise ValueError(f"max_colors must be >= 1, got {max_colors}")
    hist = color_histogram(buffer, alpha_threshold)
    palette = Palette(tuple(color for color, _ in hist[:max_colors]))
    logger.debug(
        "Palette: kept %d of %d colours", len(palette), len(hist),
    )
    return palette


def quantize(
    buffer: PixelBuffer,
    max_colors: int = PALETTE_SIZE,
    alpha_threshold: int = 128,
) -> Palette:
    """Build a palette from ``buffer`` and remap it in place."""
    palette = build_palette(buffer, max_colors, alpha_threshold)
    changed = palette.remap(buffer, alpha_threshold)
    logger.info("Quantized to %d colours (%d pixels remapped)", len(palette), changed)
    return palette


def merge_similar_colors(
    buffer: PixelBuffer,
    tolerance: float,
    alpha_threshold: int = 128,
) -> Dict[ColorKey, ColorKey]:
    """Fold every colour into a more frequent one closer than ``tolerance``.

    Walks the histogram from most to least frequent; each colour not yet
    folded absorbs all later, unfolded colours within Euclidean
    ``tolerance``.  Returns the applied ``{source: target}`` mapping.
    """
    hist = color_histogram(buffer, alpha_threshold)
    colors = [c for c, _ in hist]
    merged: Dict[ColorKey, ColorKey] = {}
    tol_sq = tolerance * tolerance

    for i, c1 in enumerate(colors):
        if c1 in merged:
            continue
        for c2 in colors[i + 1:]:
            if c2 in merged:
                continue
            d = (c1[0] - c2[0]) ** 2 + (c1[1] - c2[1]) ** 2 + (c1[2] - c2[2]) ** 2
            if d < tol_sq:
                merged[c2] = c1

    if merged:
        opaque = buffer.opaque_mask(alpha_threshold)
        keys = _pack(buffer.rgb)
        for src, dst in merged.items():
            hit = opaque & (keys == _pack(np.array(src)))
            buffer.pixels[hit, :3] = dst
    logger.info("Merged %d similar colours (tolerance %.0f)", len(merged), tolerance)
    return merged


def distinct_colors(buffer: PixelBuffer, alpha_threshold: int = 128) -> int:
    opaque = buffer.opaque_mask(alpha_threshold)
    return int(np.unique(_pack(buffer.rgb[opaque])).size)

