"""Tone flattening and region merging on the downscaled sprite.

Every pass reads from a snapshot of its input and writes the result in one
go, so a pixel updated early in the scan never influences its neighbours
within the same pass.  Colour distances here are Manhattan (sum of
absolute channel differences); averages round half up.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from .buffer import PixelBuffer
from .components import NEIGHBORS_4, NEIGHBORS_8
from .config import ISLAND_DISTANCE, MERGE_SNAP_DISTANCE, TONE_FLATTEN_THRESHOLD

logger = logging.getLogger(__name__)


def _neighbor_stack(
    buffer: PixelBuffer,
    offsets: Sequence[Tuple[int, int]],
    alpha_threshold: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Shifted copies of the buffer, one per ``(dx, dy)`` offset.

    Returns ``(colors, opaque)`` with shapes (K, H, W, 3) and (K, H, W);
    neighbours that fall outside the image read as transparent.
    """
    h, w = buffer.height, buffer.width
    rgb = np.pad(buffer.rgb.astype(np.int32), ((1, 1), (1, 1), (0, 0)))
    opaque = np.pad(buffer.opaque_mask(alpha_threshold), 1, constant_values=False)
    colors = np.stack([rgb[1 + dy:1 + dy + h, 1 + dx:1 + dx + w] for dx, dy in offsets])
    masks = np.stack([opaque[1 + dy:1 + dy + h, 1 + dx:1 + dx + w] for dx, dy in offsets])
    return colors, masks


def _manhattan(colors: np.ndarray, center: np.ndarray) -> np.ndarray:
    return np.abs(colors - center[None]).sum(axis=-1)


def _round_mean(total: np.ndarray, count: np.ndarray) -> np.ndarray:
    """Integer mean rounded half up; ``count`` broadcasts over channels."""
    n = np.maximum(count, 1)[..., None]
    return (2 * total + n) // (2 * n)


def tone_flatten(
    buffer: PixelBuffer,
    threshold: int = TONE_FLATTEN_THRESHOLD,
    min_similar: int = 2,
    alpha_threshold: int = 128,
) -> int:
    """Average interior pixels with their similar 8-neighbours, in place.

    Only opaque pixels whose full 3x3 neighbourhood lies inside the image
    are considered.  A neighbour qualifies when it is opaque and within
    ``threshold`` of the centre; with at least ``min_similar`` qualifying
    neighbours the centre becomes the mean of itself plus those neighbours.

    Returns the number of pixels that changed colour.
    """
    h, w = buffer.height, buffer.width
    if h < 3 or w < 3:
        return 0

    center = buffer.rgb.astype(np.int32)
    colors, masks = _neighbor_stack(buffer, NEIGHBORS_8, alpha_threshold)
    similar = masks & (_manhattan(colors, center) <= threshold)
    count = similar.sum(axis=0)

    eligible = buffer.opaque_mask(alpha_threshold) & (count >= min_similar)
    eligible[0, :] = eligible[-1, :] = False
    eligible[:, 0] = eligible[:, -1] = False

    total = center + (colors * similar[..., None]).sum(axis=0)
    averaged = _round_mean(total, count + 1)
    changed = eligible & np.any(averaged != center, axis=-1)
    buffer.pixels[eligible, :3] = averaged[eligible].astype(np.uint8)
    logger.debug("Tone flatten: %d pixels changed", int(np.count_nonzero(changed)))
    return int(np.count_nonzero(changed))


def merge_similar_neighbors(
    buffer: PixelBuffer,
    distance: int = MERGE_SNAP_DISTANCE,
    min_similar: int = 2,
    alpha_threshold: int = 128,
) -> int:
    """Snap pixels to the mean of themselves and close 4-neighbours.

    A neighbour is close when opaque and strictly within ``distance``.
    Returns the number of pixels that changed colour.
    """
    center = buffer.rgb.astype(np.int32)
    colors, masks = _neighbor_stack(buffer, NEIGHBORS_4, alpha_threshold)
    similar = masks & (_manhattan(colors, center) < distance)
    count = similar.sum(axis=0)

    eligible = buffer.opaque_mask(alpha_threshold) & (count >= min_similar)
    total = center + (colors * similar[..., None]).sum(axis=0)
    averaged = _round_mean(total, count + 1)
    changed = eligible & np.any(averaged != center, axis=-1)
    buffer.pixels[eligible, :3] = averaged[eligible].astype(np.uint8)
    return int(np.count_nonzero(changed))


def remove_color_islands(
    buffer: PixelBuffer,
    distance: int = ISLAND_DISTANCE,
    min_neighbors: int = 2,
    alpha_threshold: int = 128,
) -> int:
    """Recolour single pixels that differ sharply from every 4-neighbour.

    A pixel is an island when it has at least ``min_neighbors`` opaque
    4-neighbours and all of them are more than ``distance`` away.  It is
    replaced by the inverse-distance-weighted mean of those neighbours, so
    the closest surrounding colour dominates.

    Returns the number of islands replaced.
    """
    center = buffer.rgb.astype(np.int32)
    colors, masks = _neighbor_stack(buffer, NEIGHBORS_4, alpha_threshold)
    dist = _manhattan(colors, center)
    n_opaque = masks.sum(axis=0)
    all_far = np.all(~masks | (dist > distance), axis=0)

    islands = buffer.opaque_mask(alpha_threshold) & (n_opaque >= min_neighbors) & all_far
    if not np.any(islands):
        return 0

    weights = np.where(masks, 1.0 / np.maximum(dist, 1), 0.0)
    weighted = (colors * weights[..., None]).sum(axis=0)
    norm = weights.sum(axis=0)[..., None]
    replaced = np.floor(weighted[islands] / norm[islands] + 0.5)
    buffer.pixels[islands, :3] = np.clip(replaced, 0, 255).astype(np.uint8)
    return int(np.count_nonzero(islands))


def merge_regions(
    buffer: PixelBuffer,
    snap_distance: int = MERGE_SNAP_DISTANCE,
    island_distance: int = ISLAND_DISTANCE,
    alpha_threshold: int = 128,
) -> Tuple[int, int]:
    """Snap near-duplicate neighbours, then remove leftover speckle.

    The snap pass has to run first: it consolidates tonal noise so that the
    island pass only sees genuinely isolated pixels.

    Returns ``(snapped, islands)`` pixel counts.
    """
    snapped = merge_similar_neighbors(buffer, snap_distance, alpha_threshold=alpha_threshold)
    islands = remove_color_islands(buffer, island_distance, alpha_threshold=alpha_threshold)
    logger.info("Region merge: %d snapped, %d islands removed", snapped, islands)
    return snapped, islands


def despeckle_alpha(buffer: PixelBuffer, max_neighbors: int = 1, alpha_threshold: int = 128) -> int:
    """Make opaque pixels with at most ``max_neighbors`` opaque 4-neighbours transparent.

    Strips the one- and two-pixel fragments left at the silhouette edge by
    background removal and downsampling.  Returns the number cleared.
    """
    if not buffer.has_alpha:
        return 0
    _, masks = _neighbor_stack(buffer, NEIGHBORS_4, alpha_threshold)
    stray = buffer.opaque_mask(alpha_threshold) & (masks.sum(axis=0) <= max_neighbors)
    buffer.pixels[stray] = 0
    removed = int(np.count_nonzero(stray))
    logger.info("Removed %d stray alpha pixels", removed)
    return removed
