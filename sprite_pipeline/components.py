"""Connected-component analysis over boolean pixel masks.

All traversals use an explicit worklist so that arbitrarily large images
never hit the interpreter recursion limit.  The inner loop runs on flat
``bytearray`` copies of the masks; indexing numpy scalars one pixel at a
time is several times slower.
"""

from typing import Iterable, List, Optional, Tuple

import numpy as np

NEIGHBORS_4 = ((1, 0), (-1, 0), (0, 1), (0, -1))
NEIGHBORS_8 = NEIGHBORS_4 + ((1, 1), (1, -1), (-1, 1), (-1, -1))


def _offsets(connectivity: int):
    if connectivity == 4:
        return NEIGHBORS_4
    if connectivity == 8:
        return NEIGHBORS_8
    raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")


def _fill(
    passable: bytearray,
    visited: bytearray,
    width: int,
    height: int,
    seeds: Iterable[Tuple[int, int]],
    offsets,
) -> List[int]:
    """Core stack fill on flat masks; returns reached flat indices."""
    reached: List[int] = []
    stack: List[Tuple[int, int]] = list(seeds)
    while stack:
        x, y = stack.pop()
        if x < 0 or x >= width or y < 0 or y >= height:
            continue
        i = y * width + x
        if visited[i] or not passable[i]:
            continue
        visited[i] = 1
        reached.append(i)
        for dx, dy in offsets:
            stack.append((x + dx, y + dy))
    return reached


def flood_fill(
    passable: np.ndarray,
    seeds: Iterable[Tuple[int, int]],
    connectivity: int = 4,
) -> np.ndarray:
    """Mark every passable pixel reachable from ``seeds``.

    Args:
        passable: (H, W) boolean mask of pixels the fill may enter.
        seeds: (x, y) start points; impassable or out-of-range seeds are
            ignored.
        connectivity: 4 or 8.

    Returns:
        (H, W) boolean mask of reached pixels.
    """
    h, w = passable.shape
    flat = bytearray(np.ascontiguousarray(passable, dtype=np.uint8).tobytes())
    visited = bytearray(h * w)
    reached = _fill(flat, visited, w, h, seeds, _offsets(connectivity))
    out = np.zeros(h * w, dtype=bool)
    out[reached] = True
    return out.reshape(h, w)


def label_components(mask: np.ndarray, connectivity: int = 4) -> Tuple[np.ndarray, int]:
    """Label connected blobs of ``mask`` in row-major discovery order.

    Returns ``(labels, count)``: an int32 array holding 0 for background and
    1..count for each blob, plus the blob count.
    """
    h, w = mask.shape
    offsets = _offsets(connectivity)
    flat = bytearray(np.ascontiguousarray(mask, dtype=np.uint8).tobytes())
    visited = bytearray(h * w)
    labels = np.zeros(h * w, dtype=np.int32)
    count = 0
    for i in np.flatnonzero(mask).tolist():
        if visited[i]:
            continue
        count += 1
        blob = _fill(flat, visited, w, h, [(i % w, i // w)], offsets)
        labels[blob] = count
    return labels.reshape(h, w), count


def count_components(mask: np.ndarray, connectivity: int = 4) -> int:
    return label_components(mask, connectivity)[1]


def border_seeds(width: int, height: int) -> List[Tuple[int, int]]:
    """Every pixel on the image border, each listed once."""
    seeds = [(x, 0) for x in range(width)]
    if height > 1:
        seeds.extend((x, height - 1) for x in range(width))
    for y in range(1, height - 1):
        seeds.append((0, y))
        if width > 1:
            seeds.append((width - 1, y))
    return seeds


def opaque_bbox(mask: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """Inclusive ``(min_x, min_y, max_x, max_y)`` of True pixels, or None."""
    ys, xs = np.nonzero(mask)
    if len(xs) == 0:
        return None
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())
