"""Visual QC output for converted sprites.

Generates inspection-friendly images:
  - Blown-up sprite with a pixel grid overlay
  - Side-by-side panel: source | blown-up sprite | per-check results
"""

import logging
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
from PIL import Image

from .buffer import PixelBuffer
from .validator import ValidationResult

logger = logging.getLogger(__name__)

GRID_COLOR = (255, 0, 0)
BACKDROP = 220          # grey shown behind transparent pixels
PASS_COLOR = (80, 200, 120)
FAIL_COLOR = (230, 80, 80)


def _composite(rgba: np.ndarray, backdrop: int = BACKDROP) -> np.ndarray:
    """Flatten RGBA onto a flat grey backdrop; RGB passes through."""
    if rgba.shape[2] == 3:
        return rgba.copy()
    alpha = rgba[:, :, 3:4].astype(np.float32) / 255.0
    rgb = rgba[:, :, :3].astype(np.float32)
    bg = np.full_like(rgb, float(backdrop))
    return (rgb * alpha + bg * (1 - alpha)).astype(np.uint8)


def render_pixel_grid(
    sprite: PixelBuffer,
    scale: int = 8,
    grid_color: Tuple[int, int, int] = GRID_COLOR,
    grid_width: int = 1,
) -> np.ndarray:
    """Blow up a sprite and overlay a pixel grid.

    Returns:
        RGB numpy array of shape (H * scale, W * scale, 3).
    """
    h, w = sprite.height, sprite.width
    big = cv2.resize(sprite.pixels, (w * scale, h * scale),
                     interpolation=cv2.INTER_NEAREST)
    big_rgb = _composite(big)

    out_h, out_w = big_rgb.shape[:2]
    for y in range(0, out_h + 1, scale):
        y_clamped = min(y, out_h - 1)
        big_rgb[max(0, y_clamped - grid_width + 1):y_clamped + 1, :] = grid_color
    for x in range(0, out_w + 1, scale):
        x_clamped = min(x, out_w - 1)
        big_rgb[:, max(0, x_clamped - grid_width + 1):x_clamped + 1] = grid_color
    return big_rgb


def _pad_to_height(img: np.ndarray, target: int) -> np.ndarray:
    h, w = img.shape[:2]
    if h >= target:
        return img[:target]
    pad = np.full((target - h, w, 3), 40, dtype=np.uint8)
    return np.vstack([img, pad])


def render_qc_panel(
    source: PixelBuffer,
    sprite: PixelBuffer,
    validation: ValidationResult,
    source_name: str = "",
    panel_height: int = 512,
) -> np.ndarray:
    """Source thumbnail | gridded sprite | check list, as one RGB image."""
    # Panel 1: source, shrunk to fit
    src = _composite(source.pixels)
    src_scale = panel_height / max(source.height, 1)
    if src_scale < 1.0:
        src = cv2.resize(
            src,
            (max(1, int(source.width * src_scale)), max(1, int(source.height * src_scale))),
            interpolation=cv2.INTER_AREA,
        )

    # Panel 2: sprite with pixel grid
    pixel_scale = max(2, panel_height // max(sprite.height, 1))
    grid = render_pixel_grid(sprite, scale=pixel_scale)

    # Panel 3: one line per check
    text = np.full((panel_height, 360, 3), 30, dtype=np.uint8)
    lines = [(source_name or "<sprite>", (220, 220, 220))]
    for name, check in validation.checks.items():
        lines.append((f"{'PASS' if check.passed else 'FAIL'} {name}",
                      PASS_COLOR if check.passed else FAIL_COLOR))
        lines.append((f"   {check.message}", (200, 200, 200)))
    lines.append((validation.summary, PASS_COLOR if validation.passed else FAIL_COLOR))
    for i, (line, color) in enumerate(lines):
        cv2.putText(text, line, (10, 24 + i * 22), cv2.FONT_HERSHEY_SIMPLEX,
                    0.45, color, 1, cv2.LINE_AA)

    target_h = max(src.shape[0], grid.shape[0], text.shape[0])
    sep = np.full((target_h, 3, 3), 128, dtype=np.uint8)
    return np.hstack([
        _pad_to_height(src, target_h), sep,
        _pad_to_height(grid, target_h), sep,
        _pad_to_height(text, target_h),
    ])


def save_qc_image(
    source: PixelBuffer,
    sprite: PixelBuffer,
    validation: ValidationResult,
    output_path: Path,
    source_name: str = "",
) -> Path:
    """Generate and save a QC panel image.

    Returns the output path.
    """
    panel = render_qc_panel(source, sprite, validation, source_name=source_name)
    Image.fromarray(panel).save(output_path)
    logger.info("QC image saved: %s", output_path)
    return output_path

