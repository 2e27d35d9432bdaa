"""Raster buffer model shared by every pipeline stage.

A ``PixelBuffer`` owns an ``(H, W, C)`` uint8 numpy array in row-major
order, so its flat byte view is addressed as ``(y * W + x) * C + c``.
Stages work on ``buffer.pixels`` directly with vectorised numpy where they
can; per-pixel access goes through the bounds-checked helpers.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InputError, StageInvariantViolation

VALID_CHANNELS = (3, 4)


class PixelBuffer:
    """Mutable 2D grid of RGB or RGBA pixels."""

    def __init__(self, pixels: np.ndarray):
        if pixels.ndim != 3 or pixels.shape[2] not in VALID_CHANNELS:
            raise InputError(
                f"Expected an (H, W, 3|4) array, got shape {pixels.shape}"
            )
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InputError(f"Zero-sized buffer: {pixels.shape[1]}x{pixels.shape[0]}")
        self.pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    # ------------------------------------------------------------ factories

    @classmethod
    def from_bytes(cls, width: int, height: int, channels: int, data) -> "PixelBuffer":
        """Wrap a flat row-major byte sequence of length W*H*C."""
        if width <= 0 or height <= 0:
            raise InputError(f"Zero or negative dimensions: {width}x{height}")
        if channels not in VALID_CHANNELS:
            raise InputError(f"Unsupported channel count: {channels}")
        expected = width * height * channels
        if len(data) != expected:
            raise InputError(
                f"Buffer length {len(data)} does not match "
                f"{width}x{height}x{channels} = {expected}"
            )
        flat = np.frombuffer(bytes(data), dtype=np.uint8)
        return cls(flat.reshape(height, width, channels).copy())

    @classmethod
    def blank(cls, width: int, height: int, channels: int = 4) -> "PixelBuffer":
        """Fully transparent (or black, for RGB) buffer."""
        if width <= 0 or height <= 0:
            raise InputError(f"Zero or negative dimensions: {width}x{height}")
        return cls(np.zeros((height, width, channels), dtype=np.uint8))

    # ------------------------------------------------------------ geometry

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    # ------------------------------------------------------------ access

    def index(self, x: int, y: int, c: int = 0) -> int:
        """Flat byte offset of channel ``c`` of pixel ``(x, y)``."""
        self._check(x, y)
        if not 0 <= c < self.channels:
            raise StageInvariantViolation(
                f"Channel {c} outside 0..{self.channels - 1}"
            )
        return (y * self.width + x) * self.channels + c

    def get_pixel(self, x: int, y: int) -> Tuple[int, ...]:
        """Return ``(r, g, b, a)``; alpha is 255 for RGB buffers."""
        self._check(x, y)
        px = self.pixels[y, x]
        if self.has_alpha:
            return int(px[0]), int(px[1]), int(px[2]), int(px[3])
        return int(px[0]), int(px[1]), int(px[2]), 255

    def set_pixel(self, x: int, y: int, r: int, g: int, b: int, a: int = 255) -> None:
        self._check(x, y)
        self.pixels[y, x, :3] = (r, g, b)
        if self.has_alpha:
            self.pixels[y, x, 3] = a

    def _check(self, x: int, y: int) -> None:
        if not self.in_bounds(x, y):
            raise StageInvariantViolation(
                f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer"
            )

    # ------------------------------------------------------------ views

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        """Alpha plane; a fresh all-255 array for RGB buffers."""
        if self.has_alpha:
            return self.pixels[:, :, 3]
        return np.full((self.height, self.width), 255, dtype=np.uint8)

    def opaque_mask(self, threshold: int = 128) -> np.ndarray:
        """Boolean mask of pixels with alpha >= ``threshold``."""
        return self.alpha >= threshold

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def to_rgba(self) -> "PixelBuffer":
        """Fresh 4-channel copy (opaque alpha for RGB input)."""
        if self.has_alpha:
            return self.copy()
        alpha = np.full((self.height, self.width, 1), 255, dtype=np.uint8)
        return PixelBuffer(np.concatenate([self.pixels, alpha], axis=2))

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and bool(
            np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height}x{self.channels})"
