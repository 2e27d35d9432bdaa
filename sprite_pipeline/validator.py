"""Printability checks for finished sprites.

Six independent checks inspect the sprite; none of them modifies it.  Every
check returns a result even for degenerate input (a fully transparent
sprite fails the geometric checks with explanatory messages rather than
dividing by zero).
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

import numpy as np

from .buffer import PixelBuffer
from .components import count_components, opaque_bbox
from .config import ValidatorThresholds
from .quantize import distinct_colors

logger = logging.getLogger(__name__)

Metric = Optional[Union[int, float]]

CHECK_NAMES = (
    "single_character",
    "transparent_background",
    "limited_colors",
    "no_shading",
    "centered_sprite",
    "readable_silhouette",
)

# key names used by the JSON report
_CAMEL = {
    "single_character": ("singleCharacter", "componentCount"),
    "transparent_background": ("transparentBackground", "transparencyRatio"),
    "limited_colors": ("limitedColors", "colorCount"),
    "no_shading": ("noShading", "shadingRegions"),
    "centered_sprite": ("centeredSprite", "centerOffset"),
    "readable_silhouette": ("readableSilhouette", "fillRatio"),
}

PASSED_SUMMARY = "All checks passed - Ready for printing"
FAILED_SUMMARY = "Some checks failed - Review needed"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check plus the number it was decided on."""
    passed: bool
    message: str
    metric: Metric = None


@dataclass
class ValidationResult:
    """All six check outcomes; ``passed`` is their conjunction."""
    single_character: CheckResult
    transparent_background: CheckResult
    limited_colors: CheckResult
    no_shading: CheckResult
    centered_sprite: CheckResult
    readable_silhouette: CheckResult
    details: Dict[str, Metric] = field(default_factory=dict)

    @property
    def checks(self) -> Dict[str, CheckResult]:
        return {name: getattr(self, name) for name in CHECK_NAMES}

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks.values())

    @property
    def failed_checks(self):
        return [name for name, c in self.checks.items() if not c.passed]

    @property
    def summary(self) -> str:
        return PASSED_SUMMARY if self.passed else FAILED_SUMMARY

    def to_dict(self) -> dict:
        checks = {}
        for name, check in self.checks.items():
            key, metric_key = _CAMEL[name]
            checks[key] = {
                "passed": bool(check.passed),
                "message": check.message,
                metric_key: check.metric,
            }
        return {
            "passed": self.passed,
            "checks": checks,
            "summary": self.summary,
        }


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

def check_single_character(opaque: np.ndarray) -> CheckResult:
    count = count_components(opaque, connectivity=4)
    if count == 1:
        return CheckResult(True, "Single character detected", count)
    if count == 0:
        return CheckResult(False, "No opaque pixels found", count)
    return CheckResult(False, f"Multiple components detected: {count}", count)


def check_transparent_background(opaque: np.ndarray, t: ValidatorThresholds) -> CheckResult:
    ratio = float(np.count_nonzero(~opaque)) / opaque.size
    if ratio > t.min_transparency:
        return CheckResult(True, f"Background is transparent ({ratio * 100:.1f}%)", ratio)
    return CheckResult(False, f"Insufficient transparency ({ratio * 100:.1f}%)", ratio)


def check_limited_colors(buffer: PixelBuffer, t: ValidatorThresholds) -> CheckResult:
    count = distinct_colors(buffer, t.alpha_threshold)
    if count <= t.max_colors:
        return CheckResult(True, f"Color count OK: {count}", count)
    return CheckResult(False, f"Too many colors: {count}", count)


def count_shading_pairs(buffer: PixelBuffer, opaque: np.ndarray, band) -> int:
    """Adjacent opaque pairs (right and below) whose colours differ softly.

    A pair counts when its Euclidean RGB distance lies strictly inside
    ``band``: close enough to be the same material, far enough to be a
    shade rather than the identical colour.
    """
    low, high = band
    rgb = buffer.rgb.astype(np.int32)
    total = 0
    for a, b, both in (
        (rgb[:, :-1], rgb[:, 1:], opaque[:, :-1] & opaque[:, 1:]),
        (rgb[:-1, :], rgb[1:, :], opaque[:-1, :] & opaque[1:, :]),
    ):
        diff = a - b
        dist_sq = (diff * diff).sum(axis=-1)
        soft = (dist_sq > low * low) & (dist_sq < high * high)
        total += int(np.count_nonzero(both & soft))
    return total


def check_no_shading(buffer: PixelBuffer, opaque: np.ndarray, t: ValidatorThresholds) -> CheckResult:
    pairs = count_shading_pairs(buffer, opaque, t.shading_band)
    if pairs < opaque.size * t.max_shading_ratio:
        return CheckResult(True, "Minimal shading detected", pairs)
    return CheckResult(False, f"Shading detected in {pairs} regions", pairs)


def check_centered(opaque: np.ndarray, t: ValidatorThresholds) -> CheckResult:
    box = opaque_bbox(opaque)
    if box is None:
        return CheckResult(False, "No sprite to center", None)
    h, w = opaque.shape
    min_x, min_y, max_x, max_y = box
    cx = (min_x + max_x) / 2.0
    cy = (min_y + max_y) / 2.0
    offset = math.hypot(cx - w / 2.0, cy - h / 2.0)
    if offset < w * t.max_center_offset:
        return CheckResult(True, "Sprite is centered", offset)
    return CheckResult(False, f"Sprite off-center (offset: {offset:.1f})", offset)


def check_silhouette(opaque: np.ndarray, t: ValidatorThresholds) -> CheckResult:
    box = opaque_bbox(opaque)
    if box is None:
        return CheckResult(False, "Silhouette issue (empty bounding box)", 0.0)
    min_x, min_y, max_x, max_y = box
    area = (max_x - min_x + 1) * (max_y - min_y + 1)
    ratio = float(np.count_nonzero(opaque)) / area
    low, high = t.fill_ratio_band
    if low < ratio < high:
        return CheckResult(True, "Silhouette is readable", ratio)
    return CheckResult(False, f"Silhouette issue (fill: {ratio * 100:.1f}%)", ratio)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def validate_sprite(
    buffer: PixelBuffer,
    thresholds: Optional[ValidatorThresholds] = None,
) -> ValidationResult:
    """Run all six checks on ``buffer`` and collect the results."""
    t = thresholds or ValidatorThresholds()
    opaque = buffer.opaque_mask(t.alpha_threshold)

    result = ValidationResult(
        single_character=check_single_character(opaque),
        transparent_background=check_transparent_background(opaque, t),
        limited_colors=check_limited_colors(buffer, t),
        no_shading=check_no_shading(buffer, opaque, t),
        centered_sprite=check_centered(opaque, t),
        readable_silhouette=check_silhouette(opaque, t),
        details={
            "width": buffer.width,
            "height": buffer.height,
            "opaque_pixels": int(np.count_nonzero(opaque)),
        },
    )
    if result.passed:
        logger.info("Validation: %s", result.summary)
    else:
        logger.info("Validation: %s (%s)", result.summary, ", ".join(result.failed_checks))
    return result


def validate_bytes(
    width: int,
    height: int,
    channels: int,
    data,
    thresholds: Optional[ValidatorThresholds] = None,
) -> ValidationResult:
    """Validate a raw row-major buffer.

    Raises:
        InputError: when the bytes do not describe a ``width x height x
            channels`` image.
    """
    return validate_sprite(PixelBuffer.from_bytes(width, height, channels, data), thresholds)
