"""Tests for the six printability checks."""

from __future__ import annotations

import numpy as np
import pytest

from sprite_pipeline.buffer import PixelBuffer
from sprite_pipeline.config import ValidatorThresholds
from sprite_pipeline.errors import InputError
from sprite_pipeline.validator import (
    CHECK_NAMES,
    FAILED_SUMMARY,
    PASSED_SUMMARY,
    count_shading_pairs,
    validate_bytes,
    validate_sprite,
)


def _canvas(size: int = 64) -> np.ndarray:
    return np.zeros((size, size, 4), dtype=np.uint8)


def _circle_sprite(radius: int = 20, color=(220, 40, 40)) -> PixelBuffer:
    arr = _canvas()
    yy, xx = np.mgrid[:64, :64]
    inside = (xx - 32) ** 2 + (yy - 32) ** 2 <= radius * radius
    arr[inside] = (*color, 255)
    return PixelBuffer(arr)


def _block(arr: np.ndarray, x0: int, y0: int, x1: int, y1: int, color=(255, 0, 0)) -> np.ndarray:
    arr[y0:y1 + 1, x0:x1 + 1] = (*color, 255)
    return arr


class TestValidSprite:
    def test_clean_circle_passes_everything(self):
        result = validate_sprite(_circle_sprite())
        assert result.passed, result.failed_checks
        assert result.summary == PASSED_SUMMARY
        assert result.single_character.metric == 1
        assert result.limited_colors.metric == 1
        assert result.no_shading.metric == 0
        assert result.centered_sprite.metric == pytest.approx(0.0)
        assert 0.30 < result.readable_silhouette.metric < 0.90
        assert result.transparent_background.metric > 0.6

    def test_validation_is_pure_and_deterministic(self):
        sprite = _circle_sprite()
        before = sprite.copy()
        first = validate_sprite(sprite).to_dict()
        second = validate_sprite(sprite).to_dict()
        assert first == second
        assert sprite == before


class TestFailures:
    def test_two_components(self):
        arr = _canvas()
        _block(arr, 10, 10, 19, 19)
        _block(arr, 40, 40, 49, 49)
        result = validate_sprite(PixelBuffer(arr))
        assert not result.single_character.passed
        assert result.single_character.metric == 2
        assert "2" in result.single_character.message
        assert not result.passed
        assert result.summary == FAILED_SUMMARY
        report = result.to_dict()
        assert report["passed"] is False
        assert report["checks"]["singleCharacter"]["componentCount"] == 2

    def test_fully_transparent_sprite(self):
        result = validate_sprite(PixelBuffer(_canvas()))
        assert result.single_character.metric == 0
        assert not result.single_character.passed
        assert result.transparent_background.passed
        assert result.transparent_background.metric == 1.0
        assert result.limited_colors.passed
        assert result.no_shading.passed
        assert not result.centered_sprite.passed
        assert result.centered_sprite.metric is None
        assert not result.readable_silhouette.passed
        assert result.readable_silhouette.metric == 0.0

    def test_opaque_rgb_has_no_transparency(self):
        data = bytes([200, 0, 0]) * (64 * 64)
        result = validate_bytes(64, 64, 3, data)
        assert not result.transparent_background.passed
        assert result.transparent_background.metric == 0.0

    def test_too_many_colours(self):
        arr = _canvas()
        for i in range(20):
            arr[22:42, 22 + i] = (i * 10, 50, 50, 255)
        result = validate_sprite(PixelBuffer(arr))
        assert not result.limited_colors.passed
        assert result.limited_colors.metric == 20

    def test_soft_gradients_count_as_shading(self):
        arr = _canvas()
        for x in range(16, 48):
            arr[16:48, x] = (100 + 20 * (x % 2), 60, 60, 255)
        result = validate_sprite(PixelBuffer(arr))
        assert not result.no_shading.passed
        assert result.no_shading.metric == 31 * 32
        assert result.limited_colors.passed

    def test_off_centre(self):
        arr = _block(_canvas(), 0, 0, 9, 9)
        result = validate_sprite(PixelBuffer(arr))
        assert not result.centered_sprite.passed
        assert result.centered_sprite.metric == pytest.approx(38.89, abs=0.01)

    def test_hollow_outline_is_not_readable(self):
        arr = _block(_canvas(), 12, 12, 51, 51)
        arr[13:51, 13:51] = 0
        result = validate_sprite(PixelBuffer(arr))
        assert not result.readable_silhouette.passed
        assert result.readable_silhouette.metric == pytest.approx(156 / 1600)

    def test_solid_block_is_not_readable(self):
        arr = _block(_canvas(), 22, 22, 41, 41)
        result = validate_sprite(PixelBuffer(arr))
        assert not result.readable_silhouette.passed
        assert result.readable_silhouette.metric == 1.0
        assert result.centered_sprite.passed


class TestDetails:
    def test_shading_band_is_open(self):
        arr = np.full((1, 3, 4), 255, dtype=np.uint8)
        arr[0, :, :3] = [(0, 0, 0), (15, 0, 0), (75, 0, 0)]
        buf = PixelBuffer(arr)
        assert count_shading_pairs(buf, buf.opaque_mask(), (15.0, 60.0)) == 0
        buf.set_pixel(1, 0, 16, 0, 0)
        assert count_shading_pairs(buf, buf.opaque_mask(), (15.0, 60.0)) == 1

    def test_alpha_128_is_opaque(self):
        sprite = _circle_sprite()
        sprite.pixels[:, :, 3][sprite.pixels[:, :, 3] == 255] = 128
        assert validate_sprite(sprite).passed
        sprite.pixels[:, :, 3][sprite.pixels[:, :, 3] == 128] = 127
        assert validate_sprite(sprite).single_character.metric == 0

    def test_custom_thresholds(self):
        arr = _circle_sprite().pixels
        arr[32, 20:45] = (0, 0, 0, 255)
        thresholds = ValidatorThresholds.from_dict({"max_colors": 1})
        result = validate_sprite(PixelBuffer(arr), thresholds)
        assert not result.limited_colors.passed
        assert validate_sprite(PixelBuffer(arr)).limited_colors.passed

    def test_unknown_threshold_rejected(self):
        with pytest.raises(ValueError):
            ValidatorThresholds.from_dict({"max_colours": 3})

    def test_malformed_bytes(self):
        with pytest.raises(InputError):
            validate_bytes(64, 64, 4, bytes(100))

    def test_to_dict_shape(self):
        report = validate_sprite(_circle_sprite()).to_dict()
        assert report["passed"] is True
        assert report["summary"] == PASSED_SUMMARY
        assert set(report["checks"]) == {
            "singleCharacter", "transparentBackground", "limitedColors",
            "noShading", "centeredSprite", "readableSilhouette",
        }
        assert report["checks"]["singleCharacter"]["componentCount"] == 1
        assert report["checks"]["limitedColors"]["colorCount"] == 1
        assert "fillRatio" in report["checks"]["readableSilhouette"]
        assert "message" in report["checks"]["noShading"]

    def test_checks_in_fixed_order(self):
        result = validate_sprite(_circle_sprite())
        assert tuple(result.checks) == CHECK_NAMES
