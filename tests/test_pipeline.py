"""End-to-end tests for sprite conversion.

All inputs are synthetic so expected outcomes are known:
  - Grey square on transparency -> stripped as background, empty sprite
  - Red disc on transparency -> clean single-character sprite
  - Red disc with grey halo on white -> backdrop removed, sprite passes
"""

from __future__ import annotations

import json

import numpy as np
import pytest
from PIL import Image

from sprite_pipeline import (
    InputError,
    PipelineConfig,
    PixelBuffer,
    Preset,
    SourceError,
    convert_to_sprite,
    process_source,
)
from sprite_pipeline.qc_visual import render_pixel_grid, render_qc_panel, save_qc_image
from sprite_pipeline.quantize import distinct_colors
from sprite_pipeline.sources import (
    BufferSource,
    BytesSource,
    FileSource,
    UrlSource,
    buffer_from_image,
    decode_data_url,
    decode_image_bytes,
    encode_png,
    load_image,
    save_png,
    to_data_url,
)


# ---------------------------------------------------------------------------
# Synthetic image helpers
# ---------------------------------------------------------------------------


def _disc(size: int = 200, radius: int = 80, color=(255, 0, 0)) -> PixelBuffer:
    """Opaque disc centred in a transparent square canvas."""
    arr = np.zeros((size, size, 4), dtype=np.uint8)
    c = size // 2
    yy, xx = np.mgrid[:size, :size]
    arr[(xx - c) ** 2 + (yy - c) ** 2 <= radius * radius] = (*color, 255)
    return PixelBuffer(arr)


def _grey_square() -> PixelBuffer:
    arr = np.zeros((512, 512, 4), dtype=np.uint8)
    arr[64:448, 64:448] = (200, 200, 200, 255)
    return PixelBuffer(arr)


def _disc_on_white(size: int = 200, radius: int = 60) -> PixelBuffer:
    """RGB image: red disc, light grey halo ring, white backdrop."""
    arr = np.full((size, size, 3), 250, dtype=np.uint8)
    c = size // 2
    yy, xx = np.mgrid[:size, :size]
    d2 = (xx - c) ** 2 + (yy - c) ** 2
    arr[d2 <= (radius + 3) ** 2] = (180, 180, 180)
    arr[d2 <= radius * radius] = (200, 30, 30)
    return PixelBuffer(arr)


# ---------------------------------------------------------------------------
# Tests: end-to-end scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_grey_square_is_treated_as_background(self):
        result = convert_to_sprite(_grey_square())
        assert result.sprite.size == (64, 64)
        assert not result.sprite.opaque_mask().any()
        assert result.stats["background_removed"] == 384 * 384

        v = result.validation
        assert not v.passed
        assert v.transparent_background.passed
        assert not v.single_character.passed
        assert v.single_character.metric == 0
        assert not v.readable_silhouette.passed
        assert v.readable_silhouette.metric == 0.0

    def test_red_disc_passes(self):
        result = convert_to_sprite(_disc())
        v = result.validation
        assert result.passed, v.failed_checks
        assert result.sprite.size == (64, 64)
        assert result.crop_box == (12, 12, 188, 188)
        assert v.single_character.metric == 1
        assert v.transparent_background.metric > 0.30
        assert 0.6 < v.readable_silhouette.metric < 0.9
        assert v.centered_sprite.metric < 3.0
        assert v.limited_colors.metric == 2
        assert len(result.palette) == 1

    def test_outline_is_black_and_interior_keeps_colour(self):
        sprite = convert_to_sprite(_disc()).sprite
        assert sprite.get_pixel(32, 32) == (255, 0, 0, 255)
        opaque = sprite.opaque_mask()
        row = np.flatnonzero(opaque[32])
        assert sprite.get_pixel(int(row[0]), 32)[:3] == (0, 0, 0)
        assert sprite.get_pixel(int(row[-1]), 32)[:3] == (0, 0, 0)

    def test_white_backdrop_and_halo_removed(self):
        result = convert_to_sprite(_disc_on_white())
        assert result.passed, result.validation.failed_checks
        colors = {tuple(p) for p in result.sprite.rgb[result.sprite.opaque_mask()].tolist()}
        assert colors == {(200, 30, 30), (0, 0, 0)}

    def test_faint_alpha_haze_does_not_widen_crop(self):
        arr = np.zeros((400, 400, 4), dtype=np.uint8)
        arr[:, :, 3] = 20
        arr[150:250, 150:250] = (255, 0, 0, 255)
        result = convert_to_sprite(PixelBuffer(arr))
        # 5% of 100 = 5px padding around the opaque block only
        assert result.crop_box == (145, 145, 254, 254)

    def test_fully_transparent_input_does_not_crash(self):
        result = convert_to_sprite(PixelBuffer.blank(100, 100))
        assert result.crop_box is None
        assert result.sprite.size == (64, 64)
        assert len(result.palette) == 0
        assert result.validation.centered_sprite.metric is None


# ---------------------------------------------------------------------------
# Tests: pipeline contracts
# ---------------------------------------------------------------------------


class TestContracts:
    def test_rejects_non_buffer(self):
        with pytest.raises(InputError):
            convert_to_sprite(b"\x00" * 16)

    def test_malformed_bytes_rejected_before_any_stage(self):
        with pytest.raises(InputError):
            PixelBuffer.from_bytes(64, 64, 4, bytes(64 * 64 * 4 - 1))

    def test_caller_buffer_untouched(self):
        src = _disc_on_white()
        before = src.copy()
        convert_to_sprite(src)
        assert src == before

    def test_deterministic(self):
        a = convert_to_sprite(_disc_on_white())
        b = convert_to_sprite(_disc_on_white())
        assert a.sprite == b.sprite
        assert a.to_dict() == b.to_dict()

    def test_palette_cap_holds(self):
        rng = np.random.RandomState(0)
        arr = np.zeros((128, 128, 4), dtype=np.uint8)
        arr[16:112, 16:112, :3] = rng.randint(0, 256, (96, 96, 3))
        arr[16:112, 16:112, 3] = 255
        result = convert_to_sprite(PixelBuffer(arr), PipelineConfig(remove_background=False))
        assert distinct_colors(result.sprite) <= 16

    def test_report_is_json_serialisable(self):
        report = convert_to_sprite(_disc()).to_dict()
        text = json.dumps(report)
        assert '"singleCharacter"' in text
        assert report["sprite_size"] == [64, 64]


# ---------------------------------------------------------------------------
# Tests: configuration and presets
# ---------------------------------------------------------------------------


class TestConfig:
    def test_presets(self):
        assert PipelineConfig.from_preset("standard") == PipelineConfig()
        bold = PipelineConfig.from_preset(Preset.BOLD_OUTLINE)
        assert bold.outline_thickness == 2
        flat = PipelineConfig.from_preset("ultra_flat")
        assert flat.palette_merge_tolerance == 80.0
        with pytest.raises(ValueError):
            PipelineConfig.from_preset("glossy")

    def test_from_dict_overrides(self):
        cfg = PipelineConfig.from_dict({"target_size": [32, 32], "validator": {"max_colors": 8}})
        assert cfg.target_size == (32, 32)
        assert cfg.validator.max_colors == 8
        assert convert_to_sprite(_disc(), cfg).sprite.size == (32, 32)

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"colour_count": 4})

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            PipelineConfig(palette_size=0)
        with pytest.raises(ValueError):
            PipelineConfig(outline_thickness=-1)

    def test_bold_outline_paints_more(self):
        thin = convert_to_sprite(_disc())
        bold = convert_to_sprite(_disc(), PipelineConfig.from_preset("bold_outline"))
        assert bold.stats["outline_pixels"] > thin.stats["outline_pixels"]

    def test_ultra_flat_merges_near_colours(self):
        arr = _disc().pixels
        arr[90:110, 90:110, :3] = (235, 10, 10)
        result = convert_to_sprite(PixelBuffer(arr), PipelineConfig.from_preset("ultra_flat"))
        assert result.stats["colors_merged"] == 1
        assert len(result.palette) == 1


# ---------------------------------------------------------------------------
# Tests: sources and encoding
# ---------------------------------------------------------------------------


class TestSources:
    def test_data_url_round_trip(self):
        sprite = convert_to_sprite(_disc()).sprite
        url = to_data_url(sprite)
        assert url.startswith("data:image/png;base64,")
        assert decode_data_url(url) == sprite
        assert BytesSource(url).fetch() == sprite
        assert UrlSource(url).fetch() == sprite

    def test_undecodable_bytes(self):
        with pytest.raises(SourceError):
            decode_image_bytes(b"definitely not a png")
        with pytest.raises(SourceError):
            decode_data_url("data:image/png;base64,@@@@")
        with pytest.raises(SourceError):
            decode_data_url("https://example.com/x.png")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError):
            load_image(tmp_path / "nope.png")

    def test_file_source(self, tmp_path):
        path = save_png(_disc(), tmp_path / "disc.png")
        result = process_source(FileSource(path))
        assert result.passed
        assert result.source_size == (200, 200)

    def test_buffer_source(self):
        result = process_source(BufferSource(_disc(), name="disc"))
        assert result.passed

    def test_pil_modes(self):
        grey = buffer_from_image(Image.new("L", (4, 3), 90))
        assert grey.channels == 3 and grey.size == (4, 3)
        pal = Image.new("P", (2, 2), 0)
        pal.info["transparency"] = 0
        assert buffer_from_image(pal).channels == 4

    def test_png_keeps_alpha(self):
        png = encode_png(_disc(size=40, radius=10))
        decoded = decode_image_bytes(png)
        assert decoded.has_alpha
        assert decoded == _disc(size=40, radius=10)


# ---------------------------------------------------------------------------
# Tests: QC visuals
# ---------------------------------------------------------------------------


class TestQCVisual:
    def test_pixel_grid_shape(self):
        sprite = convert_to_sprite(_disc()).sprite
        grid = render_pixel_grid(sprite, scale=4)
        assert grid.shape == (256, 256, 3)
        assert tuple(grid[0, 0]) == (255, 0, 0)

    def test_panel_and_save(self, tmp_path):
        source = _disc()
        result = convert_to_sprite(source)
        panel = render_qc_panel(source, result.sprite, result.validation, "disc.png")
        assert panel.shape == (512, 200 + 3 + 512 + 3 + 360, 3)
        out = save_qc_image(source, result.sprite, result.validation, tmp_path / "qc.png")
        assert out.exists()
