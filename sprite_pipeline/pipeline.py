"""Sprite conversion pipeline.

Turns an arbitrary decoded image into a fixed-size, outlined, low-colour
sprite and validates it:

  1. alpha mask + un-premultiply
  2. crop to content (fails open when nothing is opaque)
  3. background flood-fill removal, on the high-resolution crop
  4. nearest-neighbour cover resize to the target size
  5. alpha despeckle
  6. palette quantization (optional palette tone merge first)
  7. tone flattening and region merging
  8. snap the averaged colours back onto the palette
  9. outline
 10. validation

Stages run strictly in sequence on a buffer owned by the call; the caller's
buffer is never modified and nothing is shared between calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .alpha import prepare_rgba
from .background import remove_background
from .buffer import PixelBuffer
from .config import PipelineConfig
from .errors import InputError
from .flatten import despeckle_alpha, merge_regions, tone_flatten
from .geometry import crop_to_content, resize_cover
from .outline import render_outline
from .quantize import Palette, build_palette, merge_similar_colors
from .sources import SpriteSource
from .validator import ValidationResult, validate_sprite

logger = logging.getLogger(__name__)


@dataclass
class SpriteConversion:
    """Result of one conversion run."""
    sprite: PixelBuffer
    palette: Palette
    validation: ValidationResult
    source_size: Tuple[int, int]
    crop_box: Optional[Tuple[int, int, int, int]] = None
    stats: dict = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.validation.passed

    def to_dict(self) -> dict:
        return {
            "source_size": list(self.source_size),
            "sprite_size": [self.sprite.width, self.sprite.height],
            "crop_box": list(self.crop_box) if self.crop_box else None,
            "palette": self.palette.to_hex(),
            "stats": dict(self.stats),
            "validation": self.validation.to_dict(),
        }


def _check_input(buffer: PixelBuffer) -> None:
    if not isinstance(buffer, PixelBuffer):
        raise InputError(f"Expected a PixelBuffer, got {type(buffer).__name__}")
    if buffer.width == 0 or buffer.height == 0:
        raise InputError(f"Zero-sized input: {buffer.width}x{buffer.height}")


def convert_to_sprite(
    buffer: PixelBuffer,
    config: Optional[PipelineConfig] = None,
) -> SpriteConversion:
    """Run every stage on a private copy of ``buffer``.

    Raises:
        InputError: for malformed input; no partial output is produced.
    """
    cfg = config or PipelineConfig()
    _check_input(buffer)
    source_size = buffer.size
    stats: dict = {}

    work, mask = prepare_rgba(buffer)
    stats["opaque_source_pixels"] = int((mask > 0).sum())

    # box comes from the source alpha, not the binarised mask
    work, crop_box = crop_to_content(
        work, cfg.opacity_threshold, cfg.crop_padding_ratio, reference=buffer,
    )

    if cfg.remove_background:
        stats["background_removed"] = remove_background(
            work, cfg.background_brightness, cfg.background_chroma,
        )

    work = resize_cover(work, cfg.target_size)

    if cfg.despeckle_alpha:
        stats["stray_pixels_removed"] = despeckle_alpha(work)

    if cfg.palette_merge_tolerance:
        stats["colors_merged"] = len(merge_similar_colors(work, cfg.palette_merge_tolerance))

    palette = build_palette(work, cfg.palette_size)
    stats["quantized_pixels"] = palette.remap(work)

    stats["tone_flattened"] = tone_flatten(work, cfg.tone_flatten_threshold)
    snapped, islands = merge_regions(work, cfg.merge_snap_distance, cfg.island_distance)
    stats["snapped"] = snapped
    stats["islands_removed"] = islands
    # flatten/merge averages drift off the palette; snap them back
    stats["resnapped"] = palette.remap(work)

    if cfg.outline_thickness > 0:
        stats["outline_pixels"] = render_outline(
            work, cfg.outline_thickness, cfg.outline_color,
        )

    validation = validate_sprite(work, cfg.validator)
    logger.info(
        "Converted %dx%d -> %dx%d sprite, %d colours, %s",
        source_size[0], source_size[1], work.width, work.height,
        len(palette), "passed" if validation.passed else "failed",
    )
    return SpriteConversion(
        sprite=work,
        palette=palette,
        validation=validation,
        source_size=source_size,
        crop_box=crop_box,
        stats=stats,
    )


def process_source(
    source: SpriteSource,
    config: Optional[PipelineConfig] = None,
) -> SpriteConversion:
    """Fetch an image from an injected collaborator and convert it.

    Fetch errors propagate as :class:`~sprite_pipeline.errors.SourceError`;
    retrying is the collaborator's business, not the pipeline's.
    """
    logger.info("Fetching image from %s", source.describe())
    return convert_to_sprite(source.fetch(), config)
