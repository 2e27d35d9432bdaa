"""Public interface for the sprite conversion and validation pipeline."""

from __future__ import annotations

from .buffer import PixelBuffer
from .config import PipelineConfig, Preset, ValidatorThresholds
from .errors import (
    InputError,
    NoContentError,
    SourceError,
    SpritePipelineError,
    StageInvariantViolation,
)
from .pipeline import SpriteConversion, convert_to_sprite, process_source
from .quantize import Palette
from .validator import CheckResult, ValidationResult, validate_bytes, validate_sprite

__all__ = [
    "CheckResult",
    "InputError",
    "NoContentError",
    "Palette",
    "PipelineConfig",
    "PixelBuffer",
    "Preset",
    "SourceError",
    "SpriteConversion",
    "SpritePipelineError",
    "StageInvariantViolation",
    "ValidationResult",
    "ValidatorThresholds",
    "convert_to_sprite",
    "process_source",
    "validate_bytes",
    "validate_sprite",
]
