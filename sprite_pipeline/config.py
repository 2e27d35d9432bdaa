"""Pipeline configuration: stage tunables, validator thresholds, presets."""

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# Output geometry
# ---------------------------------------------------------------------------
TARGET_SIZE: Tuple[int, int] = (64, 64)

# alpha strictly above this counts as content for cropping
OPACITY_THRESHOLD = 127
CROP_PADDING_RATIO = 0.05


# ---------------------------------------------------------------------------
# Colour reduction
# ---------------------------------------------------------------------------
# 15 leaves one slot under the validator cap for the outline colour
PALETTE_SIZE = 15
TONE_FLATTEN_THRESHOLD = 60
MERGE_SNAP_DISTANCE = 20
ISLAND_DISTANCE = 25

# background halo: bright AND grey
BACKGROUND_BRIGHTNESS = 140
BACKGROUND_CHROMA = 40

OUTLINE_THICKNESS = 1
OUTLINE_COLOR: Tuple[int, int, int] = (0, 0, 0)


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------
VALIDATOR_ALPHA = 128
MIN_TRANSPARENCY = 0.30
MAX_COLORS = 16
SHADING_BAND: Tuple[float, float] = (15.0, 60.0)
MAX_SHADING_RATIO = 0.05
MAX_CENTER_OFFSET = 0.20
FILL_RATIO_BAND: Tuple[float, float] = (0.30, 0.90)


class Preset(str, Enum):
    STANDARD = "standard"
    ULTRA_FLAT = "ultra_flat"      # aggressive tone merge + despeckle
    BOLD_OUTLINE = "bold_outline"  # 2px border for small prints


@dataclass
class ValidatorThresholds:
    """Pass/fail limits used by the sprite validator."""
    alpha_threshold: int = VALIDATOR_ALPHA          # opaque iff alpha >= this
    min_transparency: float = MIN_TRANSPARENCY      # strict lower bound
    max_colors: int = MAX_COLORS                    # inclusive
    shading_band: Tuple[float, float] = SHADING_BAND  # open interval
    max_shading_ratio: float = MAX_SHADING_RATIO    # of total pixels
    max_center_offset: float = MAX_CENTER_OFFSET    # fraction of width
    fill_ratio_band: Tuple[float, float] = FILL_RATIO_BAND  # open interval

    @classmethod
    def from_dict(cls, d: dict) -> "ValidatorThresholds":
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown validator thresholds: {sorted(unknown)}")
        kwargs = dict(d)
        for key in ("shading_band", "fill_ratio_band"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        return cls(**kwargs)


@dataclass
class PipelineConfig:
    """Every tunable of the sprite conversion pipeline."""
    target_size: Tuple[int, int] = TARGET_SIZE      # (width, height)
    opacity_threshold: int = OPACITY_THRESHOLD
    crop_padding_ratio: float = CROP_PADDING_RATIO

    remove_background: bool = True
    background_brightness: float = BACKGROUND_BRIGHTNESS
    background_chroma: int = BACKGROUND_CHROMA

    despeckle_alpha: bool = True
    palette_size: int = PALETTE_SIZE
    palette_merge_tolerance: Optional[float] = None  # None disables

    tone_flatten_threshold: int = TONE_FLATTEN_THRESHOLD
    merge_snap_distance: int = MERGE_SNAP_DISTANCE
    island_distance: int = ISLAND_DISTANCE

    outline_thickness: int = OUTLINE_THICKNESS      # 0 disables
    outline_color: Tuple[int, int, int] = OUTLINE_COLOR

    validator: ValidatorThresholds = field(default_factory=ValidatorThresholds)

    def __post_init__(self):
        if len(self.target_size) != 2 or min(self.target_size) < 1:
            raise ValueError(f"target_size must be two positive ints, got {self.target_size}")
        if self.palette_size < 1:
            raise ValueError(f"palette_size must be >= 1, got {self.palette_size}")
        if self.outline_thickness < 0:
            raise ValueError(f"outline_thickness must be >= 0, got {self.outline_thickness}")
        if not 0.0 <= self.crop_padding_ratio < 1.0:
            raise ValueError(f"crop_padding_ratio out of range: {self.crop_padding_ratio}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict, base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        """Overlay a plain dict (e.g. parsed JSON) onto ``base``."""
        base = base or cls()
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown pipeline options: {sorted(unknown)}")
        kwargs = dict(d)
        for key in ("target_size", "outline_color"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        if "validator" in kwargs and isinstance(kwargs["validator"], dict):
            kwargs["validator"] = ValidatorThresholds.from_dict(kwargs["validator"])
        return replace(base, **kwargs)

    @classmethod
    def from_preset(cls, name) -> "PipelineConfig":
        preset = Preset(name)
        return cls.from_dict(PRESETS[preset])


PRESETS: Dict[Preset, dict] = {
    Preset.STANDARD: {},
    Preset.ULTRA_FLAT: {
        "palette_size": 12,
        "palette_merge_tolerance": 80.0,
        "tone_flatten_threshold": 80,
    },
    Preset.BOLD_OUTLINE: {
        "palette_size": 14,
        "outline_thickness": 2,
    },
}
