"""Batch command line interface for the sprite pipeline.

Usage:
    python -m sprite_pipeline.cli convert  <inputs...> -o <output>  [--preset standard|ultra_flat|bold_outline]
    python -m sprite_pipeline.cli validate <inputs...>              [--json]

Subcommands:
  convert   Turn generated images into validated sprites, plus a CSV report
  validate  Run the printability checks on existing sprites
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import PipelineConfig, Preset
from .errors import SourceError, SpritePipelineError
from .pipeline import convert_to_sprite
from .qc_visual import save_qc_image
from .sources import load_image, save_png
from .validator import CHECK_NAMES, ValidationResult, validate_sprite

logger = logging.getLogger("sprite_pipeline")

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp", ".tif", ".tiff"}

REPORT_FIELDS = [
    "image",
    "passed",
    *CHECK_NAMES,
    "component_count",
    "transparency_ratio",
    "color_count",
    "shading_pairs",
    "center_offset",
    "fill_ratio",
    "palette",
    "output_path",
    "error",
]


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _gather_images(inputs: Sequence[str], recursive: bool = False) -> List[Path]:
    """Collect image paths from file/directory arguments, de-duplicated."""
    seen = set()
    paths: List[Path] = []
    for inp in inputs:
        p = Path(inp)
        candidates: Iterable[Path]
        if p.is_file():
            candidates = [p]
        elif p.is_dir():
            candidates = p.rglob("*") if recursive else p.iterdir()
        else:
            logger.warning("Input path not found: %s", p)
            continue
        for c in candidates:
            if not c.is_file() or c.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            resolved = c.resolve()
            if resolved not in seen:
                seen.add(resolved)
                paths.append(resolved)
    paths.sort()
    return paths


def _build_config(args) -> PipelineConfig:
    cfg = PipelineConfig.from_preset(args.preset)
    if args.config:
        overrides = json.loads(Path(args.config).read_text())
        cfg = PipelineConfig.from_dict(overrides, base=cfg)
    cli_overrides = {}
    if args.palette_size is not None:
        cli_overrides["palette_size"] = args.palette_size
    if args.outline is not None:
        cli_overrides["outline_thickness"] = args.outline
    if args.size is not None:
        cli_overrides["target_size"] = (args.size, args.size)
    if args.keep_background:
        cli_overrides["remove_background"] = False
    if cli_overrides:
        cfg = PipelineConfig.from_dict(cli_overrides, base=cfg)
    return cfg


def _report_row(name: str, validation: ValidationResult) -> dict:
    row = {"image": name, "passed": "yes" if validation.passed else "no"}
    for check in CHECK_NAMES:
        row[check] = "pass" if validation.checks[check].passed else "fail"
    metrics = {
        "component_count": validation.single_character.metric,
        "transparency_ratio": validation.transparent_background.metric,
        "color_count": validation.limited_colors.metric,
        "shading_pairs": validation.no_shading.metric,
        "center_offset": validation.centered_sprite.metric,
        "fill_ratio": validation.readable_silhouette.metric,
    }
    for key, value in metrics.items():
        row[key] = round(value, 4) if isinstance(value, float) else ("" if value is None else value)
    return row


def _write_report(rows: List[dict], path: Path) -> None:
    with path.open("w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=REPORT_FIELDS, restval="")
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Report written to %s", path)


# ---- Subcommand: convert ----

def cmd_convert(args) -> int:
    images = _gather_images(args.inputs, recursive=args.recursive)
    if not images:
        logger.error("No images found in %s", args.inputs)
        return 1

    try:
        cfg = _build_config(args)
    except (OSError, TypeError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Found %d image(s) to convert -> %s", len(images), output_dir)

    rows: List[dict] = []
    failures = 0
    for img_path in images:
        try:
            source = load_image(img_path)
            result = convert_to_sprite(source, cfg)
        except SpritePipelineError as e:
            logger.error("Failed to convert %s: %s", img_path.name, e)
            rows.append({"image": img_path.name, "passed": "no", "error": str(e)})
            failures += 1
            continue

        out_path = save_png(result.sprite, output_dir / f"{img_path.stem}_sprite.png")
        if args.qc:
            save_qc_image(source, result.sprite, result.validation,
                          output_dir / f"{img_path.stem}_qc.png",
                          source_name=img_path.name)

        row = _report_row(img_path.name, result.validation)
        row["palette"] = " ".join(result.palette.to_hex())
        row["output_path"] = str(out_path)
        rows.append(row)

        status = "OK" if result.passed else "REVIEW"
        logger.info("[%s] %s -> %s (%s)", status, img_path.name, out_path.name,
                    ", ".join(result.validation.failed_checks) or "all checks passed")

    if not args.no_report:
        _write_report(rows, Path(args.report) if args.report else output_dir / "report.csv")

    return 1 if failures else 0


# ---- Subcommand: validate ----

def cmd_validate(args) -> int:
    images = _gather_images(args.inputs, recursive=args.recursive)
    if not images:
        logger.error("No images found in %s", args.inputs)
        return 1

    any_failed = False
    results = {}
    for img_path in images:
        try:
            validation = validate_sprite(load_image(img_path))
        except SourceError as e:
            logger.error("Could not read %s: %s", img_path.name, e)
            any_failed = True
            continue
        any_failed = any_failed or not validation.passed
        results[img_path.name] = validation.to_dict()

        if not args.json:
            print(f"{img_path.name}: {validation.summary}")
            for name, check in validation.checks.items():
                mark = "PASS" if check.passed else "FAIL"
                print(f"  [{mark}] {name}: {check.message}")

    if args.json:
        print(json.dumps(results, indent=2))
    return 1 if any_failed else 0


# ---- Parser ----

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sprite-pipeline",
        description="Convert generated images into validated pixel-art sprites.",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("convert", help="Convert images into sprites.")
    p.add_argument("inputs", nargs="+", help="Image files or directories.")
    p.add_argument("-o", "--output", default="output", help="Output directory.")
    p.add_argument("--preset", choices=[x.value for x in Preset], default=Preset.STANDARD.value)
    p.add_argument("--config", help="JSON file of pipeline overrides.")
    p.add_argument("--palette-size", type=int, help="Maximum palette entries.")
    p.add_argument("--outline", type=int, help="Outline thickness in pixels (0 disables).")
    p.add_argument("--size", type=int, help="Square output size (default 64).")
    p.add_argument("--keep-background", action="store_true",
                   help="Skip bright/grey background removal.")
    p.add_argument("--qc", action="store_true", help="Also write <name>_qc.png panels.")
    p.add_argument("--report", help="CSV report path (default <output>/report.csv).")
    p.add_argument("--no-report", action="store_true", help="Do not write the CSV report.")
    p.add_argument("--recursive", action="store_true", help="Walk directories recursively.")
    p.set_defaults(func=cmd_convert)

    p = sub.add_parser("validate", help="Check existing sprites.")
    p.add_argument("inputs", nargs="+", help="Sprite files or directories.")
    p.add_argument("--json", action="store_true", help="Print results as JSON.")
    p.add_argument("--recursive", action="store_true", help="Walk directories recursively.")
    p.set_defaults(func=cmd_validate)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
