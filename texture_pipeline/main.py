"""Command line interface for the texture map pipeline."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .core import config
from .core.raster import InvalidInput
from .core.utils_io import EXPORT_FORMATS, estimate_file_size, export_maps, export_zip, load_raster, resolve_format
from .modules.maps.parameters import DEFAULT_PARAMETERS
from .modules.maps.pipeline import MAP_NAMES, generate_maps

LOGGER = logging.getLogger("texture_pipeline.main")


def _configure_logging(log_path: Path) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    file_handler = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logging.basicConfig(level=logging.INFO, handlers=[file_handler, console_handler], force=True)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate normal, roughness, displacement and AO maps from a diffuse texture"
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Diffuse images to process")
    parser.add_argument("--output", type=Path, default=config.PATH_OUTPUT, help="Directory to write generated maps")
    parser.add_argument(
        "--format",
        dest="export_format",
        choices=tuple(EXPORT_FORMATS),
        default=config.EXPORT_FORMAT,
        help="Image format for exported maps (normal/displacement never use JPEG)",
    )
    parser.add_argument("--zip", dest="bundle_zip", action="store_true", help="Bundle the maps of each input in a ZIP")
    parser.add_argument(
        "--basecolor",
        dest="include_basecolor",
        action="store_true",
        help="Also export the untouched source image as <name>_basecolor",
    )
    parser.add_argument(
        "--maps",
        nargs="+",
        choices=MAP_NAMES,
        default=list(MAP_NAMES),
        help="Subset of maps to generate",
    )
    parser.add_argument("--threads", type=int, default=config.THREADS, help="Number of worker threads")
    parser.add_argument(
        "--blur-radius",
        type=float,
        default=DEFAULT_PARAMETERS.ao.blur_radius,
        help="Blur radius in pixels used by the AO estimator",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Log file location")
    return parser.parse_args(argv)


def build_runtime_config(args: argparse.Namespace) -> Dict[str, object]:
    overrides: Dict[str, object] = {
        "PATH_OUTPUT": args.output.resolve(),
        "EXPORT_FORMAT": args.export_format,
        "BUNDLE_ZIP": args.bundle_zip,
        "INCLUDE_BASECOLOR": args.include_basecolor,
        "MAPS": tuple(args.maps),
        "THREADS": args.threads,
    }
    if args.blur_radius != DEFAULT_PARAMETERS.ao.blur_radius:
        overrides["KERNEL_OVERRIDES"] = {"ao.blur_radius": args.blur_radius}
    if args.log_file is not None:
        overrides["LOG_FILE"] = args.log_file.resolve()
    return config.build_config(overrides)


def process_image(path: Path, cfg: Dict[str, object]) -> List[Path]:
    """Synthesize and export the configured maps for one input image."""

    raster = load_raster(path)
    params = DEFAULT_PARAMETERS.with_overrides(cfg["KERNEL_OVERRIDES"])
    maps = generate_maps(raster, cfg["MAPS"], params, max_workers=int(cfg["THREADS"]))
    fmt = str(cfg["EXPORT_FORMAT"])
    for name, buffer in maps.items():
        LOGGER.info("%s map: %sx%s, ~%s", name, buffer.width, buffer.height, estimate_file_size(buffer, resolve_format(name, fmt)))

    output_dir = Path(cfg["PATH_OUTPUT"])
    base_name = path.stem
    basecolor = raster if cfg["INCLUDE_BASECOLOR"] else None
    if cfg["BUNDLE_ZIP"]:
        zip_path = output_dir / f"{base_name}_maps.zip"
        return [export_zip(maps, zip_path, base_name, fmt, cfg["MATERIAL"], basecolor=basecolor)]
    return export_maps(maps, output_dir, base_name, fmt, basecolor=basecolor)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    cfg = build_runtime_config(args)
    _configure_logging(Path(cfg["LOG_FILE"]))
    LOGGER.info(
        "CLI flags resolved -> format=%s, zip=%s, maps=%s",
        args.export_format,
        args.bundle_zip,
        ",".join(args.maps),
    )
    for path in args.inputs:
        try:
            written = process_image(path, cfg)
        except InvalidInput as exc:
            raise SystemExit(f"{path}: {exc}") from exc
        except OSError as exc:
            raise SystemExit(f"Could not process {path}: {exc}") from exc
        LOGGER.info("Finished %s (%s file(s))", path.name, len(written))


if __name__ == "__main__":
    main()
