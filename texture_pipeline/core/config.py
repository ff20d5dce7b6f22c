"""Configuration module for the texture map pipeline."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

LOGGER = logging.getLogger("texture_pipeline.config")

BASE_DIR = Path(__file__).resolve().parent.parent

PATH_INPUT = BASE_DIR / "input"
PATH_OUTPUT = BASE_DIR / "maps"

EXPORT_FORMAT = "png"
BUNDLE_ZIP = False
INCLUDE_BASECOLOR = False
THREADS = 4

MAP_NAMES = ("normal", "roughness", "displacement", "ao")

# Strengths a material consumer applies when binding the generated maps.
MATERIAL_DEFAULTS: Dict[str, float] = {
    "base": 1.0,
    "normal": 1.0,
    "roughness": 0.5,
    "displacement": 0.2,
    "ao": 0.5,
    "metalness": 0.0,
}


@dataclass
class PipelineConfig:
    """Runtime configuration for the map synthesis front-end."""

    input_path: Path = PATH_INPUT
    output_path: Path = PATH_OUTPUT
    export_format: str = EXPORT_FORMAT
    bundle_zip: bool = BUNDLE_ZIP
    include_basecolor: bool = INCLUDE_BASECOLOR
    maps: Iterable[str] = MAP_NAMES
    threads: int = THREADS
    kernel_overrides: Dict[str, object] = field(default_factory=dict)
    material: Dict[str, float] = field(default_factory=lambda: dict(MATERIAL_DEFAULTS))
    log_file: Path = BASE_DIR / "processing.log"

    def as_dict(self) -> Dict[str, object]:
        """Return the configuration as a plain dictionary."""

        return {
            "PATH_INPUT": self.input_path,
            "PATH_OUTPUT": self.output_path,
            "EXPORT_FORMAT": self.export_format,
            "BUNDLE_ZIP": self.bundle_zip,
            "INCLUDE_BASECOLOR": self.include_basecolor,
            "MAPS": tuple(self.maps),
            "THREADS": self.threads,
            "KERNEL_OVERRIDES": dict(self.kernel_overrides),
            "MATERIAL": dict(self.material),
            "LOG_FILE": self.log_file,
        }


def build_config(overrides: Optional[Mapping[str, object]] = None) -> Dict[str, object]:
    """Return the default configuration with *overrides* layered on top.

    Keys the pipeline does not know are logged and dropped.
    """

    resolved = PipelineConfig().as_dict()
    overrides = dict(overrides or {})
    unknown = sorted(set(overrides) - set(resolved))
    if unknown:
        LOGGER.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
    resolved.update((key, value) for key, value in overrides.items() if key in resolved)
    return resolved
