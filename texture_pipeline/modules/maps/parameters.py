"""Kernel parameters for the map transforms."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Mapping, Tuple

from texture_pipeline.core.sampler import BLUR_KERNELS

SOBEL_X: Tuple[int, ...] = (-1, 0, 1, -2, 0, 2, -1, 0, 1)
SOBEL_Y: Tuple[int, ...] = (-1, -2, -1, 0, 0, 0, 1, 2, 1)


@dataclass(frozen=True)
class NormalParameters:
    sobel_x: Tuple[int, ...] = SOBEL_X
    sobel_y: Tuple[int, ...] = SOBEL_Y
    z_base: float = 40000.0
    gradient_scale: float = 3.0
    # Numerator of the blue channel; sqrt(z_base) keeps flat areas at full blue.
    flat_z: float = 200.0

    def __post_init__(self) -> None:
        if len(self.sobel_x) != 9 or len(self.sobel_y) != 9:
            raise ValueError("Sobel kernels must hold 9 weights")
        if self.z_base <= 0:
            raise ValueError(f"z_base must be positive, got {self.z_base}")


@dataclass(frozen=True)
class RoughnessParameters:
    radius: int = 1
    variance_divisor: float = 16.0
    variance_weight: float = 0.6
    brightness_weight: float = 0.4

    def __post_init__(self) -> None:
        if self.radius < 0:
            raise ValueError(f"radius must be >= 0, got {self.radius}")
        if self.variance_divisor <= 0:
            raise ValueError(f"variance_divisor must be positive, got {self.variance_divisor}")


@dataclass(frozen=True)
class DisplacementParameters:
    luma_weights: Tuple[float, float, float] = (0.299, 0.587, 0.114)
    contrast: float = 1.2
    midpoint: float = 128.0


@dataclass(frozen=True)
class OcclusionParameters:
    blur_radius: float = 2.0
    blur_kernel: str = "gaussian"
    radius: int = 2
    occlusion_scale: float = 1.5
    occlusion_weight: float = 0.7
    brightness_weight: float = 0.3
    contrast: float = 1.2
    midpoint: float = 128.0
    floor: float = 100.0

    def __post_init__(self) -> None:
        if self.blur_kernel not in BLUR_KERNELS:
            raise ValueError(f"Unsupported blur kernel {self.blur_kernel!r}; expected one of {BLUR_KERNELS}")
        if self.blur_radius < 0:
            raise ValueError(f"blur_radius must be >= 0, got {self.blur_radius}")
        if self.radius < 1:
            raise ValueError(f"radius must be >= 1, got {self.radius}")


@dataclass(frozen=True)
class KernelParameters:
    """Bundle of the per-transform parameters, keyed like the map names."""

    normal: NormalParameters = field(default_factory=NormalParameters)
    roughness: RoughnessParameters = field(default_factory=RoughnessParameters)
    displacement: DisplacementParameters = field(default_factory=DisplacementParameters)
    ao: OcclusionParameters = field(default_factory=OcclusionParameters)

    def with_overrides(self, overrides: Mapping[str, object]) -> "KernelParameters":
        """Return a copy with dotted overrides such as ``{"ao.blur_radius": 3.0}``."""

        groups = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in overrides.items():
            group_name, _, attribute = key.partition(".")
            group = groups.get(group_name)
            if group is None or attribute not in {f.name for f in fields(group)}:
                raise KeyError(f"Unknown kernel parameter {key!r}")
            groups[group_name] = replace(group, **{attribute: value})
        return KernelParameters(**groups)


DEFAULT_PARAMETERS = KernelParameters()

__all__ = [
    "DEFAULT_PARAMETERS",
    "DisplacementParameters",
    "KernelParameters",
    "NormalParameters",
    "OcclusionParameters",
    "RoughnessParameters",
    "SOBEL_X",
    "SOBEL_Y",
]
