"""Derive roughness from local luminance deviation and inverted brightness."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from texture_pipeline.core.raster import RasterBuffer
from texture_pipeline.core.sampler import NeighborhoodSampler, grayscale_buffer

from .parameters import RoughnessParameters

LOGGER = logging.getLogger("texture_pipeline.maps.roughness")


def local_deviation(sampler: NeighborhoodSampler, radius: int = 1) -> np.ndarray:
    """Root-mean-square difference to the centre over the full window."""

    center = sampler.luminance_field()
    total = np.zeros_like(center)
    count = 0
    for _, _, field in sampler.window(radius):
        diff = field - center
        total += diff * diff
        count += 1
    return np.sqrt(total / count)


def generate(buffer: RasterBuffer, params: Optional[RoughnessParameters] = None) -> RasterBuffer:
    """Create a roughness map; darker and busier regions read as rougher."""

    params = params or RoughnessParameters()
    sampler = NeighborhoodSampler(buffer)
    brightness = sampler.luminance_field()

    variance = local_deviation(sampler, params.radius) / params.variance_divisor
    value = variance * params.variance_weight + ((255.0 - brightness) / 255.0) * params.brightness_weight
    value = np.clip(value, 0.0, 1.0)
    LOGGER.debug("Roughness map generated for %sx%s", buffer.width, buffer.height)
    return grayscale_buffer(value * 255.0)


if __name__ == "__main__":  # pragma: no cover
    sample = RasterBuffer.filled(16, 16, (200, 180, 120, 255))
    generate(sample).to_image().show()
