"""Approximate ambient occlusion from local divergence of a blurred copy."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from texture_pipeline.core.raster import RasterBuffer
from texture_pipeline.core.sampler import NeighborhoodSampler, grayscale_buffer, separable_blur

from .parameters import OcclusionParameters

LOGGER = logging.getLogger("texture_pipeline.maps.ao")


def mean_abs_difference(sampler: NeighborhoodSampler, radius: int = 2) -> np.ndarray:
    """Average ``|sample - centre|`` over the window, centre excluded."""

    center = sampler.luminance_field()
    total = np.zeros_like(center)
    count = 0
    for _, _, field in sampler.window(radius, include_center=False):
        total += np.abs(field - center)
        count += 1
    if count == 0:
        return total
    return total / count


def generate(buffer: RasterBuffer, params: Optional[OcclusionParameters] = None) -> RasterBuffer:
    """Create a soft ambient occlusion approximation.

    Crevices are detected as places where the blurred image still varies
    strongly across a 5x5 window. The result is blended with inverted
    brightness and contrast-stretched; values never drop below ``floor``.
    """

    params = params or OcclusionParameters()
    blurred = separable_blur(buffer, params.blur_radius, params.blur_kernel)
    avg_diff = mean_abs_difference(NeighborhoodSampler(blurred), params.radius)
    brightness = NeighborhoodSampler(buffer).luminance_field()

    ao = 255.0 - avg_diff * params.occlusion_scale
    ao = params.occlusion_weight * ao + (255.0 - brightness) * params.brightness_weight
    ao = np.clip(ao, 0.0, 255.0)
    ao = np.clip((ao - params.midpoint) * params.contrast + params.midpoint, params.floor, 255.0)
    LOGGER.debug("AO map generated for %sx%s", buffer.width, buffer.height)
    return grayscale_buffer(ao)


if __name__ == "__main__":  # pragma: no cover
    sample = RasterBuffer.filled(16, 16, (40, 80, 120, 255))
    generate(sample).to_image().show()
