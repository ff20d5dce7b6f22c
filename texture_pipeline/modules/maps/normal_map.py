"""Generate tangent-space normal maps from Sobel gradients of luminance."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from texture_pipeline.core.raster import RasterBuffer
from texture_pipeline.core.sampler import NeighborhoodSampler, quantize

from .parameters import NormalParameters

LOGGER = logging.getLogger("texture_pipeline.maps.normal")


def _convolve3x3(sampler: NeighborhoodSampler, weights) -> np.ndarray:
    result = np.zeros((sampler.height, sampler.width), dtype=np.float64)
    for dx, dy, field in sampler.window(1):
        weight = weights[(dy + 1) * 3 + (dx + 1)]
        if weight:
            result += weight * field
    return result


def gradients(buffer: RasterBuffer, params: Optional[NormalParameters] = None) -> tuple[np.ndarray, np.ndarray]:
    """Return the ``(gx, gy)`` Sobel responses of the unweighted luminance."""

    params = params or NormalParameters()
    sampler = NeighborhoodSampler(buffer)
    return _convolve3x3(sampler, params.sobel_x), _convolve3x3(sampler, params.sobel_y)


def generate(buffer: RasterBuffer, params: Optional[NormalParameters] = None) -> RasterBuffer:
    """Create a normal map from the luminance gradients of ``buffer``.

    The gradient is scaled and negated into ``nx``/``ny``; ``z_base`` is added
    under the square root so ``nz`` is strictly positive for every input. The
    blue channel uses ``flat_z / nz`` which saturates to 255 on flat areas.
    """

    params = params or NormalParameters()
    gx, gy = gradients(buffer, params)

    nx = -(gx * params.gradient_scale)
    ny = -(gy * params.gradient_scale)
    nz = np.sqrt(nx * nx + ny * ny + params.z_base)

    rgba = np.empty((buffer.height, buffer.width, 4), dtype=np.uint8)
    rgba[..., 0] = quantize((nx / nz * 0.5 + 0.5) * 255.0)
    rgba[..., 1] = quantize((ny / nz * 0.5 + 0.5) * 255.0)
    rgba[..., 2] = quantize((params.flat_z / nz * 0.5 + 0.5) * 255.0)
    rgba[..., 3] = 255
    LOGGER.debug("Normal map generated for %sx%s", buffer.width, buffer.height)
    return RasterBuffer(width=buffer.width, height=buffer.height, samples=rgba)


if __name__ == "__main__":  # pragma: no cover - manual smoke test
    sample = RasterBuffer.filled(16, 16, (120, 100, 90, 255))
    generate(sample).to_image().show()
