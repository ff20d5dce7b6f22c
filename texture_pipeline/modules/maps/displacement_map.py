"""Generate displacement maps from contrast-stretched weighted luminance."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from texture_pipeline.core.raster import RasterBuffer
from texture_pipeline.core.sampler import grayscale_buffer

from .parameters import DisplacementParameters

LOGGER = logging.getLogger("texture_pipeline.maps.displacement")


def weighted_gray(buffer: RasterBuffer, weights=(0.299, 0.587, 0.114)) -> np.ndarray:
    """Weighted luminance rounded half up to whole levels."""

    rgb = buffer.samples[..., :3].astype(np.float64)
    gray = weights[0] * rgb[..., 0] + weights[1] * rgb[..., 1] + weights[2] * rgb[..., 2]
    return np.floor(gray + 0.5)


def generate(buffer: RasterBuffer, params: Optional[DisplacementParameters] = None) -> RasterBuffer:
    """Convert ``buffer`` to a height-like grayscale with a contrast boost."""

    params = params or DisplacementParameters()
    gray = weighted_gray(buffer, params.luma_weights)
    stretched = np.clip((gray - params.midpoint) * params.contrast + params.midpoint, 0.0, 255.0)
    LOGGER.debug("Displacement map generated for %sx%s", buffer.width, buffer.height)
    return grayscale_buffer(stretched)


if __name__ == "__main__":  # pragma: no cover
    sample = RasterBuffer.filled(16, 16, (40, 80, 120, 255))
    generate(sample).to_image().show()
