"""Edge-clamped neighbourhood access shared by every map kernel."""
from __future__ import annotations

import logging
from typing import Iterator, Optional, Tuple

import numpy as np
from scipy import ndimage

from .raster import RasterBuffer

LOGGER = logging.getLogger("texture_pipeline.sampler")

BLUR_KERNELS = ("gaussian", "box")


def clamp_index(value: int, upper: int) -> int:
    """Clamp ``value`` into ``[0, upper - 1]``."""

    return min(max(value, 0), upper - 1)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Unweighted channel mean ``(R + G + B) / 3`` as float64."""

    channels = np.asarray(rgb, dtype=np.float64)
    return (channels[..., 0] + channels[..., 1] + channels[..., 2]) / 3.0


class NeighborhoodSampler:
    """Read-only, edge-clamped view over a :class:`RasterBuffer`.

    Coordinates outside the raster resolve to the nearest in-bounds pixel.
    The scalar accessors serve single lookups, the field accessors serve the
    vectorised kernels; both follow the same clamp policy.
    """

    def __init__(self, buffer: RasterBuffer) -> None:
        self.buffer = buffer
        self._luminance: Optional[np.ndarray] = None
        self._padded: dict[int, np.ndarray] = {}

    @property
    def width(self) -> int:
        return self.buffer.width

    @property
    def height(self) -> int:
        return self.buffer.height

    def clamp(self, x: int, y: int) -> Tuple[int, int]:
        return clamp_index(x, self.width), clamp_index(y, self.height)

    def sample(self, x: int, y: int) -> Tuple[int, int, int, int]:
        cx, cy = self.clamp(x, y)
        return self.buffer.pixel(cx, cy)

    def luminance(self, x: int, y: int) -> float:
        r, g, b, _ = self.sample(x, y)
        return (r + g + b) / 3.0

    def luminance_field(self) -> np.ndarray:
        """Return the ``(H, W)`` unweighted luminance of the whole buffer."""

        if self._luminance is None:
            field = luminance(self.buffer.samples[..., :3])
            field.setflags(write=False)
            self._luminance = field
        return self._luminance

    def _padded_field(self, radius: int) -> np.ndarray:
        padded = self._padded.get(radius)
        if padded is None:
            padded = np.pad(self.luminance_field(), radius, mode="edge")
            self._padded[radius] = padded
        return padded

    def shifted(self, dx: int, dy: int) -> np.ndarray:
        """Luminance field sampled at ``(x + dx, y + dy)`` for every pixel."""

        radius = max(abs(dx), abs(dy))
        if radius == 0:
            return self.luminance_field()
        padded = self._padded_field(radius)
        top = radius + dy
        left = radius + dx
        return padded[top : top + self.height, left : left + self.width]

    def window(self, radius: int, *, include_center: bool = True) -> Iterator[Tuple[int, int, np.ndarray]]:
        """Yield ``(dx, dy, field)`` over a square window, row by row."""

        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                if not include_center and dx == 0 and dy == 0:
                    continue
                yield dx, dy, self.shifted(dx, dy)


def quantize(values: np.ndarray) -> np.ndarray:
    """Round half to even and clamp into ``uint8``."""

    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def grayscale_buffer(values: np.ndarray) -> RasterBuffer:
    """Write a single-channel field into R, G and B with opaque alpha."""

    channel = quantize(values)
    height, width = channel.shape
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[..., 0] = channel
    rgba[..., 1] = channel
    rgba[..., 2] = channel
    rgba[..., 3] = 255
    return RasterBuffer(width=width, height=height, samples=rgba)


def _blur_axis(array: np.ndarray, radius: float, kernel: str, axis: int) -> np.ndarray:
    if kernel == "gaussian":
        return ndimage.gaussian_filter1d(array, sigma=radius, axis=axis, mode="nearest")
    size = 2 * int(round(radius)) + 1
    return ndimage.uniform_filter1d(array, size=size, axis=axis, mode="nearest")


def separable_blur(buffer: RasterBuffer, radius: float = 2.0, kernel: str = "gaussian") -> RasterBuffer:
    """Blur the colour channels with a horizontal then a vertical 1-D pass.

    ``mode="nearest"`` repeats the border sample, which is the same edge
    clamp used by :class:`NeighborhoodSampler`. The result is re-quantised to
    RGBA8 with opaque alpha.
    """

    if kernel not in BLUR_KERNELS:
        raise ValueError(f"Unsupported blur kernel {kernel!r}; expected one of {BLUR_KERNELS}")
    rgb = buffer.samples[..., :3].astype(np.float64)
    if radius <= 0:
        blurred = rgb
    else:
        blurred = _blur_axis(rgb, radius, kernel, axis=1)
        blurred = _blur_axis(blurred, radius, kernel, axis=0)
    LOGGER.debug("Separable %s blur radius=%s on %sx%s", kernel, radius, buffer.width, buffer.height)
    rgba = np.empty((buffer.height, buffer.width, 4), dtype=np.uint8)
    rgba[..., :3] = quantize(blurred)
    rgba[..., 3] = 255
    return RasterBuffer(width=buffer.width, height=buffer.height, samples=rgba)


__all__ = [
    "BLUR_KERNELS",
    "NeighborhoodSampler",
    "clamp_index",
    "grayscale_buffer",
    "luminance",
    "quantize",
    "separable_blur",
]
