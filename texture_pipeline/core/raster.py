"""RGBA8 raster buffers shared by every map transform."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from PIL import Image


class InvalidInput(ValueError):
    """Raised when a buffer cannot be fed to the synthesis pipeline."""


@dataclass(frozen=True, eq=False)
class RasterBuffer:
    """A ``width`` x ``height`` grid of RGBA8 samples, row-major and top-down.

    ``samples`` is stored as a read-only ``uint8`` array of shape
    ``(height, width, 4)`` so that transforms can borrow it without copying
    and cannot mutate it by accident.
    """

    width: int
    height: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Negative raster dimensions: {self.width}x{self.height}")
        array = np.asarray(self.samples)
        if array.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Sample array shape {array.shape} does not match {self.width}x{self.height}x4"
            )
        if array.dtype != np.uint8:
            if array.dtype.kind not in "biuf":
                raise ValueError(f"Unsupported sample dtype {array.dtype}")
            if array.dtype.kind == "f" and array.size:
                if not np.all(np.isfinite(array)):
                    raise ValueError("Channel values must be finite")
                if not np.all(array == np.floor(array)):
                    raise ValueError("Channel values must be whole numbers")
            if array.size and (array.min() < 0 or array.max() > 255):
                raise ValueError("Channel values must lie in [0, 255]")
            array = array.astype(np.uint8)
        elif array.flags.writeable:
            array = array.copy()
        array.setflags(write=False)
        object.__setattr__(self, "samples", array)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterBuffer":
        """Wrap an ``(H, W, 4)`` array (copied unless already read-only uint8)."""

        arr = np.asarray(array)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) array, got shape {arr.shape}")
        return cls(width=arr.shape[1], height=arr.shape[0], samples=arr)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes | bytearray | Sequence[int]) -> "RasterBuffer":
        """Build a buffer from row-major RGBA8 bytes."""

        expected = width * height * 4
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}")
        if isinstance(data, (bytes, bytearray)):
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        else:
            flat = np.asarray(data, dtype=np.int64)
        return cls(width=width, height=height, samples=flat.reshape(height, width, 4))

    @classmethod
    def from_image(cls, image: Image.Image) -> "RasterBuffer":
        """Normalize a Pillow image of any mode to an RGBA8 buffer."""

        rgba = image.convert("RGBA")
        return cls.from_array(np.asarray(rgba, dtype=np.uint8))

    @classmethod
    def filled(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> "RasterBuffer":
        array = np.empty((height, width, 4), dtype=np.uint8)
        array[...] = np.asarray(rgba, dtype=np.uint8)
        return cls(width=width, height=height, samples=array)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        r, g, b, a = (int(v) for v in self.samples[y, x])
        return r, g, b, a

    def tobytes(self) -> bytes:
        return self.samples.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.samples), mode="RGBA")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.samples, other.samples)


__all__ = ["InvalidInput", "RasterBuffer"]
