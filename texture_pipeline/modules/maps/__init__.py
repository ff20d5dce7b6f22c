"""Texture map synthesis from a single diffuse image."""
from __future__ import annotations

from .parameters import DEFAULT_PARAMETERS, KernelParameters
from .pipeline import MAP_NAMES, MapSet, generate_maps, synthesize, synthesize_image

__all__ = [
    "DEFAULT_PARAMETERS",
    "KernelParameters",
    "MAP_NAMES",
    "MapSet",
    "generate_maps",
    "synthesize",
    "synthesize_image",
]
