"""Orchestration of the four texture map transforms."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from PIL import Image

from texture_pipeline.core.config import MAP_NAMES
from texture_pipeline.core.raster import InvalidInput, RasterBuffer
from texture_pipeline.core.utils_parallel import run_parallel

from . import ambient_occlusion, displacement_map, normal_map, roughness_map
from .parameters import DEFAULT_PARAMETERS, KernelParameters

LOGGER = logging.getLogger("texture_pipeline.maps.pipeline")

_GENERATORS: Dict[str, Callable[..., RasterBuffer]] = {
    "normal": normal_map.generate,
    "roughness": roughness_map.generate,
    "displacement": displacement_map.generate,
    "ao": ambient_occlusion.generate,
}


@dataclass(frozen=True)
class MapSet:
    """The four maps synthesised from one input buffer."""

    normal: RasterBuffer
    roughness: RasterBuffer
    displacement: RasterBuffer
    ao: RasterBuffer

    def as_dict(self) -> Dict[str, RasterBuffer]:
        return {name: getattr(self, name) for name in MAP_NAMES}

    def items(self) -> Iterator[Tuple[str, RasterBuffer]]:
        return iter(self.as_dict().items())


def validate_input(buffer: object) -> RasterBuffer:
    """Reject anything the transforms cannot process."""

    if not isinstance(buffer, RasterBuffer):
        raise InvalidInput(f"Expected a RasterBuffer, got {type(buffer).__name__}")
    if buffer.is_empty:
        raise InvalidInput(f"Cannot synthesize maps from a {buffer.width}x{buffer.height} buffer")
    return buffer


def _resolve_names(names: Iterable[str]) -> Tuple[str, ...]:
    resolved = []
    for name in names:
        if name not in _GENERATORS:
            raise InvalidInput(f"Unknown map {name!r}; expected one of {MAP_NAMES}")
        if name not in resolved:
            resolved.append(name)
    return tuple(resolved)


def generate_maps(
    buffer: RasterBuffer,
    names: Iterable[str] = MAP_NAMES,
    params: Optional[KernelParameters] = None,
    *,
    max_workers: Optional[int] = None,
) -> Dict[str, RasterBuffer]:
    """Run the requested transforms and return them keyed by map name."""

    buffer = validate_input(buffer)
    selected = _resolve_names(names)
    params = params or DEFAULT_PARAMETERS

    def _run(name: str) -> RasterBuffer:
        start = time.perf_counter()
        result = _GENERATORS[name](buffer, getattr(params, name))
        LOGGER.debug("%s map finished in %.3fs", name, time.perf_counter() - start)
        return result

    LOGGER.info(
        "Synthesizing %s from %sx%s input (workers=%s)",
        ", ".join(selected),
        buffer.width,
        buffer.height,
        max_workers or 1,
    )
    if max_workers is not None and max_workers > 1 and len(selected) > 1:
        results = run_parallel(_run, selected, max_workers=max_workers)
    else:
        results = [_run(name) for name in selected]
    return dict(zip(selected, results))


def synthesize(
    buffer: RasterBuffer,
    params: Optional[KernelParameters] = None,
    *,
    max_workers: Optional[int] = None,
) -> MapSet:
    """Produce the normal, roughness, displacement and AO maps of ``buffer``.

    Raises :class:`InvalidInput` before any transform runs when ``buffer`` has
    zero area.
    """

    maps = generate_maps(buffer, MAP_NAMES, params, max_workers=max_workers)
    return MapSet(**maps)


def synthesize_image(
    image: Image.Image,
    params: Optional[KernelParameters] = None,
    *,
    max_workers: Optional[int] = None,
) -> MapSet:
    """Convenience wrapper accepting a Pillow image."""

    return synthesize(RasterBuffer.from_image(image), params, max_workers=max_workers)


__all__ = [
    "MAP_NAMES",
    "MapSet",
    "generate_maps",
    "synthesize",
    "synthesize_image",
    "validate_input",
]
