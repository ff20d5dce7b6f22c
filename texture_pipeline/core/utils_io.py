"""Decoding and export helpers for generated texture maps."""
from __future__ import annotations

import io
import json
import logging
import os
import threading
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from PIL import Image

from .raster import RasterBuffer

LOGGER = logging.getLogger("texture_pipeline.io")

# name -> (Pillow format, file extension)
EXPORT_FORMATS: Dict[str, Tuple[str, str]] = {
    "png": ("PNG", "png"),
    "webp": ("WEBP", "webp"),
    "jpeg": ("JPEG", "jpg"),
}
JPEG_QUALITY = 90

# Channel precision of these maps does not survive lossy encoding.
LOSSLESS_MAPS = frozenset({"normal", "displacement"})

# Name of the untouched source image in exports.
BASECOLOR = "basecolor"

COMPRESSION_RATIOS: Dict[str, float] = {
    "png": 0.8,
    "webp": 0.4,
    "jpeg": 0.2,
}

LOCK_TIMEOUT = 10.0
LOCK_POLL_INTERVAL = 0.05

_THREAD_LOCKS: Dict[Path, threading.Lock] = {}
_THREAD_LOCKS_GUARD = threading.Lock()


def load_raster(path: Path | str) -> RasterBuffer:
    """Decode an image file into a top-down RGBA8 buffer."""

    with Image.open(path) as image:
        image.load()
        buffer = RasterBuffer.from_image(image)
    LOGGER.debug("Decoded %s (%sx%s)", path, buffer.width, buffer.height)
    return buffer


def decode_raster(data: bytes) -> RasterBuffer:
    """Decode encoded image bytes (PNG, JPEG, WebP, ...) into a buffer."""

    with Image.open(io.BytesIO(data)) as image:
        image.load()
        return RasterBuffer.from_image(image)


def resolve_format(map_name: str, fmt: str) -> str:
    """Return the format actually used to store *map_name*.

    JPEG requests for maps in :data:`LOSSLESS_MAPS` are downgraded to PNG.
    """

    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format {fmt!r}; expected one of {tuple(EXPORT_FORMATS)}")
    if map_name in LOSSLESS_MAPS and fmt == "jpeg":
        return "png"
    return fmt


def encode_map(raster: RasterBuffer, map_name: str, fmt: str = "png") -> Tuple[bytes, str]:
    """Encode *raster* and return ``(payload, extension)``."""

    resolved = resolve_format(map_name, fmt)
    pil_format, extension = EXPORT_FORMATS[resolved]
    image = raster.to_image()
    options: Dict[str, object] = {}
    if resolved == "jpeg":
        image = image.convert("RGB")
        options["quality"] = JPEG_QUALITY
    elif resolved == "webp" and map_name in LOSSLESS_MAPS:
        options["lossless"] = True
    stream = io.BytesIO()
    image.save(stream, format=pil_format, **options)
    return stream.getvalue(), extension


def estimate_file_size(raster: RasterBuffer, fmt: str = "png") -> str:
    """Rough encoded size of *raster* for display purposes."""

    if fmt not in COMPRESSION_RATIOS:
        raise ValueError(f"Unsupported export format {fmt!r}")
    estimated = raster.width * raster.height * 4 * COMPRESSION_RATIOS[fmt]
    if estimated > 1024 * 1024:
        return f"{estimated / (1024 * 1024):.2f} MB"
    return f"{estimated / 1024:.2f} KB"


def map_filename(base_name: str, map_name: str, extension: str) -> str:
    return f"{base_name}_{map_name}.{extension}"


def _thread_lock_for(target: Path) -> threading.Lock:
    with _THREAD_LOCKS_GUARD:
        return _THREAD_LOCKS.setdefault(target, threading.Lock())


@contextmanager
def exclusive_write(destination: Path, timeout: float = LOCK_TIMEOUT) -> Iterator[None]:
    """Hold ``<destination>.lock`` for the duration of a write.

    The marker file guards against other processes, the registry lock
    against other threads. Both waits give up after *timeout* seconds with
    :class:`TimeoutError`; a marker left behind by a crashed run has to be
    removed by hand.
    """

    marker = destination.with_name(destination.name + ".lock")
    thread_lock = _thread_lock_for(marker)
    if not thread_lock.acquire(timeout=timeout):
        raise TimeoutError(f"Timed out waiting for another thread writing {destination}")
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                os.close(os.open(marker, os.O_CREAT | os.O_EXCL | os.O_WRONLY))
                break
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise TimeoutError(
                        f"Lock file {marker} still present after {timeout:.1f}s; remove it if no export is running"
                    ) from None
                time.sleep(LOCK_POLL_INTERVAL)
        try:
            yield
        finally:
            marker.unlink(missing_ok=True)
    finally:
        thread_lock.release()


class SafeFileManager:
    """Write export payloads atomically below one output directory."""

    def __init__(self, base_dir: Path, *, lock_timeout: float = LOCK_TIMEOUT) -> None:
        self.base_dir = Path(base_dir)
        self.lock_timeout = lock_timeout
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def atomic_write(self, payload: bytes, name: Path | str) -> Path:
        """Write *payload* next to its destination, then rename it into place."""

        destination = self.base_dir / name
        destination.parent.mkdir(parents=True, exist_ok=True)
        staging = destination.with_name(f".{destination.name}.tmp")
        with exclusive_write(destination, self.lock_timeout):
            try:
                staging.write_bytes(payload)
                os.replace(staging, destination)
            finally:
                staging.unlink(missing_ok=True)
        return destination

    def atomic_save(self, raster: RasterBuffer, name: Path | str, *, map_name: str, fmt: str = "png") -> Path:
        """Encode *raster* with the export policy and save it atomically."""

        payload, _ = encode_map(raster, map_name, fmt)
        return self.atomic_write(payload, name)


def _export_entries(
    maps: Mapping[str, RasterBuffer], basecolor: Optional[RasterBuffer]
) -> Dict[str, RasterBuffer]:
    entries: Dict[str, RasterBuffer] = {}
    if basecolor is not None:
        entries[BASECOLOR] = basecolor
    entries.update(maps)
    if not entries:
        raise ValueError("select at least one map to export")
    return entries


def export_maps(
    maps: Mapping[str, RasterBuffer],
    output_dir: Path | str,
    base_name: str,
    fmt: str = "png",
    *,
    basecolor: Optional[RasterBuffer] = None,
    lock_timeout: float = LOCK_TIMEOUT,
) -> List[Path]:
    """Write every map as ``<base>_<map>.<ext>`` into *output_dir*.

    *basecolor* is the untouched source image; it is written as
    ``<base>_basecolor.<ext>`` and may use any requested format.
    """

    manager = SafeFileManager(Path(output_dir), lock_timeout=lock_timeout)
    written: List[Path] = []
    for map_name, raster in _export_entries(maps, basecolor).items():
        _, extension = EXPORT_FORMATS[resolve_format(map_name, fmt)]
        target = manager.atomic_save(raster, map_filename(base_name, map_name, extension), map_name=map_name, fmt=fmt)
        LOGGER.info("Saved %s map -> %s", map_name, target)
        written.append(target)
    return written


def export_zip(
    maps: Mapping[str, RasterBuffer],
    zip_path: Path | str,
    base_name: str,
    fmt: str = "png",
    material: Optional[Mapping[str, float]] = None,
    *,
    basecolor: Optional[RasterBuffer] = None,
    lock_timeout: float = LOCK_TIMEOUT,
) -> Path:
    """Bundle the maps, the optional base colour and a material manifest."""

    entries: Dict[str, str] = {}
    archive = io.BytesIO()
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for map_name, raster in _export_entries(maps, basecolor).items():
            payload, extension = encode_map(raster, map_name, fmt)
            filename = map_filename(base_name, map_name, extension)
            bundle.writestr(filename, payload)
            entries[map_name] = filename
        manifest = {
            "name": base_name,
            "format": fmt,
            "maps": entries,
            "material": dict(material or {}),
        }
        bundle.writestr(f"{base_name}_material.json", json.dumps(manifest, indent=2, sort_keys=True))

    target = Path(zip_path).resolve()
    manager = SafeFileManager(target.parent, lock_timeout=lock_timeout)
    destination = manager.atomic_write(archive.getvalue(), target.name)
    LOGGER.info("%s texture maps exported to %s as %s", len(entries), destination, fmt.upper())
    return destination
