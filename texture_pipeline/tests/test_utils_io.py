"""Tests for decoding and exporting texture maps."""
from __future__ import annotations

import io
import json
import time
import zipfile

import pytest

np = pytest.importorskip("numpy")
from PIL import Image, features

from texture_pipeline.core.raster import RasterBuffer
from texture_pipeline.core.utils_io import (
    decode_raster,
    encode_map,
    estimate_file_size,
    export_maps,
    export_zip,
    load_raster,
    resolve_format,
)


def _gradient(width: int = 8, height: int = 6) -> RasterBuffer:
    xs = np.linspace(0, 255, width, dtype=np.float32)[None, :].repeat(height, axis=0)
    gray = xs.astype(np.uint8)
    rgba = np.dstack([gray, 255 - gray, gray // 2, np.full_like(gray, 255)])
    return RasterBuffer.from_array(rgba)


def test_lossless_maps_never_use_jpeg() -> None:
    assert resolve_format("normal", "jpeg") == "png"
    assert resolve_format("displacement", "jpeg") == "png"
    assert resolve_format("ao", "jpeg") == "jpeg"
    assert resolve_format("normal", "webp") == "webp"


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(ValueError):
        resolve_format("ao", "tiff")


def test_encode_map_applies_policy() -> None:
    raster = _gradient()
    payload, extension = encode_map(raster, "normal", "jpeg")
    assert extension == "png"
    assert payload.startswith(b"\x89PNG")
    assert decode_raster(payload) == raster

    payload, extension = encode_map(raster, "roughness", "jpeg")
    assert extension == "jpg"
    assert Image.open(io.BytesIO(payload)).format == "JPEG"


@pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")
def test_webp_is_lossless_for_normal_maps() -> None:
    raster = _gradient()
    payload, extension = encode_map(raster, "normal", "webp")
    assert extension == "webp"
    assert decode_raster(payload) == raster


def test_estimate_file_size_units() -> None:
    assert estimate_file_size(RasterBuffer.filled(256, 256, (0, 0, 0, 255)), "png") == "204.80 KB"
    assert estimate_file_size(RasterBuffer.filled(1024, 1024, (0, 0, 0, 255)), "png") == "3.20 MB"
    assert estimate_file_size(RasterBuffer.filled(256, 256, (0, 0, 0, 255)), "jpeg") == "51.20 KB"


def test_load_raster_normalizes_to_rgba(tmp_path) -> None:
    path = tmp_path / "diffuse.png"
    Image.new("RGB", (4, 3), (12, 34, 56)).save(path)
    raster = load_raster(path)
    assert raster.size == (4, 3)
    assert raster.pixel(3, 2) == (12, 34, 56, 255)


def test_export_maps_writes_named_files(tmp_path) -> None:
    maps = {"normal": _gradient(), "ao": RasterBuffer.filled(8, 6, (150, 150, 150, 255))}
    written = export_maps(maps, tmp_path / "out", "brick", "jpeg")
    names = sorted(path.name for path in written)
    assert names == ["brick_ao.jpg", "brick_normal.png"]
    assert load_raster(tmp_path / "out" / "brick_normal.png") == maps["normal"]
    assert sorted(entry.name for entry in (tmp_path / "out").iterdir()) == names


def test_export_zip_bundles_maps_and_manifest(tmp_path) -> None:
    maps = {"roughness": _gradient(), "displacement": _gradient()}
    target = export_zip(maps, tmp_path / "brick_maps.zip", "brick", "jpeg", {"roughness": 0.5})
    assert target.exists()
    with zipfile.ZipFile(target) as bundle:
        names = set(bundle.namelist())
        manifest = json.loads(bundle.read("brick_material.json"))
    assert names == {"brick_roughness.jpg", "brick_displacement.png", "brick_material.json"}
    assert manifest["maps"] == {"roughness": "brick_roughness.jpg", "displacement": "brick_displacement.png"}
    assert manifest["material"] == {"roughness": 0.5}


def test_empty_selection_is_rejected(tmp_path) -> None:
    with pytest.raises(ValueError, match="at least one map"):
        export_zip({}, tmp_path / "empty.zip", "empty")
    with pytest.raises(ValueError, match="at least one map"):
        export_maps({}, tmp_path, "empty")


def test_stale_lock_file_fails_in_bounded_time(tmp_path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "brick_ao.png.lock").touch()
    maps = {"ao": RasterBuffer.filled(4, 4, (150, 150, 150, 255))}
    started = time.monotonic()
    with pytest.raises(OSError, match="still present"):
        export_maps(maps, out, "brick", lock_timeout=0.2)
    assert time.monotonic() - started < 5.0
    assert not (out / "brick_ao.png").exists()
    assert (out / "brick_ao.png.lock").exists()


def test_lock_released_after_export(tmp_path) -> None:
    maps = {"ao": RasterBuffer.filled(4, 4, (150, 150, 150, 255))}
    export_maps(maps, tmp_path, "brick", lock_timeout=0.2)
    export_maps(maps, tmp_path, "brick", lock_timeout=0.2)
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["brick_ao.png"]


def test_export_zip_includes_base_colour(tmp_path) -> None:
    diffuse = _gradient()
    maps = {"normal": _gradient(), "ao": RasterBuffer.filled(8, 6, (150, 150, 150, 255))}
    target = export_zip(maps, tmp_path / "brick_maps.zip", "brick", "jpeg", {"base": 1.0}, basecolor=diffuse)
    with zipfile.ZipFile(target) as bundle:
        names = set(bundle.namelist())
        manifest = json.loads(bundle.read("brick_material.json"))
        payload = bundle.read("brick_basecolor.jpg")
    assert names == {"brick_basecolor.jpg", "brick_normal.png", "brick_ao.jpg", "brick_material.json"}
    assert manifest["maps"]["basecolor"] == "brick_basecolor.jpg"
    assert Image.open(io.BytesIO(payload)).size == (8, 6)
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["brick_maps.zip"]


def test_export_maps_writes_untouched_base_colour(tmp_path) -> None:
    diffuse = _gradient()
    written = export_maps({}, tmp_path, "brick", "png", basecolor=diffuse)
    assert [path.name for path in written] == ["brick_basecolor.png"]
    assert load_raster(written[0]) == diffuse
