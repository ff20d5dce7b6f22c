"""Integration tests for the map synthesis pipeline."""
from __future__ import annotations

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("scipy")
from PIL import Image

from texture_pipeline.core.raster import InvalidInput, RasterBuffer
from texture_pipeline.modules.maps import pipeline
from texture_pipeline.modules.maps.parameters import DEFAULT_PARAMETERS, KernelParameters


@pytest.fixture(scope="module")
def textured() -> RasterBuffer:
    rng = np.random.default_rng(42)
    base = rng.integers(0, 256, size=(7, 9, 4), dtype=np.uint8)
    base[2:5, 3:6, :3] = 20
    return RasterBuffer.from_array(base)


@pytest.fixture(scope="module")
def map_set(textured: RasterBuffer) -> pipeline.MapSet:
    return pipeline.synthesize(textured)


def test_dimensions_are_preserved(textured, map_set) -> None:
    for name, raster in map_set.items():
        assert raster.size == textured.size, name


def test_alpha_is_opaque_everywhere(map_set) -> None:
    for name, raster in map_set.items():
        assert np.all(raster.samples[..., 3] == 255), name


def test_ao_respects_floor(map_set) -> None:
    assert map_set.ao.samples[..., :3].min() >= 100


def test_synthesis_is_deterministic(textured, map_set) -> None:
    again = pipeline.synthesize(textured)
    for name in pipeline.MAP_NAMES:
        assert getattr(again, name).tobytes() == getattr(map_set, name).tobytes()


def test_parallel_run_matches_serial(textured, map_set) -> None:
    parallel = pipeline.synthesize(textured, max_workers=4)
    assert parallel.as_dict() == map_set.as_dict()


def test_input_buffer_is_untouched(textured) -> None:
    before = textured.tobytes()
    pipeline.synthesize(textured, max_workers=2)
    assert textured.tobytes() == before


@pytest.mark.parametrize("width, height", [(0, 5), (5, 0)])
def test_zero_area_is_rejected_before_any_transform(monkeypatch, width, height) -> None:
    def _boom(*_args, **_kwargs):
        raise AssertionError("transform should not run")

    for name in pipeline.MAP_NAMES:
        monkeypatch.setitem(pipeline._GENERATORS, name, _boom)
    with pytest.raises(InvalidInput):
        pipeline.synthesize(RasterBuffer.from_bytes(width, height, b""))


def test_non_buffer_input_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        pipeline.synthesize(Image.new("RGBA", (2, 2)))  # type: ignore[arg-type]


def test_single_pixel_input_produces_all_maps() -> None:
    maps = pipeline.synthesize(RasterBuffer.filled(1, 1, (128, 128, 128, 255)))
    assert maps.normal.pixel(0, 0) == (128, 128, 255, 255)
    assert maps.roughness.pixel(0, 0) == (51, 51, 51, 255)
    assert maps.displacement.pixel(0, 0) == (128, 128, 128, 255)
    assert maps.ao.pixel(0, 0) == (234, 234, 234, 255)


def test_generate_maps_subset_keeps_requested_order(textured) -> None:
    maps = pipeline.generate_maps(textured, ["ao", "normal", "ao"])
    assert list(maps) == ["ao", "normal"]


def test_generate_maps_rejects_unknown_names(textured) -> None:
    with pytest.raises(InvalidInput):
        pipeline.generate_maps(textured, ["metallic"])


def test_worker_failure_propagates(monkeypatch, textured) -> None:
    def _fail(*_args, **_kwargs):
        raise RuntimeError("kernel exploded")

    monkeypatch.setitem(pipeline._GENERATORS, "roughness", _fail)
    with pytest.raises(RuntimeError, match="kernel exploded"):
        pipeline.synthesize(textured, max_workers=4)


def test_parameter_overrides_reach_the_transforms(textured, map_set) -> None:
    params = DEFAULT_PARAMETERS.with_overrides({"displacement.contrast": 1.0})
    maps = pipeline.synthesize(textured, params)
    assert maps.normal == map_set.normal
    assert maps.displacement != map_set.displacement


def test_with_overrides_rejects_unknown_keys() -> None:
    with pytest.raises(KeyError):
        KernelParameters().with_overrides({"ao.sigma": 1.0})
    with pytest.raises(KeyError):
        KernelParameters().with_overrides({"metallic.scale": 1.0})


def test_synthesize_image_accepts_pillow_images() -> None:
    image = Image.new("RGB", (5, 3), (90, 60, 30))
    maps = pipeline.synthesize_image(image)
    assert maps.roughness.size == (5, 3)


@pytest.mark.parametrize(
    "overrides",
    [
        {"roughness.radius": -1},
        {"roughness.variance_divisor": 0.0},
        {"ao.blur_kernel": "median"},
        {"ao.blur_radius": -2.0},
        {"normal.z_base": 0.0},
    ],
)
def test_impossible_overrides_fail_before_synthesis(monkeypatch, textured, overrides) -> None:
    def _boom(*_args, **_kwargs):
        raise AssertionError("transform should not run")

    for name in pipeline.MAP_NAMES:
        monkeypatch.setitem(pipeline._GENERATORS, name, _boom)
    with pytest.raises(ValueError):
        pipeline.synthesize(textured, DEFAULT_PARAMETERS.with_overrides(overrides))
