from __future__ import annotations

from pathlib import Path

import pytest
import shiboken6

from image_cropper.crop_controller import FULL_QUALITY, CompressFormat, CropBuilder, compute_output_size
from image_cropper.errors import CropConfigurationError
from image_cropper.settings_manager import SettingsManager
from image_cropper.ui.crop_surface import CropSurface


def _builder() -> CropBuilder:
    return CropBuilder(CropSurface(100, 100), "in.jpg", "out.jpg")


def test_defaults() -> None:
    b = _builder()
    assert b.compress_format is CompressFormat.JPEG
    assert b.quality == FULL_QUALITY
    assert (b.aspect_x, b.aspect_y) == (0, 0)
    assert (b.max_width, b.max_height) == (0, 0)
    assert b.max_texture_size is None


@pytest.mark.parametrize(("input_ref", "output_ref"), [("", "out.jpg"), ("in.jpg", ""), (None, "out.jpg")])
def test_missing_refs_are_rejected(input_ref, output_ref) -> None:
    with pytest.raises(CropConfigurationError):
        CropBuilder(CropSurface(100, 100), input_ref, output_ref)


def test_missing_or_deleted_surface_is_rejected() -> None:
    with pytest.raises(CropConfigurationError):
        CropBuilder(None, "in.jpg", "out.jpg")
    surface = CropSurface(100, 100)
    shiboken6.delete(surface)
    with pytest.raises(CropConfigurationError):
        CropBuilder(surface, "in.jpg", "out.jpg")


@pytest.mark.parametrize("quality", [0, 101, -5])
def test_quality_range(quality: int) -> None:
    with pytest.raises(CropConfigurationError):
        _builder().compression(CompressFormat.PNG, quality)


def test_compression_accepts_names() -> None:
    b = _builder().compression("WEBP", 80)
    assert b.compress_format is CompressFormat.WEBP
    assert b.quality == 80
    with pytest.raises(CropConfigurationError):
        _builder().compression("gif")


def test_aspect_and_square() -> None:
    b = _builder().with_aspect_ratio(16, 9)
    assert (b.aspect_x, b.aspect_y) == (16, 9)
    assert (_builder().as_square().aspect_x, _builder().as_square().aspect_y) == (1, 1)
    with pytest.raises(CropConfigurationError):
        _builder().with_aspect_ratio(0, 1)
    with pytest.raises(CropConfigurationError):
        _builder().with_aspect_ratio(3, -1)


def test_max_size_and_timeout_validation() -> None:
    b = _builder().with_max_size(512, 0)
    assert (b.max_width, b.max_height) == (512, 0)
    with pytest.raises(CropConfigurationError):
        _builder().with_max_size(-1, 10)
    with pytest.raises(CropConfigurationError):
        _builder().with_handshake_timeout(0)


def test_listeners_are_a_set() -> None:
    listener = object()
    b = _builder().with_crop_finished_listener(listener).with_crop_finished_listener(listener)
    assert b.finished_listeners == [listener]


def test_apply_settings(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    sm.set("output_format", "png")
    sm.set("quality", 70)
    sm.set("max_texture_size", 1024)
    sm.set("handshake_timeout", 2.5)
    b = _builder().apply_settings(sm)
    assert b.compress_format is CompressFormat.PNG
    assert b.quality == 70
    assert b.max_texture_size == 1024
    assert b.handshake_timeout == 2.5


@pytest.mark.parametrize(
    ("size", "bounds", "expected"),
    [
        ((1000, 1000), (512, 512), (512, 512)),
        ((2000, 1000), (512, 512), (512, 256)),
        ((1000, 2000), (512, 512), (256, 512)),
        ((300, 200), (512, 512), (300, 200)),
        ((3000, 1000), (0, 0), (3000, 1000)),
        ((3000, 1000), (500, 0), (3000, 1000)),
        ((1001, 1000), (100, 100), (100, 100)),
        ((1000, 333), (400, 400), (400, 133)),
    ],
)
def test_compute_output_size(size, bounds, expected) -> None:
    assert compute_output_size(*size, *bounds) == expected
