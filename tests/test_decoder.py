from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest

pytest.importorskip("pyvips")

from image_cropper.errors import CropRegionError
from image_cropper.image_engine.decoder import (
    decode_preview,
    decode_region,
    encode_image,
    probe_dimensions,
    read_exif_rotation,
    validate_crop_bounds,
)
from image_cropper.ops.rect import RectF

from tests.helpers.images import make_array, make_gradient, write_array


def test_probe_dimensions_reads_header(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.jpg", 640, 480)
    with open(src, "rb") as f:
        assert probe_dimensions(f) == (640, 480)


def test_preview_is_bounded_by_sample_size(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.jpg", 1000, 600)
    data = src.read_bytes()
    preview = decode_preview(data, 1000, 600, 4)
    assert preview.dtype == np.uint8
    assert preview.shape == (150, 250, 3)


def test_preview_does_not_upscale(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.png", 120, 80)
    preview = decode_preview(src.read_bytes(), 120, 80, 1)
    assert preview.shape == (80, 120, 3)


def test_region_decode_is_pixel_exact(tmp_path: Path) -> None:
    arr = make_array(60, 40, seed=3)
    src = write_array(tmp_path / "src.png", arr)
    region = decode_region(src.read_bytes(), RectF(10, 5, 40, 25), 0, 30, 20)
    assert np.array_equal(region, arr[5:25, 10:40])


def test_region_decode_compensates_rotation(tmp_path: Path) -> None:
    arr = make_array(60, 40, seed=4)
    src = write_array(tmp_path / "src.png", arr)
    # top-left 20x30 of the 90-degree display is the bottom-left 30x20 of the source
    region = decode_region(src.read_bytes(), RectF(0, 0, 20, 30), 90, 20, 30)
    assert region.shape == (20, 30, 3)
    assert np.array_equal(region, arr[20:40, 0:30])


def test_region_decode_scales_down_only(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.png", 400, 300)
    small = decode_region(src.read_bytes(), RectF(0, 0, 400, 300), 0, 200, 150)
    assert small.shape == (150, 200, 3)
    same = decode_region(src.read_bytes(), RectF(0, 0, 100, 100), 0, 500, 500)
    assert same.shape == (100, 100, 3)


def test_region_decode_swaps_output_bounds_for_rotation(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.png", 400, 200)
    # display is 200x400; ask for a 100x200 output of the whole display
    region = decode_region(src.read_bytes(), RectF(0, 0, 200, 400), 90, 100, 200)
    assert region.shape == (100, 200, 3)


def test_region_outside_source_raises(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.png", 100, 50)
    with pytest.raises(CropRegionError) as info:
        decode_region(src.read_bytes(), RectF(50, 0, 150, 50), 0, 100, 50)
    assert info.value.image_size == (100, 50)
    assert "outside of the image (100,50,0)" in str(info.value)


def test_validate_crop_bounds() -> None:
    assert validate_crop_bounds(100, 50, (0, 0, 100, 50))
    assert not validate_crop_bounds(100, 50, (1, 0, 100, 50))
    assert not validate_crop_bounds(100, 50, (0, 0, 0, 10))
    assert not validate_crop_bounds(100, 50, (-1, 0, 10, 10))


@pytest.mark.parametrize(("orientation", "rotation"), [(1, 0), (3, 180), (6, 90), (8, 270)])
def test_read_exif_rotation(tmp_path: Path, orientation: int, rotation: int) -> None:
    src = make_gradient(tmp_path / "src.jpg", 64, 32, orientation=orientation)
    with open(src, "rb") as f:
        assert read_exif_rotation(f) == rotation


def test_read_exif_rotation_defaults_to_zero(tmp_path: Path) -> None:
    src = make_gradient(tmp_path / "src.png", 16, 16)
    assert read_exif_rotation(src.read_bytes()) == 0
    assert read_exif_rotation(b"not an image") == 0


@pytest.mark.parametrize(
    ("fmt", "magic"), [("jpeg", b"\xff\xd8"), ("png", b"\x89PNG"), ("webp", b"RIFF")]
)
def test_encode_formats(fmt: str, magic: bytes) -> None:
    arr = make_array(7, 5)
    buf = io.BytesIO()
    written = encode_image(arr, buf, fmt, 90)
    assert written == len(buf.getvalue()) > 0
    assert buf.getvalue().startswith(magic)


def test_encode_png_round_trips_pixels(tmp_path: Path) -> None:
    arr = make_array(9, 4, seed=7)
    out = tmp_path / "out.png"
    with open(out, "wb") as f:
        encode_image(arr, f, "png")
    assert np.array_equal(decode_region(out.read_bytes(), RectF(0, 0, 9, 4), 0, 9, 4), arr)


def test_encode_rejects_unknown_format() -> None:
    with pytest.raises(ValueError):
        encode_image(make_array(2, 2), io.BytesIO(), "gif")
