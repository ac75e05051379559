"""Image decoding and encoding using pyvips.

Three entry points back the crop pipeline:

- ``decode_preview``: bounded, shrink-on-load decode used for the on-screen bitmap
- ``decode_region``: full-resolution decode of just the crop rectangle
- ``encode_image``: writes the final RGB buffer to an output stream
"""

from __future__ import annotations

import contextlib
from typing import IO, Any

import numpy as np

from image_cropper.errors import CropRegionError
from image_cropper.logger import get_logger
from image_cropper.ops.rect import RectF
from image_cropper.ops.transform import unrotate_rect

_logger = get_logger("decoder")

RGB_CHANNELS = 3

# EXIF orientation tag -> clockwise display rotation
_EXIF_ROTATIONS = {3: 180, 6: 90, 8: 270}

_SUFFIXES = {"jpeg": ".jpg", "png": ".png", "webp": ".webp"}
_LOSSY = {"jpeg", "webp"}


_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Configure pyvips caches to avoid memory growth
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def _read_all(source: bytes | IO[bytes]) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    return source.read()


def _to_rgb_array(image: Any) -> np.ndarray:
    """Flatten a vips image into a contiguous (H, W, 3) uint8 array."""
    pyvips = _get_pyvips_module()
    with contextlib.suppress(Exception):
        image = image.colourspace("srgb")
    if image.hasalpha():
        image = image.flatten(background=[0, 0, 0])
    if image.bands > RGB_CHANNELS:
        image = image.extract_band(0, n=RGB_CHANNELS)
    elif image.bands < RGB_CHANNELS:
        image = pyvips.Image.bandjoin([image] * RGB_CHANNELS)
    if image.format != "uchar":
        image = image.cast("uchar")

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)
    array = array.copy()
    if array.shape[2] != RGB_CHANNELS:
        raise RuntimeError(f"Unsupported band count after conversion: {array.shape[2]}")
    return array


def probe_dimensions(source: bytes | IO[bytes]) -> tuple[int, int]:
    """Read (width, height) from the header only, in stored (unrotated) orientation."""
    pyvips = _get_pyvips_module()
    image = pyvips.Image.new_from_buffer(_read_all(source), "")
    return int(image.width), int(image.height)


def read_exif_rotation(source: bytes | IO[bytes]) -> int:
    """Return the EXIF display rotation in degrees, 0 when absent or unreadable."""
    try:
        pyvips = _get_pyvips_module()
        image = pyvips.Image.new_from_buffer(_read_all(source), "")
        if image.get_typeof("orientation") == 0:
            return 0
        return _EXIF_ROTATIONS.get(int(image.get("orientation")), 0)
    except Exception as e:
        _logger.debug("exif read failed: %s", e)
        return 0


def decode_preview(source: bytes | IO[bytes], width: int, height: int, sample_size: int) -> np.ndarray:
    """Decode into at most (width // sample_size, height // sample_size) pixels.

    EXIF orientation is not applied; the caller wraps the result in a RotateBitmap.
    """
    pyvips = _get_pyvips_module()
    target_w = max(1, int(width) // int(sample_size))
    target_h = max(1, int(height) // int(sample_size))
    image = pyvips.Image.thumbnail_buffer(
        _read_all(source), target_w, height=target_h, size="down", no_rotate=True
    )
    if image.width > target_w or image.height > target_h:
        image = image.crop(0, 0, min(image.width, target_w), min(image.height, target_h))
    return _to_rgb_array(image)


def validate_crop_bounds(width: int, height: int, crop: tuple[int, int, int, int]) -> bool:
    """True when (left, top, width, height) is non-empty and lies inside width x height."""
    left, top, cw, ch = crop
    if cw <= 0 or ch <= 0:
        return False
    return left >= 0 and top >= 0 and left + cw <= width and top + ch <= height


def decode_region(
    source: bytes | IO[bytes], rect: RectF, rotation: int, out_width: int, out_height: int
) -> np.ndarray:
    """Decode only ``rect`` at full resolution and shrink it to the output bounds.

    Args:
        source: encoded image bytes or a readable stream
        rect: crop rect in full-resolution displayed (EXIF-rotated) coordinates
        rotation: EXIF rotation in degrees
        out_width: requested output width in display orientation
        out_height: requested output height in display orientation

    Returns:
        RGB pixels in the source's stored orientation.

    Raises:
        CropRegionError: the unrotated rect falls outside the source bounds.
    """
    pyvips = _get_pyvips_module()
    image = pyvips.Image.new_from_buffer(_read_all(source), "", access="random")
    src_w, src_h = int(image.width), int(image.height)

    region = unrotate_rect(rect, rotation, src_w, src_h).rounded()
    crop = region.to_xywh()
    if not validate_crop_bounds(src_w, src_h, crop):
        raise CropRegionError(region, (src_w, src_h), rotation)

    left, top, cw, ch = crop
    _logger.debug("region decode %s from %dx%d (rotation %d)", crop, src_w, src_h, rotation)
    cropped = image.crop(left, top, cw, ch)

    target_w, target_h = int(out_width), int(out_height)
    if rotation in (90, 270):
        target_w, target_h = target_h, target_w
    if target_w > 0 and target_h > 0 and (cw > target_w or ch > target_h):
        cropped = cropped.thumbnail_image(target_w, height=target_h, size="force", no_rotate=True)
    return _to_rgb_array(cropped)


def encode_image(array: np.ndarray, stream: IO[bytes], fmt: str = "jpeg", quality: int = 100) -> int:
    """Encode an RGB array into ``stream``; returns the number of bytes written."""
    pyvips = _get_pyvips_module()
    fmt = str(fmt).lower()
    suffix = _SUFFIXES.get(fmt)
    if suffix is None:
        raise ValueError(f"unsupported output format {fmt!r}")
    if array.ndim != 3 or array.shape[2] != RGB_CHANNELS:
        raise ValueError("expected RGB numpy array with shape (h, w, 3)")

    h, w, _ = array.shape
    if array.dtype != np.uint8:
        array = array.astype(np.uint8)
    # pyvips expects a contiguous bytes buffer in C order
    image = pyvips.Image.new_from_memory(np.ascontiguousarray(array).tobytes(), w, h, RGB_CHANNELS, "uchar")
    with contextlib.suppress(Exception):
        image = image.copy(interpretation="srgb")

    if fmt in _LOSSY:
        out = image.write_to_buffer(suffix, Q=int(quality))
    else:
        out = image.write_to_buffer(suffix)
    data = out if isinstance(out, bytes) else bytes(out)
    stream.write(data)
    with contextlib.suppress(Exception):
        stream.flush()
    return len(data)
