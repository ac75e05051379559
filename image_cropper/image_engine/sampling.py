"""Preview sample-size planning.

The preview is decoded at 1/s of the source resolution, where s is the
smallest power of two that brings both dimensions under the texture ceiling.
"""

from __future__ import annotations

import os

from image_cropper.logger import get_logger

_logger = get_logger("sampling")

SIZE_DEFAULT = 2048
SIZE_LIMIT = 4096

TEXTURE_SIZE_ENV = "IMAGE_CROPPER_MAX_TEXTURE_SIZE"


def read_max_texture_size() -> int:
    """Return the platform texture limit, or 0 when it cannot be read."""
    raw = (os.getenv(TEXTURE_SIZE_ENV) or "").strip()
    if not raw:
        return 0
    try:
        value = int(raw)
    except ValueError:
        _logger.warning("ignoring invalid %s=%r", TEXTURE_SIZE_ENV, raw)
        return 0
    return max(0, value)


def max_image_size(texture_limit: int | None = None) -> int:
    if texture_limit is None:
        texture_limit = read_max_texture_size()
    if texture_limit <= 0:
        return SIZE_DEFAULT
    return min(int(texture_limit), SIZE_LIMIT)


def calculate_sample_size(width: int, height: int, max_size: int) -> int:
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid image size {width}x{height}")
    if max_size <= 0:
        raise ValueError(f"invalid max size {max_size}")
    sample_size = 1
    while height // sample_size > max_size or width // sample_size > max_size:
        sample_size <<= 1
    _logger.debug("sample size %d for %dx%d (max %d)", sample_size, width, height, max_size)
    return sample_size
