"""Decoding, sampling and pixel-buffer helpers for the crop pipeline."""

from .content import ContentResolver, FileContentResolver
from .rotate_bitmap import RotateBitmap
from .sampling import SIZE_DEFAULT, SIZE_LIMIT, calculate_sample_size, max_image_size, read_max_texture_size

__all__ = [
    "ContentResolver",
    "FileContentResolver",
    "RotateBitmap",
    "SIZE_DEFAULT",
    "SIZE_LIMIT",
    "calculate_sample_size",
    "max_image_size",
    "read_max_texture_size",
]
