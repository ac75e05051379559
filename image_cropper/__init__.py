"""Crop large images: bounded preview, interactive rect, full-resolution region save."""

from .crop_controller import (
    FULL_QUALITY,
    CompressFormat,
    CropBuilder,
    CropController,
    OnCropFinishedListener,
    OnErrorListener,
    compute_output_size,
)
from .errors import (
    CropConfigurationError,
    CropError,
    CropFatalError,
    CropRegionError,
    CropUsageError,
    HandshakeTimeoutError,
    OutputMissingError,
    SurfaceGoneError,
)
from .ui.crop_surface import CropSurface

__version__ = "0.1.0"

__all__ = [
    "FULL_QUALITY",
    "CompressFormat",
    "CropBuilder",
    "CropConfigurationError",
    "CropController",
    "CropError",
    "CropFatalError",
    "CropRegionError",
    "CropSurface",
    "CropUsageError",
    "HandshakeTimeoutError",
    "OnCropFinishedListener",
    "OnErrorListener",
    "OutputMissingError",
    "SurfaceGoneError",
    "compute_output_size",
]
