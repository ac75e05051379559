"""Exception hierarchy for image_cropper."""

from __future__ import annotations


class CropError(Exception):
    """Base class for all errors raised by image_cropper."""


# --- configuration / usage ---

class CropConfigurationError(CropError, ValueError):
    """Raised synchronously by the builder for invalid session configuration."""


class CropUsageError(CropError, RuntimeError):
    """Raised when an API is called from the wrong thread or in the wrong state."""


# --- fatal session errors ---

class CropFatalError(CropError):
    """Base class for errors that leave a crop session unusable."""


class SurfaceGoneError(CropFatalError):
    """Raised when the crop surface was collected or is not attached to a Qt application."""


class OutputMissingError(CropFatalError):
    """Raised when there is no output destination at encode time."""


class CropRegionError(CropFatalError, ValueError):
    """Raised when a crop rectangle falls outside the decoded source."""

    def __init__(self, rect, image_size: tuple[int, int], rotation: int = 0) -> None:
        self.rect = rect
        self.image_size = image_size
        self.rotation = rotation
        width, height = image_size
        super().__init__(f"Rectangle {rect} is outside of the image ({width},{height},{rotation})")


# --- recoverable ---

class HandshakeTimeoutError(CropError, TimeoutError):
    """Raised when the owner thread did not answer a handshake in time."""

    def __init__(self, request, timeout: float | None) -> None:
        self.request = request
        self.timeout = timeout
        super().__init__(f"owner thread did not complete {request} within {timeout}s")
