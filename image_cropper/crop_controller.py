"""Crop session: preview decode, interactive rect, full-resolution save.

A session is configured with ``CropBuilder`` and driven through
``CropController``:

- construction reads EXIF rotation, plans the sample size and decodes the preview
- ``start()`` shows the preview on the surface and attaches the default rect
- ``save()`` runs on a worker thread and hands surface work to the owner thread
- ``release()`` drops references; an in-flight save finishes but stays silent
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Callable
from enum import Enum
from typing import IO, Any, Protocol

import shiboken6
from PySide6.QtCore import QCoreApplication, QThread

from .errors import (
    CropConfigurationError,
    CropRegionError,
    CropUsageError,
    HandshakeTimeoutError,
    OutputMissingError,
    SurfaceGoneError,
)
from .image_engine.content import ContentResolver, FileContentResolver
from .image_engine.decoder import decode_preview, decode_region, encode_image, probe_dimensions, read_exif_rotation
from .image_engine.metrics import metrics
from .image_engine.rotate_bitmap import RotateBitmap
from .image_engine.sampling import calculate_sample_size, max_image_size, read_max_texture_size
from .logger import get_logger
from .ops.highlight import Highlight
from .ops.rect import RectF
from .ops.surface_bridge import SurfaceBridge, SurfaceRequest
from .settings_manager import SettingsManager

_logger = get_logger("crop_controller")

FULL_QUALITY = 100
DEFAULT_HANDSHAKE_TIMEOUT = 10.0


class CompressFormat(Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"


class OnCropFinishedListener(Protocol):
    def on_crop_finished(self, output: str) -> None: ...

    def on_crop_failed(self) -> None: ...


class OnErrorListener(Protocol):
    def on_error(self, exc: BaseException) -> None: ...

    def on_fatal_error(self, exc: BaseException) -> None: ...


def compute_output_size(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Shrink (width, height) into the max box, keeping the crop's own aspect ratio."""
    if max_width > 0 and max_height > 0 and (width > max_width or height > max_height):
        ratio = width / height
        if max_width / max_height > ratio:
            return int(max_height * ratio + 0.5), max_height
        return max_width, int(max_width / ratio + 0.5)
    return width, height


class CropBuilder:
    def __init__(self, surface, input_ref: str, output_ref: str) -> None:
        if surface is None or not shiboken6.isValid(surface):
            raise CropConfigurationError("a live CropSurface is required")
        if not input_ref:
            raise CropConfigurationError("input reference is required")
        if not output_ref:
            raise CropConfigurationError("output reference is required")
        if QCoreApplication.instance() is None:
            raise CropConfigurationError("no Qt application is running")

        self._surface_ref = weakref.ref(surface)
        self.owner_thread = surface.thread()
        self.input_ref = str(input_ref)
        self.output_ref = str(output_ref)
        self.compress_format = CompressFormat.JPEG
        self.quality = FULL_QUALITY
        self.aspect_x = 0
        self.aspect_y = 0
        self.max_width = 0
        self.max_height = 0
        self.max_texture_size: int | None = None
        self.content_resolver: ContentResolver = FileContentResolver()
        self.exif_reader: Callable[[IO[bytes]], int] = read_exif_rotation
        self.handshake_timeout = DEFAULT_HANDSHAKE_TIMEOUT
        self.finished_listeners: list[OnCropFinishedListener] = []
        self.error_listeners: list[OnErrorListener] = []

    def surface(self):
        surface = self._surface_ref()
        if surface is None or not shiboken6.isValid(surface):
            return None
        return surface

    def compression(self, fmt: CompressFormat | str, quality: int = FULL_QUALITY) -> CropBuilder:
        try:
            fmt = CompressFormat(fmt.lower() if isinstance(fmt, str) else fmt)
        except ValueError:
            raise CropConfigurationError(f"unsupported format {fmt!r}") from None
        if not 1 <= int(quality) <= 100:
            raise CropConfigurationError(f"quality must be in [1, 100], got {quality}")
        self.compress_format = fmt
        self.quality = int(quality)
        return self

    def with_aspect_ratio(self, x: int, y: int) -> CropBuilder:
        if int(x) <= 0 or int(y) <= 0:
            raise CropConfigurationError(f"aspect ratio must be positive, got {x}:{y}")
        self.aspect_x = int(x)
        self.aspect_y = int(y)
        return self

    def as_square(self) -> CropBuilder:
        return self.with_aspect_ratio(1, 1)

    def with_max_size(self, width: int, height: int) -> CropBuilder:
        if int(width) < 0 or int(height) < 0:
            raise CropConfigurationError(f"max size must not be negative, got {width}x{height}")
        self.max_width = int(width)
        self.max_height = int(height)
        return self

    def with_max_texture_size(self, size: int) -> CropBuilder:
        self.max_texture_size = int(size)
        return self

    def with_content_resolver(self, resolver: ContentResolver) -> CropBuilder:
        if resolver is None:
            raise CropConfigurationError("content resolver must not be None")
        self.content_resolver = resolver
        return self

    def with_exif_reader(self, reader: Callable[[IO[bytes]], int]) -> CropBuilder:
        self.exif_reader = reader
        return self

    def with_handshake_timeout(self, seconds: float) -> CropBuilder:
        if float(seconds) <= 0:
            raise CropConfigurationError(f"handshake timeout must be positive, got {seconds}")
        self.handshake_timeout = float(seconds)
        return self

    def with_crop_finished_listener(self, listener: OnCropFinishedListener) -> CropBuilder:
        if listener not in self.finished_listeners:
            self.finished_listeners.append(listener)
        return self

    def with_error_listener(self, listener: OnErrorListener) -> CropBuilder:
        if listener not in self.error_listeners:
            self.error_listeners.append(listener)
        return self

    def apply_settings(self, settings: SettingsManager) -> CropBuilder:
        self.compression(settings.output_format, settings.quality)
        if settings.max_texture_size > 0:
            self.with_max_texture_size(settings.max_texture_size)
        self.with_handshake_timeout(settings.handshake_timeout)
        return self

    def build(self) -> CropController:
        return CropController(self)


class CropController:
    """One crop session over one surface. Call ``release()`` when done."""

    def __init__(self, builder: CropBuilder) -> None:
        self._input = builder.input_ref
        self._output = builder.output_ref
        self._owner_thread = builder.owner_thread
        self._format = builder.compress_format
        self._quality = builder.quality
        self._aspect = (builder.aspect_x, builder.aspect_y)
        self._max_size = (builder.max_width, builder.max_height)
        self._resolver = builder.content_resolver
        self._exif_reader = builder.exif_reader
        self._timeout = builder.handshake_timeout
        self._finished_listeners = list(builder.finished_listeners)
        self._error_listeners = list(builder.error_listeners)

        self._saving = threading.Lock()
        self._release_lock = threading.Lock()
        self._error = False
        self._released = False
        self._exif_rotation = 0
        self._sample_size = 1
        self._rotate_bitmap: RotateBitmap | None = None
        self._crop_view: Highlight | None = None
        self._bridge: SurfaceBridge | None = None

        self._setup(builder.surface(), builder.max_texture_size)

    # ---- construction ----
    def _setup(self, surface, texture_limit: int | None) -> None:
        if surface is None:
            self._fatal(SurfaceGoneError("the crop surface is gone or not attached to a Qt application"))
            return
        self._bridge = SurfaceBridge(surface, self._handle_request, self._dispatch_error)

        self._exif_rotation = self._read_exif()
        try:
            if texture_limit is None:
                texture_limit = read_max_texture_size()
            with self._resolver.open_input(self._input) as stream:
                width, height = probe_dimensions(stream)
            self._sample_size = calculate_sample_size(width, height, max_image_size(texture_limit))
            with metrics.timed("crop.decode_preview"), self._resolver.open_input(self._input) as stream:
                preview = decode_preview(stream, width, height, self._sample_size)
            self._rotate_bitmap = RotateBitmap(preview, self._exif_rotation)
            _logger.debug(
                "preview %dx%d (source %dx%d, sample %d, rotation %d)",
                preview.shape[1], preview.shape[0], width, height, self._sample_size, self._exif_rotation,
            )
        except Exception as e:
            _logger.error("preview decode failed: %s", e, exc_info=True)
            self._fatal(e)

    def _read_exif(self) -> int:
        try:
            with self._resolver.open_input(self._input) as stream:
                rotation = int(self._exif_reader(stream))
        except Exception as e:
            _logger.warning("exif read failed, assuming no rotation: %s", e)
            return 0
        return rotation if rotation in (0, 90, 180, 270) else 0

    # ---- accessors ----
    def has_error(self) -> bool:
        return self._error

    def is_saving(self) -> bool:
        return self._saving.locked()

    def is_released(self) -> bool:
        return self._released

    @property
    def sample_size(self) -> int:
        return self._sample_size

    @property
    def exif_rotation(self) -> int:
        return self._exif_rotation

    @property
    def preview(self) -> RotateBitmap | None:
        return self._rotate_bitmap

    @property
    def crop_rectangle(self) -> Highlight | None:
        return self._crop_view

    @property
    def output_ref(self) -> str:
        return self._output

    # ---- lifecycle ----
    def start(self) -> bool:
        """Show the preview and attach the default crop rect.

        Returns False if the session is errored, released or the surface is gone.
        """
        bridge = self._bridge
        if self._error or self._released or bridge is None or not bridge.is_alive():
            return False
        if bridge.on_owner_thread():
            bridge.call(SurfaceRequest.ATTACH_HIGHLIGHT)
        else:
            bridge.post(SurfaceRequest.ATTACH_HIGHLIGHT)
        return True

    def save(self) -> bool:
        """Crop, scale and encode the current rect. Must run off the owner thread.

        Returns True only when the output was written.

        Raises:
            CropUsageError: called on the surface's owner thread.
        """
        if QThread.currentThread() == self._owner_thread:
            raise CropUsageError("save() must not be called on the crop surface's thread")
        if self._error or self._released or self._crop_view is None:
            metrics.inc("crop.save_rejected")
            return False
        if not self._saving.acquire(blocking=False):
            metrics.inc("crop.save_rejected")
            return False
        try:
            metrics.inc("crop.save_started")
            ok = self._save_locked()
        finally:
            self._saving.release()
        metrics.inc("crop.save_succeeded" if ok else "crop.save_failed")
        return ok

    def release(self) -> None:
        """Drop the preview, rects and listeners. Safe to call repeatedly, from any thread."""
        with self._release_lock:
            if self._released:
                return
            self._released = True
        self._finished_listeners.clear()
        self._error_listeners.clear()
        self._crop_view = None

        bridge = self._bridge
        surface = bridge.surface() if bridge is not None else None
        if surface is None:
            self._drop_preview()
        elif bridge.on_owner_thread():
            self._clear_surface(surface)
        else:
            bridge.post(SurfaceRequest.RELEASE)
        _logger.debug("session released")

    # ---- save pipeline (worker thread) ----
    def _save_locked(self) -> bool:
        bridge = self._bridge
        crop_view = self._crop_view
        if bridge is None or crop_view is None:
            return False
        if not bridge.is_alive():
            self._fatal(SurfaceGoneError("the crop surface disappeared before save"))
            return False

        bridge.post(SurfaceRequest.SET_SAVING, True)
        try:
            rect = crop_view.get_scaled_crop_rect(self._sample_size)
            out_w, out_h = compute_output_size(int(rect.width), int(rect.height), *self._max_size)
            _logger.debug("save %s -> %dx%d", rect, out_w, out_h)

            result = self._decode_region_crop(rect, out_w, out_h)
            if result is None:
                return False

            try:
                self._handshake(SurfaceRequest.INSTALL_RESULT, result)
            except SurfaceGoneError:
                result.release()
                raise
            return self._save_output(result)
        except SurfaceGoneError as e:
            _logger.error("%s", e)
            if not self._error:
                self._fatal(e)
            return False
        finally:
            bridge.post(SurfaceRequest.SET_SAVING, False)

    def _decode_region_crop(self, rect: RectF, out_w: int, out_h: int) -> RotateBitmap | None:
        # release the preview before the full-resolution decode
        self._handshake(SurfaceRequest.CLEAR_PREVIEW)
        try:
            with metrics.timed("crop.decode_region"), self._resolver.open_input(self._input) as stream:
                region = decode_region(stream, rect, self._exif_rotation, out_w, out_h)
        except CropRegionError as e:
            _logger.error("crop region invalid: %s", e)
            self._fatal(e)
            return None
        except Exception as e:
            _logger.error("region decode failed: %s", e, exc_info=True)
            self._dispatch_error(e)
            self._dispatch_finished(None)
            return None
        return RotateBitmap(region, self._exif_rotation)

    def _save_output(self, result: RotateBitmap) -> bool:
        written = False
        fatal = False
        try:
            pixels = result.to_display_array()
            if pixels is None:
                _logger.warning("cropped image has no pixels")
            else:
                stream = self._resolver.open_output(self._output) if self._output else None
                if stream is None:
                    fatal = True
                    self._fatal(OutputMissingError(f"no output stream for {self._output!r}"))
                else:
                    with stream, metrics.timed("crop.encode"):
                        size = encode_image(pixels, stream, self._format.value, self._quality)
                    written = True
                    _logger.debug("wrote %d bytes to %s", size, self._output)
        except Exception as e:
            _logger.error("encode failed: %s", e, exc_info=True)
            self._dispatch_error(e)
        finally:
            # the result buffer is dropped whatever the outcome
            try:
                cleared = self._handshake(SurfaceRequest.CLEAR_RESULT, result)
            except SurfaceGoneError:
                result.release()
                raise
            if not cleared:
                result.release()
        if not fatal:
            self._dispatch_finished(self._output if written else None)
        return written

    def _handshake(self, request: SurfaceRequest, payload: Any = None) -> bool:
        """Run ``request`` on the owner thread and wait for it.

        Returns False when the handler failed or timed out.

        Raises:
            SurfaceGoneError: the surface was deleted before it answered.
        """
        bridge = self._bridge
        if bridge is None:
            return False
        try:
            ok = bridge.call(request, payload, timeout=self._timeout)
        except HandshakeTimeoutError as e:
            _logger.warning("%s", e)
            self._dispatch_error(e)
            return False
        if not ok and not bridge.is_alive():
            raise SurfaceGoneError(f"the crop surface disappeared during {request.name.lower()}")
        return ok

    # ---- owner-thread side ----
    def _handle_request(self, surface, request: SurfaceRequest, payload: Any) -> None:
        if self._released and request in (
            SurfaceRequest.ATTACH_HIGHLIGHT,
            SurfaceRequest.INSTALL_RESULT,
            SurfaceRequest.NOTIFY,
        ):
            return
        if request is SurfaceRequest.SET_SAVING:
            surface.set_saving(bool(payload))
        elif request is SurfaceRequest.ATTACH_HIGHLIGHT:
            self._attach_highlight(surface)
        elif request is SurfaceRequest.CLEAR_PREVIEW:
            surface.clear()
            self._drop_preview()
        elif request is SurfaceRequest.INSTALL_RESULT:
            surface.set_image_rotate_bitmap_reset_base(payload, True)
            surface.center(True, True)
            surface.clear_highlights()
            self._crop_view = None
        elif request is SurfaceRequest.CLEAR_RESULT:
            surface.clear()
            payload.release()
        elif request is SurfaceRequest.RELEASE:
            self._clear_surface(surface)
        elif request is SurfaceRequest.NOTIFY:
            payload()
        else:
            raise ValueError(f"unhandled surface request {request!r}")

    def _attach_highlight(self, surface) -> None:
        bitmap = self._rotate_bitmap
        if bitmap is None or bitmap.is_released():
            self._error = True
            return
        surface.set_image_rotate_bitmap_reset_base(bitmap, True)
        if surface.get_scale() == 1.0:
            surface.center(True, True)
        hv = Highlight.create_default(
            surface.viewport.unrotated_matrix(), bitmap.width, bitmap.height, *self._aspect
        )
        surface.add_highlight(hv)
        if surface.overlay.focused is None:
            surface.overlay.set_focus(hv)
        self._crop_view = hv

    def _clear_surface(self, surface) -> None:
        surface.clear()
        surface.clear_highlights()
        surface.set_saving(False)
        self._drop_preview()

    def _drop_preview(self) -> None:
        bitmap = self._rotate_bitmap
        self._rotate_bitmap = None
        if bitmap is not None:
            bitmap.release()

    # ---- listener dispatch ----
    def _fatal(self, exc: BaseException) -> None:
        self._error = True
        self._dispatch(self._error_listeners, "on_fatal_error", exc)

    def _dispatch_error(self, exc: BaseException) -> None:
        self._dispatch(self._error_listeners, "on_error", exc)

    def _dispatch_finished(self, output: str | None) -> None:
        if output is None:
            self._dispatch(self._finished_listeners, "on_crop_failed")
        else:
            self._dispatch(self._finished_listeners, "on_crop_finished", output)

    def _dispatch(self, listeners: list, method: str, *args: Any) -> None:
        if self._released or not listeners:
            return
        targets = list(listeners)

        def deliver() -> None:
            if self._released:
                return
            for listener in targets:
                try:
                    getattr(listener, method)(*args)
                except Exception:
                    _logger.exception("listener %s failed", method)

        bridge = self._bridge
        if bridge is None or bridge.on_owner_thread() or bridge.post(SurfaceRequest.NOTIFY, deliver) is None:
            deliver()
