"""Message passing between worker threads and the surface's owner thread.

Workers never touch surface state directly. They post a tagged request onto
the owner thread's queue and, for handshakes, wait on a one-shot Future that
the owner side resolves after running the handler.
"""

from __future__ import annotations

import time
import weakref
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from enum import Enum
from typing import Any

import shiboken6
from PySide6.QtCore import QThread

from image_cropper.errors import HandshakeTimeoutError
from image_cropper.logger import get_logger

_logger = get_logger("surface_bridge")

# How often a waiting worker re-checks that the surface still exists.
_LIVENESS_POLL_S = 0.05


class SurfaceRequest(Enum):
    SET_SAVING = "set_saving"
    ATTACH_HIGHLIGHT = "attach_highlight"
    CLEAR_PREVIEW = "clear_preview"
    INSTALL_RESULT = "install_result"
    CLEAR_RESULT = "clear_result"
    RELEASE = "release"
    NOTIFY = "notify"


@dataclass
class _SurfaceTask:
    request: SurfaceRequest
    payload: Any
    future: Future


class SurfaceBridge:
    """Weak handle to a surface plus a request queue onto its thread.

    ``handler(surface, request, payload)`` runs on the owner thread for every
    request. ``on_error(exc)`` receives handler failures there as well.
    """

    def __init__(
        self,
        surface,
        handler: Callable[[Any, SurfaceRequest, Any], Any],
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._surface_ref = weakref.ref(surface)
        self._owner_thread = surface.thread()
        self._handler = handler
        self._on_error = on_error

    def surface(self):
        """Resolve the surface, or None once it has been collected or deleted."""
        surface = self._surface_ref()
        if surface is None or not shiboken6.isValid(surface):
            return None
        return surface

    def is_alive(self) -> bool:
        return self.surface() is not None

    def on_owner_thread(self) -> bool:
        return QThread.currentThread() == self._owner_thread

    def post(self, request: SurfaceRequest, payload: Any = None) -> Future | None:
        surface = self.surface()
        if surface is None:
            _logger.debug("post %s dropped: surface gone", request.name)
            return None
        task = _SurfaceTask(request=request, payload=payload, future=Future())
        surface.post(lambda: self._run(task))
        return task.future

    def call(self, request: SurfaceRequest, payload: Any = None, timeout: float | None = None) -> bool:
        """Run ``request`` on the owner thread and wait for it.

        Returns False when the surface is gone or the handler failed.

        Raises:
            HandshakeTimeoutError: the owner thread did not answer within ``timeout``.
        """
        if self.on_owner_thread():
            task = _SurfaceTask(request=request, payload=payload, future=Future())
            self._run(task)
            return bool(task.future.result())

        future = self.post(request, payload)
        if future is None:
            return False

        deadline = None if timeout is None else time.monotonic() + float(timeout)
        while True:
            wait = _LIVENESS_POLL_S
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                return bool(future.result(timeout=wait))
            except FutureTimeout:
                pass
            if not self.is_alive():
                # queued events for a deleted receiver are discarded
                future.cancel()
                _logger.debug("handshake %s abandoned: surface gone", request.name)
                return False
            if deadline is not None and time.monotonic() >= deadline:
                future.cancel()
                raise HandshakeTimeoutError(request.name, float(timeout))

    def _run(self, task: _SurfaceTask) -> None:
        if not task.future.set_running_or_notify_cancel():
            return
        surface = self.surface()
        if surface is None:
            task.future.set_result(False)
            return
        try:
            self._handler(surface, task.request, task.payload)
        except Exception as e:
            _logger.error("surface request %s failed: %s", task.request.name, e, exc_info=True)
            task.future.set_result(False)
            self._report(e)
            return
        task.future.set_result(True)

    def _report(self, exc: BaseException) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            _logger.exception("error listener failed")
