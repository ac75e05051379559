from __future__ import annotations

import threading

import pytest
import shiboken6

from image_cropper.errors import HandshakeTimeoutError
from image_cropper.ops.surface_bridge import SurfaceBridge, SurfaceRequest
from image_cropper.ui.crop_surface import CropSurface


class _Handler:
    def __init__(self) -> None:
        self.calls: list[tuple[SurfaceRequest, object, bool]] = []
        self.fail = False

    def __call__(self, surface: CropSurface, request: SurfaceRequest, payload: object) -> None:
        if self.fail:
            raise RuntimeError("handler exploded")
        self.calls.append((request, payload, surface.is_owner_thread()))


def _in_worker(qtbot, fn):
    out: dict[str, object] = {}

    def _work() -> None:
        try:
            out["value"] = fn()
        except BaseException as e:
            out["exc"] = e

    t = threading.Thread(target=_work, daemon=True)
    t.start()
    qtbot.waitUntil(lambda: not t.is_alive(), timeout=10000)
    return out


def test_call_from_worker_runs_on_owner_thread(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    out = _in_worker(qtbot, lambda: bridge.call(SurfaceRequest.SET_SAVING, True, timeout=5))
    assert out["value"] is True
    assert handler.calls == [(SurfaceRequest.SET_SAVING, True, True)]


def test_call_on_owner_thread_runs_inline(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    assert bridge.on_owner_thread()
    assert bridge.call(SurfaceRequest.CLEAR_PREVIEW)
    assert handler.calls == [(SurfaceRequest.CLEAR_PREVIEW, None, True)]


def test_posted_requests_keep_order(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    futures = [bridge.post(SurfaceRequest.NOTIFY, i) for i in range(5)]
    qtbot.waitUntil(lambda: all(f.done() for f in futures), timeout=3000)
    assert [payload for _, payload, _ in handler.calls] == [0, 1, 2, 3, 4]


def test_handshake_times_out_when_owner_is_busy(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    out: dict[str, object] = {}

    def _work() -> None:
        try:
            bridge.call(SurfaceRequest.CLEAR_RESULT, None, timeout=0.2)
        except HandshakeTimeoutError as e:
            out["exc"] = e

    t = threading.Thread(target=_work)
    t.start()
    # the owner thread does not pump events while joining
    t.join(timeout=5)
    assert isinstance(out.get("exc"), HandshakeTimeoutError)
    assert isinstance(out["exc"], TimeoutError)
    # the abandoned task is skipped once the owner catches up
    qtbot.wait(50)
    assert handler.calls == []


def test_vanished_surface(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    assert bridge.is_alive()
    shiboken6.delete(surface)
    assert not bridge.is_alive()
    assert bridge.surface() is None
    assert bridge.post(SurfaceRequest.NOTIFY) is None
    out = _in_worker(qtbot, lambda: bridge.call(SurfaceRequest.INSTALL_RESULT, timeout=1))
    assert out["value"] is False


def test_handler_errors_reach_on_error(qtbot) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    handler.fail = True
    errors: list[BaseException] = []
    bridge = SurfaceBridge(surface, handler, errors.append)
    out = _in_worker(qtbot, lambda: bridge.call(SurfaceRequest.SET_SAVING, True, timeout=5))
    assert out["value"] is False
    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)


@pytest.mark.parametrize("request_", list(SurfaceRequest))
def test_every_request_is_tagged(qtbot, request_: SurfaceRequest) -> None:
    surface = CropSurface(100, 100)
    handler = _Handler()
    bridge = SurfaceBridge(surface, handler)
    assert bridge.call(request_, "payload")
    assert handler.calls[-1][0] is request_
