"""Test-only image factories and session helpers."""

from __future__ import annotations

import threading
from pathlib import Path

import numpy as np
import pytest


def _vips():
    return pytest.importorskip("pyvips")


def make_array(width: int, height: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def write_array(path: Path, array: np.ndarray, orientation: int | None = None) -> Path:
    pyvips = _vips()
    h, w, bands = array.shape
    image = pyvips.Image.new_from_memory(np.ascontiguousarray(array).tobytes(), w, h, bands, "uchar")
    image = image.copy(interpretation="srgb")
    if orientation is not None:
        image.set_type(pyvips.GValue.gint_type, "orientation", int(orientation))
    image.write_to_file(str(path))
    return path


def make_gradient(path: Path, width: int, height: int, orientation: int | None = None) -> Path:
    """Large images without allocating them in Python."""
    pyvips = _vips()
    xy = pyvips.Image.xyz(width, height)
    red = xy[0] * 255 / max(1, width - 1)
    green = xy[1] * 255 / max(1, height - 1)
    blue = (xy[0] + xy[1]) % 256
    image = red.bandjoin([green, blue]).cast("uchar").copy(interpretation="srgb")
    if orientation is not None:
        image.set_type(pyvips.GValue.gint_type, "orientation", int(orientation))
    image.write_to_file(str(path))
    return path


def read_array(path: Path) -> np.ndarray:
    pyvips = _vips()
    image = pyvips.Image.new_from_file(str(path))
    mem = image.write_to_memory()
    return np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)


def image_size(path: Path) -> tuple[int, int]:
    pyvips = _vips()
    image = pyvips.Image.new_from_file(str(path))
    return image.width, image.height


class Recorder:
    """Implements both listener protocols and records every callback."""

    def __init__(self) -> None:
        self.finished: list[str] = []
        self.failed = 0
        self.errors: list[BaseException] = []
        self.fatal: list[BaseException] = []
        self.threads: list[object] = []

    def _note(self) -> None:
        from PySide6.QtCore import QThread

        self.threads.append(QThread.currentThread())

    def on_crop_finished(self, output: str) -> None:
        self._note()
        self.finished.append(output)

    def on_crop_failed(self) -> None:
        self._note()
        self.failed += 1

    def on_error(self, exc: BaseException) -> None:
        self._note()
        self.errors.append(exc)

    def on_fatal_error(self, exc: BaseException) -> None:
        self._note()
        self.fatal.append(exc)

    @property
    def terminal_count(self) -> int:
        return len(self.finished) + self.failed + len(self.fatal)


def save_in_worker(qtbot, controller, timeout_ms: int = 20000):
    """Run controller.save() on a worker thread while the test thread pumps Qt events."""
    result: dict[str, object] = {}

    def _work() -> None:
        try:
            result["ok"] = controller.save()
        except BaseException as e:  # surfaced to the test below
            result["exc"] = e

    worker = threading.Thread(target=_work, daemon=True)
    worker.start()
    qtbot.waitUntil(lambda: not worker.is_alive(), timeout=timeout_ms)
    worker.join()
    if "exc" in result:
        raise result["exc"]  # type: ignore[misc]
    return result["ok"]
