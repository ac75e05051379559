from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, Qt, QThread, Signal

from image_cropper.image_engine.rotate_bitmap import RotateBitmap
from image_cropper.logger import get_logger
from image_cropper.ops.highlight import HandleMode, Highlight

from .crop_overlay import CropOverlay
from .viewport import Viewport

_logger = get_logger("crop_surface")


class CropSurface(QObject):
    """Interactive crop surface: a Viewport with a CropOverlay on top.

    All state here is confined to the thread the surface lives in. Other
    threads hand work over with ``post()``.
    """

    _task_posted = Signal(object)
    saving_changed = Signal(bool)

    def __init__(self, view_width: int = 0, view_height: int = 0, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.viewport = Viewport(self)
        self.overlay = CropOverlay(self.viewport, self)
        self._saving = False
        self._task_posted.connect(self._run_task, Qt.ConnectionType.QueuedConnection)
        if view_width > 0 and view_height > 0:
            self.viewport.set_view_size(view_width, view_height)

    # ---- owner-thread queue ----
    def post(self, fn: Callable[[], object]) -> None:
        """Run ``fn`` later on the surface's thread."""
        self._task_posted.emit(fn)

    def is_owner_thread(self) -> bool:
        return QThread.currentThread() == self.thread()

    def _run_task(self, fn: Callable[[], object]) -> None:
        try:
            fn()
        except Exception:
            _logger.exception("posted task failed")

    # ---- state ----
    def set_saving(self, saving: bool) -> None:
        saving = bool(saving)
        if saving != self._saving:
            self._saving = saving
            self.saving_changed.emit(saving)

    def is_saving(self) -> bool:
        return self._saving

    def set_view_size(self, width: int, height: int) -> None:
        self.viewport.set_view_size(width, height)

    def set_image_rotate_bitmap_reset_base(self, bitmap: RotateBitmap | None, reset_supp: bool = True) -> None:
        self.viewport.set_rotate_bitmap_reset_base(bitmap, reset_supp)

    @property
    def bitmap(self) -> RotateBitmap | None:
        return self.viewport.bitmap

    def clear(self) -> None:
        """Drop the displayed bitmap."""
        self.viewport.clear()

    def get_scale(self) -> float:
        return self.viewport.get_scale()

    def center(self, horizontal: bool = True, vertical: bool = True) -> None:
        self.viewport.center(horizontal, vertical)

    def add_highlight(self, hv: Highlight) -> None:
        self.overlay.add(hv)

    @property
    def highlights(self) -> tuple[Highlight, ...]:
        return self.overlay.highlights

    def clear_highlights(self) -> None:
        self.overlay.clear()

    def set_handle_mode(self, mode: HandleMode) -> None:
        self.overlay.handle_mode = mode

    def highlights_with_handles(self) -> list[Highlight]:
        """Highlights a renderer should draw resize handles for."""
        mode = self.overlay.handle_mode
        return [hv for hv in self.overlay.highlights if not hv.hidden and hv.handles_visible(mode)]

    # ---- gestures; ignored while a save is running ----
    def press(self, x: float, y: float) -> bool:
        if self._saving:
            return False
        return self.overlay.press(x, y)

    def move(self, x: float, y: float) -> bool:
        if self._saving:
            return False
        return self.overlay.move(x, y)

    def release(self, x: float | None = None, y: float | None = None) -> bool:
        if self._saving:
            return False
        return self.overlay.release(x, y)
