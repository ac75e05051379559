"""Pan/zoom state for the crop surface.

The displayed transform is ``base`` (fit-to-view, optional EXIF rotation)
followed by ``supp`` (user zoom and pan). Observers subscribe to
``transform_changed`` and re-derive their geometry from the matrices exposed
here instead of mutating copies of their own.
"""

from __future__ import annotations

from enum import Enum

from PySide6.QtCore import QEasingCurve, QObject, QVariantAnimation, Signal

from image_cropper.image_engine.rotate_bitmap import RotateBitmap
from image_cropper.logger import get_logger
from image_cropper.ops.rect import RectF
from image_cropper.ops.transform import ViewTransform

_logger = get_logger("viewport")

MAX_FIT_SCALE = 3.0
MAX_ZOOM_FACTOR = 4.0
ZOOM_STEP = 1.25


class ViewportChange(Enum):
    RESET = "reset"
    LAYOUT = "layout"
    ZOOM = "zoom"
    PAN = "pan"


class Viewport(QObject):
    transform_changed = Signal(object)  # ViewportChange

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._view_width = 0
        self._view_height = 0
        self._bitmap: RotateBitmap | None = None
        self._pending: tuple[RotateBitmap | None, bool] | None = None
        self._base = ViewTransform.identity()
        self._supp = ViewTransform.identity()
        self._max_zoom = 1.0
        self._animation: QVariantAnimation | None = None

    # ---- state ----
    @property
    def view_width(self) -> int:
        return self._view_width

    @property
    def view_height(self) -> int:
        return self._view_height

    @property
    def bitmap(self) -> RotateBitmap | None:
        return self._bitmap

    @property
    def max_zoom(self) -> float:
        return self._max_zoom

    def has_bitmap(self) -> bool:
        return self._bitmap is not None and not self._bitmap.is_released()

    def get_scale(self) -> float:
        return self._supp.scale_x

    def image_view_matrix(self) -> ViewTransform:
        """Raw bitmap pixels -> view."""
        return self._base.then(self._supp)

    def unrotated_matrix(self) -> ViewTransform:
        """Display-oriented image pixels -> view (rotation excluded)."""
        if self._bitmap is None:
            return self._supp
        return self._proper_base_matrix(self._bitmap, include_rotation=False).then(self._supp)

    # ---- layout ----
    def set_view_size(self, width: int, height: int) -> None:
        self._view_width = max(0, int(width))
        self._view_height = max(0, int(height))
        if self._view_width <= 0 or self._view_height <= 0:
            return
        if self._pending is not None:
            bitmap, reset_supp = self._pending
            self._pending = None
            self.set_rotate_bitmap_reset_base(bitmap, reset_supp)
        if self._bitmap is not None:
            self._base = self._proper_base_matrix(self._bitmap, include_rotation=True)
        self._max_zoom = self._calculate_max_zoom()
        self.transform_changed.emit(ViewportChange.LAYOUT)

    def set_rotate_bitmap_reset_base(self, bitmap: RotateBitmap | None, reset_supp: bool = True) -> None:
        if self._view_width <= 0 or self._view_height <= 0:
            # no layout yet; apply once the view has a size
            self._pending = (bitmap, reset_supp)
            return
        self._stop_animation()
        if bitmap is not None and not bitmap.is_released():
            self._base = self._proper_base_matrix(bitmap, include_rotation=True)
            self._bitmap = bitmap
        else:
            self._base = ViewTransform.identity()
            self._bitmap = None
        if reset_supp:
            self._supp = ViewTransform.identity()
        self._max_zoom = self._calculate_max_zoom()
        self.transform_changed.emit(ViewportChange.RESET)

    def clear(self) -> None:
        self._pending = None
        self.set_rotate_bitmap_reset_base(None, True)

    def _proper_base_matrix(self, bitmap: RotateBitmap, include_rotation: bool) -> ViewTransform:
        vw, vh = float(self._view_width), float(self._view_height)
        w, h = float(bitmap.width), float(bitmap.height)
        if w <= 0 or h <= 0 or vw <= 0 or vh <= 0:
            return ViewTransform.identity()
        scale = min(min(vw / w, MAX_FIT_SCALE), min(vh / h, MAX_FIT_SCALE))
        m = bitmap.rotate_matrix() if include_rotation else ViewTransform.identity()
        return m.scaled(scale, scale).translated((vw - w * scale) / 2.0, (vh - h * scale) / 2.0)

    def _calculate_max_zoom(self) -> float:
        if self._bitmap is None or self._view_width <= 0 or self._view_height <= 0:
            return 1.0
        fw = self._bitmap.width / self._view_width
        fh = self._bitmap.height / self._view_height
        return max(1.0, max(fw, fh) * MAX_ZOOM_FACTOR)

    # ---- pan ----
    def post_translate(self, dx: float, dy: float) -> None:
        if dx == 0 and dy == 0:
            return
        self._supp = self._supp.translated(dx, dy)
        self.transform_changed.emit(ViewportChange.PAN)

    def pan_by(self, dx: float, dy: float) -> None:
        self.post_translate(dx, dy)

    def center(self, horizontal: bool = True, vertical: bool = True) -> None:
        """Keep the image centred when smaller than the view, flush to its edges otherwise."""
        if self._bitmap is None or self._bitmap.is_released():
            return
        rect = self.image_view_matrix().map_rect(
            RectF(0.0, 0.0, float(self._bitmap.raw_width), float(self._bitmap.raw_height))
        )
        dx = dy = 0.0
        if vertical:
            vh = float(self._view_height)
            if rect.height < vh:
                dy = (vh - rect.height) / 2.0 - rect.top
            elif rect.top > 0:
                dy = -rect.top
            elif rect.bottom < vh:
                dy = vh - rect.bottom
        if horizontal:
            vw = float(self._view_width)
            if rect.width < vw:
                dx = (vw - rect.width) / 2.0 - rect.left
            elif rect.left > 0:
                dx = -rect.left
            elif rect.right < vw:
                dx = vw - rect.right
        self.post_translate(dx, dy)

    # ---- zoom ----
    def is_animating(self) -> bool:
        return self._animation is not None

    def zoom_to(
        self, scale: float, center_x: float | None = None, center_y: float | None = None, duration_ms: int = 0
    ) -> None:
        if center_x is None:
            center_x = self._view_width / 2.0
        if center_y is None:
            center_y = self._view_height / 2.0
        target = max(1.0, min(float(scale), self._max_zoom))
        self._stop_animation()
        if duration_ms <= 0:
            self._apply_zoom(target, center_x, center_y)
            return

        anim = QVariantAnimation(self)
        anim.setStartValue(float(self.get_scale()))
        anim.setEndValue(float(target))
        anim.setDuration(int(duration_ms))
        anim.setEasingCurve(QEasingCurve.Type.Linear)
        anim.valueChanged.connect(lambda v: self._apply_zoom(float(v), center_x, center_y))
        anim.finished.connect(self._on_animation_finished)
        self._animation = anim
        anim.start()

    def _apply_zoom(self, scale: float, center_x: float, center_y: float) -> None:
        old = self.get_scale()
        if old <= 0:
            return
        delta = scale / old
        self._supp = self._supp.scaled(delta, delta, center_x, center_y)
        self.transform_changed.emit(ViewportChange.ZOOM)
        self.center(True, True)

    def _on_animation_finished(self) -> None:
        anim = self._animation
        self._animation = None
        if anim is not None:
            anim.deleteLater()

    def _stop_animation(self) -> None:
        anim = self._animation
        if anim is None:
            return
        self._animation = None
        anim.stop()
        anim.deleteLater()

    def zoom_in(self, rate: float = ZOOM_STEP) -> None:
        if self._bitmap is None or self.get_scale() >= self._max_zoom:
            return
        cx, cy = self._view_width / 2.0, self._view_height / 2.0
        self._supp = self._supp.scaled(rate, rate, cx, cy)
        self.transform_changed.emit(ViewportChange.ZOOM)

    def zoom_out(self, rate: float = ZOOM_STEP) -> None:
        if self._bitmap is None:
            return
        cx, cy = self._view_width / 2.0, self._view_height / 2.0
        zoomed = self._supp.scaled(1.0 / rate, 1.0 / rate, cx, cy)
        if zoomed.scale_x < 1.0:
            self._supp = ViewTransform.identity()
        else:
            self._supp = zoomed
        self.transform_changed.emit(ViewportChange.ZOOM)
        self.center(True, True)
