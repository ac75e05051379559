from __future__ import annotations

from PySide6.QtCore import QObject

from image_cropper.logger import get_logger
from image_cropper.ops.highlight import HandleMode, Highlight, HitRegion, ModifyMode

from .viewport import Viewport, ViewportChange

_logger = get_logger("crop_overlay")

# Share of the view the crop rect should fill after a gesture.
VISIBLE_FILL = 0.6
# Relative zoom change below which the view is left alone.
ZOOM_THRESHOLD = 0.1
ZOOM_ANIMATION_MS = 300


class CropOverlay(QObject):
    """Crop rectangles drawn over the viewport, plus the gesture state machine.

    Highlights are kept in attachment order; the first one hit on press
    captures the gesture until release.
    """

    def __init__(self, viewport: Viewport, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._viewport = viewport
        self._highlights: list[Highlight] = []
        self._motion_highlight: Highlight | None = None
        self._motion_region = HitRegion.NONE
        self._last_x = 0.0
        self._last_y = 0.0
        self.handle_mode = HandleMode.CHANGING
        self.zoom_animation_ms = ZOOM_ANIMATION_MS
        viewport.transform_changed.connect(self._on_transform_changed)

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def highlights(self) -> tuple[Highlight, ...]:
        return tuple(self._highlights)

    @property
    def focused(self) -> Highlight | None:
        for hv in self._highlights:
            if hv.focused:
                return hv
        return None

    @property
    def motion_highlight(self) -> Highlight | None:
        return self._motion_highlight

    def add(self, hv: Highlight) -> None:
        hv.matrix = self._viewport.unrotated_matrix()
        hv.invalidate()
        self._highlights.append(hv)

    def set_focus(self, hv: Highlight | None) -> None:
        for other in self._highlights:
            other.focused = other is hv

    def clear(self) -> None:
        self._highlights.clear()
        self._motion_highlight = None
        self._motion_region = HitRegion.NONE

    def _on_transform_changed(self, change: ViewportChange) -> None:
        matrix = self._viewport.unrotated_matrix()
        for hv in list(self._highlights):
            hv.matrix = matrix
            hv.invalidate()
        if change is ViewportChange.LAYOUT and self._viewport.has_bitmap():
            hv = self.focused
            if hv is not None:
                self.center_based_on_highlight(hv)

    # ---- gestures (view coordinates) ----
    def press(self, x: float, y: float) -> bool:
        for hv in self._highlights:
            region = hv.hit_test(x, y)
            if region is HitRegion.NONE:
                continue
            self._motion_highlight = hv
            self._motion_region = region
            self._last_x, self._last_y = x, y
            hv.set_mode(ModifyMode.MOVE if region is HitRegion.MOVE else ModifyMode.GROW)
            _logger.debug("gesture captured: %s", region.name)
            return True
        return False

    def move(self, x: float, y: float) -> bool:
        hv = self._motion_highlight
        if hv is None:
            return False
        hv.handle_motion(self._motion_region, x - self._last_x, y - self._last_y)
        self._last_x, self._last_y = x, y
        self.ensure_visible(hv)
        # unzoomed images are not pannable
        if self._viewport.get_scale() == 1.0:
            self._viewport.center(True, True)
        return True

    def release(self, x: float | None = None, y: float | None = None) -> bool:
        hv = self._motion_highlight
        handled = hv is not None
        if hv is not None:
            self.center_based_on_highlight(hv)
            hv.set_mode(ModifyMode.NONE)
        self._motion_highlight = None
        self._motion_region = HitRegion.NONE
        self._viewport.center(True, True)
        return handled

    # ---- visibility assist ----
    def ensure_visible(self, hv: Highlight) -> None:
        """Pan so the rect's leading edges are inside the view."""
        r = hv.draw_rect
        vw = float(self._viewport.view_width)
        vh = float(self._viewport.view_height)

        dx1 = max(0.0, -r.left)
        dx2 = min(0.0, vw - r.right)
        dy1 = max(0.0, -r.top)
        dy2 = min(0.0, vh - r.bottom)
        dx = dx1 if dx1 != 0 else dx2
        dy = dy1 if dy1 != 0 else dy2
        if dx != 0 or dy != 0:
            self._viewport.pan_by(dx, dy)

    def center_based_on_highlight(self, hv: Highlight) -> None:
        """Zoom toward the rect when its on-screen size is far from the target fill."""
        r = hv.draw_rect
        if r.width <= 0 or r.height <= 0:
            return
        vp = self._viewport
        scale = vp.get_scale()
        zoom = min(vp.view_width / r.width * VISIBLE_FILL, vp.view_height / r.height * VISIBLE_FILL)
        zoom = max(1.0, zoom * scale)

        if abs(zoom - scale) / zoom > ZOOM_THRESHOLD:
            cx, cy = vp.unrotated_matrix().map_point(hv.crop_rect.center_x, hv.crop_rect.center_y)
            vp.zoom_to(zoom, cx, cy, self.zoom_animation_ms)

        self.ensure_visible(hv)
