"""Editable crop rectangle: geometry, hit-testing and resize/move rules.

A Highlight keeps ``crop_rect`` in image space (the displayed preview's pixel
grid) and caches ``draw_rect``, the same rect mapped into view space through
``matrix``. The overlay reassigns ``matrix`` whenever the viewport changes and
calls ``invalidate()`` so the two never drift apart.
"""

from __future__ import annotations

from enum import Enum

from image_cropper.logger import get_logger

from .rect import RectF
from .transform import ViewTransform

_logger = get_logger("highlight")

HIT_TOLERANCE = 20.0
MIN_HANDLE_SIZE = 25.0
# Minimum length of an edge-midpoint grab band, as a share of the edge.
EDGE_BAND_RATIO = 0.18


class ModifyMode(Enum):
    NONE = "none"
    MOVE = "move"
    GROW = "grow"


class HandleMode(Enum):
    NEVER = "never"
    CHANGING = "changing"
    ALWAYS = "always"


class HitRegion(Enum):
    NONE = "none"
    MOVE = "move"
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"

    @property
    def moves_left(self) -> bool:
        return self in (HitRegion.LEFT, HitRegion.TOP_LEFT, HitRegion.BOTTOM_LEFT)

    @property
    def moves_right(self) -> bool:
        return self in (HitRegion.RIGHT, HitRegion.TOP_RIGHT, HitRegion.BOTTOM_RIGHT)

    @property
    def moves_top(self) -> bool:
        return self in (HitRegion.TOP, HitRegion.TOP_LEFT, HitRegion.TOP_RIGHT)

    @property
    def moves_bottom(self) -> bool:
        return self in (HitRegion.BOTTOM, HitRegion.BOTTOM_LEFT, HitRegion.BOTTOM_RIGHT)

    @property
    def is_corner(self) -> bool:
        return (self.moves_left or self.moves_right) and (self.moves_top or self.moves_bottom)

    @property
    def is_grow(self) -> bool:
        return self not in (HitRegion.NONE, HitRegion.MOVE)


class Highlight:
    def __init__(
        self,
        matrix: ViewTransform,
        image_rect: RectF,
        crop_rect: RectF,
        maintain_aspect_ratio: bool = False,
    ) -> None:
        if image_rect.is_empty():
            raise ValueError(f"empty image rect {image_rect}")
        if crop_rect.is_empty() or not image_rect.contains_rect(crop_rect):
            raise ValueError(f"crop rect {crop_rect} is not inside {image_rect}")
        self.matrix = matrix
        self.image_rect = image_rect
        self._crop_rect = crop_rect
        self.maintain_aspect_ratio = bool(maintain_aspect_ratio)
        self._aspect_ratio = crop_rect.width / crop_rect.height
        self.mode = ModifyMode.NONE
        self.focused = False
        self.hidden = False
        self.draw_rect = self.compute_layout()

    @classmethod
    def create_default(
        cls, matrix: ViewTransform, width: int, height: int, aspect_x: int = 0, aspect_y: int = 0
    ) -> Highlight:
        """Centred rect, 4/5 of the shorter side, narrowed on one axis for a fixed ratio."""
        crop_w = crop_h = min(width, height) * 4 // 5
        fixed = aspect_x > 0 and aspect_y > 0
        if fixed:
            if aspect_x > aspect_y:
                crop_h = crop_w * aspect_y // aspect_x
            else:
                crop_w = crop_h * aspect_x // aspect_y
        crop_w = max(1, crop_w)
        crop_h = max(1, crop_h)
        left = (width - crop_w) // 2
        top = (height - crop_h) // 2
        return cls(
            matrix,
            RectF(0.0, 0.0, float(width), float(height)),
            RectF.from_xywh(left, top, crop_w, crop_h),
            maintain_aspect_ratio=fixed,
        )

    # ---- geometry ----
    @property
    def crop_rect(self) -> RectF:
        return self._crop_rect

    @property
    def aspect_ratio(self) -> float:
        return self._aspect_ratio

    def compute_layout(self) -> RectF:
        return self.matrix.map_rect(self._crop_rect)

    def invalidate(self) -> None:
        self.draw_rect = self.compute_layout()

    def set_mode(self, mode: ModifyMode) -> None:
        if mode != self.mode:
            self.mode = mode
            self.invalidate()

    def set_crop_rect(self, rect: RectF) -> None:
        """Replace the crop rect, clamped to the image and fitted to a fixed ratio."""
        clamped = rect.intersected(self.image_rect)
        if clamped.is_empty():
            raise ValueError(f"crop rect {rect} does not intersect {self.image_rect}")
        if self.maintain_aspect_ratio:
            w, h = clamped.width, clamped.height
            if w / h > self._aspect_ratio:
                w = h * self._aspect_ratio
            else:
                h = w / self._aspect_ratio
            cx, cy = clamped.center_x, clamped.center_y
            clamped = RectF(cx - w / 2.0, cy - h / 2.0, cx + w / 2.0, cy + h / 2.0)
        self._crop_rect = clamped
        self.invalidate()

    def get_scaled_crop_rect(self, sample_size: int) -> RectF:
        return self._crop_rect.scaled(float(sample_size)).truncated()

    def handles_visible(self, handle_mode: HandleMode) -> bool:
        if handle_mode is HandleMode.ALWAYS:
            return True
        if handle_mode is HandleMode.CHANGING:
            return self.mode is ModifyMode.GROW
        return False

    # ---- hit testing ----
    def hit_test(self, x: float, y: float) -> HitRegion:
        r = self.draw_rect
        tol = HIT_TOLERANCE

        if abs(x - r.left) <= tol and abs(y - r.top) <= tol:
            return HitRegion.TOP_LEFT
        if abs(x - r.right) <= tol and abs(y - r.top) <= tol:
            return HitRegion.TOP_RIGHT
        if abs(x - r.right) <= tol and abs(y - r.bottom) <= tol:
            return HitRegion.BOTTOM_RIGHT
        if abs(x - r.left) <= tol and abs(y - r.bottom) <= tol:
            return HitRegion.BOTTOM_LEFT

        half_x = max(tol * 2, r.width * EDGE_BAND_RATIO) / 2.0
        half_y = max(tol * 2, r.height * EDGE_BAND_RATIO) / 2.0
        if abs(y - r.top) <= tol and abs(x - r.center_x) <= half_x:
            return HitRegion.TOP
        if abs(y - r.bottom) <= tol and abs(x - r.center_x) <= half_x:
            return HitRegion.BOTTOM
        if abs(x - r.left) <= tol and abs(y - r.center_y) <= half_y:
            return HitRegion.LEFT
        if abs(x - r.right) <= tol and abs(y - r.center_y) <= half_y:
            return HitRegion.RIGHT
        if r.contains(x, y):
            return HitRegion.MOVE
        return HitRegion.NONE

    # ---- manipulation ----
    def handle_motion(self, region: HitRegion, dx: float, dy: float) -> bool:
        """Apply a view-space pointer delta for the given hit region."""
        if region is HitRegion.NONE:
            return False
        idx, idy = self.matrix.inverted().map_vector(dx, dy)
        if region is HitRegion.MOVE:
            return self.move_by(idx, idy)
        return self.grow_by(region, idx, idy)

    def move_by(self, dx: float, dy: float) -> bool:
        moved = self._crop_rect.translated(dx, dy)
        img = self.image_rect
        sx = sy = 0.0
        if moved.left < img.left:
            sx = img.left - moved.left
        elif moved.right > img.right:
            sx = img.right - moved.right
        if moved.top < img.top:
            sy = img.top - moved.top
        elif moved.bottom > img.bottom:
            sy = img.bottom - moved.bottom
        return self._commit(moved.translated(sx, sy))

    def grow_by(self, region: HitRegion, dx: float, dy: float) -> bool:
        """Drag the edges named by ``region`` by an image-space delta.

        Returns False when the change is rejected or has no effect.
        """
        if not region.is_grow:
            return False
        if self.maintain_aspect_ratio:
            proposed = self._grow_fixed(region, dx, dy)
        else:
            proposed = self._grow_free(region, dx, dy)
        if proposed is None:
            return False
        return self._commit(proposed)

    def _grow_free(self, region: HitRegion, dx: float, dy: float) -> RectF:
        c = self._crop_rect
        img = self.image_rect
        left, top, right, bottom = c.left, c.top, c.right, c.bottom
        if region.moves_left:
            left = max(img.left, left + dx)
        if region.moves_right:
            right = min(img.right, right + dx)
        if region.moves_top:
            top = max(img.top, top + dy)
        if region.moves_bottom:
            bottom = min(img.bottom, bottom + dy)
        return RectF(left, top, right, bottom)

    def _grow_fixed(self, region: HitRegion, dx: float, dy: float) -> RectF | None:
        c = self._crop_rect
        img = self.image_rect
        ratio = self._aspect_ratio
        w, h = c.width, c.height

        new_w = w + (dx if region.moves_right else -dx if region.moves_left else 0.0)
        new_h = h + (dy if region.moves_bottom else -dy if region.moves_top else 0.0)

        if region.is_corner:
            # Follow whichever axis the pointer moved further, relative to size.
            if abs(new_w - w) / w >= abs(new_h - h) / h:
                new_h = new_w / ratio
            else:
                new_w = new_h * ratio
        elif region.moves_left or region.moves_right:
            new_h = new_w / ratio
        else:
            new_w = new_h * ratio
        if new_w <= 0 or new_h <= 0:
            return None

        if region.moves_left or region.moves_right:
            max_w = (img.right - c.left) if region.moves_right else (c.right - img.left)
        else:
            max_w = 2.0 * min(c.center_x - img.left, img.right - c.center_x)
        if region.moves_top or region.moves_bottom:
            max_h = (img.bottom - c.top) if region.moves_bottom else (c.bottom - img.top)
        else:
            max_h = 2.0 * min(c.center_y - img.top, img.bottom - c.center_y)
        new_w = min(new_w, max_w, max_h * ratio)
        new_h = new_w / ratio

        if region.moves_left:
            left, right = c.right - new_w, c.right
        elif region.moves_right:
            left, right = c.left, c.left + new_w
        else:
            left, right = c.center_x - new_w / 2.0, c.center_x + new_w / 2.0
        if region.moves_top:
            top, bottom = c.bottom - new_h, c.bottom
        elif region.moves_bottom:
            top, bottom = c.top, c.top + new_h
        else:
            top, bottom = c.center_y - new_h / 2.0, c.center_y + new_h / 2.0
        # float residue only; the caps above already keep the rect inside
        return RectF(left, top, right, bottom).intersected(img)

    def _min_size(self) -> float:
        scale = abs(self.matrix.scale_x) or 1.0
        return min(MIN_HANDLE_SIZE / scale, self.image_rect.width, self.image_rect.height)

    def _commit(self, proposed: RectF) -> bool:
        old = self._crop_rect
        if proposed.is_empty():
            return False
        min_size = self._min_size()
        if proposed.width < min_size and proposed.width < old.width:
            return False
        if proposed.height < min_size and proposed.height < old.height:
            return False
        if proposed == old:
            return False
        self._crop_rect = proposed
        self.invalidate()
        return True

    def __repr__(self) -> str:
        return f"Highlight(crop={self._crop_rect}, fixed={self.maintain_aspect_ratio}, mode={self.mode.name})"
