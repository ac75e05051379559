"""Affine transform between image pixel space and view space.

ViewTransform is immutable: every operation returns a new instance, so a
matrix handed to a Highlight can never be mutated behind its back.
"""

from __future__ import annotations

import math

import numpy as np

from .rect import RectF


class ViewTransform:
    __slots__ = ("_m",)

    def __init__(self, matrix=None) -> None:
        if matrix is None:
            self._m = np.identity(3, dtype=np.float64)
        else:
            m = np.array(matrix, dtype=np.float64)
            if m.shape != (3, 3):
                raise ValueError(f"expected a 3x3 matrix, got {m.shape}")
            self._m = m

    # ---- constructors ----
    @classmethod
    def identity(cls) -> ViewTransform:
        return cls()

    @classmethod
    def translation(cls, dx: float, dy: float) -> ViewTransform:
        return cls([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])

    @classmethod
    def scaling(cls, sx: float, sy: float, px: float = 0.0, py: float = 0.0) -> ViewTransform:
        return cls([[sx, 0.0, px - sx * px], [0.0, sy, py - sy * py], [0.0, 0.0, 1.0]])

    @classmethod
    def rotation(cls, degrees: float, px: float = 0.0, py: float = 0.0) -> ViewTransform:
        rad = math.radians(degrees)
        c, s = math.cos(rad), math.sin(rad)
        if float(degrees) % 90.0 == 0.0:
            # exact quarter turns, no 6e-17 residue
            c, s = float(round(c)), float(round(s))
        rot = cls([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        return cls.translation(-px, -py).then(rot).then(cls.translation(px, py))

    # ---- composition ----
    def then(self, other: ViewTransform) -> ViewTransform:
        """Apply self first, then other."""
        return ViewTransform(other._m @ self._m)

    def translated(self, dx: float, dy: float) -> ViewTransform:
        return self.then(ViewTransform.translation(dx, dy))

    def scaled(self, sx: float, sy: float, px: float = 0.0, py: float = 0.0) -> ViewTransform:
        return self.then(ViewTransform.scaling(sx, sy, px, py))

    def rotated(self, degrees: float, px: float = 0.0, py: float = 0.0) -> ViewTransform:
        return self.then(ViewTransform.rotation(degrees, px, py))

    def inverted(self) -> ViewTransform:
        return ViewTransform(np.linalg.inv(self._m))

    # ---- mapping ----
    def map_point(self, x: float, y: float) -> tuple[float, float]:
        m = self._m
        return (
            float(m[0, 0] * x + m[0, 1] * y + m[0, 2]),
            float(m[1, 0] * x + m[1, 1] * y + m[1, 2]),
        )

    def map_vector(self, dx: float, dy: float) -> tuple[float, float]:
        m = self._m
        return float(m[0, 0] * dx + m[0, 1] * dy), float(m[1, 0] * dx + m[1, 1] * dy)

    def map_rect(self, rect: RectF) -> RectF:
        corners = [
            self.map_point(rect.left, rect.top),
            self.map_point(rect.right, rect.top),
            self.map_point(rect.right, rect.bottom),
            self.map_point(rect.left, rect.bottom),
        ]
        xs = [p[0] for p in corners]
        ys = [p[1] for p in corners]
        return RectF(min(xs), min(ys), max(xs), max(ys))

    # ---- accessors ----
    @property
    def scale_x(self) -> float:
        return float(self._m[0, 0])

    @property
    def translate_x(self) -> float:
        return float(self._m[0, 2])

    @property
    def translate_y(self) -> float:
        return float(self._m[1, 2])

    @property
    def matrix(self) -> np.ndarray:
        return self._m.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ViewTransform):
            return NotImplemented
        return bool(np.allclose(self._m, other._m))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ViewTransform({self._m.tolist()!r})"


def unrotate_rect(rect: RectF, rotation: int, width: int, height: int) -> RectF:
    """Map a rect in displayed (EXIF-rotated) coordinates into unrotated source space.

    Args:
        rect: crop rect in displayed, full-resolution coordinates
        rotation: EXIF rotation in degrees (0, 90, 180, 270)
        width: unrotated source width
        height: unrotated source height
    """
    if rotation % 360 == 0:
        return rect
    adjusted = ViewTransform.rotation(-rotation).map_rect(rect)
    # Rotation about the origin leaves the rect in negative space; shift it back.
    dx = width if adjusted.left < 0 else 0
    dy = height if adjusted.top < 0 else 0
    return adjusted.translated(dx, dy)
