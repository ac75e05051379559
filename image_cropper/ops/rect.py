from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RectF:
    """Axis-aligned rect in (left, top, right, bottom) form."""

    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> RectF:
        return cls(float(x), float(y), float(x) + float(w), float(y) + float(h))

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2.0

    def is_empty(self) -> bool:
        return self.left >= self.right or self.top >= self.bottom

    def translated(self, dx: float, dy: float) -> RectF:
        return RectF(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)

    def scaled(self, factor: float) -> RectF:
        return RectF(self.left * factor, self.top * factor, self.right * factor, self.bottom * factor)

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x < self.right and self.top <= y < self.bottom

    def contains_rect(self, other: RectF, eps: float = 1e-6) -> bool:
        return (
            other.left >= self.left - eps
            and other.top >= self.top - eps
            and other.right <= self.right + eps
            and other.bottom <= self.bottom + eps
        )

    def intersected(self, other: RectF) -> RectF:
        return RectF(
            max(self.left, other.left),
            max(self.top, other.top),
            min(self.right, other.right),
            min(self.bottom, other.bottom),
        )

    def rounded(self) -> RectF:
        return RectF(
            float(round(self.left)),
            float(round(self.top)),
            float(round(self.right)),
            float(round(self.bottom)),
        )

    def truncated(self) -> RectF:
        """Integer coordinates, truncated toward zero."""
        return RectF(
            float(math.trunc(self.left)),
            float(math.trunc(self.top)),
            float(math.trunc(self.right)),
            float(math.trunc(self.bottom)),
        )

    def to_xywh(self) -> tuple[int, int, int, int]:
        return int(self.left), int(self.top), int(self.width), int(self.height)

    def __str__(self) -> str:
        return f"RectF({self.left:g}, {self.top:g} - {self.right:g}, {self.bottom:g})"
