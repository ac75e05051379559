from __future__ import annotations

import numpy as np

from image_cropper.ops.transform import ViewTransform

_VALID_ROTATIONS = (0, 90, 180, 270)


class RotateBitmap:
    """A decoded RGB buffer plus the rotation it should be displayed with.

    Pixels are never re-encoded; width/height report the display orientation.
    """

    def __init__(self, bitmap: np.ndarray | None, rotation: int = 0) -> None:
        rotation = int(rotation) % 360
        if rotation not in _VALID_ROTATIONS:
            raise ValueError(f"unsupported rotation {rotation}")
        self._bitmap = bitmap
        self._rotation = rotation

    @property
    def bitmap(self) -> np.ndarray | None:
        return self._bitmap

    @property
    def rotation(self) -> int:
        return self._rotation

    @property
    def raw_width(self) -> int:
        return 0 if self._bitmap is None else int(self._bitmap.shape[1])

    @property
    def raw_height(self) -> int:
        return 0 if self._bitmap is None else int(self._bitmap.shape[0])

    def is_orientation_changed(self) -> bool:
        return (self._rotation // 90) % 2 != 0

    @property
    def width(self) -> int:
        return self.raw_height if self.is_orientation_changed() else self.raw_width

    @property
    def height(self) -> int:
        return self.raw_width if self.is_orientation_changed() else self.raw_height

    def rotate_matrix(self) -> ViewTransform:
        """Map raw pixel space into display space (rotation about the buffer centre)."""
        if self._bitmap is None or self._rotation == 0:
            return ViewTransform.identity()
        cx = self.raw_width / 2.0
        cy = self.raw_height / 2.0
        return (
            ViewTransform.translation(-cx, -cy)
            .rotated(self._rotation)
            .translated(self.width / 2.0, self.height / 2.0)
        )

    def to_display_array(self) -> np.ndarray | None:
        if self._bitmap is None:
            return None
        if self._rotation == 0:
            return self._bitmap
        # np.rot90 turns counter-clockwise for positive k
        return np.ascontiguousarray(np.rot90(self._bitmap, k=-(self._rotation // 90)))

    def is_released(self) -> bool:
        return self._bitmap is None

    def release(self) -> None:
        self._bitmap = None

    def __repr__(self) -> str:
        return f"RotateBitmap({self.raw_width}x{self.raw_height}, rotation={self._rotation})"
