"""Pure geometry and thread-handoff helpers used by the crop session."""

from .highlight import HandleMode, Highlight, HitRegion, ModifyMode
from .rect import RectF
from .transform import ViewTransform, unrotate_rect

__all__ = [
    "HandleMode",
    "Highlight",
    "HitRegion",
    "ModifyMode",
    "RectF",
    "ViewTransform",
    "unrotate_rect",
]
