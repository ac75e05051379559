from .crop_overlay import CropOverlay
from .crop_surface import CropSurface
from .viewport import Viewport, ViewportChange

__all__ = ["CropOverlay", "CropSurface", "Viewport", "ViewportChange"]
