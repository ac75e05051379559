from __future__ import annotations

import pytest

from image_cropper.ops.highlight import HandleMode, Highlight, HitRegion, ModifyMode
from image_cropper.ops.rect import RectF
from image_cropper.ops.transform import ViewTransform


def _hv(matrix: ViewTransform | None = None) -> Highlight:
    return Highlight(matrix or ViewTransform.identity(), RectF(0, 0, 400, 400), RectF(100, 100, 300, 300))


@pytest.mark.parametrize(
    ("x", "y", "expected"),
    [
        (100, 100, HitRegion.TOP_LEFT),
        (305, 95, HitRegion.TOP_RIGHT),
        (300, 300, HitRegion.BOTTOM_RIGHT),
        (90, 310, HitRegion.BOTTOM_LEFT),
        (200, 100, HitRegion.TOP),
        (200, 315, HitRegion.BOTTOM),
        (100, 200, HitRegion.LEFT),
        (285, 200, HitRegion.RIGHT),
        (200, 200, HitRegion.MOVE),
        (150, 100, HitRegion.MOVE),
        (79, 79, HitRegion.NONE),
        (350, 200, HitRegion.NONE),
    ],
)
def test_hit_regions(x: float, y: float, expected: HitRegion) -> None:
    assert _hv().hit_test(x, y) is expected


def test_hit_test_uses_view_space() -> None:
    hv = _hv(ViewTransform.scaling(2, 2))
    assert hv.draw_rect == RectF(200, 200, 600, 600)
    assert hv.hit_test(200, 200) is HitRegion.TOP_LEFT
    assert hv.hit_test(100, 100) is HitRegion.NONE


def test_hit_region_directions() -> None:
    assert HitRegion.TOP_LEFT.moves_left and HitRegion.TOP_LEFT.moves_top
    assert HitRegion.TOP_LEFT.is_corner
    assert not HitRegion.RIGHT.is_corner
    assert HitRegion.RIGHT.moves_right and not HitRegion.RIGHT.moves_top
    assert not HitRegion.MOVE.is_grow
    assert not HitRegion.NONE.is_grow


def test_handles_visible() -> None:
    hv = _hv()
    assert hv.handles_visible(HandleMode.ALWAYS)
    assert not hv.handles_visible(HandleMode.NEVER)
    assert not hv.handles_visible(HandleMode.CHANGING)
    hv.set_mode(ModifyMode.GROW)
    assert hv.handles_visible(HandleMode.CHANGING)


def test_create_default_square_and_ratios() -> None:
    m = ViewTransform.identity()
    square = Highlight.create_default(m, 2000, 1500, 1, 1)
    assert square.crop_rect == RectF(400, 150, 1600, 1350)
    assert square.maintain_aspect_ratio

    wide = Highlight.create_default(m, 1000, 1000, 16, 9)
    assert (wide.crop_rect.width, wide.crop_rect.height) == (800, 450)

    tall = Highlight.create_default(m, 1000, 800, 3, 4)
    assert (tall.crop_rect.width, tall.crop_rect.height) == (480, 640)

    free = Highlight.create_default(m, 300, 200)
    assert free.crop_rect == RectF(70, 20, 230, 180)
    assert not free.maintain_aspect_ratio


def test_invalidate_follows_matrix() -> None:
    hv = _hv()
    hv.matrix = ViewTransform.translation(10, 5)
    assert hv.draw_rect == RectF(100, 100, 300, 300)
    hv.invalidate()
    assert hv.draw_rect == RectF(110, 105, 310, 305)


def test_scaled_crop_rect_truncates() -> None:
    hv = Highlight(ViewTransform.identity(), RectF(0, 0, 100, 100), RectF(10.6, 10.2, 50.7, 60.9))
    assert hv.get_scaled_crop_rect(2) == RectF(21, 20, 101, 121)
