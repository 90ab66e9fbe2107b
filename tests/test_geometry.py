import pytest

from cardzones.core.geometry import (
    clamp_to_canvas,
    contains_point,
    is_within_canvas,
    meets_minimum,
    overlaps,
    pixel_to_percent,
    snap,
    to_pixels,
)
from cardzones.core.models import ZonePosition as pos

pytestmark = pytest.mark.unit


def test_snap_rounds_to_eighths():
    assert snap(13) == 12.5
    assert snap(6.2) == 0
    assert snap(6.25) == 12.5
    assert snap(99) == 100
    assert snap(50) == 50


def test_snap_is_idempotent():
    for i in range(0, 1001):
        v = i / 10.0
        assert snap(snap(v)) == snap(v)


def test_snap_respects_grid_size():
    assert snap(30, grid_size=4) == 25
    assert snap(40, grid_size=4) == 50


def test_touching_edges_do_not_overlap():
    a = pos(0, 0, 50, 50)
    assert not overlaps(a, pos(50, 0, 50, 50))
    assert not overlaps(a, pos(0, 50, 50, 50))
    assert not overlaps(a, pos(50, 50, 50, 50))


def test_intersecting_rectangles_overlap():
    a = pos(0, 0, 50, 50)
    b = pos(25, 25, 50, 50)
    assert overlaps(a, b)
    assert overlaps(b, a)
    assert overlaps(a, pos(10, 10, 5, 5))


def test_clamp_to_canvas_clips_extents():
    clipped = clamp_to_canvas(pos(90, 95, 20, 20))
    assert clipped == pos(90, 95, 10, 5)
    assert clamp_to_canvas(pos(-5, -5, 10, 10)) == pos(0, 0, 10, 10)


def test_minimum_and_canvas_checks():
    assert meets_minimum(pos(0, 0, 5, 5))
    assert not meets_minimum(pos(0, 0, 4.9, 50))
    assert is_within_canvas(pos(50, 50, 50, 50))
    assert not is_within_canvas(pos(60, 0, 50, 10))


def test_pixel_conversion():
    assert pixel_to_percent(170, 340) == 50
    assert to_pixels(pos(50, 25, 50, 50), 340, 214) == (170, 53.5, 170, 107)
    assert contains_point(pos(10, 10, 10, 10), 20, 20)
    assert not contains_point(pos(10, 10, 10, 10), 21, 15)
