import math

import numpy as np
import pytest

from livescan.core.geometry import (
    bounding_rect_of,
    compute_metrics,
    cover_fit_frame,
    map_points,
    map_rect,
)
from livescan.core.types import Point, Rect


def test_metrics_for_720p_source_on_4_3_surface():
    m = compute_metrics(1280, 720, 640, 480)
    assert m is not None
    assert m.scale == pytest.approx(2 / 3)
    assert m.offset_x == pytest.approx(-320 / 3)  # (640 - 853.33) / 2
    assert m.offset_y == pytest.approx(0.0)
    assert (m.target_width, m.target_height) == (640, 480)


@pytest.mark.parametrize(
    "sw,sh,tw,th",
    [(1280, 720, 640, 480), (640, 480, 1920, 1080), (100, 300, 50, 50), (10, 10, 10, 10)],
)
def test_cover_fit_fills_target_with_centered_crop(sw, sh, tw, th):
    m = compute_metrics(sw, sh, tw, th)
    assert m.scale == pytest.approx(max(tw / sw, th / sh))
    assert sw * m.scale >= tw - 1e-9
    assert sh * m.scale >= th - 1e-9
    assert m.offset_x == pytest.approx(-(sw * m.scale - tw) / 2)
    assert m.offset_y == pytest.approx(-(sh * m.scale - th) / 2)


@pytest.mark.parametrize(
    "dims",
    [(0, 720, 640, 480), (1280, 0, 640, 480), (1280, 720, 0, 480), (None, 720, 640, 480), (math.nan, 1, 1, 1)],
)
def test_metrics_not_renderable(dims):
    assert compute_metrics(*dims) is None


def test_map_rect_fixture_is_cropped_at_left_edge():
    m = compute_metrics(1280, 720, 640, 480)
    # Unclamped: x = 66.67 - 106.67 = -40, y = 66.67, w = 133.33, h = 66.67
    r = map_rect(Rect(100, 100, 200, 100), m)
    assert r.x == pytest.approx(0.0)
    assert r.y == pytest.approx(200 / 3)
    assert r.width == pytest.approx(280 / 3)  # 93.33 visible
    assert r.height == pytest.approx(200 / 3)


def test_map_rect_inside_surface_is_only_transformed():
    m = compute_metrics(1280, 720, 640, 480)
    r = map_rect(Rect(400, 300, 100, 50), m)
    assert r.x == pytest.approx(160.0)
    assert r.y == pytest.approx(200.0)
    assert r.width == pytest.approx(200 / 3)
    assert r.height == pytest.approx(100 / 3)


def test_map_rect_outside_visible_area_is_discarded():
    m = compute_metrics(1280, 720, 640, 480)
    # Lands entirely in the cropped left band.
    assert map_rect(Rect(0, 0, 100, 100), m) is None
    assert map_rect(Rect(0, 0, math.inf, 10), m) is None
    assert map_rect(None, m) is None
    assert map_rect(Rect(0, 0, 10, 10), None) is None


def test_map_rect_normalises_negative_extents():
    m = compute_metrics(100, 100, 100, 100)
    r = map_rect(Rect(50, 50, -20, -10), m)
    assert (r.x, r.y, r.width, r.height) == (30, 40, 20, 10)


def test_map_points_drops_non_finite():
    m = compute_metrics(1280, 720, 640, 480)
    pts = map_points([Point(0, 0), Point(math.nan, 1), Point(1280, 720)], m)
    assert len(pts) == 2
    assert pts[0].x == pytest.approx(-320 / 3)
    assert pts[1].y == pytest.approx(480.0)


def test_map_points_empty_results_are_none():
    m = compute_metrics(10, 10, 10, 10)
    assert map_points([Point(math.inf, 0)], m) is None
    assert map_points([], m) is None
    assert map_points([Point(1, 1)], None) is None


def test_bounding_rect_of_collinear_points_keeps_min_extent():
    r = bounding_rect_of([Point(0, 5), Point(10, 5)])
    assert r == Rect(0, 5, 10, 1)


def test_bounding_rect_of_unusable_input():
    assert bounding_rect_of([]) is None
    assert bounding_rect_of(None) is None
    assert bounding_rect_of([Point(math.inf, 0)]) is None


def test_cover_fit_frame_crops_the_overflowing_axis():
    frame = np.zeros((720, 1280, 3), dtype=np.uint8)
    frame[:, :640] = (255, 0, 0)
    frame[:, 640:] = (0, 0, 255)

    out = cover_fit_frame(frame, 640, 480)
    assert out.shape == (480, 640, 3)
    # Output x=0 shows source x=160, x=639 shows source x~1119.
    assert tuple(out[240, 0]) == (255, 0, 0)
    assert tuple(out[240, 639]) == (0, 0, 255)


def test_cover_fit_frame_without_frame():
    assert cover_fit_frame(None, 10, 10) is None
    assert cover_fit_frame(np.zeros((0, 0, 3), dtype=np.uint8), 10, 10) is None
