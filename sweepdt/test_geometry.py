import numpy as np
import pytest

from sweepdt.errors import DegenerateGeometry
from sweepdt.geometry import (
    Circumcircle,
    EdgeHalfPlane,
    Point,
    VertexHalfPlane,
    WholePlane,
    circumcircle,
    compare_points,
    get_sorted_points,
    orient2d,
    to_array,
)


def test_circumcircle_right_triangle():
    circle = circumcircle(
        np.array([0.0, 0.0]), np.array([2.0, 0.0]), np.array([0.0, 2.0]), 1e-6
    )

    assert circle.center_x == pytest.approx(1.0)
    assert circle.center_y == pytest.approx(1.0)
    assert circle.radius_sq == pytest.approx(2.0)
    assert circle.right_extent == pytest.approx(1.0 + np.sqrt(2.0))


def test_circumcircle_collinear():
    with pytest.raises(DegenerateGeometry, match="collinear"):
        circumcircle(
            np.array([0.0, 0.0]), np.array([1.0, 1.0]), np.array([3.0, 3.0]), 1e-6
        )


def test_contains_boundary_counts_as_inside():
    circle = Circumcircle(center_x=0.0, center_y=0.0, radius_sq=1.0)

    assert circle.contains(0.5, 0.5, 1e-6)
    assert circle.contains(1.0, 0.0, 1e-6)
    assert circle.contains(0.0, -1.0 - 1e-8, 1e-6)
    assert not circle.contains(1.1, 0.0, 1e-6)


def test_orient2d():
    a, b = np.array([0.0, 0.0]), np.array([1.0, 0.0])

    assert orient2d(a, b, np.array([0.0, 1.0])) > 0
    assert orient2d(a, b, np.array([0.0, -1.0])) < 0
    assert orient2d(a, b, np.array([2.0, 0.0])) == 0


def test_compare_points():
    assert compare_points(Point(0.0, 5.0), Point(1.0, 0.0)) == -1
    assert compare_points(Point(1.0, 0.0), Point(0.0, 5.0)) == 1
    assert compare_points(Point(1.0, 0.0), Point(1.0, 2.0)) == -1
    assert compare_points(Point(1.0, 2.0), Point(1.0, 0.0)) == 1
    assert compare_points(Point(1.0, 2.0), Point(1.0, 2.0)) == 0


def test_get_sorted_points():
    points = [Point(3.0, 1.0), Point(1.0, 2.0), Point(3.0, 0.0), Point(0.0, 9.0)]
    sorted_points, order = get_sorted_points(points)

    assert order == [3, 1, 2, 0]
    assert sorted_points == [points[i] for i in order]


def test_get_sorted_points_is_stable():
    points = [Point(1.0, 1.0), Point(0.0, 0.0), Point(1.0, 1.0)]
    _, order = get_sorted_points(points)

    assert order == [1, 0, 2]


def test_to_array():
    array = to_array([Point(1.0, 2.0), Point(3.0, 4.0)])

    assert array.shape == (2, 2)
    assert array.dtype == np.float64
    assert to_array([]).shape == (0, 2)


def test_edge_half_plane():
    region = EdgeHalfPlane(0.0, 0.0, 2.0, 0.0, side=1.0)

    assert region.contains(1.0, 5.0, 1e-6)
    assert not region.contains(1.0, -5.0, 1e-6)
    # on the line only the segment itself is inside
    assert region.contains(1.0, 0.0, 1e-6)
    assert not region.contains(3.0, 0.0, 1e-6)
    assert not region.contains(-1.0, 0.0, 1e-6)
    assert not region.contains(0.0, 0.0, 1e-6)
    assert region.right_extent == float("inf")


def test_edge_half_plane_other_side():
    region = EdgeHalfPlane(0.0, 0.0, 2.0, 0.0, side=-1.0)

    assert region.contains(1.0, -5.0, 1e-6)
    assert not region.contains(1.0, 5.0, 1e-6)


def test_vertex_half_plane():
    region = VertexHalfPlane(0.0, 0.0, 0.0, 1.0)

    assert region.contains(5.0, 2.0, 1e-6)
    assert not region.contains(5.0, -2.0, 1e-6)
    assert not region.contains(5.0, 0.0, 1e-6)
    assert region.right_extent == float("inf")


def test_whole_plane():
    region = WholePlane()

    assert region.contains(-1e9, 1e9, 1e-6)
    assert region.right_extent == float("inf")
