from dataclasses import dataclass
from functools import cmp_to_key
from typing import Protocol, Sequence, TypeVar

import numpy as np
from numpy.typing import ArrayLike, NDArray

from sweepdt.errors import DegenerateGeometry


class SupportsXY(Protocol):
    """Anything that can be triangulated: it only has to expose x() and y()."""

    def x(self) -> float: ...

    def y(self) -> float: ...


P = TypeVar("P", bound=SupportsXY)


@dataclass(frozen=True)
class Point:
    """A plain two dimensional point."""

    _x: float
    _y: float

    def x(self) -> float:
        return self._x

    def y(self) -> float:
        return self._y


class ConflictRegion(Protocol):
    """
    Set of points that invalidate a triangle when inserted: its circumcircle,
    or what the circumcircle becomes when super triangle vertices are pushed
    infinitely far away.
    """

    @property
    def right_extent(self) -> float: ...

    def contains(self, x: float, y: float, epsilon: float) -> bool: ...


@dataclass(frozen=True)
class Circumcircle:
    center_x: float
    center_y: float
    radius_sq: float

    @property
    def right_extent(self) -> float:
        """Largest x-coordinate reached by the circle."""
        return self.center_x + float(np.sqrt(self.radius_sq))

    def contains(self, x: float, y: float, epsilon: float) -> bool:
        """
        Check whether (x, y) lies inside the circle. Points on the boundary
        (within epsilon) count as inside.
        """
        dx = x - self.center_x
        dy = y - self.center_y
        return dx * dx + dy * dy <= self.radius_sq + epsilon


@dataclass(frozen=True)
class EdgeHalfPlane:
    """
    Circle through a, b and a vertex infinitely far away: the open side of the
    line ab where that vertex lies, plus the segment ab itself. The rest of the
    line is outside, the circle bends away from it.

    :param side: sign of orient2d(a, b, far vertex)
    """

    ax: float
    ay: float
    bx: float
    by: float
    side: float

    @property
    def right_extent(self) -> float:
        return float("inf")

    def contains(self, x: float, y: float, epsilon: float) -> bool:
        o = self.side * orient2d((self.ax, self.ay), (self.bx, self.by), (x, y))
        if o > epsilon:
            return True
        if o < -epsilon:
            return False
        ex = self.bx - self.ax
        ey = self.by - self.ay
        t = (x - self.ax) * ex + (y - self.ay) * ey
        return 0.0 < t < ex * ex + ey * ey


@dataclass(frozen=True)
class VertexHalfPlane:
    """
    Circle through a and two vertices infinitely far away: the points lying
    beyond a in the direction (nx, ny). The line itself is outside.
    """

    ax: float
    ay: float
    nx: float
    ny: float

    @property
    def right_extent(self) -> float:
        return float("inf")

    def contains(self, x: float, y: float, epsilon: float) -> bool:
        return (x - self.ax) * self.nx + (y - self.ay) * self.ny > epsilon


class WholePlane:
    """Circle through three vertices infinitely far away."""

    @property
    def right_extent(self) -> float:
        return float("inf")

    def contains(self, x: float, y: float, epsilon: float) -> bool:
        return True


def orient2d(pa: ArrayLike, pb: ArrayLike, pc: ArrayLike) -> float:
    """
    Twice the signed area of the triangle (pa, pb, pc).
    Returns > 0 if points are in counterclockwise order
    Returns < 0 if points are in clockwise order
    Returns = 0 if points are collinear

    Plain floating point, no exact arithmetic: callers compare the result
    against a tolerance.
    """
    detleft = (pa[0] - pc[0]) * (pb[1] - pc[1])
    detright = (pa[1] - pc[1]) * (pb[0] - pc[0])
    return float(detleft - detright)


def circumcircle(
    pa: NDArray[np.floating],
    pb: NDArray[np.floating],
    pc: NDArray[np.floating],
    epsilon: float,
) -> Circumcircle:
    """
    Compute the circle passing through the three vertices of a triangle.

    :param pa: first vertex (x, y)
    :param pb: second vertex (x, y)
    :param pc: third vertex (x, y)
    :param epsilon: smallest accepted magnitude of the determinant
    :return: center and squared radius of the circumcircle
    :raises DegenerateGeometry: if the three points are (nearly) collinear
    """
    ax, ay = float(pa[0]), float(pa[1])
    bx, by = float(pb[0]), float(pb[1])
    cx, cy = float(pc[0]), float(pc[1])

    d = 2.0 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < epsilon:
        raise DegenerateGeometry(
            f"Points ({ax}, {ay}), ({bx}, {by}), ({cx}, {cy}) are collinear; "
            f"circumcircle is undefined (determinant {d})"
        )

    a2 = ax * ax + ay * ay
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy
    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d

    # measure the radius from the first vertex
    radius_sq = (ax - ux) ** 2 + (ay - uy) ** 2
    return Circumcircle(center_x=ux, center_y=uy, radius_sq=radius_sq)


def compare_points(a: SupportsXY, b: SupportsXY) -> int:
    """Order points by x, then by y. Suitable for functools.cmp_to_key."""
    if a.x() != b.x():
        return -1 if a.x() < b.x() else 1
    if a.y() != b.y():
        return -1 if a.y() < b.y() else 1
    return 0


def get_sorted_points(points: Sequence[P]) -> tuple[list[P], list[int]]:
    """
    Sort points into the x-order expected by the sweep.

    :param points: input points, in any order
    :return: sorted points and their original indices
    """
    order = sorted(
        range(len(points)),
        key=cmp_to_key(lambda i, j: compare_points(points[i], points[j])),
    )
    return [points[i] for i in order], order


def to_array(points: Sequence[SupportsXY]) -> NDArray[np.floating]:
    """Read the coordinates of the points into an (n, 2) float array."""
    return np.array([(p.x(), p.y()) for p in points], dtype=np.float64).reshape(
        -1, 2
    )
