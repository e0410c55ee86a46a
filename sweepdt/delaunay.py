from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Sequence

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from sweepdt.errors import DegenerateGeometry, InsufficientPoints, UnsortedInput
from sweepdt.geometry import (
    ConflictRegion,
    EdgeHalfPlane,
    SupportsXY,
    VertexHalfPlane,
    WholePlane,
    circumcircle,
    orient2d,
    to_array,
)

# Absolute tolerance of the geometric tests. The circumcircle test compares
# squared distances and the collinearity determinant is twice the triangle
# area, both in squared length units, so for coordinates of scale s the
# tolerance has to shrink like s**2 (pass epsilon= to triangulate). The
# completion bound reuses it as a plain length.
EPSILON = 1e-6

# Distance of the stored super triangle vertices from the bounding box centre,
# in multiples of the largest box side.
SUPER_TRIANGLE_MARGIN = 20.0

# Unit directions along which the super triangle vertices are treated as
# infinitely far away. 120 degrees apart and listed clockwise; turned off the
# axes and diagonals so that input edges are not parallel to them.
_SUPER_ANGLES = np.radians([210.0, 90.0, -30.0]) + 0.1
SUPER_DIRECTIONS = np.column_stack([np.cos(_SUPER_ANGLES), np.sin(_SUPER_ANGLES)])


@dataclass(frozen=True)
class Triangle:
    """A triangle, represented by indices into the input point list."""

    a: int
    b: int
    c: int

    def __iter__(self) -> Iterator[int]:
        return iter((self.a, self.b, self.c))

    def __getitem__(self, item: int) -> int:
        return (self.a, self.b, self.c)[item]


@dataclass
class SweepTriangle:
    vertices: tuple[int, int, int]
    region: ConflictRegion
    complete: bool = False


@dataclass
class Triangulation:
    all_points: NDArray[np.floating]
    n_original_points: int
    center: NDArray[np.floating]
    active: list[SweepTriangle] = field(default_factory=list)
    completed: list[SweepTriangle] = field(default_factory=list)

    @property
    def max_triangles(self) -> int:
        return 4 * len(self.all_points)

    @property
    def super_vertices(self) -> tuple[int, int, int]:
        n = self.n_original_points
        return n, n + 1, n + 2


def validate_points(points: NDArray[np.floating]) -> None:
    """
    Check that the points can be fed to the sweep.

    :param points: (n, 2) array of coordinates, in input order
    :raises InsufficientPoints: fewer than three points
    :raises UnsortedInput: an x-coordinate is smaller than the previous one
    :raises DegenerateGeometry: non finite coordinates or coincident points
    """
    if len(points) < 3:
        raise InsufficientPoints(
            f"Can't triangulate less than three points, got {len(points)}"
        )

    if not np.all(np.isfinite(points)):
        bad = int(np.flatnonzero(~np.all(np.isfinite(points), axis=1))[0])
        raise DegenerateGeometry(f"Point {bad} has a non finite coordinate")

    decreasing = np.flatnonzero(np.diff(points[:, 0]) < 0)
    if decreasing.size:
        idx = int(decreasing[0]) + 1
        raise UnsortedInput(
            f"Point {idx} (x={points[idx, 0]}) comes after point {idx - 1} "
            f"(x={points[idx - 1, 0]}); points must be sorted by x"
        )

    seen: dict[tuple[float, float], int] = {}
    for idx, (x, y) in enumerate(points.tolist()):
        first = seen.setdefault((x, y), idx)
        if first != idx:
            raise DegenerateGeometry(
                f"Points {first} and {idx} coincide at ({x}, {y})"
            )


def super_side(
    pa: NDArray[np.floating],
    pb: NDArray[np.floating],
    direction: NDArray[np.floating],
    center: NDArray[np.floating],
    epsilon: float,
) -> float:
    """
    Side of the line ab on which a super vertex, infinitely far along
    direction from center, lies: +1 to the left, -1 to the right.
    """
    side = orient2d(pa, pb, pa + direction)
    if abs(side) < epsilon:
        # ab runs parallel to direction, the offset of center decides
        side = orient2d(pa, pb, center)
    if abs(side) < epsilon:
        raise DegenerateGeometry(
            f"Edge ({pa[0]}, {pa[1]}) - ({pb[0]}, {pb[1]}) runs through a "
            f"super triangle vertex"
        )
    return 1.0 if side > 0 else -1.0


def new_triangle(
    a: int, b: int, c: int, triangulation: Triangulation, epsilon: float
) -> SweepTriangle:
    """
    Create a triangle and the region of points in conflict with it.

    Super triangle vertices are infinitely far away, so a circle through one
    of them is a half-plane bounded by the opposite edge, and a circle through
    two of them is a half-plane touching the remaining input point.
    """
    n = triangulation.n_original_points
    points = triangulation.all_points
    vertices = (a, b, c)
    real = [v for v in vertices if v < n]
    far = [v - n for v in vertices if v >= n]

    region: ConflictRegion
    if not far:
        region = circumcircle(points[a], points[b], points[c], epsilon)
    elif len(far) == 1:
        p, q = real
        side = super_side(
            points[p],
            points[q],
            SUPER_DIRECTIONS[far[0]],
            triangulation.center,
            epsilon,
        )
        region = EdgeHalfPlane(
            ax=float(points[p, 0]),
            ay=float(points[p, 1]),
            bx=float(points[q, 0]),
            by=float(points[q, 1]),
            side=side,
        )
    elif len(far) == 2:
        # the circle bulges away from the third direction
        (k,) = {0, 1, 2} - set(far)
        nx, ny = -SUPER_DIRECTIONS[k]
        region = VertexHalfPlane(
            ax=float(points[real[0], 0]),
            ay=float(points[real[0], 1]),
            nx=float(nx),
            ny=float(ny),
        )
    else:
        region = WholePlane()
    return SweepTriangle(vertices=vertices, region=region)


def initialize_triangulation(
    points: NDArray[np.floating],
    margin: float = SUPER_TRIANGLE_MARGIN,
    epsilon: float = EPSILON,
) -> Triangulation:
    """
    Initialize the triangulation with a super triangle.

    The super triangle vertices are appended after the input points, so they
    get the indices n, n + 1 and n + 2. They are stored at margin times the
    box size along SUPER_DIRECTIONS, but the conflict tests treat them as
    infinitely far, so they never cut off a triangle of the convex hull. They
    are listed in clockwise order, which every triangle created later inherits.

    :param points: validated input points
    :param margin: extra margin to ensure all points are inside the super triangle
    :param epsilon: numerical tolerance
    :return: working state holding the super triangle as its only triangle
    """
    if margin < 2.0:
        logger.warning(f"Rejecting super triangle margin {margin}")
        raise ValueError(f"Super triangle margin must be at least 2, got {margin}")

    min_vals = np.min(points, axis=0)
    max_vals = np.max(points, axis=0)
    delta_max = float(np.max(max_vals - min_vals))
    center = (min_vals + max_vals) * 0.5

    super_vertices = center + margin * delta_max * SUPER_DIRECTIONS
    all_points = np.vstack([points, super_vertices])
    triangulation = Triangulation(
        all_points=all_points, n_original_points=len(points), center=center
    )
    triangulation.active.append(
        new_triangle(*triangulation.super_vertices, triangulation, epsilon)
    )
    logger.info(
        f"Super triangle set up around {len(points)} points (d_max={delta_max})"
    )
    return triangulation


def complete_triangles(triangulation: Triangulation, x: float, epsilon: float) -> int:
    """
    Move the triangles whose circumcircle lies entirely left of x to the
    completed list. No point inserted from now on can fall inside them.
    Triangles touching the super triangle never complete here.

    :return: number of triangles completed
    """
    still_active = []
    done = 0
    for triangle in triangulation.active:
        if triangle.region.right_extent < x - epsilon:
            triangle.complete = True
            triangulation.completed.append(triangle)
            done += 1
        else:
            still_active.append(triangle)
    triangulation.active = still_active
    return done


def extract_boundary_edges(edges: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """
    Find the boundary of the cavity left by the removed triangles.

    An edge shared by two removed triangles is interior and dropped. An edge
    seen once is kept, with the orientation it had in its triangle.

    :param edges: edges of all removed triangles
    :return: boundary edges, in the order they were first seen
    """
    counts: Counter[tuple[int, int]] = Counter()
    oriented: dict[tuple[int, int], tuple[int, int]] = {}
    for a, b in edges:
        key = (a, b) if a < b else (b, a)
        counts[key] += 1
        oriented.setdefault(key, (a, b))

    boundary = []
    for key, count in counts.items():
        if count == 1:
            boundary.append(oriented[key])
        elif count != 2:
            logger.error(f"Edge {key} is shared by {count} removed triangles")
            raise DegenerateGeometry(
                f"Edge {key} appears {count} times in the cavity; expected 1 or 2"
            )
    return boundary


def insert_point(
    point_idx: int,
    triangulation: Triangulation,
    epsilon: float = EPSILON,
) -> Triangulation:
    """
    Insert a point into the triangulation.

    :param point_idx: Index of the point to insert
    :param triangulation: working state, updated in place
    :param epsilon: numerical tolerance
    :return: the updated triangulation
    """
    x, y = (float(v) for v in triangulation.all_points[point_idx])

    done = complete_triangles(triangulation, x, epsilon)
    if done:
        logger.debug(f"Point {point_idx}: {done} triangles completed")

    # Triangles whose circumcircle contains the point are removed
    edges = []
    remaining = []
    for triangle in triangulation.active:
        assert not triangle.complete
        if triangle.region.contains(x, y, epsilon):
            i, j, k = triangle.vertices
            edges.extend([(i, j), (j, k), (k, i)])
        else:
            remaining.append(triangle)
    removed = len(triangulation.active) - len(remaining)

    boundary = extract_boundary_edges(edges)
    if not boundary:
        logger.error(f"Point {point_idx} at ({x}, {y}) lies in no conflict region")
        raise DegenerateGeometry(
            f"Point {point_idx} at ({x}, {y}) is not inside any active triangle"
        )
    logger.debug(
        f"Point {point_idx}: removed {removed} triangles, "
        f"{len(boundary)} boundary edges"
    )

    # Form new triangles from the boundary edges, keeping their orientation
    triangulation.active = remaining
    for a, b in boundary:
        try:
            triangle = new_triangle(a, b, point_idx, triangulation, epsilon)
        except DegenerateGeometry:
            logger.error(f"Point {point_idx} and edge ({a}, {b}) form no triangle")
            raise
        triangulation.active.append(triangle)

    total = len(triangulation.active) + len(triangulation.completed)
    if total > triangulation.max_triangles:
        logger.error(f"Triangle count {total} after inserting point {point_idx}")
        raise DegenerateGeometry(
            f"Exceeded maximum number of triangles ({triangulation.max_triangles})"
        )
    return triangulation


def remove_super_triangle_triangles(triangulation: Triangulation) -> list[Triangle]:
    """
    Complete every remaining triangle and drop those using a super triangle
    vertex.

    :param triangulation: working state after the last insertion
    :return: the triangles made of input points only
    """
    for triangle in triangulation.active:
        triangle.complete = True
    triangulation.completed.extend(triangulation.active)
    triangulation.active = []

    n = triangulation.n_original_points
    kept = [
        Triangle(*t.vertices)
        for t in triangulation.completed
        if all(v < n for v in t.vertices)
    ]
    logger.info(
        f"Kept {len(kept)} triangles, removed "
        f"{len(triangulation.completed) - len(kept)} touching the super triangle"
    )
    if not kept:
        logger.error(f"No triangle left out of {len(triangulation.completed)}")
        raise DegenerateGeometry(
            "No triangle is made of input points only; the points are collinear"
        )
    return kept


def triangulate(
    points: Sequence[SupportsXY],
    *,
    epsilon: float = EPSILON,
    margin: float = SUPER_TRIANGLE_MARGIN,
) -> list[Triangle]:
    """
    Compute the Delaunay triangulation of a set of points with the incremental
    sweep of Bourke.

    The points must already be sorted by x (see geometry.get_sorted_points).
    Every returned triangle is clockwise in a y-up frame.

    :param points: input points, sorted by x
    :param epsilon: numerical tolerance of the geometric tests
    :param margin: super triangle size, in multiples of the bounding box
    :return: triangles as indices into points
    """
    if epsilon <= 0:
        logger.warning(f"Rejecting tolerance {epsilon}")
        raise ValueError(f"Tolerance must be positive, got {epsilon}")

    coords = to_array(points)
    validate_points(coords)

    triangulation = initialize_triangulation(coords, margin=margin, epsilon=epsilon)
    for point_idx in range(len(coords)):
        triangulation = insert_point(point_idx, triangulation, epsilon=epsilon)
    logger.info(
        f"Inserted {len(coords)} points: {len(triangulation.completed)} completed, "
        f"{len(triangulation.active)} active triangles"
    )
    return remove_super_triangle_triangles(triangulation)


def triangles_to_array(triangles: Sequence[Triangle]) -> NDArray[np.integer]:
    """Stack triangles into an (m, 3) integer array."""
    return np.array([tuple(t) for t in triangles], dtype=int).reshape(-1, 3)
