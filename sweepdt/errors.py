class TriangulationError(Exception):
    """Base class of every failure raised by the triangulation."""


class InsufficientPoints(TriangulationError, ValueError):
    """Fewer than three points were supplied."""


class UnsortedInput(TriangulationError, ValueError):
    """The points are not in non-decreasing x-order."""


class DegenerateGeometry(TriangulationError, RuntimeError):
    """
    Collinear or coincident points, or an inconsistent cavity found while
    inserting a point.
    """
