"""
Room boundary and room types produced by the polygon stages
"""

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Tuple, Optional, Sequence

from shapely.geometry import Polygon

from roomtrace.parser.segment import Point

logger = logging.getLogger(__name__)

# Rings with less area than this are collinear and rejected
MIN_RING_AREA = 1e-9
# Consecutive vertices closer than this are merged
VERTEX_TOLERANCE = 1e-9


def _signed_area(points: Sequence[Point]) -> float:
    total = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2


def normalize_ring(points: Sequence[Point]) -> Tuple[Point, ...]:
    """
    Canonical vertex order for a ring: no closing point, no repeated
    vertices, counter-clockwise, starting at the smallest vertex.
    """
    cleaned = []
    for x, y in points:
        pt = (float(x), float(y))
        if cleaned and abs(pt[0] - cleaned[-1][0]) <= VERTEX_TOLERANCE and abs(pt[1] - cleaned[-1][1]) <= VERTEX_TOLERANCE:
            continue
        cleaned.append(pt)
    while len(cleaned) > 1 and abs(cleaned[0][0] - cleaned[-1][0]) <= VERTEX_TOLERANCE \
            and abs(cleaned[0][1] - cleaned[-1][1]) <= VERTEX_TOLERANCE:
        cleaned.pop()

    if len(cleaned) < 3:
        return tuple(cleaned)

    if _signed_area(cleaned) < 0:
        cleaned.reverse()
    start = cleaned.index(min(cleaned))
    return tuple(cleaned[start:] + cleaned[:start])


@dataclass(frozen=True)
class RoomBoundary:
    """
    Closed, simple ring of at least three distinct points.

    The closing point is not stored. Build instances through from_points or
    from_polygon, which return None for rings that cannot be surfaced.
    """
    points: Tuple[Point, ...]

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> Optional["RoomBoundary"]:
        ring = normalize_ring(points)
        if len(set(ring)) < 3:
            return None
        if abs(_signed_area(ring)) <= MIN_RING_AREA:
            return None
        boundary = cls(ring)
        if not boundary.polygon.is_valid:
            return None
        return boundary

    @classmethod
    def from_polygon(cls, polygon: Polygon) -> Optional["RoomBoundary"]:
        if polygon.is_empty:
            return None
        return cls.from_points(list(polygon.exterior.coords))

    @cached_property
    def polygon(self) -> Polygon:
        return Polygon(self.points)

    @property
    def area(self) -> float:
        return abs(_signed_area(self.points))

    @property
    def closed_points(self) -> Tuple[Point, ...]:
        return self.points + (self.points[0],)

    @property
    def vertex_centroid(self) -> Point:
        """Arithmetic mean of the vertices"""
        n = len(self.points)
        return (sum(p[0] for p in self.points) / n, sum(p[1] for p in self.points) / n)

    def sort_key(self):
        """Area descending, then centroid, then vertices"""
        cx, cy = self.vertex_centroid
        return (-self.area, cx, cy, self.points)


@dataclass(frozen=True)
class Room:
    """A reconstructed room: boundary plus the name matched to it"""
    id: str
    boundary: RoomBoundary
    name: Optional[str] = None
    number: Optional[str] = None
    level: Optional[str] = None
    label_text: Optional[str] = None

    @property
    def polygon(self) -> Tuple[Point, ...]:
        return self.boundary.points
