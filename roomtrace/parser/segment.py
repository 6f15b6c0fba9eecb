"""
Segment and label data model shared by the extractors and the geometry services
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Tuple, Optional, Sequence

Point = Tuple[float, float]

# Endpoints closer than this are the same point
COINCIDENT_TOLERANCE = 1e-9


class ShapeType(str, Enum):
    """Coarse path classification used by the shape filter"""
    POINT = "point"
    LINE = "line"
    RECTANGLE = "rectangle"
    CURVE = "curve"
    POLYLINE = "polyline"


class SegmentKind(str, Enum):
    """How a segment came to exist"""
    ORIGINAL = "original"
    MERGED = "merged"
    CENTERLINE = "centerline"
    INNER_BOUNDARY = "inner_boundary"
    SPLIT = "split"
    EXTENDED = "extended"
    DUPLICATED = "duplicated"


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def polyline_length(points: Sequence[Point]) -> float:
    return sum(distance(points[i], points[i + 1]) for i in range(len(points) - 1))


def _is_rectangle(points: Sequence[Point]) -> bool:
    corners = list(points)
    if len(corners) == 5:
        if distance(corners[0], corners[-1]) > COINCIDENT_TOLERANCE:
            return False
        corners = corners[:4]
    if len(corners) != 4:
        return False

    for i in range(4):
        prev_pt = corners[i - 1]
        pt = corners[i]
        next_pt = corners[(i + 1) % 4]
        ax, ay = prev_pt[0] - pt[0], prev_pt[1] - pt[1]
        bx, by = next_pt[0] - pt[0], next_pt[1] - pt[1]
        len_a = math.hypot(ax, ay)
        len_b = math.hypot(bx, by)
        if len_a == 0 or len_b == 0:
            return False
        # Corners must be right angles
        if abs((ax * bx + ay * by) / (len_a * len_b)) > 0.01:
            return False
    return True


def classify_shape(points: Sequence[Point], has_curves: bool = False) -> ShapeType:
    """Classify a point sequence the way the shape allow-list names it"""
    if len(points) < 2 or polyline_length(points) == 0:
        return ShapeType.POINT
    if has_curves:
        return ShapeType.CURVE
    if len(points) == 2:
        return ShapeType.LINE
    if len(points) in (4, 5) and _is_rectangle(points):
        return ShapeType.RECTANGLE
    return ShapeType.POLYLINE


@dataclass(frozen=True)
class Segment:
    """
    A polyline extracted from page vector graphics.

    Segments are never mutated; every stage builds new ones and keeps
    origin_index pointing at the extractor output they descend from.
    """
    points: Tuple[Point, ...]
    line_width: float = 1.0
    is_stroked: bool = True
    is_filled: bool = False
    origin_index: int = 0
    kind: SegmentKind = SegmentKind.ORIGINAL
    wall_thickness: Optional[float] = None
    has_curves: bool = False
    length: float = field(init=False, repr=False, compare=False)
    shape: ShapeType = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        points = tuple((float(x), float(y)) for x, y in self.points)
        if len(points) < 2:
            raise ValueError(f"Segment needs at least 2 points, got {len(points)}")
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "length", polyline_length(points))
        object.__setattr__(self, "shape", classify_shape(points, self.has_curves))

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    @property
    def is_closed(self) -> bool:
        return len(self.points) > 2 and distance(self.start, self.end) <= COINCIDENT_TOLERANCE

    @property
    def midpoint(self) -> Point:
        return ((self.start[0] + self.end[0]) / 2, (self.start[1] + self.end[1]) / 2)

    def with_points(self, points: Sequence[Point], kind: Optional[SegmentKind] = None) -> "Segment":
        """New segment with the same attributes and different geometry"""
        return replace(self, points=tuple(points), kind=kind or self.kind)

    def derive(self, **changes) -> "Segment":
        return replace(self, **changes)

    def edges(self) -> Tuple["Segment", ...]:
        """Split into 2-point segments that keep this segment's attributes"""
        return tuple(
            self.with_points((self.points[i], self.points[i + 1]))
            for i in range(len(self.points) - 1)
            if distance(self.points[i], self.points[i + 1]) > COINCIDENT_TOLERANCE
        )


@dataclass(frozen=True)
class Label:
    """A text run positioned on the page"""
    text: str
    center_x: float
    center_y: float

    @property
    def center(self) -> Point:
        return (self.center_x, self.center_y)
