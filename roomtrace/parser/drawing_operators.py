"""
Drawing operators and their replay into segments

Path construction and painting operators are modelled as a small closed set of
frozen dataclasses. Replay keeps the graphics state a content stream would
(current line width, open subpaths) and emits one Segment per painted subpath.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union, Optional

from roomtrace.parser.segment import Segment, Point

logger = logging.getLogger(__name__)

# Stroked subpaths thinner than this are hatching or annotation, not walls
MIN_WALL_LINE_WIDTH = 0.5


@dataclass(frozen=True)
class SetLineWidth:
    width: float


@dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True)
class LineTo:
    x: float
    y: float


@dataclass(frozen=True)
class CurveTo:
    """Cubic Bezier; only its end point is kept"""
    x1: float
    y1: float
    x2: float
    y2: float
    x3: float
    y3: float


@dataclass(frozen=True)
class ClosePath:
    pass


@dataclass(frozen=True)
class Stroke:
    pass


@dataclass(frozen=True)
class Fill:
    even_odd: bool = False


@dataclass(frozen=True)
class FillStroke:
    even_odd: bool = False


@dataclass(frozen=True)
class EndPath:
    """Ends the path without painting it"""
    pass


DrawOperator = Union[SetLineWidth, MoveTo, LineTo, CurveTo, ClosePath, Stroke, Fill, FillStroke, EndPath]


@dataclass
class _Subpath:
    points: List[Point] = field(default_factory=list)
    has_curves: bool = False


class OperatorReplay:
    """Replays one operator sequence; use replay_operators for the common case"""

    def __init__(self, min_line_width: float = MIN_WALL_LINE_WIDTH, start_index: int = 0):
        self.min_line_width = min_line_width
        self.line_width = 1.0
        self.subpaths: List[_Subpath] = []
        self.current: Optional[_Subpath] = None
        self.segments: List[Segment] = []
        self.next_index = start_index
        self.dropped_thin = 0
        self._handlers = {
            SetLineWidth: self._set_line_width,
            MoveTo: self._move_to,
            LineTo: self._line_to,
            CurveTo: self._curve_to,
            ClosePath: self._close_path,
            Stroke: lambda op: self._paint(stroked=True, filled=False),
            Fill: lambda op: self._paint(stroked=False, filled=True),
            FillStroke: lambda op: self._paint(stroked=True, filled=True),
            EndPath: self._end_path,
        }

    def run(self, operators: Sequence[DrawOperator]) -> List[Segment]:
        for op in operators:
            self._handlers[type(op)](op)
        if self.subpaths:
            logger.debug(f"Discarding {len(self.subpaths)} unpainted subpaths")
        return self.segments

    def _set_line_width(self, op: SetLineWidth) -> None:
        self.line_width = float(op.width)

    def _move_to(self, op: MoveTo) -> None:
        self.current = _Subpath(points=[(float(op.x), float(op.y))])
        self.subpaths.append(self.current)

    def _ensure_current(self, point: Point) -> _Subpath:
        if self.current is None:
            self.current = _Subpath(points=[point])
            self.subpaths.append(self.current)
        return self.current

    def _line_to(self, op: LineTo) -> None:
        point = (float(op.x), float(op.y))
        self._ensure_current(point).points.append(point)

    def _curve_to(self, op: CurveTo) -> None:
        point = (float(op.x3), float(op.y3))
        subpath = self._ensure_current(point)
        subpath.points.append(point)
        subpath.has_curves = True

    def _close_path(self, op: ClosePath) -> None:
        if self.current is None or not self.current.points:
            return
        start = self.current.points[0]
        if self.current.points[-1] != start:
            self.current.points.append(start)
        # Drawing continues from the start point in a fresh subpath
        self.current = _Subpath(points=[start])
        self.subpaths.append(self.current)

    def _end_path(self, op: EndPath) -> None:
        self.subpaths = []
        self.current = None

    def _paint(self, stroked: bool, filled: bool) -> None:
        for subpath in self.subpaths:
            if len(subpath.points) < 2:
                continue
            if stroked and not filled and self.line_width < self.min_line_width:
                self.dropped_thin += 1
                continue
            self.segments.append(Segment(
                points=tuple(subpath.points),
                line_width=self.line_width,
                is_stroked=stroked,
                is_filled=filled,
                origin_index=self.next_index,
                has_curves=subpath.has_curves,
            ))
            self.next_index += 1
        self.subpaths = []
        self.current = None


def replay_operators(
    operators: Sequence[DrawOperator],
    min_line_width: float = MIN_WALL_LINE_WIDTH,
    start_index: int = 0
) -> List[Segment]:
    """
    Turn a drawing operator sequence into segments.

    Args:
        operators: Operators in content-stream order
        min_line_width: Stroked-only subpaths below this width are dropped
        start_index: origin_index given to the first emitted segment

    Returns:
        One segment per painted subpath with at least two points
    """
    replay = OperatorReplay(min_line_width=min_line_width, start_index=start_index)
    segments = replay.run(operators)
    if replay.dropped_thin:
        logger.debug(f"Dropped {replay.dropped_thin} subpaths thinner than {min_line_width}")
    return segments
