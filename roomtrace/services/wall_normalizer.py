"""
Wall Normalizer - turns double-line walls into boundaries the assembler can close

Floor plans draw each wall as two parallel faces. Depending on settings the
pair is collapsed to its centerline, or only the face toward the rooms is kept.
The remaining passes tidy the axis-aligned wall network: collinear pieces are
merged, ends are extended across door openings to the walls they meet, lines
that still connect to nothing are dropped and interior walls are duplicated so
both neighbouring rooms close on their own copy.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Dict

import numpy as np

from roomtrace.parser.segment import Segment, SegmentKind, Point, distance
from roomtrace.services.error_types import run_stage

logger = logging.getLogger(__name__)

# |dot| of two wall faces must reach this to count as parallel
PARALLEL_DOT = 0.98
# Separations at or below this are overlapping strokes, not wall faces
MIN_WALL_SEPARATION = 0.1
# Largest |dy|/|dx| (or |dx|/|dy|) for a line to count as horizontal (vertical)
AXIS_SLOPE = 0.05
# Offset between the two copies of a duplicated interior wall
DIVIDING_WALL_OFFSET = 0.001
HORIZONTAL, VERTICAL = "horizontal", "vertical"


@dataclass
class WallNormalizationResult:
    """Normalized segments plus the thickness used to derive them"""
    segments: List[Segment]
    measured_thickness: Optional[float]
    working_thickness: float
    inner_boundary_mode: bool
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def inset_thickness(self) -> Optional[float]:
        """Thickness the refiner insets by; None when no inset applies"""
        if self.inner_boundary_mode:
            return None
        return self.measured_thickness


@dataclass
class _AxisLine:
    """Mutable axis-aligned working line: fixed coordinate plus [lo, hi] span"""
    orientation: str
    fixed: float
    lo: float
    hi: float
    source: Segment
    modified: bool = False

    @classmethod
    def from_segment(cls, seg: Segment) -> Optional["_AxisLine"]:
        orientation = axis_orientation(seg)
        if orientation is None:
            return None
        (x1, y1), (x2, y2) = seg.start, seg.end
        if orientation == HORIZONTAL:
            return cls(HORIZONTAL, (y1 + y2) / 2, min(x1, x2), max(x1, x2), seg)
        return cls(VERTICAL, (x1 + x2) / 2, min(y1, y2), max(y1, y2), seg)

    def covers(self, value: float, tolerance: float) -> bool:
        return self.lo - tolerance <= value <= self.hi + tolerance

    def to_segment(self, kind: Optional[SegmentKind] = None) -> Segment:
        if not self.modified and kind is None:
            return self.source
        if self.orientation == HORIZONTAL:
            points = ((self.lo, self.fixed), (self.hi, self.fixed))
        else:
            points = ((self.fixed, self.lo), (self.fixed, self.hi))
        return self.source.with_points(points, kind=kind or SegmentKind.EXTENDED)


def axis_orientation(seg: Segment) -> Optional[str]:
    """HORIZONTAL, VERTICAL or None for a 2-point segment"""
    if len(seg.points) != 2:
        return None
    dx = abs(seg.end[0] - seg.start[0])
    dy = abs(seg.end[1] - seg.start[1])
    if dx == 0 and dy == 0:
        return None
    if dy <= dx * AXIS_SLOPE:
        return HORIZONTAL
    if dx <= dy * AXIS_SLOPE:
        return VERTICAL
    return None


def _point_segment_distance(p: Point, a: Point, b: Point) -> float:
    ax, ay = a
    bx, by = b
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return distance(p, a)
    t = max(0.0, min(1.0, ((p[0] - ax) * dx + (p[1] - ay) * dy) / length_sq))
    return distance(p, (ax + t * dx, ay + t * dy))


class WallNormalizer:
    """
    Normalizes double-line walls using a measured wall thickness.

    The configured thickness bounds the search for parallel face pairs; the
    modal separation of the pairs found is the thickness every later pass uses.
    """

    def normalize(
        self,
        segments: Sequence[Segment],
        wall_thickness: float,
        skip_collapse: bool = False
    ) -> WallNormalizationResult:
        """
        Run all wall passes.

        Args:
            segments: Filtered and bridged segments
            wall_thickness: Configured thickness envelope, must be > 0
            skip_collapse: Keep the room-side faces instead of centerlines

        Returns:
            WallNormalizationResult with the normalized 2-point segments
        """
        lines = self.explode(segments)
        measured = self.measure_wall_thickness(lines, wall_thickness)
        thickness = measured if measured is not None else wall_thickness
        stats = {"input_lines": len(lines)}
        logger.info(f"Wall normalization on {len(lines)} lines, "
                    f"measured thickness {measured}, working thickness {thickness}")

        if skip_collapse:
            lines = run_stage(
                "extract_inner_boundaries",
                lambda ls: self.extract_inner_boundaries(ls, wall_thickness),
                lines
            )
        else:
            collapse_limit = wall_thickness
            if measured is not None:
                collapse_limit = min(wall_thickness, measured * 1.5)
            lines = run_stage(
                "collapse_parallel_walls",
                lambda ls: self.collapse_parallel_walls(ls, collapse_limit),
                lines
            )
        stats["after_walls"] = len(lines)

        lines = run_stage("merge_collinear", lambda ls: self.merge_collinear_segments(ls, thickness / 2), lines)
        stats["after_merge"] = len(lines)
        lines = run_stage("extend_to_intersections", lambda ls: self.extend_to_intersections(ls, thickness * 4), lines)
        lines = run_stage("filter_open_lines", lambda ls: self.filter_open_lines(ls, thickness * 2), lines)
        stats["after_open_filter"] = len(lines)

        if not skip_collapse and measured is not None:
            lines = run_stage(
                "duplicate_dividing_walls",
                lambda ls: self.duplicate_dividing_walls(ls, thickness * 2),
                lines
            )
        stats["output_lines"] = len(lines)

        logger.info(f"Wall normalization produced {len(lines)} lines")
        return WallNormalizationResult(
            segments=lines,
            measured_thickness=measured,
            working_thickness=thickness,
            inner_boundary_mode=skip_collapse,
            stats=stats,
        )

    def explode(self, segments: Sequence[Segment]) -> List[Segment]:
        """Break polylines into 2-point segments that keep their origin index"""
        lines: List[Segment] = []
        for seg in segments:
            lines.extend(seg.edges())
        return lines

    def parallel_pairs(self, lines: Sequence[Segment], max_distance: float) -> List[Tuple[int, int, float]]:
        """
        Overlapping parallel line pairs separated by at most max_distance.

        Returns:
            (i, j, separation) with i < j, ordered by i then j
        """
        n = len(lines)
        if n < 2:
            return []

        starts = np.array([s.start for s in lines], dtype=float)
        ends = np.array([s.end for s in lines], dtype=float)
        vectors = ends - starts
        lengths = np.hypot(vectors[:, 0], vectors[:, 1])
        valid = lengths > 0
        dirs = np.zeros_like(vectors)
        dirs[valid] = vectors[valid] / lengths[valid, None]
        mids = (starts + ends) / 2

        pairs: List[Tuple[int, int, float]] = []
        for i in range(n - 1):
            if not valid[i]:
                continue
            d = dirs[i]
            rest = slice(i + 1, n)
            dot = np.abs(dirs[rest] @ d)
            rel = mids[rest] - starts[i]
            separation = np.abs(rel[:, 0] * d[1] - rel[:, 1] * d[0])
            t_start = (starts[rest] - starts[i]) @ d
            t_end = (ends[rest] - starts[i]) @ d
            lo = np.minimum(t_start, t_end)
            hi = np.maximum(t_start, t_end)
            overlaps = ~((hi < -0.1 * lengths[i]) | (lo > 1.1 * lengths[i]))
            ok = (
                valid[rest]
                & (dot >= PARALLEL_DOT)
                & (separation > MIN_WALL_SEPARATION)
                & (separation <= max_distance)
                & overlaps
            )
            for j in np.nonzero(ok)[0]:
                pairs.append((i, i + 1 + int(j), float(separation[j])))
        return pairs

    def measure_wall_thickness(self, lines: Sequence[Segment], max_thickness: float) -> Optional[float]:
        """Modal separation of parallel face pairs, rounded to 0.1"""
        pairs = self.parallel_pairs(lines, max_thickness)
        if not pairs:
            logger.debug("No parallel wall pairs found for thickness measurement")
            return None

        separations = np.round(np.array([p[2] for p in pairs]), 1)
        values, counts = np.unique(separations, return_counts=True)
        # unique() sorts ascending, so argmax keeps the smaller value on ties
        modal = float(values[int(np.argmax(counts))])
        logger.debug(f"Measured wall thickness {modal} from {len(pairs)} pairs")
        return modal

    def collapse_parallel_walls(self, lines: Sequence[Segment], max_distance: float) -> List[Segment]:
        """Replace each greedily paired set of wall faces by its centerline"""
        partner: Dict[int, Tuple[int, float]] = {}
        for i, j, separation in self.parallel_pairs(lines, max_distance):
            if i in partner or j in partner:
                continue
            partner[i] = (j, separation)
            partner[j] = (i, separation)

        result: List[Segment] = []
        for i, line in enumerate(lines):
            if i not in partner:
                result.append(line)
                continue
            j, separation = partner[i]
            if j < i:
                continue
            result.append(self._centerline(line, lines[j], separation))

        logger.debug(f"Collapsed {len(partner) // 2} wall pairs")
        return result

    def _centerline(self, a: Segment, b: Segment, separation: float) -> Segment:
        same = distance(a.start, b.start) + distance(a.end, b.end)
        crossed = distance(a.start, b.end) + distance(a.end, b.start)
        b_start, b_end = (b.start, b.end) if same <= crossed else (b.end, b.start)
        points = (
            ((a.start[0] + b_start[0]) / 2, (a.start[1] + b_start[1]) / 2),
            ((a.end[0] + b_end[0]) / 2, (a.end[1] + b_end[1]) / 2),
        )
        return Segment(
            points=points,
            line_width=(a.line_width + b.line_width) / 2,
            is_stroked=a.is_stroked or b.is_stroked,
            is_filled=a.is_filled or b.is_filled,
            origin_index=min(a.origin_index, b.origin_index),
            kind=SegmentKind.CENTERLINE,
            wall_thickness=separation,
        )

    def extract_inner_boundaries(self, lines: Sequence[Segment], max_distance: float) -> List[Segment]:
        """
        Keep the face of each wall pair that bounds a room.

        Exterior walls keep only the face nearer the drawing centroid. Interior
        walls keep both faces so each neighbouring room has its own line.
        """
        if not lines:
            return []

        all_points = np.array([p for s in lines for p in (s.start, s.end)], dtype=float)
        centroid = all_points.mean(axis=0)
        min_xy = all_points.min(axis=0)
        max_xy = all_points.max(axis=0)

        dropped = set()
        kept = set()
        for i, j, separation in self.parallel_pairs(lines, max_distance):
            if i in dropped or j in dropped or i in kept or j in kept:
                continue
            a, b = lines[i], lines[j]
            if not (self._on_extent(a, min_xy, max_xy, separation)
                    or self._on_extent(b, min_xy, max_xy, separation)):
                kept.update((i, j))
                continue
            dist_a = math.hypot(a.midpoint[0] - centroid[0], a.midpoint[1] - centroid[1])
            dist_b = math.hypot(b.midpoint[0] - centroid[0], b.midpoint[1] - centroid[1])
            inner, outer = (i, j) if dist_a <= dist_b else (j, i)
            kept.add(inner)
            dropped.add(outer)

        result = []
        for i, line in enumerate(lines):
            if i in dropped:
                continue
            if i in kept:
                line = line.derive(kind=SegmentKind.INNER_BOUNDARY)
            result.append(line)
        logger.debug(f"Inner boundary extraction dropped {len(dropped)} exterior faces")
        return result

    def _on_extent(self, seg: Segment, min_xy: np.ndarray, max_xy: np.ndarray, tolerance: float) -> bool:
        orientation = axis_orientation(seg)
        if orientation is None:
            return False
        axis = 1 if orientation == HORIZONTAL else 0
        value = (seg.start[axis] + seg.end[axis]) / 2
        return value - min_xy[axis] <= tolerance or max_xy[axis] - value <= tolerance

    def merge_collinear_segments(self, lines: Sequence[Segment], tolerance: float) -> List[Segment]:
        """
        Concatenate axis-aligned pieces lying on the same wall line.

        Pieces merge when the gap between them is at most 2*tolerance, unless
        a perpendicular line crosses inside the gap.
        """
        horizontals: List[_AxisLine] = []
        verticals: List[_AxisLine] = []
        others: List[Segment] = []
        for line in lines:
            axis_line = _AxisLine.from_segment(line)
            if axis_line is None:
                others.append(line)
            elif axis_line.orientation == HORIZONTAL:
                horizontals.append(axis_line)
            else:
                verticals.append(axis_line)

        merged = (
            self._merge_axis_group(horizontals, verticals, tolerance)
            + self._merge_axis_group(verticals, horizontals, tolerance)
        )
        result = merged + others
        result.sort(key=lambda s: s.origin_index)
        return result

    def _merge_axis_group(
        self,
        group: List[_AxisLine],
        crossing: List[_AxisLine],
        tolerance: float
    ) -> List[Segment]:
        result: List[Segment] = []
        for cluster in self._cluster_by_fixed(group, tolerance):
            cluster.sort(key=lambda a: (a.lo, a.source.origin_index))
            current = [cluster[0]]
            lo, hi = cluster[0].lo, cluster[0].hi
            for line in cluster[1:]:
                fixed = sum(a.fixed for a in current) / len(current)
                blocked = any(
                    hi - tolerance < c.fixed < line.lo + tolerance and c.covers(fixed, tolerance)
                    for c in crossing
                )
                if line.lo <= hi + 2 * tolerance and not blocked:
                    current.append(line)
                    hi = max(hi, line.hi)
                    continue
                result.append(self._merge_run(current, lo, hi))
                current = [line]
                lo, hi = line.lo, line.hi
            result.append(self._merge_run(current, lo, hi))
        return result

    def _cluster_by_fixed(self, group: List[_AxisLine], tolerance: float) -> List[List[_AxisLine]]:
        clusters: List[List[_AxisLine]] = []
        for line in sorted(group, key=lambda a: (a.fixed, a.source.origin_index)):
            if clusters:
                last = clusters[-1]
                mean = sum(a.fixed for a in last) / len(last)
                if abs(line.fixed - mean) <= tolerance:
                    last.append(line)
                    continue
            clusters.append([line])
        return clusters

    def _merge_run(self, run: List[_AxisLine], lo: float, hi: float) -> Segment:
        if len(run) == 1:
            return run[0].source
        first = min(run, key=lambda a: a.source.origin_index)
        thicknesses = [a.source.wall_thickness for a in run if a.source.wall_thickness is not None]
        merged = _AxisLine(
            first.orientation,
            sum(a.fixed for a in run) / len(run),
            lo,
            hi,
            first.source.derive(
                line_width=max(a.source.line_width for a in run),
                wall_thickness=max(thicknesses) if thicknesses else None,
            ),
            modified=True,
        )
        return merged.to_segment(SegmentKind.MERGED)

    def extend_to_intersections(self, lines: Sequence[Segment], reach: float) -> List[Segment]:
        """
        Extend open wall ends up to `reach` onto the perpendicular wall they meet.

        Horizontal ends snap to the nearest vertical whose span covers them; the
        vertical's nearer end is pulled to the same corner. Verticals left
        untouched then extend to a horizontal that spans them.
        """
        axis_lines: List[Optional[_AxisLine]] = [_AxisLine.from_segment(s) for s in lines]
        horizontals = [a for a in axis_lines if a is not None and a.orientation == HORIZONTAL]
        verticals = [a for a in axis_lines if a is not None and a.orientation == VERTICAL]
        snapped = 0

        for h in horizontals:
            center = (h.lo + h.hi) / 2
            touching = [v for v in verticals if v.covers(h.fixed, reach)]
            left = self._nearest(touching, h.lo, reach, lambda v: v.fixed <= center)
            right = self._nearest(touching, h.hi, reach, lambda v: v.fixed >= center)
            if left is not None and left is right:
                # One wall cannot close both ends; keep the closer end
                if abs(left.fixed - h.lo) <= abs(right.fixed - h.hi):
                    right = None
                else:
                    left = None
            for v, end in ((left, "lo"), (right, "hi")):
                if v is None:
                    continue
                if getattr(h, end) != v.fixed:
                    setattr(h, end, v.fixed)
                    h.modified = True
                self._pull_end(v, h.fixed, 2 * reach, reach / 4)
                snapped += 1

        for v in verticals:
            if v.modified:
                continue
            spanning = [h for h in horizontals if h.covers(v.fixed, reach / 4)]
            for end in ("lo", "hi"):
                value = getattr(v, end)
                candidates = [
                    h for h in spanning
                    if abs(h.fixed - value) <= 2 * reach
                    and (h.fixed <= value if end == "lo" else h.fixed >= value)
                ]
                if candidates:
                    target = min(candidates, key=lambda h: (abs(h.fixed - value), h.source.origin_index))
                    if target.fixed != value:
                        setattr(v, end, target.fixed)
                        v.modified = True
                        snapped += 1

        logger.debug(f"Extended {snapped} wall ends to intersections")
        return [
            seg if axis_line is None else axis_line.to_segment()
            for seg, axis_line in zip(lines, axis_lines)
        ]

    def _nearest(self, candidates: List[_AxisLine], value: float, reach: float, side) -> Optional[_AxisLine]:
        matches = [c for c in candidates if abs(c.fixed - value) < reach and side(c)]
        if not matches:
            return None
        return min(matches, key=lambda c: (abs(c.fixed - value), c.source.origin_index))

    def _pull_end(self, line: _AxisLine, value: float, extend_limit: float, trim_limit: float) -> None:
        """Move the line end nearer to value onto it: extend up to extend_limit, trim up to trim_limit"""
        if line.lo <= value <= line.hi:
            end = "lo" if value - line.lo <= line.hi - value else "hi"
            if abs(getattr(line, end) - value) > trim_limit:
                return
        else:
            end = "lo" if value < line.lo else "hi"
            if abs(getattr(line, end) - value) > extend_limit:
                return
        if getattr(line, end) != value:
            setattr(line, end, value)
            line.modified = True

    def filter_open_lines(self, lines: Sequence[Segment], tolerance: float) -> List[Segment]:
        """Drop 2-point lines with an end that touches no other line within tolerance"""
        result = []
        for i, line in enumerate(lines):
            if len(line.points) != 2:
                result.append(line)
                continue
            if all(self._connected(end, i, lines, tolerance) for end in (line.start, line.end)):
                result.append(line)
        logger.debug(f"Open line filter removed {len(lines) - len(result)} lines")
        return result

    def _connected(self, point: Point, index: int, lines: Sequence[Segment], tolerance: float) -> bool:
        for j, other in enumerate(lines):
            if j == index:
                continue
            for k in range(len(other.points) - 1):
                if _point_segment_distance(point, other.points[k], other.points[k + 1]) <= tolerance:
                    return True
        return False

    def duplicate_dividing_walls(self, lines: Sequence[Segment], tolerance: float) -> List[Segment]:
        """
        Add a second copy of every interior wall.

        An interior wall is an axis-aligned line away from the drawing extent
        whose both ends meet a perpendicular wall. The copy sits
        DIVIDING_WALL_OFFSET along the wall normal.
        """
        axis_lines = [(i, _AxisLine.from_segment(s)) for i, s in enumerate(lines)]
        horizontals = [a for _, a in axis_lines if a is not None and a.orientation == HORIZONTAL]
        verticals = [a for _, a in axis_lines if a is not None and a.orientation == VERTICAL]
        if len(lines) < 4 or len(horizontals) < 2 or len(verticals) < 2:
            return list(lines)

        min_x = min([v.fixed for v in verticals] + [h.lo for h in horizontals])
        max_x = max([v.fixed for v in verticals] + [h.hi for h in horizontals])
        min_y = min([h.fixed for h in horizontals] + [v.lo for v in verticals])
        max_y = max([h.fixed for h in horizontals] + [v.hi for v in verticals])

        result = list(lines)
        duplicated = 0
        for _, line in axis_lines:
            if line is None:
                continue
            if line.orientation == VERTICAL:
                interior = min_x + tolerance < line.fixed < max_x - tolerance
                crossing = horizontals
            else:
                interior = min_y + tolerance < line.fixed < max_y - tolerance
                crossing = verticals
            if not interior:
                continue
            meets_lo = any(abs(c.fixed - line.lo) <= tolerance and c.covers(line.fixed, tolerance) for c in crossing)
            meets_hi = any(abs(c.fixed - line.hi) <= tolerance and c.covers(line.fixed, tolerance) for c in crossing)
            if not (meets_lo and meets_hi):
                continue
            copy = _AxisLine(line.orientation, line.fixed + DIVIDING_WALL_OFFSET, line.lo, line.hi,
                             line.source, modified=True)
            result.append(copy.to_segment(SegmentKind.DUPLICATED))
            duplicated += 1

        logger.debug(f"Duplicated {duplicated} dividing walls")
        return result


wall_normalizer = WallNormalizer()
