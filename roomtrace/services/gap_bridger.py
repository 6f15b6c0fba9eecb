"""
Gap Bridger - joins segments whose endpoints nearly touch

CAD exports leave small gaps at corners and along wall runs. Segments are
merged into longer chains by contraction: every segment starts as its own
chain, and a successful bridge contracts two chains into one. Chains are
processed lowest id first, where a chain's id is the smallest input position
among its members, so the result does not depend on hash or set ordering.
"""

import heapq
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Sequence, Set

from roomtrace.parser.segment import Segment, SegmentKind, Point, distance

logger = logging.getLogger(__name__)

# Endpoints closer than this are treated as the same point
IDENTICAL_POINT_DISTANCE = 0.1
# |dot| above this means two directions are collinear
COLLINEAR_DOT = 0.95
# |dot| below this means two directions are perpendicular
PERPENDICULAR_DOT = 0.1
# Chains whose ends are this close get an explicit closing point
CLOSING_TOLERANCE = 1.0
# Ends closer than this already count as closed
COINCIDENT_DISTANCE = 0.001
# Furthest a perpendicular join may pull an end back to trim a corner overshoot
OVERSHOOT_ALLOWANCE = 1.0

END, START = "end", "start"
# Endpoint pairings in the order they are tried: (first chain side, second chain side)
ENDPOINT_COMBINATIONS = ((END, START), (END, END), (START, START), (START, END))


class UnionFind:
    """Disjoint sets over segment indices; the smaller index becomes the root"""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> int:
        root_a, root_b = self.find(a), self.find(b)
        root = min(root_a, root_b)
        self.parent[max(root_a, root_b)] = root
        return root


class EndpointGrid:
    """Uniform grid of chain endpoints for radius queries"""

    def __init__(self, cell_size: float):
        self.cell_size = max(cell_size, IDENTICAL_POINT_DISTANCE)
        self._cells: Dict[Tuple[int, int], Set[int]] = defaultdict(set)

    def _cell(self, point: Point) -> Tuple[int, int]:
        return (math.floor(point[0] / self.cell_size), math.floor(point[1] / self.cell_size))

    def add(self, chain_id: int, point: Point) -> None:
        self._cells[self._cell(point)].add(chain_id)

    def remove(self, chain_id: int, point: Point) -> None:
        cell = self._cells.get(self._cell(point))
        if cell is not None:
            cell.discard(chain_id)

    def nearby(self, point: Point) -> Set[int]:
        cx, cy = self._cell(point)
        found: Set[int] = set()
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                found.update(self._cells.get((cx + dx, cy + dy), ()))
        return found


@dataclass
class _Chain:
    """Working copy of a chain during bridging"""
    chain_id: int
    points: List[Point]
    line_width: float
    is_stroked: bool
    is_filled: bool
    has_curves: bool
    members: List[int]
    source: Optional[Segment] = None
    closed: bool = False

    @property
    def endpoints(self) -> Tuple[Point, Point]:
        return self.points[0], self.points[-1]

    def endpoint(self, side: str) -> Point:
        return self.points[-1] if side == END else self.points[0]

    def outward_direction(self, side: str) -> Optional[Point]:
        """Unit vector pointing out of the chain at one of its ends"""
        ordered = self.points if side == START else self.points[::-1]
        tip = ordered[0]
        for inner in ordered[1:]:
            dx, dy = tip[0] - inner[0], tip[1] - inner[1]
            length = math.hypot(dx, dy)
            if length > 1e-9:
                return (dx / length, dy / length)
        return None

    def oriented(self, side: str, at_tail: bool) -> List[Point]:
        """Points ordered so the given end is last (at_tail) or first"""
        ends_last = side == END
        return list(self.points) if ends_last == at_tail else list(self.points[::-1])


@dataclass
class BridgeResult:
    """Output of a bridging run"""
    segments: List[Segment]
    merge_count: int = 0
    closed_count: int = 0
    iterations_exhausted: bool = False
    groups: Dict[int, Tuple[int, ...]] = field(default_factory=dict)


class GapBridger:
    """
    Merges near-touching segments into chains.

    A pair merges when its endpoints are identical (closer than 0.1), when the
    gap is within tolerance and runs along two collinear ends, or when two
    perpendicular ends extended along their own direction meet within
    tolerance of both endpoints.
    """

    def __init__(self, closing_tolerance: float = CLOSING_TOLERANCE):
        self.closing_tolerance = closing_tolerance

    def bridge(self, segments: Sequence[Segment], gap_tolerance: float) -> BridgeResult:
        """
        Merge segments until no further bridge applies.

        Args:
            segments: Segments in extractor order
            gap_tolerance: Largest gap that may be bridged

        Returns:
            BridgeResult with the merged chains ordered by chain id
        """
        segments = list(segments)
        if not segments:
            return BridgeResult(segments=[])

        chains: Dict[int, _Chain] = {}
        for i, seg in enumerate(segments):
            chains[i] = _Chain(
                chain_id=i,
                points=list(seg.points),
                line_width=seg.line_width,
                is_stroked=seg.is_stroked,
                is_filled=seg.is_filled,
                has_curves=seg.has_curves,
                members=[seg.origin_index],
                source=seg,
                closed=seg.is_closed,
            )

        search_radius = max(gap_tolerance, IDENTICAL_POINT_DISTANCE)
        grid = EndpointGrid(search_radius)
        for chain in chains.values():
            if not chain.closed:
                for point in chain.endpoints:
                    grid.add(chain.chain_id, point)

        union_find = UnionFind(len(segments))
        queue = list(chains.keys())
        heapq.heapify(queue)
        max_iterations = 2 * len(segments)
        iterations = 0
        result = BridgeResult(segments=[])

        while queue:
            chain_id = heapq.heappop(queue)
            chain = chains.get(chain_id)
            if chain is None or chain.closed:
                continue
            if iterations >= max_iterations:
                logger.warning(f"Gap bridging stopped after {iterations} merges "
                               f"({len(chains)} chains remaining)")
                result.iterations_exhausted = True
                break

            partner = self._find_partner(chain, chains, grid, gap_tolerance)
            if partner is not None:
                other, points = partner
                iterations += 1
                result.merge_count += 1
                merged = self._contract(chain, other, points, union_find)
                for old in (chain, other):
                    for point in old.endpoints:
                        grid.remove(old.chain_id, point)
                    del chains[old.chain_id]
                chains[merged.chain_id] = merged
                if merged.closed:
                    continue
                for point in merged.endpoints:
                    grid.add(merged.chain_id, point)
                    for neighbour in grid.nearby(point):
                        heapq.heappush(queue, neighbour)
                heapq.heappush(queue, merged.chain_id)
                continue

            ring = self._self_bridge(chain, gap_tolerance)
            if ring is not None:
                iterations += 1
                result.closed_count += 1
                for point in chain.endpoints:
                    grid.remove(chain.chain_id, point)
                chain.points = ring
                chain.closed = True
                chain.source = None

        for chain in chains.values():
            if self._close_if_near(chain):
                result.closed_count += 1

        for chain_id in sorted(chains):
            chain = chains[chain_id]
            result.segments.append(self._to_segment(chain))
            result.groups[chain_id] = tuple(sorted(chain.members))

        logger.info(f"Gap bridging: {len(segments)} segments -> {len(result.segments)} chains "
                    f"({result.merge_count} merges, {result.closed_count} closed)")
        return result

    def bridge_pair(self, first: Segment, second: Segment, gap_tolerance: float) -> Optional[Segment]:
        """Merge two segments if any bridge applies, else None"""
        result = self.bridge([first.derive(origin_index=0), second.derive(origin_index=1)], gap_tolerance)
        if len(result.segments) != 1:
            return None
        return result.segments[0].derive(origin_index=min(first.origin_index, second.origin_index))

    def _find_partner(
        self,
        chain: _Chain,
        chains: Dict[int, _Chain],
        grid: EndpointGrid,
        gap_tolerance: float
    ) -> Optional[Tuple[_Chain, List[Point]]]:
        candidates: Set[int] = set()
        for point in chain.endpoints:
            candidates.update(grid.nearby(point))
        candidates.discard(chain.chain_id)

        for other_id in sorted(candidates):
            other = chains.get(other_id)
            if other is None or other.closed:
                continue
            points = self.join_chains(chain, other, gap_tolerance)
            if points is not None:
                return other, points
        return None

    def join_chains(self, first: _Chain, second: _Chain, gap_tolerance: float) -> Optional[List[Point]]:
        """
        Point sequence of the two chains joined at their best endpoint pair.

        Every endpoint pairing is tried; the smallest bridgeable gap wins and
        equal gaps keep the pairing order end-start, end-end, start-start,
        start-end.
        """
        best: Optional[Tuple[float, List[Point]]] = None
        for first_side, second_side in ENDPOINT_COMBINATIONS:
            p = first.endpoint(first_side)
            q = second.endpoint(second_side)
            gap = distance(p, q)
            if best is not None and gap >= best[0]:
                continue
            joint = self.bridge_points(
                p, first.outward_direction(first_side),
                q, second.outward_direction(second_side),
                gap_tolerance
            )
            if joint is None:
                continue
            head = first.oriented(first_side, at_tail=True)
            tail = second.oriented(second_side, at_tail=False)
            best = (gap, head[:-1] + joint + tail[1:])
        return best[1] if best else None

    def bridge_points(
        self,
        p: Point,
        p_direction: Optional[Point],
        q: Point,
        q_direction: Optional[Point],
        gap_tolerance: float
    ) -> Optional[List[Point]]:
        """
        Points replacing endpoints p and q when they can be bridged.

        Returns:
            [midpoint] for identical or collinear ends, [intersection] for
            perpendicular ends, None when the ends cannot be bridged
        """
        gap = distance(p, q)
        midpoint = ((p[0] + q[0]) / 2, (p[1] + q[1]) / 2)
        if gap < IDENTICAL_POINT_DISTANCE:
            return [midpoint]
        if gap > gap_tolerance or p_direction is None or q_direction is None:
            return None

        dot = abs(p_direction[0] * q_direction[0] + p_direction[1] * q_direction[1])

        if dot > COLLINEAR_DOT:
            gx, gy = (q[0] - p[0]) / gap, (q[1] - p[1]) / gap
            # The gap must run along both ends, not across a corridor
            along_p = abs(gx * p_direction[0] + gy * p_direction[1])
            along_q = abs(gx * q_direction[0] + gy * q_direction[1])
            if along_p > COLLINEAR_DOT and along_q > COLLINEAR_DOT:
                return [midpoint]
            return None

        if dot < PERPENDICULAR_DOT:
            intersection = self._ray_intersection(p, p_direction, q, q_direction)
            if intersection is None:
                return None
            point, t, s = intersection
            # Both ends must extend forward; only a small overshoot may be trimmed
            if -OVERSHOOT_ALLOWANCE <= t <= gap_tolerance and -OVERSHOOT_ALLOWANCE <= s <= gap_tolerance:
                return [point]
        return None

    def _ray_intersection(
        self,
        p: Point,
        d1: Point,
        q: Point,
        d2: Point
    ) -> Optional[Tuple[Point, float, float]]:
        # Solve p + t*d1 = q + s*d2 by Cramer's rule
        det = d2[0] * d1[1] - d1[0] * d2[1]
        if abs(det) < 1e-12:
            return None
        rx, ry = q[0] - p[0], q[1] - p[1]
        t = (d2[0] * ry - rx * d2[1]) / det
        s = (d1[0] * ry - d1[1] * rx) / det
        # Average both parametrisations so swapping p and q gives the same point
        x = ((p[0] + t * d1[0]) + (q[0] + s * d2[0])) / 2
        y = ((p[1] + t * d1[1]) + (q[1] + s * d2[1])) / 2
        return (x, y), t, s

    def _self_bridge(self, chain: _Chain, gap_tolerance: float) -> Optional[List[Point]]:
        """Closed ring when a chain's own ends can be bridged"""
        if len(chain.points) < 3:
            return None
        start, end = chain.endpoints
        if distance(start, end) <= self.closing_tolerance:
            return None
        joint = self.bridge_points(
            end, chain.outward_direction(END),
            start, chain.outward_direction(START),
            gap_tolerance
        )
        if joint is None:
            return None
        ring = joint + chain.points[1:-1] + joint
        if len(set(ring)) < 3:
            return None
        return ring

    def _close_if_near(self, chain: _Chain) -> bool:
        if chain.closed or len(chain.points) < 3:
            return False
        gap = distance(*chain.endpoints)
        if COINCIDENT_DISTANCE < gap <= self.closing_tolerance:
            chain.points = chain.points + [chain.points[0]]
            chain.closed = True
            chain.source = None
            return True
        return False

    def _contract(self, first: _Chain, second: _Chain, points: List[Point], union_find: UnionFind) -> _Chain:
        root = union_find.union(first.chain_id, second.chain_id)
        return _Chain(
            chain_id=root,
            points=points,
            line_width=max(first.line_width, second.line_width),
            is_stroked=first.is_stroked or second.is_stroked,
            is_filled=first.is_filled or second.is_filled,
            has_curves=first.has_curves or second.has_curves,
            members=first.members + second.members,
            closed=len(points) > 2 and distance(points[0], points[-1]) <= COINCIDENT_DISTANCE,
        )

    def _to_segment(self, chain: _Chain) -> Segment:
        if chain.source is not None:
            return chain.source
        kind = SegmentKind.MERGED if len(chain.members) > 1 else SegmentKind.ORIGINAL
        return Segment(
            points=tuple(chain.points),
            line_width=chain.line_width,
            is_stroked=chain.is_stroked,
            is_filled=chain.is_filled,
            origin_index=min(chain.members),
            kind=kind,
            has_curves=chain.has_curves,
        )


gap_bridger = GapBridger()
