"""
Polygon Assembler - closed rings from a planar line network
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from shapely.geometry import LineString, MultiLineString
from shapely.ops import unary_union, polygonize_full

from roomtrace.parser.segment import Segment, Point
from roomtrace.services.room_geometry import RoomBoundary

logger = logging.getLogger(__name__)

# Paths shorter than this are ignored when building the network
MIN_PATH_LENGTH = 0.1


@dataclass
class AssemblyResult:
    """Rings found plus the network pieces that closed nothing"""
    rings: List[RoomBoundary]
    cut_edges: List[Tuple[Point, ...]] = field(default_factory=list)
    dangles: List[Tuple[Point, ...]] = field(default_factory=list)
    invalid_rings: int = 0
    rejected_rings: int = 0
    line_count: int = 0

    @property
    def diagnostics(self) -> dict:
        return {
            "line_count": self.line_count,
            "ring_count": len(self.rings),
            "cut_edges": len(self.cut_edges),
            "dangles": len(self.dangles),
            "invalid_rings": self.invalid_rings,
            "rejected_rings": self.rejected_rings,
        }


def geometry_parts(geometry) -> list:
    if geometry is None or geometry.is_empty:
        return []
    return list(getattr(geometry, "geoms", [geometry]))


class PolygonAssembler:
    """
    Polygonizes segments: the segments are noded into a planar graph with
    unary_union and every face of that graph becomes a candidate ring.
    """

    def assemble(self, segments: Sequence[Segment]) -> AssemblyResult:
        """
        Extract all closed rings supported by the segments.

        Args:
            segments: Bridged and normalized segments

        Returns:
            AssemblyResult with rings in deterministic order; an empty ring
            list is a normal outcome for open line work
        """
        lines = self._to_lines(segments)
        if not lines:
            logger.info("Polygon assembly: no usable lines")
            return AssemblyResult(rings=[])

        noded = unary_union(MultiLineString(lines))
        polygons, cuts, dangles, invalids = polygonize_full(noded)

        rings: List[RoomBoundary] = []
        rejected = 0
        for polygon in geometry_parts(polygons):
            boundary = RoomBoundary.from_polygon(polygon)
            if boundary is None:
                rejected += 1
                continue
            rings.append(boundary)

        unique = {ring.points: ring for ring in rings}
        rings = sorted(unique.values(), key=lambda r: r.sort_key())

        result = AssemblyResult(
            rings=rings,
            cut_edges=[tuple(g.coords) for g in geometry_parts(cuts)],
            dangles=[tuple(g.coords) for g in geometry_parts(dangles)],
            invalid_rings=len(geometry_parts(invalids)),
            rejected_rings=rejected,
            line_count=len(lines),
        )
        logger.info(f"Polygon assembly: {result.diagnostics}")
        return result

    def _to_lines(self, segments: Sequence[Segment]) -> List[LineString]:
        lines = []
        for seg in segments:
            if seg.length < MIN_PATH_LENGTH:
                continue
            points: List[Point] = []
            for pt in seg.points:
                if not points or pt != points[-1]:
                    points.append(pt)
            if len(points) >= 2:
                lines.append(LineString(points))
        return lines


polygon_assembler = PolygonAssembler()
