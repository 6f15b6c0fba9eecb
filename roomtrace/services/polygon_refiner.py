"""
Polygon Refiner - reduces raw rings to the rooms a person would name

Operations run in a fixed order: inset, near-duplicate removal, outer/nested
removal, minimum area, minimum width. Each runs under a stage guard, so a
geometry failure leaves that stage's input untouched.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from shapely.geometry import Polygon

from roomtrace.services.error_types import run_stage
from roomtrace.services.extraction_settings import PolygonSettings
from roomtrace.services.room_geometry import RoomBoundary
from roomtrace.services.polygon_assembler import geometry_parts

logger = logging.getLogger(__name__)

# Rings within this Hausdorff distance of an earlier ring are duplicates
DUPLICATE_RING_DISTANCE = 0.01
# Slack on containment tests for rings sharing edges
CONTAINMENT_TOLERANCE = 1e-6


@dataclass
class RefinementResult:
    """Refined rings plus a count per operation"""
    rings: List[RoomBoundary]
    input_count: int
    after_inset: int
    after_dedupe: int
    after_containment: int
    after_min_area: int
    after_min_width: int


def minimum_width(ring: RoomBoundary) -> float:
    """Short side of the ring's minimum rotated bounding rectangle"""
    rectangle = ring.polygon.minimum_rotated_rectangle
    coords = list(getattr(rectangle, "exterior", rectangle).coords)
    if len(coords) < 3:
        return 0.0
    sides = [
        math.hypot(coords[i + 1][0] - coords[i][0], coords[i + 1][1] - coords[i][1])
        for i in range(len(coords) - 1)
    ]
    return min(sides[:2]) if len(sides) >= 2 else 0.0


class PolygonRefiner:
    """Inset, containment and size filtering of assembled rings"""

    def refine(
        self,
        rings: Sequence[RoomBoundary],
        settings: PolygonSettings,
        inset_thickness: Optional[float] = None
    ) -> RefinementResult:
        """
        Apply every enabled refinement.

        Args:
            rings: Rings from the assembler in deterministic order
            settings: Polygon settings
            inset_thickness: Measured wall thickness; rings shrink by half of it

        Returns:
            RefinementResult with the surviving rings
        """
        current = list(rings)
        input_count = len(current)

        if inset_thickness:
            current = run_stage("inset", lambda rs: self.inset(rs, inset_thickness / 2), current)
        after_inset = len(current)

        current = run_stage("remove_duplicates", self.remove_duplicates, current)
        after_dedupe = len(current)

        if settings.remove_outer:
            current = run_stage("remove_outer", self.remove_outer, current)
        if settings.remove_nested:
            current = run_stage("remove_nested", self.remove_nested, current)
        after_containment = len(current)

        if settings.min_area > 0:
            current = run_stage("min_area", lambda rs: self.filter_min_area(rs, settings.min_area), current)
        after_min_area = len(current)

        if settings.min_width > 0:
            current = run_stage("min_width", lambda rs: self.filter_min_width(rs, settings.min_width), current)

        result = RefinementResult(
            rings=current,
            input_count=input_count,
            after_inset=after_inset,
            after_dedupe=after_dedupe,
            after_containment=after_containment,
            after_min_area=after_min_area,
            after_min_width=len(current),
        )
        logger.info(f"Polygon refinement kept {len(current)} of {input_count} rings")
        return result

    def inset(self, rings: Sequence[RoomBoundary], distance: float) -> List[RoomBoundary]:
        """Shrink every ring by distance; rings that vanish are dropped"""
        result: List[RoomBoundary] = []
        for ring in rings:
            shrunk = ring.polygon.buffer(-distance, join_style="mitre")
            for part in geometry_parts(shrunk):
                if not isinstance(part, Polygon):
                    continue
                boundary = RoomBoundary.from_polygon(part)
                if boundary is not None:
                    result.append(boundary)
        logger.debug(f"Inset by {distance}: {len(rings)} -> {len(result)} rings")
        return result

    def remove_duplicates(self, rings: Sequence[RoomBoundary]) -> List[RoomBoundary]:
        """Drop rings that repeat an earlier ring within DUPLICATE_RING_DISTANCE"""
        kept: List[RoomBoundary] = []
        for ring in rings:
            if any(
                abs(ring.area - other.area) <= DUPLICATE_RING_DISTANCE * max(ring.polygon.length, 1.0)
                and ring.polygon.hausdorff_distance(other.polygon) <= DUPLICATE_RING_DISTANCE
                for other in kept
            ):
                continue
            kept.append(ring)
        return kept

    def _contains(self, outer: RoomBoundary, inner: RoomBoundary) -> bool:
        if outer.area <= inner.area:
            return False
        return outer.polygon.buffer(CONTAINMENT_TOLERANCE, join_style="mitre").contains(inner.polygon)

    def remove_outer(self, rings: Sequence[RoomBoundary]) -> List[RoomBoundary]:
        """Drop every ring that contains another ring of the input"""
        rings = list(rings)
        return [
            ring for i, ring in enumerate(rings)
            if not any(self._contains(ring, other) for j, other in enumerate(rings) if i != j)
        ]

    def remove_nested(self, rings: Sequence[RoomBoundary]) -> List[RoomBoundary]:
        """Drop every ring contained by another ring of the input"""
        rings = list(rings)
        return [
            ring for i, ring in enumerate(rings)
            if not any(self._contains(other, ring) for j, other in enumerate(rings) if i != j)
        ]

    def filter_min_area(self, rings: Sequence[RoomBoundary], min_area: float) -> List[RoomBoundary]:
        return [ring for ring in rings if ring.area >= min_area]

    def filter_min_width(self, rings: Sequence[RoomBoundary], min_width: float) -> List[RoomBoundary]:
        return [ring for ring in rings if minimum_width(ring) >= min_width]


polygon_refiner = PolygonRefiner()
