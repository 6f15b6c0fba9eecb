"""
Label Matcher - names each room after the nearest text label
"""

import logging
import math
import re
from typing import List, Optional, Sequence, Tuple

from roomtrace.parser.segment import Label
from roomtrace.services.room_geometry import RoomBoundary, Room

logger = logging.getLogger(__name__)

# Tried in order; the first match gives the level
LEVEL_PATTERNS = [
    re.compile(r"LEVEL\s+(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*F(?:LOOR)?\b", re.IGNORECASE),
    re.compile(r"(\d+)[\s-]F", re.IGNORECASE),
    re.compile(r"^(\d+)[\s-]", re.IGNORECASE),
]

# Tried in order; the first match outside the level text gives the number
NUMBER_PATTERNS = [
    re.compile(r"ROOM\s+(\d+[A-Z]?)", re.IGNORECASE),
    re.compile(r"\bR\s*(\d+[A-Z]?)", re.IGNORECASE),
    re.compile(r"(\d{2,}[A-Z]?)", re.IGNORECASE),
]


def parse_level(text: str) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    """Level number and the span it was read from"""
    for pattern in LEVEL_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1), match.span(1)
    return None, None


def parse_room_number(text: str, level: Optional[str] = None,
                      level_span: Optional[Tuple[int, int]] = None) -> Optional[str]:
    """Room number from label text, skipping the digits that gave the level"""
    for pattern in NUMBER_PATTERNS:
        for match in pattern.finditer(text):
            start, end = match.span(1)
            if level_span and start < level_span[1] and end > level_span[0]:
                continue
            return match.group(1).upper()

    if level:
        fallback = re.search(rf"{re.escape(level)}[\s-]+(\d+[A-Z]?)", text, re.IGNORECASE)
        if fallback:
            return fallback.group(1).upper()
    return None


class LabelMatcher:
    """Assigns the nearest label to each room boundary"""

    def match(self, boundaries: Sequence[RoomBoundary], labels: Sequence[Label]) -> List[Room]:
        """
        Build rooms from boundaries in order.

        Args:
            boundaries: Final rings from the refiner
            labels: Text labels from the page

        Returns:
            One Room per boundary with ids room-001, room-002, ...
        """
        rooms = []
        matched = 0
        for n, boundary in enumerate(boundaries, start=1):
            label = self.nearest_label(boundary, labels)
            if label is None:
                rooms.append(Room(id=f"room-{n:03d}", boundary=boundary, name=f"Room {n}"))
                continue

            matched += 1
            level, level_span = parse_level(label.text)
            rooms.append(Room(
                id=f"room-{n:03d}",
                boundary=boundary,
                name=label.text,
                number=parse_room_number(label.text, level, level_span),
                level=level,
                label_text=label.text,
            ))

        logger.info(f"Matched labels to {matched} of {len(rooms)} rooms")
        return rooms

    def nearest_label(self, boundary: RoomBoundary, labels: Sequence[Label]) -> Optional[Label]:
        """Label closest to the vertex centroid; the first one wins ties"""
        cx, cy = boundary.vertex_centroid
        best = None
        best_distance = math.inf
        for label in labels:
            d = math.hypot(label.center_x - cx, label.center_y - cy)
            if d < best_distance:
                best = label
                best_distance = d
        return best


label_matcher = LabelMatcher()
