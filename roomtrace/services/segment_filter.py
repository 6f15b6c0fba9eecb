"""
Segment Filter - removes paths unlikely to be walls
"""

import logging
from typing import List, Sequence, Callable, Tuple

from roomtrace.parser.segment import Segment
from roomtrace.services.extraction_settings import ExtractionSettings

logger = logging.getLogger(__name__)

SegmentPredicate = Callable[[Segment], bool]


class SegmentFilter:
    """
    Applies the enabled filters in a fixed order: line width, room size
    length band, minimum length, shape allow-list.
    """

    def filter_segments(
        self,
        segments: Sequence[Segment],
        settings: ExtractionSettings,
        page_width: float,
        page_height: float
    ) -> List[Segment]:
        """
        Keep segments that pass every enabled filter.

        Args:
            segments: Candidate segments from the extractor
            settings: Extraction settings
            page_width: Page width in drawing units
            page_height: Page height in drawing units

        Returns:
            Surviving segments in input order
        """
        result = list(segments)
        input_count = len(result)

        for name, predicate in self._build_filters(settings, page_width, page_height):
            before = len(result)
            result = [s for s in result if predicate(s)]
            logger.debug(f"Filter {name}: removed {before - len(result)} of {before} segments")

        logger.info(f"Segment filter kept {len(result)} of {input_count} segments")
        return result

    def room_size_band(
        self,
        settings: ExtractionSettings,
        page_width: float,
        page_height: float
    ) -> Tuple[float, float]:
        """
        Length band implied by the expected room count.

        The lower bound uses the smaller page side and the upper bound the
        larger one, so both ends take the more permissive value.
        """
        room_size = settings.room_size
        lower = 0.0
        upper = float("inf")
        if room_size.max_room_count > 0:
            lower = min(page_width, page_height) / room_size.max_room_count
        if room_size.min_room_count > 0:
            upper = max(page_width, page_height) / room_size.min_room_count
        return lower, upper

    def _build_filters(
        self,
        settings: ExtractionSettings,
        page_width: float,
        page_height: float
    ) -> List[Tuple[str, SegmentPredicate]]:
        filters: List[Tuple[str, SegmentPredicate]] = []

        line_width = settings.line_width
        if line_width.enabled:
            filters.append((
                "line_width",
                lambda s: line_width.min_width <= s.line_width <= line_width.max_width
            ))

        if settings.room_size.enabled:
            lower, upper = self.room_size_band(settings, page_width, page_height)
            filters.append(("room_size", lambda s: lower <= s.length <= upper))

        length = settings.length
        if length.enabled:
            filters.append(("length", lambda s: s.length >= length.min_length))

        shape = settings.shape
        # An empty allow-list disables the filter
        if shape.enabled and shape.allowed:
            allowed = set(shape.allowed)
            filters.append(("shape", lambda s: s.shape.value in allowed))

        return filters


segment_filter = SegmentFilter()
