"""
Pipeline Orchestrator - sequences the geometry stages for one page
Filter -> bridge -> normalize walls -> assemble -> refine -> match labels
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Dict, Any, Union

from roomtrace.parser.pdf_extractor import PageExtractor, Unavailable, page_extractor
from roomtrace.parser.segment import Segment, Label
from roomtrace.services.extraction_settings import ExtractionSettings
from roomtrace.services.gap_bridger import GapBridger, gap_bridger
from roomtrace.services.label_matcher import LabelMatcher, label_matcher
from roomtrace.services.path_statistics import compute_path_statistics
from roomtrace.services.polygon_assembler import PolygonAssembler, polygon_assembler
from roomtrace.services.polygon_refiner import PolygonRefiner, polygon_refiner
from roomtrace.services.room_geometry import Room, RoomBoundary
from roomtrace.services.segment_filter import SegmentFilter, segment_filter
from roomtrace.services.settings_provider import SettingsProvider
from roomtrace.services.wall_normalizer import WallNormalizer, wall_normalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResultMetadata:
    units: str = "feet"
    page_count: int = 1
    scale: Optional[float] = None


@dataclass(frozen=True)
class PipelineDiagnostics:
    """Read-only snapshots of intermediate stage outputs"""
    page_width: float
    page_height: float
    filtered_segments: Tuple[Segment, ...] = ()
    merged_segments: Tuple[Segment, ...] = ()
    normalized_segments: Tuple[Segment, ...] = ()
    raw_rings: Tuple[RoomBoundary, ...] = ()
    final_rings: Tuple[RoomBoundary, ...] = ()
    measured_wall_thickness: Optional[float] = None
    discarded_segments: int = 0
    merge_groups: Dict[int, Tuple[int, ...]] = field(default_factory=dict)
    assembly: Dict[str, int] = field(default_factory=dict)
    refinement: Dict[str, int] = field(default_factory=dict)
    statistics: Dict[str, Any] = field(default_factory=dict)
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class ExtractionResult:
    """Rooms found on one page"""
    rooms: Tuple[Room, ...]
    metadata: ResultMetadata
    diagnostics: PipelineDiagnostics


class PipelineOrchestrator:
    """
    Runs the extraction stages for one page.

    Every call works on its own copies of the input collections; the only
    state shared between calls is the settings provider's cache.
    """

    def __init__(
        self,
        settings_provider: Optional[SettingsProvider] = None,
        extractor: Optional[PageExtractor] = None,
        path_filter: Optional[SegmentFilter] = None,
        bridger: Optional[GapBridger] = None,
        normalizer: Optional[WallNormalizer] = None,
        assembler: Optional[PolygonAssembler] = None,
        refiner: Optional[PolygonRefiner] = None,
        matcher: Optional[LabelMatcher] = None
    ):
        self.settings_provider = settings_provider
        self.extractor = extractor or page_extractor
        self.segment_filter = path_filter or segment_filter
        self.bridger = bridger or gap_bridger
        self.normalizer = normalizer or wall_normalizer
        self.assembler = assembler or polygon_assembler
        self.refiner = refiner or polygon_refiner
        self.matcher = matcher or label_matcher

    def run(
        self,
        segments: Sequence[Segment],
        labels: Sequence[Label],
        page_width: float,
        page_height: float,
        settings: Optional[ExtractionSettings] = None,
        page_count: int = 1,
        units: str = "feet",
        scale: Optional[float] = None
    ) -> ExtractionResult:
        """
        Extract rooms from already-extracted page content.

        Args:
            segments: Vector paths from the page
            labels: Text labels from the page
            page_width: Page width in drawing units
            page_height: Page height in drawing units
            settings: Extraction settings, defaults when omitted
            page_count: Pages in the source document
            units: Units reported in the metadata
            scale: Drawing scale when known

        Returns:
            ExtractionResult; the room list is empty when nothing closes
        """
        start_time = time.time()
        settings = settings or ExtractionSettings()
        polygon_settings = settings.polygon
        segments = list(segments)
        labels = list(labels)
        logger.info(f"Starting extraction: {len(segments)} segments, {len(labels)} labels, "
                    f"page {page_width} x {page_height}")

        filtered = self.segment_filter.filter_segments(segments, settings, page_width, page_height)

        merged = filtered
        merge_groups: Dict[int, Tuple[int, ...]] = {}
        if polygon_settings.gap_tolerance > 0:
            bridged = self.bridger.bridge(filtered, polygon_settings.gap_tolerance)
            merged = bridged.segments
            merge_groups = bridged.groups

        normalized = merged
        measured_thickness = None
        inset_thickness = None
        if polygon_settings.wall_thickness > 0:
            walls = self.normalizer.normalize(
                merged,
                polygon_settings.wall_thickness,
                skip_collapse=polygon_settings.skip_collapse_parallel_walls
            )
            normalized = walls.segments
            measured_thickness = walls.measured_thickness
            inset_thickness = walls.inset_thickness

        assembly = self.assembler.assemble(normalized)
        refinement = self.refiner.refine(assembly.rings, polygon_settings, inset_thickness)
        rooms = self.matcher.match(refinement.rings, labels)

        elapsed = time.time() - start_time
        diagnostics = PipelineDiagnostics(
            page_width=page_width,
            page_height=page_height,
            filtered_segments=tuple(filtered),
            merged_segments=tuple(merged),
            normalized_segments=tuple(normalized),
            raw_rings=tuple(assembly.rings),
            final_rings=tuple(refinement.rings),
            measured_wall_thickness=measured_thickness,
            discarded_segments=len(segments) - len(filtered),
            merge_groups=merge_groups,
            assembly=assembly.diagnostics,
            refinement={
                "input": refinement.input_count,
                "after_inset": refinement.after_inset,
                "after_dedupe": refinement.after_dedupe,
                "after_containment": refinement.after_containment,
                "after_min_area": refinement.after_min_area,
                "after_min_width": refinement.after_min_width,
            },
            statistics={
                "raw": compute_path_statistics(segments).to_dict(),
                "filtered": compute_path_statistics(filtered).to_dict(),
            },
            elapsed_seconds=elapsed,
        )

        logger.info(f"Extraction finished in {elapsed:.2f}s: {len(rooms)} rooms")
        return ExtractionResult(
            rooms=tuple(rooms),
            metadata=ResultMetadata(units=units, page_count=page_count, scale=scale),
            diagnostics=diagnostics,
        )

    def run_document(
        self,
        pdf_path: str,
        page_index: int = 0,
        backend: str = "pymupdf"
    ) -> Union[ExtractionResult, Unavailable]:
        """
        Extract rooms from a PDF page.

        Args:
            pdf_path: Path to the PDF
            page_index: 0-based page number
            backend: Extraction backend name

        Returns:
            ExtractionResult, or the Unavailable variant from the extractor

        Raises:
            DocumentOpenError: The PDF cannot be opened
            PageOutOfRangeError: The page does not exist
        """
        if self.settings_provider is not None:
            settings = self.settings_provider.get_settings(pdf_path)
        else:
            settings = ExtractionSettings()

        extraction = self.extractor.extract(pdf_path, page_index, backend)
        if isinstance(extraction, Unavailable):
            logger.warning(f"Extraction backend unavailable: {extraction.reason}")
            return extraction

        return self.run(
            extraction.segments,
            extraction.labels,
            extraction.page_width,
            extraction.page_height,
            settings=settings,
            page_count=extraction.page_count,
        )


pipeline_orchestrator = PipelineOrchestrator()
