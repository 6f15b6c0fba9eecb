"""
Document-side collaborators: segment model, drawing operators, page extraction
"""

from .segment import Segment, Label, SegmentKind, ShapeType
from .pdf_extractor import PageExtractor, PageExtraction, Unavailable, ExtractionBackend, page_extractor
from .drawing_operators import replay_operators
from .exceptions import DocumentOpenError, PageOutOfRangeError

__all__ = [
    'Segment',
    'Label',
    'SegmentKind',
    'ShapeType',
    'PageExtractor',
    'PageExtraction',
    'Unavailable',
    'ExtractionBackend',
    'page_extractor',
    'replay_operators',
    'DocumentOpenError',
    'PageOutOfRangeError',
]
