"""
Pytest configuration and fixtures
"""
import pytest

from roomtrace.parser.segment import Segment
from roomtrace.services.extraction_settings import (
    ExtractionSettings,
    LineWidthSettings,
    LengthSettings,
    ShapeSettings,
    PolygonSettings,
    RoomSizeSettings,
)
from roomtrace.services.room_geometry import RoomBoundary


def _segment(*points, width=1.0, index=0, **kwargs):
    return Segment(points=tuple(points), line_width=width, origin_index=index, **kwargs)


def _rectangle_edges(x0, y0, x1, y1, start_index=0, width=1.0):
    corners = [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
    return [
        Segment(points=(corners[i], corners[(i + 1) % 4]), line_width=width, origin_index=start_index + i)
        for i in range(4)
    ]


@pytest.fixture
def make_segment():
    """Factory for segments: make_segment((0, 0), (10, 0), width=2, index=3)"""
    return _segment


@pytest.fixture
def rectangle_edges():
    """Factory for the four edges of an axis-aligned rectangle"""
    return _rectangle_edges


@pytest.fixture
def make_ring():
    """Factory for axis-aligned rectangular room boundaries"""
    def _ring(x0, y0, x1, y1):
        return RoomBoundary.from_points([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])
    return _ring


@pytest.fixture
def default_settings():
    return ExtractionSettings()


@pytest.fixture
def geometry_settings():
    """Factory for settings with every segment filter off and chosen polygon settings"""
    def _settings(**polygon):
        return ExtractionSettings(
            line_width=LineWidthSettings(enabled=False),
            length=LengthSettings(enabled=False),
            shape=ShapeSettings(enabled=False),
            room_size=RoomSizeSettings(enabled=False),
            polygon=PolygonSettings(**polygon),
        )
    return _settings


@pytest.fixture
def double_wall_room():
    """
    One 200 x 100 room drawn with 10-unit double walls.

    Outer faces first (bottom, right, top, left), then inner faces.
    """
    outer = _rectangle_edges(-5, -5, 205, 105, start_index=0)
    inner = _rectangle_edges(5, 5, 195, 95, start_index=4)
    return outer + inner
