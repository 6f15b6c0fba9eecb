"""
Tests for response mapping
"""

import pytest

from roomtrace.parser.schema import RESPONSE_VERSION
from roomtrace.services.pipeline_orchestrator import (
    ExtractionResult,
    ResultMetadata,
    PipelineDiagnostics,
)
from roomtrace.services.room_geometry import Room
from roomtrace.services.room_mapper import RoomMapper


@pytest.fixture
def result(make_ring):
    rooms = (
        Room(id="room-001", boundary=make_ring(0, 0, 10, 20), name="ROOM 101", number="101"),
        Room(id="room-002", boundary=make_ring(10, 0, 20, 20), name="Room 2"),
    )
    return ExtractionResult(
        rooms=rooms,
        metadata=ResultMetadata(units="feet", page_count=3, scale=48.0),
        diagnostics=PipelineDiagnostics(page_width=300, page_height=200),
    )


class TestRoomMapper:

    def test_room_geometry(self, result):
        room = RoomMapper().to_room_response(result.rooms[0])

        assert room.area == pytest.approx(200.0)
        assert room.perimeter == pytest.approx(60.0)
        assert (room.centroid.x, room.centroid.y) == pytest.approx((5.0, 10.0))
        assert (room.bbox.min_x, room.bbox.min_y, room.bbox.max_x, room.bbox.max_y) == (0, 0, 10, 20)
        assert len(room.polygon) == 4

    def test_response_camel_case(self, result):
        response = RoomMapper().to_response(result, "plan.pdf", page_index=2)
        data = response.model_dump(by_alias=True)

        assert data["version"] == RESPONSE_VERSION == "0.3"
        assert data["source"] == {"fileName": "plan.pdf", "pageIndex": 2, "units": "feet"}
        assert data["metadata"] == {"units": "feet", "pageCount": 3, "scale": 48.0}
        assert [r["id"] for r in data["rooms"]] == ["room-001", "room-002"]
        assert set(data["rooms"][0]["bbox"]) == {"minX", "minY", "maxX", "maxY"}
        assert data["rooms"][1]["number"] is None

    def test_empty_result(self, result):
        empty = ExtractionResult(rooms=(), metadata=result.metadata, diagnostics=result.diagnostics)

        assert RoomMapper().to_response(empty, "plan.pdf").rooms == []
