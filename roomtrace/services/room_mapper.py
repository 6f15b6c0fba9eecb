"""
Room mapping - pipeline rooms to response DTOs
"""

import logging

from roomtrace.parser.schema import (
    BoundingBox,
    ExtractionMetadata,
    ExtractionResponse,
    PointSchema,
    RoomResponse,
    SourceInfo,
)
from roomtrace.services.room_geometry import Room

logger = logging.getLogger(__name__)


class RoomMapper:
    """Builds API responses from extraction results"""

    def to_room_response(self, room: Room) -> RoomResponse:
        polygon = room.boundary.polygon
        min_x, min_y, max_x, max_y = polygon.bounds
        centroid = polygon.centroid
        return RoomResponse(
            id=room.id,
            name=room.name,
            number=room.number,
            level=room.level,
            polygon=[PointSchema(x=x, y=y) for x, y in room.polygon],
            area=room.boundary.area,
            perimeter=polygon.length,
            centroid=PointSchema(x=centroid.x, y=centroid.y),
            bbox=BoundingBox(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y),
        )

    def to_response(self, result, file_name: str, page_index: int = 0) -> ExtractionResponse:
        """
        Map an ExtractionResult to the versioned response.

        Args:
            result: ExtractionResult from the pipeline
            file_name: Source document name
            page_index: 0-based page the rooms came from
        """
        metadata = result.metadata
        response = ExtractionResponse(
            source=SourceInfo(file_name=file_name, page_index=page_index, units=metadata.units),
            metadata=ExtractionMetadata(
                units=metadata.units,
                page_count=metadata.page_count,
                scale=metadata.scale,
            ),
            rooms=[self.to_room_response(room) for room in result.rooms],
        )
        logger.debug(f"Mapped {len(response.rooms)} rooms for {file_name}")
        return response


room_mapper = RoomMapper()
