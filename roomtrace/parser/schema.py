"""
Pydantic schemas for room extraction responses
Serialized with camelCase keys for API consumers
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RESPONSE_VERSION = "0.3"


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PointSchema(ResponseModel):
    """A polygon vertex in page units"""
    x: float
    y: float


class BoundingBox(ResponseModel):
    """Axis-aligned bounds of a room polygon"""
    min_x: float
    min_y: float
    max_x: float
    max_y: float


class RoomResponse(ResponseModel):
    """One extracted room"""
    id: str = Field(..., description="Stable id, room-001 style")
    name: Optional[str] = Field(None, description="Matched label text or synthesized name")
    number: Optional[str] = Field(None, description="Room number parsed from the label")
    level: Optional[str] = Field(None, description="Level parsed from the label")
    polygon: List[PointSchema] = Field(..., min_length=3, description="Ring vertices, closure implied")
    area: float = Field(..., ge=0, description="Polygon area in square page units")
    perimeter: float = Field(..., ge=0, description="Closed ring length")
    centroid: PointSchema = Field(..., description="Area-weighted centroid")
    bbox: BoundingBox


class SourceInfo(ResponseModel):
    """Where the rooms came from"""
    file_name: str
    page_index: int = Field(..., ge=0)
    units: str = Field("feet", description="Units of the source drawing")


class ExtractionMetadata(ResponseModel):
    units: str = "feet"
    page_count: int = Field(1, ge=1)
    scale: Optional[float] = Field(None, description="Drawing units per real unit, when known")


class ExtractionResponse(ResponseModel):
    """Full response for one extracted page"""
    version: str = RESPONSE_VERSION
    source: SourceInfo
    metadata: ExtractionMetadata
    rooms: List[RoomResponse] = Field(default_factory=list)
