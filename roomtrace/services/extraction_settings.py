"""
Pydantic models for the extraction settings tree
Field names are snake_case in Python and camelCase in the JSON settings files
"""

from typing import List, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SettingsModel(BaseModel):
    """Read-only settings node with camelCase JSON keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class LineWidthSettings(SettingsModel):
    """Stroke width band a wall line must fall in"""
    enabled: bool = Field(True, description="Apply the line width filter")
    min_width: float = Field(0.5, ge=0, alias="min", description="Minimum stroke width")
    max_width: float = Field(10.0, ge=0, alias="max", description="Maximum stroke width")


class LengthSettings(SettingsModel):
    """Minimum total path length"""
    enabled: bool = Field(True, description="Apply the minimum length filter")
    min_length: float = Field(500.0, ge=0, alias="min", description="Minimum path length")


class ShapeSettings(SettingsModel):
    """Allow-list of path shape types"""
    enabled: bool = Field(False, description="Apply the shape filter")
    allowed: List[str] = Field(
        default_factory=lambda: ["line", "rectangle"],
        description="Shape names: point, line, rectangle, curve, polyline"
    )

    @field_validator("allowed")
    @classmethod
    def lowercase_shapes(cls, v):
        return [s.strip().lower() for s in v]


class PolygonSettings(SettingsModel):
    """Gap bridging, wall normalization and polygon refinement"""
    remove_nested: bool = Field(False, description="Drop rings contained by another ring")
    remove_outer: bool = Field(True, description="Drop rings containing another ring")
    gap_tolerance: float = Field(50.0, ge=0, description="Maximum endpoint gap bridged")
    min_area: float = Field(0.0, ge=0, description="Minimum ring area, 0 disables")
    min_width: float = Field(0.0, ge=0, description="Minimum ring width, 0 disables")
    wall_thickness: float = Field(0.0, ge=0, description="Wall thickness envelope, 0 disables normalization")
    skip_collapse_parallel_walls: bool = Field(
        False, description="Keep inner boundaries instead of collapsing to centerlines"
    )


class RoomSizeSettings(SettingsModel):
    """Expected room count, turned into a segment length band by page size"""
    enabled: bool = Field(True, description="Apply the room size length band")
    min_room_count: int = Field(1, ge=0, description="Fewest rooms expected on the page")
    max_room_count: int = Field(30, ge=0, description="Most rooms expected on the page")


class ExtractionSettings(SettingsModel):
    """Complete settings for one extraction job"""
    line_width: LineWidthSettings = Field(default_factory=LineWidthSettings)
    length: LengthSettings = Field(default_factory=LengthSettings)
    shape: ShapeSettings = Field(default_factory=ShapeSettings)
    polygon: PolygonSettings = Field(default_factory=PolygonSettings)
    room_size: RoomSizeSettings = Field(default_factory=RoomSizeSettings)


class SettingsCollection(SettingsModel):
    """Default settings plus per-document overrides"""
    default: ExtractionSettings = Field(default_factory=ExtractionSettings)
    pdf_types: Dict[str, ExtractionSettings] = Field(
        default_factory=dict, description="Settings keyed by document name"
    )

    def resolve(self, document_name: str) -> ExtractionSettings:
        """
        Settings for a document: full-name match first, then bare file name,
        both case-insensitive, else the defaults.
        """
        if not document_name:
            return self.default

        by_name = {key.lower(): value for key, value in self.pdf_types.items()}
        settings = by_name.get(document_name.lower())
        if settings is not None:
            return settings

        file_name = document_name.replace("\\", "/").rsplit("/", 1)[-1].lower()
        for key, value in self.pdf_types.items():
            if key.replace("\\", "/").rsplit("/", 1)[-1].lower() == file_name:
                return value
        return self.default
