"""
Shared schema pieces
"""
import re
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

def check_time(v: Optional[str]) -> Optional[str]:
    if v is not None and not TIME_PATTERN.match(v):
        raise ValueError("Time must be in HH:MM format")
    return v

def check_lng_lat(coords: List[float]) -> List[float]:
    if len(coords) != 2:
        raise ValueError("Coordinates must be [longitude, latitude]")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in coords):
        raise ValueError("Coordinates must be numbers")
    lng, lat = coords
    if not -180 <= lng <= 180:
        raise ValueError("Longitude must be between -180 and 180")
    if not -90 <= lat <= 90:
        raise ValueError("Latitude must be between -90 and 90")
    return coords


class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v):
        return check_lng_lat(v)


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
