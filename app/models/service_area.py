"""
Service area, branch assignment and pricing models
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, List, Literal, Optional
from datetime import datetime

from app.models.common import GeoPoint, check_lng_lat

AdminLevel = Literal["PROVINCE", "CITY", "DISTRICT", "SUBDISTRICT"]
AreaType = Literal["INNER_CITY", "OUT_OF_CITY", "REMOTE_AREA"]
ActiveStatus = Literal["ACTIVE", "INACTIVE"]
ServiceType = Literal["REGULAR", "EXPRESS", "SAME_DAY", "NEXT_DAY", "ECONOMY"]
SearchType = Literal["contains", "near", "polygon"]


def check_ring(ring: Any) -> List[List[float]]:
    if not isinstance(ring, list) or len(ring) < 4:
        raise ValueError("Polygon rings need at least 4 positions")
    for position in ring:
        if not isinstance(position, list):
            raise ValueError("Positions must be [longitude, latitude]")
        check_lng_lat(position)
    if ring[0] != ring[-1]:
        raise ValueError("Polygon rings must be closed")
    return ring


def check_polygon(rings: Any):
    if not isinstance(rings, list) or not rings:
        raise ValueError("A polygon needs at least one ring")
    for ring in rings:
        check_ring(ring)


class AreaGeometry(BaseModel):
    type: Literal["Polygon", "MultiPolygon"]
    coordinates: List[Any]

    @model_validator(mode="after")
    def validate_coordinates(self):
        if self.type == "Polygon":
            check_polygon(self.coordinates)
        else:
            if not self.coordinates:
                raise ValueError("A multipolygon needs at least one polygon")
            for polygon in self.coordinates:
                check_polygon(polygon)
        return self


class SearchPolygon(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: List[Any]

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v):
        check_polygon(v)
        return v


def outer_ring_center(geometry: dict) -> dict:
    """Mean of the outer ring points, closing point excluded"""
    ring = geometry["coordinates"][0]
    if geometry["type"] == "MultiPolygon":
        ring = ring[0]
    points = ring[:-1]
    lng = sum(p[0] for p in points) / len(points)
    lat = sum(p[1] for p in points) / len(points)
    return {"type": "Point", "coordinates": [lng, lat]}


# ===================== Service area =====================
class ServiceAreaBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    admin_code: Optional[str] = None
    admin_level: AdminLevel = "DISTRICT"
    geometry: AreaGeometry
    center: Optional[GeoPoint] = None
    area_type: AreaType = "INNER_CITY"
    status: ActiveStatus = "ACTIVE"

    @field_validator("code")
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper()


class ServiceAreaCreate(ServiceAreaBase):
    pass


class ServiceAreaUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=10)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    admin_code: Optional[str] = None
    admin_level: Optional[AdminLevel] = None
    geometry: Optional[AreaGeometry] = None
    center: Optional[GeoPoint] = None
    area_type: Optional[AreaType] = None
    status: Optional[ActiveStatus] = None
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper() if v else v

    class Config:
        extra = "ignore"


# ===================== Assignment =====================
class AssignmentBase(BaseModel):
    branch: str
    service_area: str
    priority_level: int = Field(default=5, ge=1, le=10)
    status: ActiveStatus = "ACTIVE"
    notes: Optional[str] = Field(None, max_length=500)


class ServiceAreaAssignmentCreate(AssignmentBase):
    pass


class ServiceAreaAssignmentUpdate(BaseModel):
    priority_level: Optional[int] = Field(None, ge=1, le=10)
    status: Optional[ActiveStatus] = None
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        extra = "ignore"


# ===================== Pricing =====================
class PricingBase(BaseModel):
    service_area: str
    service_type: ServiceType
    base_price: float = Field(..., ge=0)
    price_per_km: float = Field(default=0, ge=0)
    price_per_kg: float = Field(default=0, ge=0)
    min_charge: float = Field(default=0, ge=0)
    max_charge: Optional[float] = Field(None, ge=0)
    insurance_fee: float = Field(default=0, ge=0)
    packaging_fee: float = Field(default=0, ge=0)
    currency: str = "IDR"
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    status: ActiveStatus = "ACTIVE"

    @model_validator(mode="after")
    def validate_charges(self):
        if self.max_charge is not None and self.max_charge < self.min_charge:
            raise ValueError("Maximum charge must not be below minimum charge")
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("Effective end must not be before effective start")
        return self


class ServiceAreaPricingCreate(PricingBase):
    pass


class ServiceAreaPricingUpdate(BaseModel):
    base_price: Optional[float] = Field(None, ge=0)
    price_per_km: Optional[float] = Field(None, ge=0)
    price_per_kg: Optional[float] = Field(None, ge=0)
    min_charge: Optional[float] = Field(None, ge=0)
    max_charge: Optional[float] = Field(None, ge=0)
    insurance_fee: Optional[float] = Field(None, ge=0)
    packaging_fee: Optional[float] = Field(None, ge=0)
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    status: Optional[ActiveStatus] = None

    class Config:
        extra = "ignore"


class PriceCalculationRequest(BaseModel):
    service_area: str
    service_type: ServiceType
    distance: float = Field(..., ge=0)
    weight: float = Field(..., ge=0.1)


# ===================== Geospatial =====================
class LocationSearchRequest(BaseModel):
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    search_type: SearchType = "contains"
    max_distance: Optional[float] = Field(None, gt=0)
    polygon: Optional[SearchPolygon] = None

    @model_validator(mode="after")
    def validate_inputs(self):
        if self.search_type == "polygon":
            if self.polygon is None:
                raise ValueError("Polygon is required for polygon search")
        elif self.longitude is None or self.latitude is None:
            raise ValueError("Longitude and latitude are required")
        return self


class BranchLocationRequest(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
