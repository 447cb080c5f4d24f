"""
Branch model and schemas
"""
import re
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Dict, List, Literal, Optional
from datetime import date

from app.models.common import Coordinates, check_time

BranchType = Literal["HEAD_OFFICE", "REGIONAL", "BRANCH"]
BranchStatus = Literal["ACTIVE", "INACTIVE", "PENDING", "CLOSED"]
WeekDay = Literal["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]
BranchDocumentType = Literal["LICENSE", "PERMIT", "CERTIFICATE", "CONTRACT", "OTHER"]


class BranchAddress(BaseModel):
    street: str
    city: str
    province: str
    postal_code: Optional[str] = None
    country: str = "Indonesia"
    coordinates: Optional[Coordinates] = None


class ContactInfo(BaseModel):
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    fax: Optional[str] = None
    website: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None and v != '' and len(v) < 6:
            raise ValueError('Phone number must be at least 6 characters')
        return v


def check_unique_days(hours):
    days = [h.day for h in hours]
    if len(days) != len(set(days)):
        raise ValueError("Each day may appear only once in operational hours")
    return hours


class OperationalHour(BaseModel):
    day: WeekDay
    is_open: bool = True
    open_time: Optional[str] = None
    close_time: Optional[str] = None

    @field_validator("open_time", "close_time")
    @classmethod
    def validate_times(cls, v):
        return check_time(v)

    @model_validator(mode="after")
    def validate_window(self):
        if self.is_open:
            if not self.open_time or not self.close_time:
                raise ValueError(f"{self.day}: open and close time are required when open")
            if self.open_time >= self.close_time:
                raise ValueError(f"{self.day}: open time must be before close time")
        return self


class BranchResources(BaseModel):
    employee_count: int = Field(default=0, ge=0)
    vehicle_count: int = Field(default=0, ge=0)
    storage_capacity: float = Field(default=0, ge=0)


class BranchResourcesUpdate(BaseModel):
    employee_count: Optional[int] = Field(None, ge=0)
    vehicle_count: Optional[int] = Field(None, ge=0)
    storage_capacity: Optional[float] = Field(None, ge=0)


class BranchMetricsUpdate(BaseModel):
    monthly_shipment_volume: Optional[float] = Field(None, ge=0)
    monthly_revenue: Optional[float] = Field(None, ge=0)
    customer_satisfaction_score: Optional[float] = Field(None, ge=0, le=5)
    delivery_success_rate: Optional[float] = Field(None, ge=0, le=100)


class BranchDocumentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: BranchDocumentType
    file_url: str
    expiry_date: Optional[date] = None


class BranchBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=200)
    type: BranchType = "BRANCH"
    parent: Optional[str] = None
    status: BranchStatus = "ACTIVE"
    address: BranchAddress
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    operational_hours: List[OperationalHour] = []
    resources: BranchResources = Field(default_factory=BranchResources)

    @field_validator("operational_hours")
    @classmethod
    def unique_days(cls, v):
        return check_unique_days(v)


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=10)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[BranchType] = None
    parent: Optional[str] = None
    address: Optional[BranchAddress] = None
    contact_info: Optional[ContactInfo] = None

    class Config:
        extra = "ignore"


class BranchStatusUpdate(BaseModel):
    status: BranchStatus
    reason: Optional[str] = None


class OperationalHoursUpdate(BaseModel):
    operational_hours: List[OperationalHour]

    @field_validator("operational_hours")
    @classmethod
    def unique_days(cls, v):
        return check_unique_days(v)


class BranchFilters(BaseModel):
    status: Optional[BranchStatus] = None
    type: Optional[BranchType] = None
    parent: Optional[str] = None
    search: Optional[str] = None

    def to_query(self) -> Dict:
        query = {}
        if self.status:
            query["status"] = self.status
        if self.type:
            query["type"] = self.type
        if self.parent:
            query["parent"] = self.parent
        if self.search:
            query["$or"] = [
                {"name": {"$regex": re.escape(self.search), "$options": "i"}},
                {"code": {"$regex": re.escape(self.search), "$options": "i"}},
            ]
        return query
