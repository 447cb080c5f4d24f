"""
Attendance models
"""
from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional
from datetime import datetime

from app.models.common import GeoPoint
from app.utils.helpers import LOCAL_TZ

AttendanceStatus = Literal[
    "PRESENT", "ABSENT", "LATE", "HALF_DAY", "EARLY_DEPARTURE", "ON_LEAVE", "HOLIDAY", "WEEKEND"
]
ReviewStatus = Literal["APPROVED", "REJECTED"]
AnomalyType = Literal["is_late", "is_early_departure", "is_incomplete", "is_outside_geofence"]


class CheckInRequest(BaseModel):
    employee: str
    time: Optional[datetime] = None  # If None, use current time
    location: Optional[GeoPoint] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


class CheckOutRequest(CheckInRequest):
    pass


class PunchCorrection(BaseModel):
    time: datetime
    location: Optional[GeoPoint] = None
    notes: Optional[str] = None


class CorrectionRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    requested_check_in: Optional[datetime] = None
    requested_check_out: Optional[datetime] = None


class CorrectedAnomalies(BaseModel):
    is_late: Optional[bool] = None
    is_early_departure: Optional[bool] = None
    is_incomplete: Optional[bool] = None
    is_outside_geofence: Optional[bool] = None


def wall_clock(value: datetime) -> datetime:
    """Naive times are local"""
    return LOCAL_TZ.localize(value) if value.tzinfo is None else value


class CorrectedData(BaseModel):
    check_in: Optional[PunchCorrection] = None
    check_out: Optional[PunchCorrection] = None
    status: Optional[AttendanceStatus] = None
    anomalies: Optional[CorrectedAnomalies] = None

    @model_validator(mode="after")
    def validate_order(self):
        if self.check_in and self.check_out and wall_clock(self.check_out.time) <= wall_clock(self.check_in.time):
            raise ValueError("Check-out must be after check-in")
        return self


class CorrectionReview(BaseModel):
    status: ReviewStatus
    review_notes: Optional[str] = None
    corrected_data: Optional[CorrectedData] = None
