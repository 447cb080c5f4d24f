"""
Work schedule, employee schedule and holiday models
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional
import datetime as dt
from datetime import date

from app.models.common import GeoPoint, check_time

ScheduleType = Literal["REGULAR", "SHIFT", "FLEXIBLE", "CUSTOM"]
ActiveStatus = Literal["ACTIVE", "INACTIVE"]
HolidayType = Literal["NATIONAL", "RELIGIOUS", "COMPANY", "REGIONAL"]
HalfDayPortion = Literal["MORNING", "AFTERNOON"]


class WorkingDays(BaseModel):
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = False
    sunday: bool = False


class RegularHours(BaseModel):
    start_time: str = "08:00"
    end_time: str = "17:00"
    break_start_time: str = "12:00"
    break_end_time: str = "13:00"
    late_grace_period: int = Field(default=15, ge=0)
    total_hours: float = Field(default=8, ge=0, le=24)

    @field_validator("start_time", "end_time", "break_start_time", "break_end_time")
    @classmethod
    def validate_times(cls, v):
        return check_time(v)


class WorkingHours(BaseModel):
    regular: RegularHours = Field(default_factory=RegularHours)


class Shift(BaseModel):
    name: str
    code: str = Field(..., min_length=1)
    start_time: str
    end_time: str
    break_duration: int = Field(default=60, ge=0)
    total_hours: float = Field(default=8, ge=0, le=24)
    late_grace_period: int = Field(default=15, ge=0)
    is_overnight: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, v):
        return check_time(v)


class OvertimeSettings(BaseModel):
    is_allowed: bool = True
    max_daily_hours: float = Field(default=3, ge=0)
    max_weekly_hours: float = Field(default=15, ge=0)
    minimum_duration: int = Field(default=30, ge=0)
    requires_approval: bool = True


class TimeWindow(BaseModel):
    earliest: str
    latest: str

    @field_validator("earliest", "latest")
    @classmethod
    def validate_times(cls, v):
        return check_time(v)


class FlexibleSettings(BaseModel):
    core_start_time: str = "10:00"
    core_end_time: str = "15:00"
    flexible_start_time: TimeWindow = Field(default_factory=lambda: TimeWindow(earliest="07:00", latest="10:00"))
    flexible_end_time: TimeWindow = Field(default_factory=lambda: TimeWindow(earliest="15:00", latest="19:00"))
    min_working_hours: float = Field(default=8, ge=0, le=24)


class GeofenceLocation(BaseModel):
    name: str
    address: Optional[str] = None
    coordinates: GeoPoint
    radius: float = Field(default=100, gt=0)


class Geofencing(BaseModel):
    enabled: bool = False
    locations: List[GeofenceLocation] = []


# ===================== Work schedule =====================
class WorkScheduleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    type: ScheduleType = "REGULAR"
    status: ActiveStatus = "ACTIVE"
    working_days: WorkingDays = Field(default_factory=WorkingDays)
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    shifts: List[Shift] = []
    overtime_settings: OvertimeSettings = Field(default_factory=OvertimeSettings)
    flexible_settings: FlexibleSettings = Field(default_factory=FlexibleSettings)
    geofencing: Geofencing = Field(default_factory=Geofencing)
    branches: List[str] = []
    divisions: List[str] = []
    positions: List[str] = []
    effective_start_date: date
    effective_end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_schedule(self):
        if self.type == "SHIFT" and not self.shifts:
            raise ValueError("Shift schedules need at least one shift")
        codes = [s.code for s in self.shifts]
        if len(codes) != len(set(codes)):
            raise ValueError("Shift codes must be unique")
        if self.effective_end_date and self.effective_end_date < self.effective_start_date:
            raise ValueError("Effective end date must not be before start date")
        return self


class WorkScheduleCreate(WorkScheduleBase):
    pass


class WorkScheduleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[ActiveStatus] = None
    working_days: Optional[WorkingDays] = None
    working_hours: Optional[WorkingHours] = None
    shifts: Optional[List[Shift]] = None
    overtime_settings: Optional[OvertimeSettings] = None
    flexible_settings: Optional[FlexibleSettings] = None
    geofencing: Optional[Geofencing] = None
    branches: Optional[List[str]] = None
    divisions: Optional[List[str]] = None
    positions: Optional[List[str]] = None
    effective_start_date: Optional[date] = None
    effective_end_date: Optional[date] = None

    class Config:
        extra = "ignore"


# ===================== Employee schedule =====================
class ShiftAssignment(BaseModel):
    date: dt.date
    shift_code: str
    notes: Optional[str] = None


class EmployeeScheduleBase(BaseModel):
    employee: str
    schedule: str
    effective_start_date: date
    effective_end_date: Optional[date] = None
    shift_assignments: List[ShiftAssignment] = []
    notes: Optional[str] = None
    status: ActiveStatus = "ACTIVE"

    @model_validator(mode="after")
    def validate_dates(self):
        if self.effective_end_date and self.effective_end_date < self.effective_start_date:
            raise ValueError("Effective end date must not be before start date")
        return self


class EmployeeScheduleCreate(EmployeeScheduleBase):
    pass


class EmployeeScheduleUpdate(BaseModel):
    effective_start_date: Optional[date] = None
    effective_end_date: Optional[date] = None
    shift_assignments: Optional[List[ShiftAssignment]] = None
    notes: Optional[str] = None
    status: Optional[ActiveStatus] = None

    class Config:
        extra = "ignore"


# ===================== Holidays =====================
class HolidayBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    date: dt.date
    type: HolidayType = "NATIONAL"
    description: Optional[str] = None
    is_recurring: bool = True
    is_half_day: bool = False
    half_day_portion: HalfDayPortion = "AFTERNOON"
    applicable_branches: List[str] = []
    applicable_divisions: List[str] = []
    status: ActiveStatus = "ACTIVE"


class HolidayCreate(HolidayBase):
    pass


class HolidayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[dt.date] = None
    type: Optional[HolidayType] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None
    is_half_day: Optional[bool] = None
    half_day_portion: Optional[HalfDayPortion] = None
    applicable_branches: Optional[List[str]] = None
    applicable_divisions: Optional[List[str]] = None
    status: Optional[ActiveStatus] = None

    class Config:
        extra = "ignore"


class GenerateRecurringRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
