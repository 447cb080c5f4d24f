"""
Leave and leave balance models
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional
from datetime import date

LeaveType = Literal[
    "ANNUAL", "SICK", "MATERNITY", "PATERNITY", "BEREAVEMENT",
    "UNPAID", "RELIGIOUS", "MARRIAGE", "EMERGENCY", "OTHER"
]
LEAVE_TYPES = list(LeaveType.__args__)
LeaveStatus = Literal["PENDING", "APPROVED", "REJECTED", "CANCELLED"]
ApprovalDecision = Literal["APPROVED", "REJECTED"]
HalfDayPortion = Literal["MORNING", "AFTERNOON"]


class LeaveAttachment(BaseModel):
    file_url: str
    file_name: str
    file_type: str


class LeaveRequestCreate(BaseModel):
    employee: str
    type: LeaveType
    start_date: date
    end_date: date
    is_half_day: bool = False
    half_day_portion: HalfDayPortion = "MORNING"
    reason: str = Field(..., min_length=1, max_length=500)
    attachments: List[LeaveAttachment] = []

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        if self.is_half_day and self.end_date != self.start_date:
            raise ValueError("A half-day leave must start and end on the same date")
        return self


class LeaveDecision(BaseModel):
    status: ApprovalDecision
    notes: Optional[str] = None


class LeaveCancel(BaseModel):
    reason: Optional[str] = None


# ===================== Balances =====================
class TypeBalance(BaseModel):
    type: LeaveType
    allocated: float = Field(default=0, ge=0)
    additional: float = 0
    used: float = Field(default=0, ge=0)
    pending: float = Field(default=0, ge=0)
    carried_over: float = Field(default=0, ge=0)
    carry_over_expiry: Optional[date] = None
    max_carry_over: float = Field(default=0, ge=0)


class AccrualSettings(BaseModel):
    is_monthly_accrual: bool = False
    monthly_accrual_amount: float = Field(default=0, ge=0)
    max_accrual_limit: float = Field(default=0, ge=0)
    accrual_start_date: Optional[date] = None
    is_prorated_first_year: bool = True


class BalanceInitialize(BaseModel):
    employee: str
    year: int = Field(..., ge=2000, le=2100)
    balances: List[TypeBalance] = []
    accrual_settings: Optional[AccrualSettings] = None

    @field_validator("balances")
    @classmethod
    def unique_types(cls, v):
        types = [b.type for b in v]
        if len(types) != len(set(types)):
            raise ValueError("Each leave type may appear only once")
        return v


class BalanceAdjustment(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    type: LeaveType
    amount: float
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("amount")
    @classmethod
    def non_zero(cls, v):
        if v == 0:
            raise ValueError("Adjustment amount must not be zero")
        return v


class AccrualRequest(BaseModel):
    employees: List[str] = []
    calculation_date: Optional[date] = None


class CarryoverRequest(BaseModel):
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)
    employees: List[str] = []
