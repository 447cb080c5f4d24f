"""
Position models and schemas
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional

PositionStatus = Literal["ACTIVE", "INACTIVE", "PENDING", "ARCHIVED"]


class PositionRequirements(BaseModel):
    education: List[str] = []
    experience: List[str] = []
    skills: List[str] = []
    certifications: List[str] = []
    physical: Optional[str] = None


class SalaryRange(BaseModel):
    min: float = Field(default=0, ge=0)
    max: float = Field(default=0, ge=0)
    currency: str = "IDR"

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min > self.max:
            raise ValueError("Minimum salary cannot be greater than maximum salary")
        return self


class Allowance(BaseModel):
    name: str
    amount: float = Field(..., ge=0)
    frequency: Literal["DAILY", "WEEKLY", "MONTHLY", "YEARLY", "ONE_TIME"] = "MONTHLY"


class Compensation(BaseModel):
    salary_grade: Optional[str] = None
    salary_range: SalaryRange = Field(default_factory=SalaryRange)
    benefits: List[str] = []
    allowances: List[Allowance] = []
    overtime_eligible: bool = False
    bonus_eligible: bool = False


def check_responsibilities(values: List[str]) -> List[str]:
    cleaned = []
    for item in values:
        if not isinstance(item, str) or not item.strip():
            raise ValueError("Responsibilities must be non-empty strings")
        cleaned.append(item.strip())
    return cleaned


class PositionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    division: str
    description: Optional[str] = Field(None, max_length=500)
    responsibilities: List[str] = []
    report_to: Optional[str] = None
    status: PositionStatus = "ACTIVE"
    requirements: PositionRequirements = Field(default_factory=PositionRequirements)
    compensation: Compensation = Field(default_factory=Compensation)

    @field_validator("responsibilities")
    @classmethod
    def validate_responsibilities(cls, v):
        return check_responsibilities(v)


class PositionCreate(PositionBase):
    pass


class PositionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = Field(None, max_length=500)
    report_to: Optional[str] = None

    class Config:
        extra = "ignore"


class PositionStatusUpdate(BaseModel):
    status: PositionStatus


class ResponsibilitiesUpdate(BaseModel):
    responsibilities: List[str] = Field(..., min_length=1)

    @field_validator("responsibilities")
    @classmethod
    def validate_responsibilities(cls, v):
        return check_responsibilities(v)


class PositionTransfer(BaseModel):
    division: Optional[str] = None
    report_to: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self):
        if "division" not in self.model_fields_set and "report_to" not in self.model_fields_set:
            raise ValueError("Provide a new division, a new report_to, or both")
        return self
