"""
Employee models and schemas
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import date

from app.models.common import Coordinates

Gender = Literal["MALE", "FEMALE", "OTHER"]
MaritalStatus = Literal["SINGLE", "MARRIED", "DIVORCED", "WIDOWED"]
EmploymentStatus = Literal["FULL_TIME", "PART_TIME", "CONTRACT", "INTERNSHIP", "OUTSOURCED"]
EmployeeStatus = Literal["ACTIVE", "INACTIVE", "ON_LEAVE", "TERMINATED", "SUSPENDED", "PROBATION"]
ContactType = Literal["PHONE", "EMAIL", "WHATSAPP", "OTHER"]
DocumentType = Literal[
    "KTP", "NPWP", "IJAZAH", "SERTIFIKAT", "SIM", "PASSPORT",
    "BPJS_KESEHATAN", "BPJS_KETENAGAKERJAAN", "CONTRACT", "OTHER"
]
VerificationStatus = Literal["PENDING", "VERIFIED", "REJECTED"]

# ===================== Embedded records =====================
class Address(BaseModel):
    street: str
    city: str
    district: Optional[str] = None
    province: str
    postal_code: Optional[str] = None
    country: str = "Indonesia"
    is_primary: bool = False
    coordinates: Optional[Coordinates] = None


class Contact(BaseModel):
    type: ContactType
    value: str = Field(..., min_length=1)
    is_primary: bool = False


class EmergencyContact(BaseModel):
    name: str
    relationship: str
    phone: str
    address: Optional[str] = None


class BankAccount(BaseModel):
    bank_name: str
    account_number: str
    account_holder: str


class Education(BaseModel):
    level: str
    institution: str
    major: Optional[str] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    gpa: Optional[float] = None


class EmployeeDocumentCreate(BaseModel):
    type: DocumentType
    number: str
    issued_by: Optional[str] = None
    issued_date: Optional[date] = None
    expiry_date: Optional[date] = None
    file_url: Optional[str] = None
    notes: Optional[str] = None


class EmployeeDocumentUpdate(BaseModel):
    number: Optional[str] = None
    issued_by: Optional[str] = None
    issued_date: Optional[date] = None
    expiry_date: Optional[date] = None
    file_url: Optional[str] = None
    notes: Optional[str] = None


class DocumentVerification(BaseModel):
    status: VerificationStatus
    notes: Optional[str] = None


class AssignmentCreate(BaseModel):
    branch: str
    division: str
    position: str
    start_date: date
    notes: Optional[str] = None


class EmployeeStatusUpdate(BaseModel):
    status: EmployeeStatus
    start_date: Optional[date] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class LinkUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class SkillCreate(BaseModel):
    name: str
    category: Optional[str] = None
    proficiency_level: int = Field(..., ge=1, le=5)
    years_of_experience: Optional[float] = Field(None, ge=0)
    certified: bool = False
    notes: Optional[str] = None


class Duration(BaseModel):
    value: float = Field(..., ge=0)
    unit: Literal["HOURS", "DAYS", "WEEKS", "MONTHS"] = "HOURS"


class TrainingCreate(BaseModel):
    name: str
    provider: Optional[str] = None
    type: Literal["INTERNAL", "EXTERNAL", "ONLINE", "WORKSHOP", "CERTIFICATION"] = "INTERNAL"
    start_date: date
    end_date: Optional[date] = None
    duration: Optional[Duration] = None
    status: Literal["PLANNED", "IN_PROGRESS", "COMPLETED", "CANCELLED"] = "PLANNED"
    certificate_url: Optional[str] = None
    score: Optional[float] = None
    notes: Optional[str] = None


class PerformanceEvaluationCreate(BaseModel):
    period: str
    evaluation_date: date
    evaluator: Optional[str] = None
    overall_score: float = Field(..., ge=0, le=5)
    criteria: List[Dict[str, Any]] = []
    strengths: List[str] = []
    improvements: List[str] = []
    comments: Optional[str] = None


class CareerDevelopmentCreate(BaseModel):
    target_position: Optional[str] = None
    target_date: Optional[date] = None
    goals: List[str] = []
    action_items: List[str] = []
    mentor: Optional[str] = None
    status: Literal["PLANNED", "IN_PROGRESS", "ACHIEVED", "CANCELLED"] = "PLANNED"
    notes: Optional[str] = None


class ContractCreate(BaseModel):
    type: Literal["PERMANENT", "FIXED_TERM", "PROBATION", "INTERNSHIP", "FREELANCE"]
    number: str
    start_date: date
    end_date: Optional[date] = None
    position: Optional[str] = None
    salary: Optional[float] = Field(None, ge=0)
    status: Literal["DRAFT", "ACTIVE", "EXPIRED", "TERMINATED", "RENEWED"] = "ACTIVE"
    file_url: Optional[str] = None
    notes: Optional[str] = None


# ===================== Employee =====================
class EmployeeBase(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=30)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    gender: Gender
    date_of_birth: date
    place_of_birth: Optional[str] = None
    nationality: str = "Indonesia"
    marital_status: Optional[MaritalStatus] = None
    religion: Optional[str] = None
    email: Optional[EmailStr] = None
    addresses: List[Address] = []
    contacts: List[Contact] = []
    emergency_contacts: List[EmergencyContact] = []
    join_date: date
    employment_status: EmploymentStatus = "FULL_TIME"
    current_status: EmployeeStatus = "ACTIVE"
    current_branch: Optional[str] = None
    current_division: Optional[str] = None
    current_position: Optional[str] = None
    bank_account: Optional[BankAccount] = None
    education: List[Education] = []

    @field_validator("addresses")
    @classmethod
    def single_primary_address(cls, v):
        if sum(1 for a in v if a.is_primary) > 1:
            raise ValueError("Only one address can be primary")
        return v


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    place_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    marital_status: Optional[MaritalStatus] = None
    religion: Optional[str] = None
    email: Optional[EmailStr] = None
    addresses: Optional[List[Address]] = None
    contacts: Optional[List[Contact]] = None
    emergency_contacts: Optional[List[EmergencyContact]] = None
    join_date: Optional[date] = None
    employment_status: Optional[EmploymentStatus] = None
    bank_account: Optional[BankAccount] = None
    education: Optional[List[Education]] = None

    class Config:
        extra = "ignore"  # status and assignment have their own endpoints
