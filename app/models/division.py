"""
Division models and schemas
"""
from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, Literal, Optional

DivisionStatus = Literal["ACTIVE", "INACTIVE", "PENDING", "ARCHIVED"]


class DivisionBudget(BaseModel):
    annual: float = Field(default=0, ge=0)
    spent: float = Field(default=0, ge=0)
    currency: str = "IDR"
    fiscal_year: Optional[int] = Field(None, ge=2000, le=2100)


class DivisionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = Field(None, max_length=500)
    parent: Optional[str] = None
    manager: Optional[str] = None
    branch: Optional[str] = None
    status: DivisionStatus = "ACTIVE"
    budget: Optional[DivisionBudget] = None
    metadata: Dict[str, Any] = {}


class DivisionCreate(DivisionBase):
    pass


class DivisionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = Field(None, max_length=500)
    parent: Optional[str] = None
    manager: Optional[str] = None
    branch: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        extra = "ignore"


class DivisionStatusUpdate(BaseModel):
    status: DivisionStatus


class DivisionTransfer(BaseModel):
    """Move a division under a new parent and/or into another branch"""
    parent: Optional[str] = None
    branch: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self):
        if "parent" not in self.model_fields_set and "branch" not in self.model_fields_set:
            raise ValueError("Provide a new parent, a new branch, or both")
        return self
