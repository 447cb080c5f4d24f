"""
Employee routes
"""
import re
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.employee import (
    EmployeeCreate, EmployeeUpdate, EmployeeDocumentCreate, EmployeeDocumentUpdate,
    DocumentVerification, AssignmentCreate, EmployeeStatusUpdate, LinkUserRequest,
    SkillCreate, TrainingCreate, PerformanceEvaluationCreate, CareerDevelopmentCreate,
    ContractCreate, EmployeeStatus, EmploymentStatus
)
from app.services import employee_service
from app.services.employee_history import query_history
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/employees", tags=["Employees"])


def present(employee: dict) -> dict:
    return serialize_doc(employee_service.add_computed_fields(employee))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee: EmployeeCreate,
    current_user: dict = Depends(require_permission("employee:create"))
):
    """Create a new employee"""
    created = await employee_service.create_employee(employee.model_dump(), get_user_id(current_user))
    return success_response(present(created), "Employee created successfully")


@router.get("/")
async def get_employees(
    status: Optional[EmployeeStatus] = None,
    employment_status: Optional[EmploymentStatus] = None,
    branch: Optional[str] = None,
    division: Optional[str] = None,
    position: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee:read"))
):
    """List employees"""
    page, limit, skip = page_params(page, limit)
    query = {}
    if status:
        query["current_status"] = status
    if employment_status:
        query["employment_status"] = employment_status
    if branch:
        query["current_branch"] = branch
    if division:
        query["current_division"] = division
    if position:
        query["current_position"] = position
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"full_name": pattern}, {"employee_id": pattern}, {"email": pattern}]
    employees, total = await employee_service.list_employees(query, skip, limit)
    return success_response(
        [present(e) for e in employees], "Employees retrieved successfully", build_pagination(page, limit, total)
    )


@router.get("/employee-id/{code}")
async def get_employee_by_code(code: str, current_user: dict = Depends(require_permission("employee:read"))):
    employee = await employee_service.get_employee_by_code(code)
    return success_response(present(employee), "Employee retrieved successfully")


@router.get("/user/{user_id}")
async def get_employee_by_user(user_id: str, current_user: dict = Depends(require_permission("employee:read"))):
    employee = await employee_service.get_employee_by_user(user_id)
    return success_response(present(employee), "Employee retrieved successfully")


@router.get("/{employee_id}")
async def get_employee(employee_id: str, current_user: dict = Depends(require_permission("employee:read"))):
    employee = await employee_service.get_employee(employee_id)
    return success_response(present(employee), "Employee retrieved successfully")


@router.put("/{employee_id}")
async def update_employee(
    employee_id: str,
    employee_update: EmployeeUpdate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.update_employee(
        employee_id, employee_update.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(present(updated), "Employee updated successfully")


@router.delete("/{employee_id}")
async def delete_employee(employee_id: str, current_user: dict = Depends(require_permission("employee:delete"))):
    await employee_service.delete_employee(employee_id, get_user_id(current_user))
    return success_response(None, "Employee deleted successfully")


# ===================== Documents =====================
@router.post("/{employee_id}/documents", status_code=status.HTTP_201_CREATED)
async def add_employee_document(
    employee_id: str,
    document: EmployeeDocumentCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_document(employee_id, document.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Document added successfully")


@router.put("/{employee_id}/documents/{document_id}")
async def update_employee_document(
    employee_id: str,
    document_id: str,
    document: EmployeeDocumentUpdate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.update_document(
        employee_id, document_id, document.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(present(updated), "Document updated successfully")


@router.patch("/{employee_id}/documents/{document_id}/verify")
async def verify_employee_document(
    employee_id: str,
    document_id: str,
    body: DocumentVerification,
    current_user: dict = Depends(require_permission("employee:verify"))
):
    updated = await employee_service.verify_document(
        employee_id, document_id, body.status, body.notes, get_user_id(current_user)
    )
    return success_response(present(updated), "Document verification updated successfully")


# ===================== Assignment / status / account =====================
@router.post("/{employee_id}/assignments", status_code=status.HTTP_201_CREATED)
async def add_employee_assignment(
    employee_id: str,
    assignment: AssignmentCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_assignment(employee_id, assignment.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Assignment added successfully")


@router.patch("/{employee_id}/status")
async def update_employee_status(
    employee_id: str,
    body: EmployeeStatusUpdate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.update_status(employee_id, body.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Employee status updated successfully")


@router.patch("/{employee_id}/link-user")
async def link_employee_user(
    employee_id: str,
    body: LinkUserRequest,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.link_user(employee_id, body.user_id, get_user_id(current_user))
    return success_response(present(updated), "Employee linked to user account successfully")


# ===================== Sub-records =====================
@router.post("/{employee_id}/skills", status_code=status.HTTP_201_CREATED)
async def add_employee_skill(
    employee_id: str,
    skill: SkillCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_sub_record(employee_id, "skills", skill.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Skill added successfully")


@router.post("/{employee_id}/trainings", status_code=status.HTTP_201_CREATED)
async def add_employee_training(
    employee_id: str,
    training: TrainingCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_sub_record(employee_id, "trainings", training.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Training added successfully")


@router.post("/{employee_id}/performance-evaluations", status_code=status.HTTP_201_CREATED)
async def add_employee_performance_evaluation(
    employee_id: str,
    evaluation: PerformanceEvaluationCreate,
    current_user: dict = Depends(require_permission("employee:evaluate"))
):
    updated = await employee_service.add_sub_record(
        employee_id, "performance_evaluations", evaluation.model_dump(), get_user_id(current_user)
    )
    return success_response(present(updated), "Performance evaluation added successfully")


@router.post("/{employee_id}/career-development", status_code=status.HTTP_201_CREATED)
async def add_employee_career_development(
    employee_id: str,
    plan: CareerDevelopmentCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_sub_record(
        employee_id, "career_development", plan.model_dump(), get_user_id(current_user)
    )
    return success_response(present(updated), "Career development plan added successfully")


@router.post("/{employee_id}/contracts", status_code=status.HTTP_201_CREATED)
async def add_employee_contract(
    employee_id: str,
    contract: ContractCreate,
    current_user: dict = Depends(require_permission("employee:update"))
):
    updated = await employee_service.add_sub_record(employee_id, "contracts", contract.model_dump(), get_user_id(current_user))
    return success_response(present(updated), "Contract added successfully")


@router.get("/{employee_id}/history")
async def get_employee_history(
    employee_id: str,
    change_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee:read"))
):
    """Audit trail of one employee, newest first"""
    await employee_service.get_employee(employee_id)
    page, limit, skip = page_params(page, limit)
    records, total = await query_history(
        {"employee": employee_id}, skip, limit, change_type=change_type, start_date=start_date, end_date=end_date
    )
    return success_response(serialize_docs(records), "Employee history retrieved successfully", build_pagination(page, limit, total))
