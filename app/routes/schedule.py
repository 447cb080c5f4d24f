"""
Work schedule, employee schedule and holiday routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.schedule import (
    WorkScheduleCreate, WorkScheduleUpdate, EmployeeScheduleCreate, EmployeeScheduleUpdate,
    HolidayCreate, HolidayUpdate, GenerateRecurringRequest, ScheduleType, ActiveStatus, HolidayType
)
from app.services import schedule_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/schedules", tags=["Schedules"])

# ===================== Work schedules =====================
@router.post("/work-schedule", status_code=status.HTTP_201_CREATED)
async def create_work_schedule(
    schedule: WorkScheduleCreate,
    current_user: dict = Depends(require_permission("schedule:create"))
):
    created = await schedule_service.create_work_schedule(schedule.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Work schedule created successfully")

@router.put("/work-schedule/{schedule_id}")
async def update_work_schedule(
    schedule_id: str,
    schedule: WorkScheduleUpdate,
    current_user: dict = Depends(require_permission("schedule:update"))
):
    updated = await schedule_service.update_work_schedule(
        schedule_id, schedule.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Work schedule updated successfully")

@router.get("/work-schedule")
async def get_work_schedules(
    type: Optional[ScheduleType] = None,
    status: Optional[ActiveStatus] = None,
    branch: Optional[str] = None,
    division: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("schedule:read"))
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if type:
        query["type"] = type
    if status:
        query["status"] = status
    if branch:
        query["branches"] = branch
    if division:
        query["divisions"] = division
    schedules, total = await schedule_service.list_work_schedules(query, skip, limit)
    return success_response(serialize_docs(schedules), "Work schedules retrieved successfully", build_pagination(page, limit, total))

@router.get("/work-schedule/{schedule_id}")
async def get_work_schedule(schedule_id: str, current_user: dict = Depends(require_permission("schedule:read"))):
    schedule = await schedule_service.get_work_schedule(schedule_id)
    return success_response(serialize_doc(schedule), "Work schedule retrieved successfully")

# ===================== Employee schedules =====================
@router.post("/employee-schedule", status_code=status.HTTP_201_CREATED)
async def assign_employee_schedule(
    assignment: EmployeeScheduleCreate,
    current_user: dict = Depends(require_permission("schedule:assign"))
):
    created = await schedule_service.create_employee_schedule(assignment.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Schedule assigned successfully")

@router.put("/employee-schedule/{assignment_id}")
async def update_employee_schedule(
    assignment_id: str,
    assignment: EmployeeScheduleUpdate,
    current_user: dict = Depends(require_permission("schedule:assign"))
):
    updated = await schedule_service.update_employee_schedule(
        assignment_id, assignment.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Employee schedule updated successfully")

@router.get("/employee-schedule")
async def get_employee_schedules(
    employee: Optional[str] = None,
    schedule: Optional[str] = None,
    status: Optional[ActiveStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("schedule:read"))
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if employee:
        query["employee"] = employee
    if schedule:
        query["schedule"] = schedule
    if status:
        query["status"] = status
    items, total = await schedule_service.list_employee_schedules(query, skip, limit)
    return success_response(serialize_docs(items), "Employee schedules retrieved successfully", build_pagination(page, limit, total))

# ===================== Holidays =====================
@router.post("/holiday", status_code=status.HTTP_201_CREATED)
async def create_holiday(
    holiday: HolidayCreate,
    current_user: dict = Depends(require_permission("holiday:create"))
):
    created = await schedule_service.create_holiday(holiday.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Holiday created successfully")

@router.put("/holiday/{holiday_id}")
async def update_holiday(
    holiday_id: str,
    holiday: HolidayUpdate,
    current_user: dict = Depends(require_permission("holiday:update"))
):
    updated = await schedule_service.update_holiday(
        holiday_id, holiday.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Holiday updated successfully")

@router.get("/holiday")
async def get_holidays(
    type: Optional[HolidayType] = None,
    status: Optional[ActiveStatus] = None,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    branch: Optional[str] = None,
    division: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("holiday:read"))
):
    page, limit, skip = page_params(page, limit)
    query = schedule_service.holiday_query(type, status, year, month, branch, division)
    holidays, total = await schedule_service.list_holidays(query, skip, limit)
    return success_response(serialize_docs(holidays), "Holidays retrieved successfully", build_pagination(page, limit, total))

@router.post("/holiday/generate-recurring", status_code=status.HTTP_201_CREATED)
async def generate_recurring_holidays(
    body: GenerateRecurringRequest,
    current_user: dict = Depends(require_permission("holiday:create"))
):
    """Create this year's copies of recurring holidays"""
    created = await schedule_service.generate_recurring_holidays(body.year, get_user_id(current_user))
    return success_response(serialize_docs(created), f"{len(created)} holidays generated for {body.year}")
