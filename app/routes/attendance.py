"""
Attendance routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from datetime import date
from app.models.attendance import (
    CheckInRequest, CheckOutRequest, CorrectionRequest, CorrectionReview, AttendanceStatus, AnomalyType
)
from app.services import attendance_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.post("/check-in")
async def check_in(request: CheckInRequest, current_user: dict = Depends(require_permission("attendance:create"))):
    """Employee check-in"""
    attendance = await attendance_service.check_in(request.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(attendance), "Check-in recorded successfully")


@router.post("/check-out")
async def check_out(request: CheckOutRequest, current_user: dict = Depends(require_permission("attendance:create"))):
    """Employee check-out"""
    attendance = await attendance_service.check_out(request.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(attendance), "Check-out recorded successfully")


@router.get("/anomalies")
async def get_attendance_anomalies(
    anomaly_type: Optional[AnomalyType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    branch: Optional[str] = None,
    division: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("attendance:read"))
):
    page, limit, skip = page_params(page, limit)
    records, total = await attendance_service.get_anomalies(
        anomaly_type, start_date, end_date, branch, division, skip, limit
    )
    return success_response(serialize_docs(records), "Attendance anomalies retrieved successfully", build_pagination(page, limit, total))


@router.get("/employee/{employee_id}")
async def get_employee_attendance(
    employee_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("attendance:read"))
):
    page, limit, skip = page_params(page, limit)
    records, total = await attendance_service.get_employee_attendance(
        employee_id, start_date, end_date, status, skip, limit
    )
    return success_response(serialize_docs(records), "Attendance records retrieved successfully", build_pagination(page, limit, total))


@router.get("/summary/{employee_id}")
async def get_attendance_summary(
    employee_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: dict = Depends(require_permission("attendance:read"))
):
    summary = await attendance_service.get_attendance_summary(employee_id, start_date, end_date)
    return success_response(summary, "Attendance summary retrieved successfully")


@router.post("/correction/{attendance_id}")
async def request_attendance_correction(
    attendance_id: str,
    request: CorrectionRequest,
    current_user: dict = Depends(require_permission("attendance:update"))
):
    attendance = await attendance_service.request_correction(attendance_id, request.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(attendance), "Correction request submitted successfully")


@router.post("/correction/{attendance_id}/review")
async def review_attendance_correction(
    attendance_id: str,
    review: CorrectionReview,
    current_user: dict = Depends(require_permission("attendance:approve"))
):
    attendance = await attendance_service.review_correction(attendance_id, review.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(attendance), f"Correction request {review.status.lower()}")
