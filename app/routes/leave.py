"""
Leave routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.leave import (
    LeaveRequestCreate, LeaveDecision, LeaveCancel, BalanceInitialize, BalanceAdjustment,
    AccrualRequest, CarryoverRequest, LeaveStatus, LeaveType
)
from app.services import leave_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/leave", tags=["Leave"])


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    request: LeaveRequestCreate,
    current_user: dict = Depends(require_permission("leave:create"))
):
    leave = await leave_service.create_leave_request(request.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(leave), "Leave request submitted successfully")


@router.post("/balance/initialize", status_code=status.HTTP_201_CREATED)
async def initialize_leave_balance(
    body: BalanceInitialize,
    current_user: dict = Depends(require_permission("leave:manage"))
):
    balance = await leave_service.initialize_balance(body.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(balance), "Leave balance initialized successfully")


@router.post("/balance/{employee_id}/adjust")
async def adjust_leave_balance(
    employee_id: str,
    body: BalanceAdjustment,
    current_user: dict = Depends(require_permission("leave:manage"))
):
    balance = await leave_service.adjust_balance(employee_id, body.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(balance), "Leave balance adjusted successfully")


@router.get("/balance/{employee_id}")
async def get_leave_balance(
    employee_id: str,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user: dict = Depends(require_permission("leave:read"))
):
    balance = await leave_service.get_leave_balance(employee_id, year)
    return success_response(serialize_doc(balance), "Leave balance retrieved successfully")


@router.post("/accruals/calculate")
async def calculate_leave_accruals(
    body: AccrualRequest,
    current_user: dict = Depends(require_permission("leave:manage"))
):
    balances = await leave_service.calculate_accruals(body.model_dump(), get_user_id(current_user))
    return success_response(serialize_docs(balances), f"Leave accruals calculated for {len(balances)} employees")


@router.post("/carryover")
async def process_leave_carryover(
    body: CarryoverRequest,
    current_user: dict = Depends(require_permission("leave:manage"))
):
    """Open next year's balances with carried-over days"""
    balances = await leave_service.process_carryover(body.model_dump(), get_user_id(current_user))
    return success_response(serialize_docs(balances), f"Leave carryover processed for {len(balances)} employees")


@router.get("/employee/{employee_id}")
async def get_employee_leaves(
    employee_id: str,
    status: Optional[LeaveStatus] = None,
    type: Optional[LeaveType] = None,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("leave:read"))
):
    page, limit, skip = page_params(page, limit)
    leaves, total = await leave_service.get_employee_leaves(employee_id, status, type, year, skip, limit)
    return success_response(serialize_docs(leaves), "Leave requests retrieved successfully", build_pagination(page, limit, total))


@router.post("/{leave_id}/approve-reject")
async def approve_reject_leave(
    leave_id: str,
    decision: LeaveDecision,
    current_user: dict = Depends(require_permission("leave:approve"))
):
    leave = await leave_service.decide_leave(leave_id, decision.model_dump(), current_user, get_user_id(current_user))
    return success_response(serialize_doc(leave), f"Leave request {decision.status.lower()}")


@router.post("/{leave_id}/cancel")
async def cancel_leave(
    leave_id: str,
    body: Optional[LeaveCancel] = None,
    current_user: dict = Depends(require_permission("leave:update"))
):
    reason = body.reason if body else None
    leave = await leave_service.cancel_leave(leave_id, reason, current_user, get_user_id(current_user))
    return success_response(serialize_doc(leave), "Leave request cancelled")
