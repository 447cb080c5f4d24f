"""
Employee history routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from app.services.employee_history import query_history, get_history_record
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission

router = APIRouter(prefix="/employee-history", tags=["Employee History"])


async def _page(query: dict, page: int, limit: Optional[int], **filters):
    page, limit, skip = page_params(page, limit)
    records, total = await query_history(query, skip, limit, **filters)
    return success_response(serialize_docs(records), "Employee history retrieved successfully", build_pagination(page, limit, total))


@router.get("/employee/{code}")
async def get_history_by_employee_code(
    code: str,
    change_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee-history:read"))
):
    """History by business employee id (survives employee deletion)"""
    return await _page({"employee_code": code}, page, limit, change_type=change_type)


@router.get("/change-type/{change_type}")
async def get_history_by_change_type(
    change_type: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee-history:read"))
):
    return await _page({}, page, limit, change_type=change_type)


@router.get("/date-range/{start_date}/{end_date}")
async def get_history_by_date_range(
    start_date: str,
    end_date: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee-history:read"))
):
    return await _page({}, page, limit, start_date=start_date, end_date=end_date)


@router.get("/user/{user_id}")
async def get_history_by_user(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("employee-history:read"))
):
    """Changes made by a given user"""
    return await _page({"changed_by": user_id}, page, limit)


@router.get("/{history_id}")
async def get_history_record_by_id(
    history_id: str,
    current_user: dict = Depends(require_permission("employee-history:read"))
):
    record = await get_history_record(history_id)
    return success_response(serialize_doc(record), "Employee history record retrieved successfully")
