"""
Position routes
"""
import re
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.position import (
    PositionCreate, PositionUpdate, PositionStatusUpdate, PositionRequirements,
    Compensation, ResponsibilitiesUpdate, PositionTransfer, PositionStatus
)
from app.services import position_service, hierarchy
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/positions", tags=["Positions"])

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_position(
    position: PositionCreate,
    current_user: dict = Depends(require_permission("position:create"))
):
    created = await position_service.create_position(position.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Position created successfully")

@router.get("/")
async def get_positions(
    status: Optional[PositionStatus] = None,
    division: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("position:read"))
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if status:
        query["status"] = status
    if division:
        query["division"] = division
    if search:
        query["$or"] = [
            {"name": {"$regex": re.escape(search), "$options": "i"}},
            {"code": {"$regex": re.escape(search), "$options": "i"}},
        ]
    positions, total = await position_service.list_positions(query, skip, limit)
    return success_response(serialize_docs(positions), "Positions retrieved successfully", build_pagination(page, limit, total))

@router.get("/organization-chart")
async def get_organization_chart(
    division: Optional[str] = None,
    current_user: dict = Depends(require_permission("position:read"))
):
    """Reporting tree of positions"""
    positions = await position_service.get_positions(division)
    chart = hierarchy.build_tree(serialize_docs(positions), parent_field="report_to", children_key="direct_reports")
    return success_response(chart, "Organization chart retrieved successfully")

@router.get("/division/{division_id}")
async def get_positions_by_division(division_id: str, current_user: dict = Depends(require_permission("position:read"))):
    positions = await position_service.get_positions(division_id)
    return success_response(serialize_docs(positions), "Positions retrieved successfully")

@router.get("/code/{code}")
async def get_position_by_code(code: str, current_user: dict = Depends(require_permission("position:read"))):
    position = await position_service.get_position_by_code(code)
    return success_response(serialize_doc(position), "Position retrieved successfully")

@router.get("/{position_id}")
async def get_position(position_id: str, current_user: dict = Depends(require_permission("position:read"))):
    position = await position_service.get_position(position_id)
    return success_response(serialize_doc(position), "Position retrieved successfully")

@router.get("/{position_id}/reporting")
async def get_direct_reports(position_id: str, current_user: dict = Depends(require_permission("position:read"))):
    reports = await position_service.get_direct_reports(position_id)
    return success_response(serialize_docs(reports), "Direct reports retrieved successfully")

@router.get("/{position_id}/reporting-chain")
async def get_reporting_chain(position_id: str, current_user: dict = Depends(require_permission("position:read"))):
    chain = await position_service.get_reporting_chain(position_id)
    return success_response(serialize_docs(chain), "Reporting chain retrieved successfully")

@router.put("/{position_id}")
async def update_position(
    position_id: str,
    position_update: PositionUpdate,
    current_user: dict = Depends(require_permission("position:update"))
):
    updated = await position_service.update_position(
        position_id, position_update.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Position updated successfully")

@router.delete("/{position_id}")
async def delete_position(position_id: str, current_user: dict = Depends(require_permission("position:delete"))):
    await position_service.delete_position(position_id, get_user_id(current_user))
    return success_response(None, "Position deleted successfully")

@router.patch("/{position_id}/status")
async def update_position_status(
    position_id: str,
    body: PositionStatusUpdate,
    current_user: dict = Depends(require_permission("position:update"))
):
    updated = await position_service.update_status(position_id, body.status, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Position status updated successfully")

@router.patch("/{position_id}/requirements")
async def update_position_requirements(
    position_id: str,
    body: PositionRequirements,
    current_user: dict = Depends(require_permission("position:update"))
):
    updated = await position_service.update_requirements(position_id, body.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(updated), "Position requirements updated successfully")

@router.patch("/{position_id}/compensation")
async def update_position_compensation(
    position_id: str,
    body: Compensation,
    current_user: dict = Depends(require_permission("position:update"))
):
    updated = await position_service.update_compensation(position_id, body.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(updated), "Position compensation updated successfully")

@router.patch("/{position_id}/responsibilities")
async def update_position_responsibilities(
    position_id: str,
    body: ResponsibilitiesUpdate,
    current_user: dict = Depends(require_permission("position:update"))
):
    updated = await position_service.update_responsibilities(position_id, body.responsibilities, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Position responsibilities updated successfully")

@router.patch("/{position_id}/transfer")
async def transfer_position(
    position_id: str,
    body: PositionTransfer,
    current_user: dict = Depends(require_permission("position:transfer"))
):
    updated = await position_service.transfer_position(
        position_id, body.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Position transferred successfully")
