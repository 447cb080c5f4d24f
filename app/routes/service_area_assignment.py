"""
Branch to service area assignment routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.service_area import ServiceAreaAssignmentCreate, ServiceAreaAssignmentUpdate, ActiveStatus
from app.services import service_area_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/service-area-assignments", tags=["Service Area Assignments"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def assign_branch(
    assignment: ServiceAreaAssignmentCreate,
    current_user: dict = Depends(require_permission("service-area:assign"))
):
    created = await service_area_service.create_assignment(assignment.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Branch assigned to service area successfully")


@router.get("/branches/{branch_id}/service-areas")
async def get_branch_service_areas(
    branch_id: str,
    status: Optional[ActiveStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("service-area:read"))
):
    page, limit, skip = page_params(page, limit)
    items, total = await service_area_service.get_areas_for_branch(branch_id, status, skip, limit)
    return success_response(serialize_docs(items), "Branch service areas retrieved successfully", build_pagination(page, limit, total))


@router.get("/service-areas/{area_id}/branches")
async def get_service_area_branches(
    area_id: str,
    status: Optional[ActiveStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("service-area:read"))
):
    """Branches serving an area, highest priority first"""
    page, limit, skip = page_params(page, limit)
    items, total = await service_area_service.get_branches_for_area(area_id, status, skip, limit)
    return success_response(serialize_docs(items), "Service area branches retrieved successfully", build_pagination(page, limit, total))


@router.get("/service-areas/{area_id}/primary-branch")
async def get_primary_branch(area_id: str, current_user: dict = Depends(require_permission("service-area:read"))):
    assignment = await service_area_service.get_primary_branch(area_id)
    return success_response(serialize_doc(assignment), "Primary branch retrieved successfully")


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, current_user: dict = Depends(require_permission("service-area:read"))):
    assignment = await service_area_service.get_assignment(assignment_id)
    return success_response(serialize_doc(assignment), "Service area assignment retrieved successfully")


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    assignment: ServiceAreaAssignmentUpdate,
    current_user: dict = Depends(require_permission("service-area:assign"))
):
    updated = await service_area_service.update_assignment(
        assignment_id, assignment.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Service area assignment updated successfully")


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    reason: Optional[str] = None,
    current_user: dict = Depends(require_permission("service-area:assign"))
):
    await service_area_service.delete_assignment(assignment_id, get_user_id(current_user), reason)
    return success_response(None, "Service area assignment removed successfully")
