"""
Service area routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.service_area import ServiceAreaCreate, ServiceAreaUpdate, ActiveStatus, AreaType, AdminLevel
from app.services import service_area_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/service-areas", tags=["Service Areas"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_service_area(
    area: ServiceAreaCreate,
    current_user: dict = Depends(require_permission("service-area:create"))
):
    """Create a service area; center defaults to the mean of the outer ring"""
    created = await service_area_service.create_service_area(area.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Service area created successfully")


@router.get("/")
async def get_service_areas(
    search: Optional[str] = None,
    status: Optional[ActiveStatus] = None,
    area_type: Optional[AreaType] = None,
    admin_level: Optional[AdminLevel] = None,
    sort: Optional[str] = Query(None, description="field:asc or field:desc"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("service-area:read"))
):
    page, limit, skip = page_params(page, limit)
    query = service_area_service.area_query(search, status, area_type, admin_level)
    areas, total = await service_area_service.list_service_areas(query, skip, limit, sort)
    return success_response(serialize_docs(areas), "Service areas retrieved successfully", build_pagination(page, limit, total))


@router.get("/{area_id}")
async def get_service_area(area_id: str, current_user: dict = Depends(require_permission("service-area:read"))):
    area = await service_area_service.get_service_area(area_id)
    return success_response(serialize_doc(area), "Service area retrieved successfully")


@router.put("/{area_id}")
async def update_service_area(
    area_id: str,
    area: ServiceAreaUpdate,
    current_user: dict = Depends(require_permission("service-area:update"))
):
    updated = await service_area_service.update_service_area(
        area_id, area.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Service area updated successfully")


@router.delete("/{area_id}")
async def delete_service_area(
    area_id: str,
    force: bool = False,
    reason: Optional[str] = None,
    current_user: dict = Depends(require_permission("service-area:delete"))
):
    await service_area_service.delete_service_area(area_id, get_user_id(current_user), force, reason)
    return success_response(None, "Service area deleted successfully")


@router.get("/{area_id}/history")
async def get_service_area_history(
    area_id: str,
    change_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("service-area:read"))
):
    page, limit, skip = page_params(page, limit)
    records, total = await service_area_service.get_service_area_history(area_id, change_type, skip, limit)
    return success_response(serialize_docs(records), "Service area history retrieved successfully", build_pagination(page, limit, total))
