"""
Service area pricing routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.service_area import (
    ServiceAreaPricingCreate, ServiceAreaPricingUpdate, PriceCalculationRequest, ServiceType, ActiveStatus
)
from app.services import service_area_service
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/service-area-pricing", tags=["Service Area Pricing"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_pricing(
    pricing: ServiceAreaPricingCreate,
    current_user: dict = Depends(require_permission("pricing:create"))
):
    created = await service_area_service.create_pricing(pricing.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Service area pricing created successfully")


@router.post("/calculate")
async def calculate_price(
    request: PriceCalculationRequest,
    current_user: dict = Depends(require_permission("pricing:read"))
):
    result = await service_area_service.calculate_shipping_price(
        request.service_area, request.service_type, request.distance, request.weight
    )
    return success_response(result, "Price calculated successfully")


@router.get("/service-areas/{area_id}/pricing")
async def get_area_pricing(
    area_id: str,
    service_type: Optional[ServiceType] = None,
    status: Optional[ActiveStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("pricing:read"))
):
    page, limit, skip = page_params(page, limit)
    records, total = await service_area_service.get_pricing_for_area(area_id, service_type, status, skip, limit)
    return success_response(serialize_docs(records), "Service area pricing retrieved successfully", build_pagination(page, limit, total))


@router.get("/{pricing_id}")
async def get_pricing(pricing_id: str, current_user: dict = Depends(require_permission("pricing:read"))):
    pricing = await service_area_service.get_pricing(pricing_id)
    return success_response(serialize_doc(pricing), "Service area pricing retrieved successfully")


@router.put("/{pricing_id}")
async def update_pricing(
    pricing_id: str,
    pricing: ServiceAreaPricingUpdate,
    current_user: dict = Depends(require_permission("pricing:update"))
):
    updated = await service_area_service.update_pricing(
        pricing_id, pricing.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Service area pricing updated successfully")


@router.delete("/{pricing_id}")
async def delete_pricing(pricing_id: str, current_user: dict = Depends(require_permission("pricing:delete"))):
    await service_area_service.delete_pricing(pricing_id)
    return success_response(None, "Service area pricing deleted successfully")
