"""
Location based service area search
"""
from fastapi import APIRouter, Depends
from app.models.service_area import LocationSearchRequest, BranchLocationRequest
from app.services import geospatial
from app.utils.helpers import serialize_doc, serialize_docs, success_response
from app.utils.auth import require_permission

router = APIRouter(prefix="/service-areas/geospatial", tags=["Service Area Geospatial"])


@router.post("/find-by-location")
async def find_by_location(
    request: LocationSearchRequest,
    current_user: dict = Depends(require_permission("service-area:read"))
):
    areas = await geospatial.find_service_areas(
        request.search_type,
        longitude=request.longitude,
        latitude=request.latitude,
        max_distance=request.max_distance,
        polygon=request.polygon.model_dump() if request.polygon else None,
    )
    return success_response(serialize_docs(areas), f"Found {len(areas)} service areas")


@router.post("/find-branches-by-location")
async def find_branches_by_location(
    request: BranchLocationRequest,
    current_user: dict = Depends(require_permission("service-area:read"))
):
    """Branches serving the point, highest priority first"""
    matches = await geospatial.find_branches_by_location(request.longitude, request.latitude)
    data = [
        {
            "branch": serialize_doc(match["branch"]),
            "service_area": serialize_doc(match["service_area"]),
            "priority_level": match["priority_level"],
        }
        for match in matches
    ]
    return success_response(data, f"Found {len(data)} branches")
