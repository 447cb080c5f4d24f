"""
Branch routes
"""
from fastapi import APIRouter, status, Depends, Query
from typing import Optional
from app.models.branch import (
    BranchCreate, BranchUpdate, BranchStatusUpdate, BranchMetricsUpdate,
    BranchResourcesUpdate, BranchDocumentCreate, OperationalHoursUpdate,
    BranchFilters, BranchStatus, BranchType
)
from app.services import branch_service, hierarchy
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/branches", tags=["Branches"])

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_branch(
    branch: BranchCreate,
    current_user: dict = Depends(require_permission("branch:create"))
):
    """Create a new branch"""
    created = await branch_service.create_branch(branch.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Branch created successfully")

@router.get("/")
async def get_branches(
    status: Optional[BranchStatus] = None,
    type: Optional[BranchType] = None,
    parent: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("branch:read"))
):
    """List branches with optional filters"""
    page, limit, skip = page_params(page, limit)
    query = BranchFilters(status=status, type=type, parent=parent, search=search).to_query()
    branches, total = await branch_service.list_branches(query, skip, limit)
    return success_response(serialize_docs(branches), "Branches retrieved successfully", build_pagination(page, limit, total))

@router.get("/hierarchy")
async def get_hierarchy(current_user: dict = Depends(require_permission("branch:read"))):
    """Full branch tree"""
    branches = await branch_service.get_hierarchy()
    return success_response(hierarchy.build_tree(serialize_docs(branches)), "Branch hierarchy retrieved successfully")

@router.get("/{branch_id}")
async def get_branch(branch_id: str, current_user: dict = Depends(require_permission("branch:read"))):
    branch = await branch_service.get_branch(branch_id)
    return success_response(serialize_doc(branch), "Branch retrieved successfully")

@router.get("/{branch_id}/hierarchy")
async def get_branch_hierarchy(branch_id: str, current_user: dict = Depends(require_permission("branch:read"))):
    """Ancestors and descendant tree of a branch"""
    result = await branch_service.get_branch_hierarchy(branch_id)
    node = serialize_doc(result["branch"])
    descendants = serialize_docs(result["descendants"])
    node["children"] = hierarchy.build_tree([node] + descendants)[0]["children"]
    return success_response(
        {"branch": node, "ancestors": serialize_docs(result["ancestors"])},
        "Branch hierarchy retrieved successfully"
    )

@router.put("/{branch_id}")
async def update_branch(
    branch_id: str,
    branch_update: BranchUpdate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.update_branch(
        branch_id, branch_update.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Branch updated successfully")

@router.delete("/{branch_id}")
async def delete_branch(branch_id: str, current_user: dict = Depends(require_permission("branch:delete"))):
    await branch_service.delete_branch(branch_id, get_user_id(current_user))
    return success_response(None, "Branch deleted successfully")

@router.patch("/{branch_id}/status")
async def update_branch_status(
    branch_id: str,
    body: BranchStatusUpdate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.update_status(branch_id, body.status, body.reason, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Branch status updated successfully")

@router.patch("/{branch_id}/metrics")
async def update_branch_metrics(
    branch_id: str,
    body: BranchMetricsUpdate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.update_metrics(branch_id, body.model_dump(exclude_none=True), get_user_id(current_user))
    return success_response(serialize_doc(updated), "Branch metrics updated successfully")

@router.patch("/{branch_id}/resources")
async def update_branch_resources(
    branch_id: str,
    body: BranchResourcesUpdate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.update_resources(branch_id, body.model_dump(exclude_none=True), get_user_id(current_user))
    return success_response(serialize_doc(updated), "Branch resources updated successfully")

@router.post("/{branch_id}/documents", status_code=status.HTTP_201_CREATED)
async def add_branch_document(
    branch_id: str,
    document: BranchDocumentCreate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.add_document(branch_id, document.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(updated), "Document added successfully")

@router.delete("/{branch_id}/documents/{document_id}")
async def remove_branch_document(
    branch_id: str,
    document_id: str,
    current_user: dict = Depends(require_permission("branch:update"))
):
    updated = await branch_service.remove_document(branch_id, document_id, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Document removed successfully")

@router.put("/{branch_id}/operational-hours")
async def update_operational_hours(
    branch_id: str,
    body: OperationalHoursUpdate,
    current_user: dict = Depends(require_permission("branch:update"))
):
    hours = [h.model_dump() for h in body.operational_hours]
    updated = await branch_service.update_operational_hours(branch_id, hours, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Operational hours updated successfully")
