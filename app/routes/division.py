"""
Division routes
"""
import re
from fastapi import APIRouter, status, Depends, Query, Body
from typing import Any, Dict, Optional
from app.models.division import (
    DivisionCreate, DivisionUpdate, DivisionStatusUpdate, DivisionBudget,
    DivisionTransfer, DivisionStatus
)
from app.services import division_service, hierarchy
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination
from app.utils.auth import require_permission, get_user_id

router = APIRouter(prefix="/divisions", tags=["Divisions"])

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_division(
    division: DivisionCreate,
    current_user: dict = Depends(require_permission("division:create"))
):
    created = await division_service.create_division(division.model_dump(), get_user_id(current_user))
    return success_response(serialize_doc(created), "Division created successfully")

@router.get("/")
async def get_divisions(
    status: Optional[DivisionStatus] = None,
    branch: Optional[str] = None,
    parent: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("division:read"))
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if status:
        query["status"] = status
    if branch:
        query["branch"] = branch
    if parent:
        query["parent"] = parent
    if search:
        query["$or"] = [
            {"name": {"$regex": re.escape(search), "$options": "i"}},
            {"code": {"$regex": re.escape(search), "$options": "i"}},
        ]
    divisions, total = await division_service.list_divisions(query, skip, limit)
    return success_response(serialize_docs(divisions), "Divisions retrieved successfully", build_pagination(page, limit, total))

@router.get("/hierarchy")
async def get_division_hierarchy(
    branch: Optional[str] = None,
    current_user: dict = Depends(require_permission("division:read"))
):
    """Division tree, optionally limited to one branch"""
    divisions = await division_service.get_all_divisions(branch)
    return success_response(hierarchy.build_tree(serialize_docs(divisions)), "Division hierarchy retrieved successfully")

@router.get("/branch/{branch_id}")
async def get_divisions_by_branch(branch_id: str, current_user: dict = Depends(require_permission("division:read"))):
    divisions = await division_service.get_all_divisions(branch_id)
    return success_response(serialize_docs(divisions), "Divisions retrieved successfully")

@router.get("/code/{code}")
async def get_division_by_code(code: str, current_user: dict = Depends(require_permission("division:read"))):
    division = await division_service.get_division_by_code(code)
    return success_response(serialize_doc(division), "Division retrieved successfully")

@router.get("/{division_id}")
async def get_division(division_id: str, current_user: dict = Depends(require_permission("division:read"))):
    division = await division_service.get_division(division_id)
    return success_response(serialize_doc(division), "Division retrieved successfully")

@router.get("/{division_id}/children")
async def get_division_children(division_id: str, current_user: dict = Depends(require_permission("division:read"))):
    children = await division_service.get_children(division_id)
    return success_response(serialize_docs(children), "Child divisions retrieved successfully")

@router.get("/{division_id}/descendants")
async def get_division_descendants(division_id: str, current_user: dict = Depends(require_permission("division:read"))):
    descendants = await division_service.get_descendants(division_id)
    return success_response(serialize_docs(descendants), "Descendant divisions retrieved successfully")

@router.put("/{division_id}")
async def update_division(
    division_id: str,
    division_update: DivisionUpdate,
    current_user: dict = Depends(require_permission("division:update"))
):
    updated = await division_service.update_division(
        division_id, division_update.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Division updated successfully")

@router.delete("/{division_id}")
async def delete_division(division_id: str, current_user: dict = Depends(require_permission("division:delete"))):
    await division_service.delete_division(division_id, get_user_id(current_user))
    return success_response(None, "Division deleted successfully")

@router.patch("/{division_id}/status")
async def update_division_status(
    division_id: str,
    body: DivisionStatusUpdate,
    current_user: dict = Depends(require_permission("division:update"))
):
    updated = await division_service.update_status(division_id, body.status, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Division status updated successfully")

@router.patch("/{division_id}/budget")
async def update_division_budget(
    division_id: str,
    budget: DivisionBudget,
    current_user: dict = Depends(require_permission("division:update"))
):
    updated = await division_service.update_budget(
        division_id, budget.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Division budget updated successfully")

@router.patch("/{division_id}/metrics")
async def update_division_metrics(
    division_id: str,
    metrics: Dict[str, Any] = Body(...),
    current_user: dict = Depends(require_permission("division:update"))
):
    updated = await division_service.update_metrics(division_id, metrics, get_user_id(current_user))
    return success_response(serialize_doc(updated), "Division metrics updated successfully")

@router.patch("/{division_id}/transfer")
async def transfer_division(
    division_id: str,
    body: DivisionTransfer,
    current_user: dict = Depends(require_permission("division:transfer"))
):
    """Move a division and its subtree under a new parent or branch"""
    updated = await division_service.transfer_division(
        division_id, body.model_dump(exclude_unset=True), get_user_id(current_user)
    )
    return success_response(serialize_doc(updated), "Division transferred successfully")
