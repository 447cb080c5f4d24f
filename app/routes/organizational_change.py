"""
Organizational change audit routes
"""
import re
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Query
from typing import Literal, Optional
from app.database.db_operations import db_ops
from app.config.database import Collections
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import serialize_doc, serialize_docs, success_response, page_params, build_pagination, parse_date
from app.utils.auth import require_permission

router = APIRouter(prefix="/organizational-changes", tags=["Organizational Changes"])

EntityType = Literal["BRANCH", "DIVISION", "POSITION"]
ChangeType = Literal["CREATE", "UPDATE", "DELETE", "ACTIVATE", "DEACTIVATE", "TRANSFER"]
NEWEST_FIRST = [("created_at", -1)]


async def _paginated(query: dict, page: int, limit: Optional[int], message: str):
    page, limit, skip = page_params(page, limit)
    changes = await db_ops.get_all(Collections.ORGANIZATIONAL_CHANGES, query, skip=skip, limit=limit, sort=NEWEST_FIRST)
    total = await db_ops.count(Collections.ORGANIZATIONAL_CHANGES, query)
    return success_response(serialize_docs(changes), message, build_pagination(page, limit, total))


@router.get("/")
async def get_changes(
    entity_type: Optional[EntityType] = None,
    change_type: Optional[ChangeType] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    query = {}
    if entity_type:
        query["entity_type"] = entity_type
    if change_type:
        query["change_type"] = change_type
    return await _paginated(query, page, limit, "Organizational changes retrieved successfully")


@router.get("/recent")
async def get_recent_changes(
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    changes = await db_ops.get_all(Collections.ORGANIZATIONAL_CHANGES, {}, limit=limit, sort=NEWEST_FIRST)
    return success_response(serialize_docs(changes), "Recent organizational changes retrieved successfully")


@router.get("/entity/{entity_type}/{entity_id}")
async def get_entity_changes(
    entity_type: EntityType,
    entity_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    query = {"entity_type": entity_type, "entity_id": entity_id}
    return await _paginated(query, page, limit, "Entity changes retrieved successfully")


@router.get("/type/{change_type}")
async def get_changes_by_type(
    change_type: ChangeType,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    return await _paginated({"change_type": change_type}, page, limit, "Changes retrieved successfully")


@router.get("/date-range/{start_date}/{end_date}")
async def get_changes_by_date_range(
    start_date: str,
    end_date: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    try:
        start = parse_date(start_date)
        end = parse_date(end_date)
    except ValueError:
        raise ValidationError("Dates must be in YYYY-MM-DD format")
    if end < start:
        raise ValidationError("End date must not be before start date")
    query = {"created_at": {
        "$gte": datetime(start.year, start.month, start.day),
        "$lt": datetime(end.year, end.month, end.day) + timedelta(days=1),
    }}
    return await _paginated(query, page, limit, "Changes retrieved successfully")


@router.get("/search/{text}")
async def search_changes(
    text: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission("organizational-change:read"))
):
    query = {"description": {"$regex": re.escape(text), "$options": "i"}}
    return await _paginated(query, page, limit, "Changes retrieved successfully")


@router.get("/{change_id}")
async def get_change(change_id: str, current_user: dict = Depends(require_permission("organizational-change:read"))):
    change = await db_ops.get_by_id(Collections.ORGANIZATIONAL_CHANGES, change_id)
    if not change:
        raise NotFoundError("Organizational change not found")
    return success_response(serialize_doc(change), "Organizational change retrieved successfully")
