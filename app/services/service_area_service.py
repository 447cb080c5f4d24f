"""
Service areas, branch coverage assignments and area pricing
"""
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.models.service_area import outer_ring_center
from app.services import pricing as pricing_rules
from app.services.audit import record_service_area_history
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import to_utc_naive

logger = logging.getLogger(__name__)

AREA_FIELDS = ["code", "name", "description", "admin_code", "admin_level", "geometry", "center", "area_type", "status"]
SORTABLE_FIELDS = {"code", "name", "created_at", "updated_at", "area_type", "admin_level", "status"}


def field_changes(before: Dict, after: Dict, keys) -> List[Dict]:
    return [
        {"field": key, "old_value": before.get(key), "new_value": after.get(key)}
        for key in keys
        if key in after and before.get(key) != after.get(key)
    ]


def history_change_type(changes: List[Dict]) -> str:
    fields = {change["field"] for change in changes}
    if "status" in fields:
        return "STATUS_CHANGE"
    if "geometry" in fields:
        return "BOUNDARY_CHANGE"
    return "UPDATE"


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    """`field:asc|desc`, newest first by default"""
    if not sort:
        return [("created_at", -1)]
    field, _, order = sort.partition(":")
    if field not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by {field}")
    return [(field, -1 if order == "desc" else 1)]


# ===================== Service areas =====================

async def get_service_area(area_id: str) -> Dict:
    area = await db_ops.get_by_id(Collections.SERVICE_AREAS, area_id)
    if not area:
        raise NotFoundError("Service area not found")
    return area


async def create_service_area(data: Dict, user_id: Optional[str]) -> Dict:
    if await db_ops.exists(Collections.SERVICE_AREAS, {"code": data["code"]}):
        raise ValidationError(f"Service area with code {data['code']} already exists")
    document = dict(data)
    if not document.get("center"):
        document["center"] = outer_ring_center(document["geometry"])
    document.update({"created_by": user_id, "updated_by": user_id})
    area = await db_ops.create(Collections.SERVICE_AREAS, document)
    await record_service_area_history(area["_id"], "CREATE", user_id, new_state=area)
    logger.info("Service area %s created", area["code"])
    return area


def area_query(search: Optional[str], status: Optional[str], area_type: Optional[str], admin_level: Optional[str]) -> Dict:
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"code": pattern}]
    if status:
        query["status"] = status
    if area_type:
        query["area_type"] = area_type
    if admin_level:
        query["admin_level"] = admin_level
    return query


async def list_service_areas(query: Dict, skip: int, limit: int, sort: Optional[str] = None):
    areas = await db_ops.get_all(Collections.SERVICE_AREAS, query, skip=skip, limit=limit, sort=parse_sort(sort))
    return areas, await db_ops.count(Collections.SERVICE_AREAS, query)


async def update_service_area(area_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    area = await get_service_area(area_id)
    reason = data.pop("reason", None)
    if data.get("code") and data["code"] != area["code"]:
        if await db_ops.exists(Collections.SERVICE_AREAS, {"code": data["code"]}):
            raise ValidationError("Service area code already exists")
    if data.get("geometry") and not data.get("center"):
        data["center"] = outer_ring_center(data["geometry"])

    changes = field_changes(area, data, AREA_FIELDS)
    data["updated_by"] = user_id
    updated = await db_ops.update(Collections.SERVICE_AREAS, area_id, data)
    if changes:
        await record_service_area_history(
            area_id, history_change_type(changes), user_id,
            previous_state=area, new_state=updated, changes=changes, reason=reason
        )
    return updated


async def delete_service_area(area_id: str, user_id: Optional[str], force: bool = False, reason: Optional[str] = None):
    area = await get_service_area(area_id)
    assignments = await db_ops.count(Collections.SERVICE_AREA_ASSIGNMENTS, {"service_area": area_id})
    pricing = await db_ops.count(Collections.SERVICE_AREA_PRICING, {"service_area": area_id})
    if (assignments or pricing) and not force:
        raise ValidationError(
            f"Service area has {assignments} branch assignments and {pricing} pricing records. "
            "Use force=true to delete them as well"
        )
    if force:
        await db_ops.delete_many(Collections.SERVICE_AREA_ASSIGNMENTS, {"service_area": area_id})
        await db_ops.delete_many(Collections.SERVICE_AREA_PRICING, {"service_area": area_id})
    await db_ops.delete(Collections.SERVICE_AREAS, area_id)
    await record_service_area_history(area_id, "DELETE", user_id, previous_state=area, reason=reason)
    logger.info("Service area %s deleted (force=%s)", area["code"], force)


async def get_service_area_history(area_id: str, change_type: Optional[str], skip: int, limit: int):
    await get_service_area(area_id)
    query = {"service_area": area_id}
    if change_type:
        query["change_type"] = change_type
    records = await db_ops.get_all(Collections.SERVICE_AREA_HISTORY, query, skip=skip, limit=limit, sort=[("changed_at", -1)])
    return records, await db_ops.count(Collections.SERVICE_AREA_HISTORY, query)


# ===================== Branch assignments =====================

async def get_assignment(assignment_id: str) -> Dict:
    assignment = await db_ops.get_by_id(Collections.SERVICE_AREA_ASSIGNMENTS, assignment_id)
    if not assignment:
        raise NotFoundError("Service area assignment not found")
    return assignment


async def _get_branch(branch_id: str) -> Dict:
    branch = await db_ops.get_by_id(Collections.BRANCHES, branch_id)
    if not branch:
        raise NotFoundError("Branch not found")
    return branch


async def create_assignment(data: Dict, user_id: Optional[str]) -> Dict:
    branch = await _get_branch(data["branch"])
    area = await get_service_area(data["service_area"])
    if await db_ops.exists(Collections.SERVICE_AREA_ASSIGNMENTS, {
        "branch": data["branch"], "service_area": data["service_area"]
    }):
        raise ValidationError(f"Branch {branch['code']} is already assigned to service area {area['code']}")
    document = dict(data)
    document.update({"assigned_by": user_id, "assigned_at": datetime.utcnow(), "updated_by": user_id})
    assignment = await db_ops.create(Collections.SERVICE_AREA_ASSIGNMENTS, document)
    await record_service_area_history(
        data["service_area"], "ASSIGNMENT_CHANGE", user_id, new_state=assignment,
        reason=f"Assigned to branch {branch['code']}"
    )
    return assignment


async def update_assignment(assignment_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    assignment = await get_assignment(assignment_id)
    changes = field_changes(assignment, data, ["priority_level", "status", "notes"])
    data["updated_by"] = user_id
    updated = await db_ops.update(Collections.SERVICE_AREA_ASSIGNMENTS, assignment_id, data)
    if changes:
        await record_service_area_history(
            assignment["service_area"], "ASSIGNMENT_CHANGE", user_id,
            previous_state=assignment, new_state=updated, changes=changes
        )
    return updated


async def delete_assignment(assignment_id: str, user_id: Optional[str], reason: Optional[str] = None):
    assignment = await get_assignment(assignment_id)
    await db_ops.delete(Collections.SERVICE_AREA_ASSIGNMENTS, assignment_id)
    await record_service_area_history(
        assignment["service_area"], "ASSIGNMENT_CHANGE", user_id,
        previous_state=assignment, reason=reason or "Assignment removed"
    )


async def get_areas_for_branch(branch_id: str, status: Optional[str], skip: int, limit: int):
    await _get_branch(branch_id)
    query = {"branch": branch_id}
    if status:
        query["status"] = status
    assignments = await db_ops.get_all(
        Collections.SERVICE_AREA_ASSIGNMENTS, query, skip=skip, limit=limit, sort=[("priority_level", 1)]
    )
    for assignment in assignments:
        assignment["service_area_detail"] = await db_ops.get_by_id(Collections.SERVICE_AREAS, assignment["service_area"])
    return assignments, await db_ops.count(Collections.SERVICE_AREA_ASSIGNMENTS, query)


async def get_branches_for_area(area_id: str, status: Optional[str], skip: int, limit: int):
    await get_service_area(area_id)
    query = {"service_area": area_id}
    if status:
        query["status"] = status
    assignments = await db_ops.get_all(
        Collections.SERVICE_AREA_ASSIGNMENTS, query, skip=skip, limit=limit, sort=[("priority_level", 1)]
    )
    for assignment in assignments:
        assignment["branch_detail"] = await db_ops.get_by_id(Collections.BRANCHES, assignment["branch"])
    return assignments, await db_ops.count(Collections.SERVICE_AREA_ASSIGNMENTS, query)


async def get_primary_branch(area_id: str) -> Dict:
    """Active assignment with the lowest priority level"""
    await get_service_area(area_id)
    assignments = await db_ops.get_all(
        Collections.SERVICE_AREA_ASSIGNMENTS, {"service_area": area_id, "status": "ACTIVE"},
        limit=1, sort=[("priority_level", 1)]
    )
    if not assignments:
        raise NotFoundError("No active branch serves this service area")
    assignment = assignments[0]
    assignment["branch_detail"] = await db_ops.get_by_id(Collections.BRANCHES, assignment["branch"])
    return assignment


# ===================== Pricing =====================

def _instants(data: Dict) -> Dict:
    for key in ("effective_from", "effective_to"):
        if data.get(key) is not None:
            data[key] = to_utc_naive(data[key])
    return data


async def get_pricing(pricing_id: str) -> Dict:
    pricing = await db_ops.get_by_id(Collections.SERVICE_AREA_PRICING, pricing_id)
    if not pricing:
        raise NotFoundError("Service area pricing not found")
    return pricing


async def create_pricing(data: Dict, user_id: Optional[str]) -> Dict:
    area = await get_service_area(data["service_area"])
    if await db_ops.exists(Collections.SERVICE_AREA_PRICING, {
        "service_area": data["service_area"], "service_type": data["service_type"]
    }):
        raise ValidationError(f"{data['service_type']} pricing already exists for service area {area['code']}")
    document = _instants(dict(data))
    if document.get("effective_from") is None:
        document["effective_from"] = datetime.utcnow()
    document.update({"created_by": user_id, "updated_by": user_id})
    return await db_ops.create(Collections.SERVICE_AREA_PRICING, document)


async def update_pricing(pricing_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    pricing = await get_pricing(pricing_id)
    data = _instants(data)
    merged = {**pricing, **data}
    if merged.get("max_charge") is not None and merged["max_charge"] < merged.get("min_charge", 0):
        raise ValidationError("Maximum charge must not be below minimum charge")
    if merged.get("effective_to") is not None and merged.get("effective_from") is not None \
            and merged["effective_to"] < merged["effective_from"]:
        raise ValidationError("Effective end must not be before effective start")
    data["updated_by"] = user_id
    return await db_ops.update(Collections.SERVICE_AREA_PRICING, pricing_id, data)


async def delete_pricing(pricing_id: str):
    await get_pricing(pricing_id)
    await db_ops.delete(Collections.SERVICE_AREA_PRICING, pricing_id)


async def get_pricing_for_area(area_id: str, service_type: Optional[str], status: Optional[str], skip: int, limit: int):
    await get_service_area(area_id)
    query = {"service_area": area_id}
    if service_type:
        query["service_type"] = service_type
    if status:
        query["status"] = status
    records = await db_ops.get_all(Collections.SERVICE_AREA_PRICING, query, skip=skip, limit=limit, sort=[("service_type", 1)])
    now = datetime.utcnow()
    for record in records:
        record["is_active"] = pricing_rules.is_active(record, now)
    return records, await db_ops.count(Collections.SERVICE_AREA_PRICING, query)


async def calculate_shipping_price(area_id: str, service_type: str, distance: float, weight: float) -> Dict:
    now = datetime.utcnow()
    pricing = await db_ops.get_one(
        Collections.SERVICE_AREA_PRICING, pricing_rules.active_pricing_query(area_id, service_type, now)
    )
    if not pricing:
        raise NotFoundError(f"No active {service_type} pricing found for this service area")
    result = pricing_rules.calculate_price(pricing, distance, weight)
    result.update({"service_area": area_id, "service_type": service_type, "distance": distance, "weight": weight})
    return result
