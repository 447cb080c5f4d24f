"""
Position use cases

Positions form a reporting tree through ``report_to``; ``level`` and
``path`` follow the same rules as the division tree.
"""
import logging
from typing import Dict, List, Optional, Tuple

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.services import hierarchy
from app.services.audit import record_org_change
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import changed_fields, normalize_code

logger = logging.getLogger(__name__)

PARENT_FIELD = "report_to"


async def get_position(position_id: str) -> Dict:
    position = await db_ops.get_by_id(Collections.POSITIONS, position_id)
    if not position:
        raise NotFoundError("Position not found")
    return position


async def get_position_by_code(code: str) -> Dict:
    position = await db_ops.get_one(Collections.POSITIONS, {"code": normalize_code(code)})
    if not position:
        raise NotFoundError("Position not found")
    return position


async def _get_manager(report_to: Optional[str]) -> Optional[Dict]:
    if not report_to:
        return None
    manager = await db_ops.get_by_id(Collections.POSITIONS, report_to)
    if not manager:
        raise NotFoundError("Reporting position not found")
    return manager


async def _check_division(division_id: str):
    if not await db_ops.get_by_id(Collections.DIVISIONS, division_id):
        raise NotFoundError("Division not found")


async def create_position(data: Dict, user_id: Optional[str]) -> Dict:
    code = normalize_code(data["code"])
    if await db_ops.exists(Collections.POSITIONS, {"code": code}):
        raise ValidationError(f"Position with code {code} already exists")

    await _check_division(data["division"])
    manager = await _get_manager(data.get("report_to"))
    level, path = hierarchy.compute_placement(manager, code)

    document = {**data, "code": code, "level": level, "path": path, "created_by": user_id, "updated_by": user_id}
    position = await db_ops.create(Collections.POSITIONS, document)
    await record_org_change("POSITION", position["_id"], "CREATE", f"Position {code} created", user_id, new_state=position)
    return position


async def list_positions(query: Dict, skip: int, limit: int) -> Tuple[List[Dict], int]:
    positions = await db_ops.get_all(Collections.POSITIONS, query, skip=skip, limit=limit, sort=[("path", 1)])
    total = await db_ops.count(Collections.POSITIONS, query)
    return positions, total


async def get_positions(division_id: Optional[str] = None) -> List[Dict]:
    query = {"division": division_id} if division_id else {}
    return await db_ops.get_all(Collections.POSITIONS, query, limit=0, sort=[("level", 1), ("code", 1)])


async def get_direct_reports(position_id: str) -> List[Dict]:
    await get_position(position_id)
    return await hierarchy.get_children(Collections.POSITIONS, position_id, PARENT_FIELD)


async def get_reporting_chain(position_id: str) -> List[Dict]:
    """The position followed by every position above it, nearest first"""
    chain = []
    seen = set()
    current = await get_position(position_id)
    while current is not None and str(current["_id"]) not in seen:
        chain.append(current)
        seen.add(str(current["_id"]))
        manager_id = current.get(PARENT_FIELD)
        current = await db_ops.get_by_id(Collections.POSITIONS, manager_id) if manager_id else None
    return chain


async def update_position(position_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    position = await get_position(position_id)

    new_code = normalize_code(data.pop("code")) if data.get("code") else None
    if new_code == position["code"]:
        new_code = None
    if new_code and await db_ops.exists(Collections.POSITIONS, {"code": new_code, "_id": {"$ne": position["_id"]}}):
        raise ValidationError(f"Position with code {new_code} already exists")

    manager_changed = PARENT_FIELD in data and data[PARENT_FIELD] != position.get(PARENT_FIELD)
    manager_id = data.pop(PARENT_FIELD, position.get(PARENT_FIELD))

    updated = position
    if manager_changed or new_code:
        manager = await _get_manager(manager_id)
        updated = await hierarchy.relocate(Collections.POSITIONS, position, manager, code=new_code, parent_field=PARENT_FIELD)

    if data:
        data["updated_by"] = user_id
        updated = await db_ops.update(Collections.POSITIONS, position_id, data)

    await record_org_change(
        "POSITION", position_id, "UPDATE", f"Position {updated['code']} updated", user_id,
        previous_state=position, new_state=updated,
        fields=changed_fields(position, updated, ["name", "code", "description", PARENT_FIELD])
    )
    return updated


async def delete_position(position_id: str, user_id: Optional[str]) -> Dict:
    position = await get_position(position_id)
    if await db_ops.exists(Collections.POSITIONS, {PARENT_FIELD: position_id}):
        raise ValidationError("Cannot delete position that other positions report to")
    if await db_ops.exists(Collections.EMPLOYEES, {"current_position": position_id}):
        raise ValidationError("Cannot delete position held by employees")
    await db_ops.delete(Collections.POSITIONS, position_id)
    await record_org_change("POSITION", position_id, "DELETE", f"Position {position['code']} deleted", user_id, previous_state=position)
    return position


async def _set_section(position_id: str, field: str, value, user_id: Optional[str], change_type: str = "UPDATE") -> Dict:
    position = await get_position(position_id)
    updated = await db_ops.update(Collections.POSITIONS, position_id, {field: value, "updated_by": user_id})
    await record_org_change(
        "POSITION", position_id, change_type, f"Position {position['code']} {field} updated", user_id,
        previous_state={field: position.get(field)}, new_state={field: value}, fields=[field]
    )
    return updated


async def update_status(position_id: str, status: str, user_id: Optional[str]) -> Dict:
    change_type = "ACTIVATE" if status == "ACTIVE" else "DEACTIVATE" if status in ("INACTIVE", "ARCHIVED") else "UPDATE"
    return await _set_section(position_id, "status", status, user_id, change_type)


async def update_requirements(position_id: str, requirements: Dict, user_id: Optional[str]) -> Dict:
    return await _set_section(position_id, "requirements", requirements, user_id)


async def update_compensation(position_id: str, compensation: Dict, user_id: Optional[str]) -> Dict:
    salary_range = compensation.get("salary_range") or {}
    if salary_range.get("min", 0) > salary_range.get("max", 0):
        raise ValidationError("Minimum salary cannot be greater than maximum salary")
    return await _set_section(position_id, "compensation", compensation, user_id)


async def update_responsibilities(position_id: str, responsibilities: List[str], user_id: Optional[str]) -> Dict:
    return await _set_section(position_id, "responsibilities", responsibilities, user_id)


async def transfer_position(position_id: str, target: Dict, user_id: Optional[str]) -> Dict:
    """Move a position to another division and/or under a new reporting line"""
    position = await get_position(position_id)

    extra = {"updated_by": user_id}
    if target.get("division"):
        await _check_division(target["division"])
        extra["division"] = target["division"]

    manager_id = target[PARENT_FIELD] if PARENT_FIELD in target else position.get(PARENT_FIELD)
    manager = await _get_manager(manager_id)
    updated = await hierarchy.relocate(Collections.POSITIONS, position, manager, parent_field=PARENT_FIELD, extra=extra)

    await record_org_change(
        "POSITION", position_id, "TRANSFER",
        f"Position {position['code']} transferred", user_id,
        previous_state={"division": position.get("division"), PARENT_FIELD: position.get(PARENT_FIELD), "path": position["path"]},
        new_state={"division": updated.get("division"), PARENT_FIELD: updated.get(PARENT_FIELD), "path": updated["path"]},
        fields=changed_fields(position, updated, ["division", PARENT_FIELD, "path", "level"])
    )
    logger.info("Position %s transferred to %s", position["code"], updated["path"])
    return updated
