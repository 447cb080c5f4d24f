"""
Division use cases
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

INACTIVE_STATUSES = ("INACTIVE", "ARCHIVED")


async def get_division(division_id: str) -> Dict:
    division = await db_ops.get_by_id(Collections.DIVISIONS, division_id)
    if not division:
        raise NotFoundError("Division not found")
    return division


async def get_division_by_code(code: str) -> Dict:
    division = await db_ops.get_one(Collections.DIVISIONS, {"code": normalize_code(code)})
    if not division:
        raise NotFoundError("Division not found")
    return division


async def _get_parent(parent_id: Optional[str]) -> Optional[Dict]:
    if not parent_id:
        return None
    parent = await db_ops.get_by_id(Collections.DIVISIONS, parent_id)
    if not parent:
        raise NotFoundError("Parent division not found")
    return parent


async def _check_branch(branch_id: Optional[str]):
    if branch_id and not await db_ops.get_by_id(Collections.BRANCHES, branch_id):
        raise NotFoundError("Branch not found")


def _budget(budget: Optional[Dict]) -> Optional[Dict]:
    if budget is None:
        return None
    return {**budget, "remaining": budget.get("annual", 0) - budget.get("spent", 0)}


async def create_division(data: Dict, user_id: Optional[str]) -> Dict:
    code = normalize_code(data["code"])
    if await db_ops.exists(Collections.DIVISIONS, {"code": code}):
        raise ValidationError(f"Division with code {code} already exists")

    parent = await _get_parent(data.get("parent"))
    await _check_branch(data.get("branch"))
    level, path = hierarchy.compute_placement(parent, code)

    document = {
        **data,
        "code": code,
        "level": level,
        "path": path,
        "budget": _budget(data.get("budget")),
        "metrics": {},
        "created_by": user_id,
        "updated_by": user_id,
    }
    division = await db_ops.create(Collections.DIVISIONS, document)
    await record_org_change("DIVISION", division["_id"], "CREATE", f"Division {code} created", user_id, new_state=division)
    return division


async def list_divisions(query: Dict, skip: int, limit: int) -> Tuple[List[Dict], int]:
    divisions = await db_ops.get_all(Collections.DIVISIONS, query, skip=skip, limit=limit, sort=[("path", 1)])
    total = await db_ops.count(Collections.DIVISIONS, query)
    return divisions, total


async def get_all_divisions(branch_id: Optional[str] = None) -> List[Dict]:
    query = {"branch": branch_id} if branch_id else {}
    return await db_ops.get_all(Collections.DIVISIONS, query, limit=0, sort=[("level", 1), ("code", 1)])


async def get_children(division_id: str) -> List[Dict]:
    await get_division(division_id)
    return await hierarchy.get_children(Collections.DIVISIONS, division_id)


async def get_descendants(division_id: str) -> List[Dict]:
    division = await get_division(division_id)
    return await hierarchy.get_descendants(Collections.DIVISIONS, division)


async def update_division(division_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    division = await get_division(division_id)

    new_code = normalize_code(data.pop("code")) if data.get("code") else None
    if new_code == division["code"]:
        new_code = None
    if new_code and await db_ops.exists(Collections.DIVISIONS, {"code": new_code, "_id": {"$ne": division["_id"]}}):
        raise ValidationError(f"Division with code {new_code} already exists")

    if "branch" in data:
        await _check_branch(data["branch"])

    parent_changed = "parent" in data and data["parent"] != division.get("parent")
    new_parent_id = data.pop("parent", division.get("parent"))

    updated = division
    if parent_changed or new_code:
        parent = await _get_parent(new_parent_id)
        updated = await hierarchy.relocate(Collections.DIVISIONS, division, parent, code=new_code)

    if data:
        data["updated_by"] = user_id
        updated = await db_ops.update(Collections.DIVISIONS, division_id, data)

    fields = changed_fields(division, updated, ["name", "code", "description", "parent", "manager", "branch", "metadata"])
    await record_org_change(
        "DIVISION", division_id, "UPDATE", f"Division {updated['code']} updated", user_id,
        previous_state=division, new_state=updated, fields=fields
    )
    return updated


async def delete_division(division_id: str, user_id: Optional[str]) -> Dict:
    division = await get_division(division_id)
    if await db_ops.exists(Collections.DIVISIONS, {"parent": division_id}):
        raise ValidationError("Cannot delete division with child divisions")
    if await db_ops.exists(Collections.POSITIONS, {"division": division_id}):
        raise ValidationError("Cannot delete division with positions")
    await db_ops.delete(Collections.DIVISIONS, division_id)
    await record_org_change("DIVISION", division_id, "DELETE", f"Division {division['code']} deleted", user_id, previous_state=division)
    return division


async def update_status(division_id: str, status: str, user_id: Optional[str]) -> Dict:
    division = await get_division(division_id)
    if status in INACTIVE_STATUSES:
        active_children = await db_ops.count(Collections.DIVISIONS, {"parent": division_id, "status": "ACTIVE"})
        if active_children:
            raise ValidationError("Cannot deactivate division with active child divisions")

    updated = await db_ops.update(Collections.DIVISIONS, division_id, {"status": status, "updated_by": user_id})
    change_type = "ACTIVATE" if status == "ACTIVE" else "DEACTIVATE" if status in INACTIVE_STATUSES else "UPDATE"
    await record_org_change(
        "DIVISION", division_id, change_type,
        f"Division {division['code']} status changed from {division.get('status')} to {status}", user_id,
        previous_state={"status": division.get("status")}, new_state={"status": status}, fields=["status"]
    )
    return updated


async def update_budget(division_id: str, budget: Dict, user_id: Optional[str]) -> Dict:
    division = await get_division(division_id)
    merged = _budget({**(division.get("budget") or {}), **budget})
    updated = await db_ops.update(Collections.DIVISIONS, division_id, {"budget": merged, "updated_by": user_id})
    await record_org_change(
        "DIVISION", division_id, "UPDATE", f"Division {division['code']} budget updated", user_id,
        previous_state={"budget": division.get("budget")}, new_state={"budget": merged}, fields=["budget"]
    )
    return updated


async def update_metrics(division_id: str, metrics: Dict, user_id: Optional[str]) -> Dict:
    if not isinstance(metrics, dict):
        raise ValidationError("Metrics must be an object")
    division = await get_division(division_id)
    merged = {**(division.get("metrics") or {}), **metrics}
    updated = await db_ops.update(Collections.DIVISIONS, division_id, {"metrics": merged, "updated_by": user_id})
    await record_org_change(
        "DIVISION", division_id, "UPDATE", f"Division {division['code']} metrics updated", user_id,
        previous_state={"metrics": division.get("metrics")}, new_state={"metrics": merged}, fields=["metrics"]
    )
    return updated


async def transfer_division(division_id: str, target: Dict, user_id: Optional[str]) -> Dict:
    """Re-parent a division (with its subtree) and/or move it to another branch"""
    division = await get_division(division_id)

    extra = {"updated_by": user_id}
    if "branch" in target:
        await _check_branch(target["branch"])
        extra["branch"] = target["branch"]

    parent_id = target["parent"] if "parent" in target else division.get("parent")
    parent = await _get_parent(parent_id)
    updated = await hierarchy.relocate(Collections.DIVISIONS, division, parent, extra=extra)

    await record_org_change(
        "DIVISION", division_id, "TRANSFER",
        f"Division {division['code']} transferred to {updated['path']}", user_id,
        previous_state={"parent": division.get("parent"), "branch": division.get("branch"), "path": division["path"]},
        new_state={"parent": updated.get("parent"), "branch": updated.get("branch"), "path": updated["path"]},
        fields=changed_fields(division, updated, ["parent", "branch", "path", "level"])
    )
    logger.info("Division %s transferred to %s", division["code"], updated["path"])
    return updated
