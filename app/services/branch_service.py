"""
Branch use cases
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.services import hierarchy
from app.services.audit import record_org_change
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import changed_fields, normalize_code, prepare_doc

logger = logging.getLogger(__name__)

MAX_BRANCH_LEVEL = 10


async def get_branch(branch_id: str) -> Dict:
    branch = await db_ops.get_by_id(Collections.BRANCHES, branch_id)
    if not branch:
        raise NotFoundError("Branch not found")
    return branch


async def _get_parent(parent_id: Optional[str]) -> Optional[Dict]:
    if not parent_id:
        return None
    parent = await db_ops.get_by_id(Collections.BRANCHES, parent_id)
    if not parent:
        raise NotFoundError("Parent branch not found")
    return parent


def _check_level(level: int):
    if level > MAX_BRANCH_LEVEL:
        raise ValidationError(f"Branch hierarchy cannot be deeper than {MAX_BRANCH_LEVEL} levels")


async def create_branch(data: Dict, user_id: Optional[str]) -> Dict:
    code = normalize_code(data["code"])
    if await db_ops.exists(Collections.BRANCHES, {"code": code}):
        raise ValidationError(f"Branch with code {code} already exists")

    parent = await _get_parent(data.get("parent"))
    level, path = hierarchy.compute_placement(parent, code)
    _check_level(level)

    document = prepare_doc(data)
    document.update({
        "code": code,
        "level": level,
        "path": path,
        "status_history": [{
            "status": document.get("status", "ACTIVE"),
            "reason": "Branch created",
            "changed_by": user_id,
            "changed_at": datetime.utcnow(),
        }],
        "metrics": {},
        "documents": [],
        "created_by": user_id,
        "updated_by": user_id,
    })
    branch = await db_ops.create(Collections.BRANCHES, document)
    await record_org_change("BRANCH", branch["_id"], "CREATE", f"Branch {code} created", user_id, new_state=branch)
    logger.info("Branch %s created at level %d", code, level)
    return branch


async def list_branches(query: Dict, skip: int, limit: int) -> Tuple[List[Dict], int]:
    branches = await db_ops.get_all(Collections.BRANCHES, query, skip=skip, limit=limit, sort=[("path", 1)])
    total = await db_ops.count(Collections.BRANCHES, query)
    return branches, total


async def get_hierarchy() -> List[Dict]:
    branches = await db_ops.get_all(Collections.BRANCHES, {}, limit=0)
    return branches


async def get_branch_hierarchy(branch_id: str) -> Dict:
    """The branch with its ancestors (root first) and its descendants"""
    branch = await get_branch(branch_id)
    ancestor_codes = branch["path"].split(".")[:-1]
    ancestors = []
    if ancestor_codes:
        found = await db_ops.get_all(Collections.BRANCHES, {"code": {"$in": ancestor_codes}}, limit=0)
        by_code = {a["code"]: a for a in found}
        ancestors = [by_code[c] for c in ancestor_codes if c in by_code]
    descendants = await hierarchy.get_descendants(Collections.BRANCHES, branch)
    return {"branch": branch, "ancestors": ancestors, "descendants": descendants}


async def update_branch(branch_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    data = prepare_doc(data)

    new_code = normalize_code(data.pop("code")) if data.get("code") else None
    if new_code == branch["code"]:
        new_code = None
    if new_code and await db_ops.exists(Collections.BRANCHES, {"code": new_code, "_id": {"$ne": branch["_id"]}}):
        raise ValidationError(f"Branch with code {new_code} already exists")

    parent_changed = "parent" in data and data["parent"] != branch.get("parent")
    new_parent_id = data.pop("parent", branch.get("parent"))

    updated = branch
    if parent_changed or new_code:
        parent = await _get_parent(new_parent_id)
        level, _ = hierarchy.compute_placement(parent, new_code or branch["code"])
        descendants = await hierarchy.get_descendants(Collections.BRANCHES, branch)
        depth = max((d.get("level", 0) for d in descendants), default=branch.get("level", 0)) - branch.get("level", 0)
        _check_level(level + depth)
        updated = await hierarchy.relocate(Collections.BRANCHES, branch, parent, code=new_code)

    if data:
        data["updated_by"] = user_id
        updated = await db_ops.update(Collections.BRANCHES, branch_id, data)

    fields = changed_fields(branch, updated, ["code", "name", "type", "parent", "address", "contact_info"])
    await record_org_change(
        "BRANCH", branch_id, "TRANSFER" if parent_changed else "UPDATE",
        f"Branch {updated['code']} updated", user_id,
        previous_state=branch, new_state=updated, fields=fields
    )
    return updated


async def delete_branch(branch_id: str, user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    if await db_ops.exists(Collections.BRANCHES, {"parent": branch_id}):
        raise ValidationError("Cannot delete branch with child branches")
    if await db_ops.exists(Collections.DIVISIONS, {"branch": branch_id}):
        raise ValidationError("Cannot delete branch with divisions")
    await db_ops.delete(Collections.BRANCHES, branch_id)
    await record_org_change("BRANCH", branch_id, "DELETE", f"Branch {branch['code']} deleted", user_id, previous_state=branch)
    return branch


async def update_status(branch_id: str, status: str, reason: Optional[str], user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    entry = {"status": status, "reason": reason, "changed_by": user_id, "changed_at": datetime.utcnow()}
    updated = await db_ops.modify(Collections.BRANCHES, branch_id, {
        "$set": {"status": status, "updated_by": user_id},
        "$push": {"status_history": entry},
    })
    change_type = "ACTIVATE" if status == "ACTIVE" else "DEACTIVATE" if status in ("INACTIVE", "CLOSED") else "UPDATE"
    await record_org_change(
        "BRANCH", branch_id, change_type,
        f"Branch {branch['code']} status changed from {branch.get('status')} to {status}", user_id,
        previous_state={"status": branch.get("status")}, new_state={"status": status}, fields=["status"]
    )
    return updated


async def _merge_section(branch_id: str, section: str, values: Dict, user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    merged = {**(branch.get(section) or {}), **values}
    updated = await db_ops.update(Collections.BRANCHES, branch_id, {section: merged, "updated_by": user_id})
    await record_org_change(
        "BRANCH", branch_id, "UPDATE", f"Branch {branch['code']} {section} updated", user_id,
        previous_state={section: branch.get(section)}, new_state={section: merged}, fields=[section]
    )
    return updated


async def update_metrics(branch_id: str, metrics: Dict, user_id: Optional[str]) -> Dict:
    return await _merge_section(branch_id, "metrics", metrics, user_id)


async def update_resources(branch_id: str, resources: Dict, user_id: Optional[str]) -> Dict:
    return await _merge_section(branch_id, "resources", resources, user_id)


async def add_document(branch_id: str, document: Dict, user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    entry = prepare_doc(document)
    entry.update({"_id": ObjectId(), "uploaded_by": user_id, "uploaded_at": datetime.utcnow()})
    updated = await db_ops.modify(Collections.BRANCHES, branch_id, {
        "$push": {"documents": entry},
        "$set": {"updated_by": user_id},
    })
    await record_org_change(
        "BRANCH", branch_id, "UPDATE", f"Document {entry.get('name')} added to branch {branch['code']}", user_id,
        previous_state={"documents": branch.get("documents")}, new_state={"documents": updated.get("documents")},
        fields=["documents"]
    )
    return updated


async def remove_document(branch_id: str, document_id: str, user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    if not any(str(d.get("_id")) == document_id for d in branch.get("documents", [])):
        raise NotFoundError("Document not found")
    updated = await db_ops.modify(Collections.BRANCHES, branch_id, {
        "$pull": {"documents": {"_id": ObjectId(document_id)}},
        "$set": {"updated_by": user_id},
    })
    await record_org_change(
        "BRANCH", branch_id, "UPDATE", f"Document removed from branch {branch['code']}", user_id,
        previous_state={"documents": branch.get("documents")}, new_state={"documents": updated.get("documents")},
        fields=["documents"]
    )
    return updated


async def update_operational_hours(branch_id: str, hours: List[Dict], user_id: Optional[str]) -> Dict:
    branch = await get_branch(branch_id)
    updated = await db_ops.update(Collections.BRANCHES, branch_id, {"operational_hours": hours, "updated_by": user_id})
    await record_org_change(
        "BRANCH", branch_id, "UPDATE", f"Branch {branch['code']} operational hours updated", user_id,
        previous_state={"operational_hours": branch.get("operational_hours")},
        new_state={"operational_hours": hours}, fields=["operational_hours"]
    )
    return updated
