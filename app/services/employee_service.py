"""
Employee use cases. Every mutation appends an EmployeeHistory record.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.services.audit import record_employee_history
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import changed_fields, get_local_now, parse_date, prepare_doc, years_between

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = [
    "first_name", "last_name", "full_name", "gender", "date_of_birth", "place_of_birth",
    "nationality", "marital_status", "religion", "email", "addresses", "contacts",
    "emergency_contacts", "join_date", "employment_status", "bank_account", "education",
]

# sub-list field -> (history change type, description builder)
SUB_LISTS = {
    "skills": ("SKILL_ADDED", lambda item: f"Skill {item.get('name')} added"),
    "trainings": ("TRAINING_ADDED", lambda item: f"Training {item.get('name')} added"),
    "performance_evaluations": ("PERFORMANCE_EVALUATION", lambda item: "Performance evaluation added"),
    "career_development": ("CAREER_DEVELOPMENT_UPDATE", lambda item: "Career development plan added"),
    "contracts": ("CONTRACT_ADDED", lambda item: f"Contract {item.get('number')} added"),
}


def full_name(first_name: str, last_name: Optional[str]) -> str:
    return f"{first_name} {last_name or ''}".strip()


def label(employee: Dict) -> str:
    return f"{employee.get('employee_id')} ({employee.get('full_name')})"


def add_computed_fields(employee: Dict) -> Dict:
    """age and years_of_service as of today"""
    today = get_local_now().date()
    if employee.get("date_of_birth"):
        employee["age"] = years_between(parse_date(employee["date_of_birth"]), today)
    if employee.get("join_date"):
        employee["years_of_service"] = max(0, years_between(parse_date(employee["join_date"]), today))
    return employee


async def get_employee(employee_id: str) -> Dict:
    employee = await db_ops.get_by_id(Collections.EMPLOYEES, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


async def get_employee_by_code(code: str) -> Dict:
    employee = await db_ops.get_one(Collections.EMPLOYEES, {"employee_id": code})
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


async def get_employee_by_user(user_id: str) -> Dict:
    employee = await db_ops.get_one(Collections.EMPLOYEES, {"user_id": user_id})
    if not employee:
        raise NotFoundError("Employee not found for this user")
    return employee


async def _check_references(branch: Optional[str], division: Optional[str], position: Optional[str]):
    for collection, ref, name in (
        (Collections.BRANCHES, branch, "Branch"),
        (Collections.DIVISIONS, division, "Division"),
        (Collections.POSITIONS, position, "Position"),
    ):
        if ref and not await db_ops.get_by_id(collection, ref):
            raise NotFoundError(f"{name} not found")


async def create_employee(data: Dict, user_id: Optional[str]) -> Dict:
    if await db_ops.exists(Collections.EMPLOYEES, {"employee_id": data["employee_id"]}):
        raise ValidationError("Employee ID already exists")
    await _check_references(data.get("current_branch"), data.get("current_division"), data.get("current_position"))

    document = prepare_doc(data)
    document["full_name"] = full_name(document["first_name"], document.get("last_name"))
    document["status_history"] = [{
        "status": document["current_status"],
        "start_date": document["join_date"],
        "end_date": None,
        "reason": "Employee created",
        "changed_by": user_id,
    }]
    document["assignment_history"] = []
    if document.get("current_branch") and document.get("current_division") and document.get("current_position"):
        document["assignment_history"].append({
            "branch": document["current_branch"],
            "division": document["current_division"],
            "position": document["current_position"],
            "start_date": document["join_date"],
            "end_date": None,
            "is_active": True,
            "notes": "Initial assignment",
        })
    for field in ["documents", *SUB_LISTS]:
        document[field] = []
    document["user_id"] = None
    document["created_by"] = user_id
    document["updated_by"] = user_id

    employee = await db_ops.create(Collections.EMPLOYEES, document)
    await record_employee_history(employee, "CREATE", f"Employee {label(employee)} created", user_id, new_value=employee)
    logger.info("Employee %s created", employee["employee_id"])
    return employee


async def list_employees(query: Dict, skip: int, limit: int) -> Tuple[List[Dict], int]:
    employees = await db_ops.get_all(Collections.EMPLOYEES, query, skip=skip, limit=limit, sort=[("employee_id", 1)])
    total = await db_ops.count(Collections.EMPLOYEES, query)
    return employees, total


async def update_employee(employee_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    original = await get_employee(employee_id)
    data = prepare_doc(data)
    if "first_name" in data or "last_name" in data:
        data["full_name"] = full_name(
            data.get("first_name", original.get("first_name")),
            data.get("last_name", original.get("last_name")),
        )
    data["updated_by"] = user_id
    updated = await db_ops.update(Collections.EMPLOYEES, employee_id, data)

    fields = changed_fields(original, updated, [f for f in UPDATABLE_FIELDS if f in data])
    if fields:
        await record_employee_history(
            updated, "UPDATE",
            f"Employee {label(updated)} updated. Changed fields: {', '.join(fields)}", user_id,
            previous_value=original, new_value=updated, fields=fields
        )
    return updated


async def delete_employee(employee_id: str, user_id: Optional[str]) -> Dict:
    employee = await get_employee(employee_id)
    await db_ops.delete(Collections.EMPLOYEES, employee_id)
    await record_employee_history(employee, "DELETE", f"Employee {label(employee)} deleted", user_id, previous_value=employee)
    return employee


def _find_document(employee: Dict, document_id: str) -> Tuple[int, Dict]:
    for index, document in enumerate(employee.get("documents", [])):
        if str(document.get("_id")) == document_id:
            return index, document
    raise NotFoundError("Document not found")


async def add_document(employee_id: str, document: Dict, user_id: Optional[str]) -> Dict:
    await get_employee(employee_id)
    entry = prepare_doc(document)
    entry.update({"_id": ObjectId(), "verification_status": "PENDING", "verified_by": None, "verified_at": None})
    updated = await db_ops.modify(Collections.EMPLOYEES, employee_id, {
        "$push": {"documents": entry},
        "$set": {"updated_by": user_id},
    })
    await record_employee_history(
        updated, "DOCUMENT_ADDED", f"Document {entry['type']} added to employee {label(updated)}", user_id, new_value=entry
    )
    return updated


async def _replace_document(employee: Dict, index: int, document: Dict, user_id: Optional[str]) -> Dict:
    documents = list(employee.get("documents", []))
    documents[index] = document
    return await db_ops.update(Collections.EMPLOYEES, str(employee["_id"]), {"documents": documents, "updated_by": user_id})


async def update_document(employee_id: str, document_id: str, changes: Dict, user_id: Optional[str]) -> Dict:
    employee = await get_employee(employee_id)
    index, original = _find_document(employee, document_id)
    document = {**original, **prepare_doc(changes)}
    updated = await _replace_document(employee, index, document, user_id)
    await record_employee_history(
        updated, "DOCUMENT_UPDATED", f"Document {original['type']} updated for employee {label(updated)}", user_id,
        previous_value=original, new_value=document
    )
    return updated


async def verify_document(employee_id: str, document_id: str, status: str, notes: Optional[str], user_id: Optional[str]) -> Dict:
    employee = await get_employee(employee_id)
    index, original = _find_document(employee, document_id)
    document = {
        **original,
        "verification_status": status,
        "verified_by": user_id,
        "verified_at": datetime.utcnow(),
        "notes": notes if notes is not None else original.get("notes"),
    }
    updated = await _replace_document(employee, index, document, user_id)
    await record_employee_history(
        updated, "DOCUMENT_VERIFIED",
        f"Document {original['type']} verification status updated to {status} for employee {label(updated)}", user_id,
        previous_value=original, new_value=document
    )
    return updated


async def add_assignment(employee_id: str, assignment: Dict, user_id: Optional[str]) -> Dict:
    """Close the active assignment and make the new one current"""
    employee = await get_employee(employee_id)
    await _check_references(assignment["branch"], assignment["division"], assignment["position"])
    assignment = prepare_doc(assignment)

    history = []
    for entry in employee.get("assignment_history", []):
        if entry.get("is_active"):
            entry = {**entry, "is_active": False, "end_date": assignment["start_date"]}
        history.append(entry)
    history.append({**assignment, "end_date": None, "is_active": True})

    updated = await db_ops.update(Collections.EMPLOYEES, employee_id, {
        "assignment_history": history,
        "current_branch": assignment["branch"],
        "current_division": assignment["division"],
        "current_position": assignment["position"],
        "updated_by": user_id,
    })
    keys = ["current_branch", "current_division", "current_position"]
    await record_employee_history(
        updated, "ASSIGNMENT_CHANGE", f"Employee {label(updated)} assigned to new position", user_id,
        previous_value={k: employee.get(k) for k in keys}, new_value={k: updated.get(k) for k in keys},
        fields=changed_fields(employee, updated, keys)
    )
    return updated


async def update_status(employee_id: str, status_data: Dict, user_id: Optional[str]) -> Dict:
    employee = await get_employee(employee_id)
    status_data = prepare_doc(status_data)
    start_date = status_data.get("start_date") or get_local_now().date().isoformat()

    history = []
    for entry in employee.get("status_history", []):
        if entry.get("end_date") is None:
            entry = {**entry, "end_date": start_date}
        history.append(entry)
    history.append({
        "status": status_data["status"],
        "start_date": start_date,
        "end_date": None,
        "reason": status_data.get("reason"),
        "notes": status_data.get("notes"),
        "changed_by": user_id,
    })

    updated = await db_ops.update(Collections.EMPLOYEES, employee_id, {
        "current_status": status_data["status"],
        "status_history": history,
        "updated_by": user_id,
    })
    await record_employee_history(
        updated, "STATUS_CHANGE",
        f"Employee {label(updated)} status changed from {employee.get('current_status')} to {status_data['status']}", user_id,
        previous_value={"current_status": employee.get("current_status")},
        new_value={"current_status": status_data["status"]}, fields=["current_status"]
    )
    return updated


async def link_user(employee_id: str, linked_user_id: str, user_id: Optional[str]) -> Dict:
    employee = await get_employee(employee_id)
    existing = await db_ops.get_one(Collections.EMPLOYEES, {"user_id": linked_user_id})
    if existing and str(existing["_id"]) != str(employee["_id"]):
        raise ValidationError("User already linked to another employee")

    updated = await db_ops.update(Collections.EMPLOYEES, employee_id, {"user_id": linked_user_id, "updated_by": user_id})
    await record_employee_history(
        updated, "USER_ACCOUNT_LINKED", f"Employee {label(updated)} linked to user account", user_id,
        previous_value={"user_id": employee.get("user_id")}, new_value={"user_id": linked_user_id}, fields=["user_id"]
    )
    return updated


async def add_sub_record(employee_id: str, field: str, item: Dict, user_id: Optional[str]) -> Dict:
    """Append to skills, trainings, performance_evaluations, career_development or contracts"""
    change_type, describe = SUB_LISTS[field]
    await get_employee(employee_id)
    entry = {"_id": ObjectId(), **prepare_doc(item)}
    updated = await db_ops.modify(Collections.EMPLOYEES, employee_id, {
        "$push": {field: entry},
        "$set": {"updated_by": user_id},
    })
    await record_employee_history(
        updated, change_type, f"{describe(entry)} to employee {label(updated)}", user_id, new_value=entry
    )
    return updated
