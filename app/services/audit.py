"""
Audit trail writers: organizational changes, employee history and service-area history
"""
from datetime import datetime
from typing import Dict, List, Optional

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.utils.helpers import snapshot


async def record_org_change(
    entity_type: str,
    entity_id: str,
    change_type: str,
    description: str,
    user_id: Optional[str],
    previous_state: Optional[Dict] = None,
    new_state: Optional[Dict] = None,
    fields: Optional[List[str]] = None,
) -> Dict:
    return await db_ops.create(Collections.ORGANIZATIONAL_CHANGES, {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "change_type": change_type,
        "description": description,
        "previous_state": snapshot(previous_state),
        "new_state": snapshot(new_state),
        "changed_fields": fields or [],
        "created_by": user_id,
    })


async def record_employee_history(
    employee: Dict,
    change_type: str,
    description: str,
    user_id: Optional[str],
    previous_value=None,
    new_value=None,
    fields: Optional[List[str]] = None,
) -> Dict:
    return await db_ops.create(Collections.EMPLOYEE_HISTORY, {
        "employee": str(employee["_id"]),
        "employee_code": employee.get("employee_id"),
        "change_type": change_type,
        "description": description,
        "changed_fields": fields or [],
        "previous_value": snapshot(previous_value) if isinstance(previous_value, dict) else previous_value,
        "new_value": snapshot(new_value) if isinstance(new_value, dict) else new_value,
        "changed_by": user_id,
        "timestamp": datetime.utcnow(),
    })


async def record_service_area_history(
    service_area_id: str,
    change_type: str,
    user_id: Optional[str],
    previous_state: Optional[Dict] = None,
    new_state: Optional[Dict] = None,
    changes: Optional[List[Dict]] = None,
    reason: Optional[str] = None,
) -> Dict:
    return await db_ops.create(Collections.SERVICE_AREA_HISTORY, {
        "service_area": str(service_area_id),
        "change_type": change_type,
        "previous_state": snapshot(previous_state),
        "new_state": snapshot(new_state),
        "changes": changes or [],
        "reason": reason,
        "changed_by": user_id,
        "changed_at": datetime.utcnow(),
    })
