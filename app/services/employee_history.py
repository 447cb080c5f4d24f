"""
EmployeeHistory queries
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import parse_date

CHANGE_TYPES = {
    "CREATE", "UPDATE", "DELETE", "DOCUMENT_ADDED", "DOCUMENT_UPDATED", "DOCUMENT_VERIFIED",
    "ASSIGNMENT_CHANGE", "STATUS_CHANGE", "USER_ACCOUNT_LINKED", "SKILL_ADDED", "TRAINING_ADDED",
    "PERFORMANCE_EVALUATION", "CAREER_DEVELOPMENT_UPDATE", "CONTRACT_ADDED",
}


def timestamp_range(start_date: Optional[str], end_date: Optional[str]) -> Dict:
    """Inclusive calendar-day bounds on the timestamp field"""
    bounds = {}
    try:
        if start_date:
            start = parse_date(start_date)
            bounds["$gte"] = datetime(start.year, start.month, start.day)
        if end_date:
            end = parse_date(end_date)
            bounds["$lt"] = datetime(end.year, end.month, end.day) + timedelta(days=1)
    except ValueError:
        raise ValidationError("Dates must be in YYYY-MM-DD format")
    if "$gte" in bounds and "$lt" in bounds and bounds["$lt"] <= bounds["$gte"]:
        raise ValidationError("End date must not be before start date")
    return bounds


async def query_history(
    query: Dict,
    skip: int,
    limit: int,
    change_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Tuple[List[Dict], int]:
    query = dict(query)
    if change_type:
        if change_type not in CHANGE_TYPES:
            raise ValidationError(f"Unknown change type {change_type}")
        query["change_type"] = change_type
    bounds = timestamp_range(start_date, end_date)
    if bounds:
        query["timestamp"] = bounds
    records = await db_ops.get_all(Collections.EMPLOYEE_HISTORY, query, skip=skip, limit=limit, sort=[("timestamp", -1)])
    total = await db_ops.count(Collections.EMPLOYEE_HISTORY, query)
    return records, total


async def get_history_record(history_id: str) -> Dict:
    record = await db_ops.get_by_id(Collections.EMPLOYEE_HISTORY, history_id)
    if not record:
        raise NotFoundError("Employee history record not found")
    return record
