"""
Helper utility functions
"""
from bson import ObjectId
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, date
import copy
import math
import pytz

from app.config.settings import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

def serialize_doc(doc: Dict) -> Dict:
    """Convert MongoDB document to JSON-serializable format"""
    if doc is None:
        return None

    if "_id" in doc and isinstance(doc["_id"], ObjectId):
        doc["_id"] = str(doc["_id"])

    # Convert any nested ObjectIds or datetimes
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            doc[key] = str(value)
        elif isinstance(value, datetime):
            doc[key] = ensure_aware(value).astimezone(LOCAL_TZ).isoformat()
        elif isinstance(value, list):
            doc[key] = [serialize_doc(item) if isinstance(item, dict) else item for item in value]
        elif isinstance(value, dict):
            doc[key] = serialize_doc(value)

    return doc

def serialize_docs(docs: List[Dict]) -> List[Dict]:
    """Convert list of MongoDB documents to JSON-serializable format"""
    return [serialize_doc(doc) for doc in docs]

def success_response(data: Any = None, message: str = "Success", pagination: Optional[Dict] = None) -> Dict:
    """Standard response envelope"""
    body = {"success": True, "message": message, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    return body

def page_params(page: int = 1, limit: int = None) -> Tuple[int, int, int]:
    """Normalize page/limit and return (page, limit, skip)"""
    page = max(1, page or 1)
    limit = limit or settings.DEFAULT_PAGE_SIZE
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    return page, limit, (page - 1) * limit

def build_pagination(page: int, limit: int, total: int) -> Dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }

def prepare_doc(value: Any) -> Any:
    """Make pydantic output storable: dates become ISO strings, recursively"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: prepare_doc(v) for k, v in value.items()}
    if isinstance(value, list):
        return [prepare_doc(v) for v in value]
    return value

def snapshot(doc: Optional[Dict]) -> Optional[Dict]:
    """Detached copy of a document for audit trails"""
    if doc is None:
        return None
    state = copy.deepcopy(doc)
    state.pop("_id", None)
    return state

def changed_fields(before: Dict, after: Dict, keys) -> List[str]:
    """Keys whose value differs between two versions of a document"""
    return [key for key in keys if before.get(key) != after.get(key)]

def get_local_now() -> datetime:
    """Get current time in the configured timezone"""
    return datetime.now(LOCAL_TZ)

def ensure_aware(value: datetime) -> datetime:
    """Mongo hands back naive UTC datetimes"""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value

def to_local(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(LOCAL_TZ)

def parse_time(time_str: str) -> Tuple[int, int]:
    """Parse time string HH:MM to hour, minute"""
    parts = time_str.split(':')
    return int(parts[0]), int(parts[1])

def local_datetime(day: date, time_str: str) -> datetime:
    """Combine a calendar date and HH:MM into an aware local datetime"""
    hour, minute = parse_time(time_str)
    return LOCAL_TZ.localize(datetime(day.year, day.month, day.day, hour, minute))

def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])

def normalize_code(code: str) -> str:
    return code.strip().upper()

def years_between(start: date, end: date) -> int:
    """Whole years elapsed between two dates"""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years

def to_utc_naive(value: datetime) -> datetime:
    """The form Mongo stores and returns instants in"""
    return ensure_aware(value).astimezone(pytz.utc).replace(tzinfo=None)
