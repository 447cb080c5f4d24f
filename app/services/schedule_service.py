"""
Work schedules, employee schedule assignments and holidays
"""
import calendar
import logging
from datetime import date
from typing import Dict, List, Optional

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import normalize_code, parse_date, prepare_doc

logger = logging.getLogger(__name__)

# ===================== Work schedules =====================

async def get_work_schedule(schedule_id: str) -> Dict:
    schedule = await db_ops.get_by_id(Collections.WORK_SCHEDULES, schedule_id)
    if not schedule:
        raise NotFoundError("Work schedule not found")
    return schedule


async def create_work_schedule(data: Dict, user_id: Optional[str]) -> Dict:
    code = normalize_code(data["code"])
    if await db_ops.exists(Collections.WORK_SCHEDULES, {"code": code}):
        raise ValidationError(f"Work schedule with code {code} already exists")
    document = prepare_doc(data)
    document.update({"code": code, "created_by": user_id, "updated_by": user_id})
    return await db_ops.create(Collections.WORK_SCHEDULES, document)


async def update_work_schedule(schedule_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    schedule = await get_work_schedule(schedule_id)
    data = prepare_doc(data)
    merged = {**schedule, **data}
    if merged.get("type") == "SHIFT" and not merged.get("shifts"):
        raise ValidationError("Shift schedules need at least one shift")
    end = merged.get("effective_end_date")
    if end and end < merged["effective_start_date"]:
        raise ValidationError("Effective end date must not be before start date")
    data["updated_by"] = user_id
    return await db_ops.update(Collections.WORK_SCHEDULES, schedule_id, data)


async def list_work_schedules(query: Dict, skip: int, limit: int):
    schedules = await db_ops.get_all(Collections.WORK_SCHEDULES, query, skip=skip, limit=limit, sort=[("code", 1)])
    return schedules, await db_ops.count(Collections.WORK_SCHEDULES, query)


# ===================== Employee schedules =====================

def ranges_overlap(start_a: str, end_a: Optional[str], start_b: str, end_b: Optional[str]) -> bool:
    """Inclusive ISO-date ranges, an open end runs forever"""
    return (end_b is None or start_a <= end_b) and (end_a is None or start_b <= end_a)


def _check_shift_assignments(schedule: Dict, assignments: List[Dict]):
    if not assignments:
        return
    if schedule.get("type") != "SHIFT":
        raise ValidationError("Shift assignments are only allowed on shift schedules")
    codes = {s["code"] for s in schedule.get("shifts", [])}
    unknown = sorted({a["shift_code"] for a in assignments} - codes)
    if unknown:
        raise ValidationError(f"Unknown shift code(s): {', '.join(unknown)}")


async def _check_overlap(employee_id: str, start: str, end: Optional[str], exclude_id=None):
    active = await db_ops.get_all(Collections.EMPLOYEE_SCHEDULES, {"employee": employee_id, "status": "ACTIVE"}, limit=0)
    for existing in active:
        if exclude_id is not None and existing["_id"] == exclude_id:
            continue
        if ranges_overlap(existing["effective_start_date"], existing.get("effective_end_date"), start, end):
            raise ValidationError("Employee already has an active schedule in this period")


async def create_employee_schedule(data: Dict, user_id: Optional[str]) -> Dict:
    if not await db_ops.get_by_id(Collections.EMPLOYEES, data["employee"]):
        raise NotFoundError("Employee not found")
    schedule = await get_work_schedule(data["schedule"])
    document = prepare_doc(data)
    _check_shift_assignments(schedule, document.get("shift_assignments", []))
    if document.get("status", "ACTIVE") == "ACTIVE":
        await _check_overlap(document["employee"], document["effective_start_date"], document.get("effective_end_date"))
    document.update({"created_by": user_id, "updated_by": user_id})
    created = await db_ops.create(Collections.EMPLOYEE_SCHEDULES, document)
    logger.info("Schedule %s assigned to employee %s", schedule["code"], document["employee"])
    return created


async def update_employee_schedule(assignment_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    assignment = await db_ops.get_by_id(Collections.EMPLOYEE_SCHEDULES, assignment_id)
    if not assignment:
        raise NotFoundError("Employee schedule not found")
    data = prepare_doc(data)
    merged = {**assignment, **data}
    if merged.get("effective_end_date") and merged["effective_end_date"] < merged["effective_start_date"]:
        raise ValidationError("Effective end date must not be before start date")
    if "shift_assignments" in data:
        schedule = await get_work_schedule(assignment["schedule"])
        _check_shift_assignments(schedule, data["shift_assignments"])
    if merged.get("status") == "ACTIVE":
        await _check_overlap(
            merged["employee"], merged["effective_start_date"], merged.get("effective_end_date"),
            exclude_id=assignment["_id"]
        )
    data["updated_by"] = user_id
    return await db_ops.update(Collections.EMPLOYEE_SCHEDULES, assignment_id, data)


async def list_employee_schedules(query: Dict, skip: int, limit: int):
    items = await db_ops.get_all(
        Collections.EMPLOYEE_SCHEDULES, query, skip=skip, limit=limit, sort=[("effective_start_date", -1)]
    )
    return items, await db_ops.count(Collections.EMPLOYEE_SCHEDULES, query)


async def get_active_employee_schedule(employee_id: str, day: date) -> Optional[Dict]:
    """The ACTIVE assignment covering day, or None"""
    iso = day.isoformat()
    active = await db_ops.get_all(Collections.EMPLOYEE_SCHEDULES, {
        "employee": employee_id,
        "status": "ACTIVE",
        "effective_start_date": {"$lte": iso},
    }, limit=0, sort=[("effective_start_date", -1)])
    for assignment in active:
        end = assignment.get("effective_end_date")
        if end is None or end >= iso:
            return assignment
    return None


# ===================== Holidays =====================

def _with_month_day(document: Dict) -> Dict:
    day = parse_date(document["date"])
    document["month"] = day.month
    document["day"] = day.day
    return document


async def create_holiday(data: Dict, user_id: Optional[str]) -> Dict:
    document = _with_month_day(prepare_doc(data))
    document.update({"created_by": user_id, "updated_by": user_id})
    return await db_ops.create(Collections.HOLIDAYS, document)


async def update_holiday(holiday_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    if not await db_ops.get_by_id(Collections.HOLIDAYS, holiday_id):
        raise NotFoundError("Holiday not found")
    data = prepare_doc(data)
    if "date" in data:
        _with_month_day(data)
    data["updated_by"] = user_id
    return await db_ops.update(Collections.HOLIDAYS, holiday_id, data)


def holiday_query(
    type: Optional[str] = None,
    status: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    branch: Optional[str] = None,
    division: Optional[str] = None,
) -> Dict:
    query = {}
    conditions = []
    if type:
        query["type"] = type
    if status:
        query["status"] = status
    if year:
        query["date"] = {"$gte": f"{year:04d}-01-01", "$lte": f"{year:04d}-12-31"}
    if month:
        query["month"] = month
    if branch:
        conditions.append({"$or": [{"applicable_branches": branch}, {"applicable_branches": {"$size": 0}}]})
    if division:
        conditions.append({"$or": [{"applicable_divisions": division}, {"applicable_divisions": {"$size": 0}}]})
    if conditions:
        query["$and"] = conditions
    return query


async def list_holidays(query: Dict, skip: int, limit: int):
    holidays = await db_ops.get_all(Collections.HOLIDAYS, query, skip=skip, limit=limit, sort=[("date", 1)])
    return holidays, await db_ops.count(Collections.HOLIDAYS, query)


def applies_to(holiday: Dict, branch: Optional[str], division: Optional[str]) -> bool:
    """An empty applicability list means every branch (or division)"""
    branches = holiday.get("applicable_branches") or []
    divisions = holiday.get("applicable_divisions") or []
    if branches and branch not in branches:
        return False
    if divisions and division not in divisions:
        return False
    return True


async def holidays_between(start: date, end: date, branch: Optional[str] = None, division: Optional[str] = None) -> List[Dict]:
    holidays = await db_ops.get_all(Collections.HOLIDAYS, {
        "status": "ACTIVE",
        "date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
    }, limit=0)
    return [h for h in holidays if applies_to(h, branch, division)]


async def generate_recurring_holidays(year: int, user_id: Optional[str]) -> List[Dict]:
    """Instantiate every recurring template for the given year"""
    templates = await db_ops.get_all(Collections.HOLIDAYS, {"is_recurring": True, "status": "ACTIVE"}, limit=0)
    created = []
    for template in templates:
        month, day = template["month"], template["day"]
        if month == 2 and day == 29 and not calendar.isleap(year):
            day = 28
        target = date(year, month, day).isoformat()
        if target == template["date"]:
            continue
        if await db_ops.exists(Collections.HOLIDAYS, {"date": target, "name": template["name"]}):
            continue
        instance = {
            key: template.get(key)
            for key in ("name", "type", "description", "is_half_day", "half_day_portion",
                        "applicable_branches", "applicable_divisions")
        }
        instance.update({
            "date": target,
            "month": month,
            "day": day,
            "is_recurring": False,
            "status": "ACTIVE",
            "source_holiday": str(template["_id"]),
            "created_by": user_id,
            "updated_by": user_id,
        })
        created.append(await db_ops.create(Collections.HOLIDAYS, instance))
    logger.info("Generated %d recurring holidays for %d", len(created), year)
    return created
