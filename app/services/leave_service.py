"""
Leave requests and leave balance bookkeeping
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from app.config.database import Collections
from app.config.settings import settings
from app.database.db_operations import db_ops
from app.models.leave import LEAVE_TYPES
from app.services.schedule_service import holidays_between
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import get_local_now, parse_date, prepare_doc

logger = logging.getLogger(__name__)

OPEN_STATUSES = ["PENDING", "APPROVED"]


def available(entry: Dict) -> float:
    return (
        entry.get("allocated", 0) + entry.get("additional", 0) + entry.get("carried_over", 0)
        - entry.get("used", 0) - entry.get("pending", 0)
    )


def empty_entry(leave_type: str, allocated: float = 0) -> Dict:
    return {
        "type": leave_type,
        "allocated": allocated,
        "additional": 0,
        "used": 0,
        "pending": 0,
        "carried_over": 0,
        "carry_over_expiry": None,
        "max_carry_over": 0,
        "adjustments": [],
    }


def find_entry(balance: Dict, leave_type: str) -> Optional[Dict]:
    for entry in balance.get("balances", []):
        if entry["type"] == leave_type:
            return entry
    return None


def with_available(balance: Dict) -> Dict:
    for entry in balance.get("balances", []):
        entry["available"] = round(available(entry), 2)
    return balance


def count_working_days(start: date, end: date, holiday_dates) -> int:
    """Weekdays in the inclusive range that are not holidays"""
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5 and current.isoformat() not in holiday_dates:
            days += 1
        current += timedelta(days=1)
    return days


async def calculate_duration(employee: Dict, start: date, end: date, is_half_day: bool) -> float:
    holidays = await holidays_between(start, end, employee.get("current_branch"), employee.get("current_division"))
    days = count_working_days(start, end, {h["date"] for h in holidays})
    if is_half_day:
        return 0.5 if days else 0
    return days


async def _get_employee(employee_id: str) -> Dict:
    employee = await db_ops.get_by_id(Collections.EMPLOYEES, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


async def _get_balance(employee_id: str, year: int) -> Dict:
    balance = await db_ops.get_one(Collections.LEAVE_BALANCES, {"employee": employee_id, "year": year})
    if not balance:
        raise NotFoundError(f"Leave balance not found for year {year}")
    return balance


async def _shift_balance(employee_id: str, year: int, leave_type: str, user_id: Optional[str], **deltas) -> Dict:
    """Apply deltas to one type entry and write the list back"""
    balance = await _get_balance(employee_id, year)
    entry = find_entry(balance, leave_type)
    if entry is None:
        entry = empty_entry(leave_type)
        balance.setdefault("balances", []).append(entry)
    for field, delta in deltas.items():
        entry[field] = round(entry.get(field, 0) + delta, 2)
        if field in ("used", "pending") and entry[field] < 0:
            entry[field] = 0
    return await db_ops.update(Collections.LEAVE_BALANCES, str(balance["_id"]), {
        "balances": balance["balances"],
        "updated_by": user_id,
    })


async def get_leave(leave_id: str) -> Dict:
    leave = await db_ops.get_by_id(Collections.LEAVES, leave_id)
    if not leave:
        raise NotFoundError("Leave request not found")
    return leave


async def create_leave_request(data: Dict, user_id: Optional[str]) -> Dict:
    employee = await _get_employee(data["employee"])
    start, end = data["start_date"], data["end_date"]
    if end < start:
        raise ValidationError("End date must not be before start date")
    if data.get("is_half_day") and start != end:
        raise ValidationError("A half-day leave must start and end on the same date")

    duration = await calculate_duration(employee, start, end, data.get("is_half_day", False))
    if duration <= 0:
        raise ValidationError("Leave period contains no working days")

    balance = await _get_balance(data["employee"], start.year)
    entry = find_entry(balance, data["type"])
    remaining = available(entry) if entry else 0
    if data["type"] != "UNPAID" and duration > remaining:
        raise ValidationError(f"Insufficient {data['type']} leave balance. Available: {remaining}, requested: {duration}")

    overlapping = await db_ops.get_one(Collections.LEAVES, {
        "employee": data["employee"],
        "status": {"$in": OPEN_STATUSES},
        "start_date": {"$lte": end.isoformat()},
        "end_date": {"$gte": start.isoformat()},
    })
    if overlapping:
        raise ValidationError("Leave request overlaps with an existing leave")

    document = prepare_doc(data)
    document.update({
        "duration": duration,
        "status": "PENDING",
        "approval_history": [],
        "created_by": user_id,
        "updated_by": user_id,
    })
    leave = await db_ops.create(Collections.LEAVES, document)
    await _shift_balance(data["employee"], start.year, data["type"], user_id, pending=duration)
    logger.info("Leave request %s created for employee %s (%s days)", leave["_id"], data["employee"], duration)
    return leave


def _approval_entry(status: str, current_user: dict, notes: Optional[str]) -> Dict:
    return {
        "status": status,
        "approver_id": current_user.get("id") or current_user.get("sub"),
        "approver_name": current_user.get("name") or current_user.get("email") or "unknown",
        "approver_role": current_user.get("role", "user"),
        "notes": notes,
        "timestamp": datetime.utcnow(),
    }


async def decide_leave(leave_id: str, decision: Dict, current_user: dict, user_id: Optional[str]) -> Dict:
    """Approve or reject a pending leave"""
    leave = await get_leave(leave_id)
    if leave["status"] != "PENDING":
        raise ValidationError(f"Leave request is already {leave['status'].lower()}")
    status = decision["status"]
    year = parse_date(leave["start_date"]).year
    deltas = {"pending": -leave["duration"]}
    if status == "APPROVED":
        deltas["used"] = leave["duration"]
    await _shift_balance(leave["employee"], year, leave["type"], user_id, **deltas)
    updated = await db_ops.modify(Collections.LEAVES, leave_id, {
        "$set": {"status": status, "updated_by": user_id},
        "$push": {"approval_history": _approval_entry(status, current_user, decision.get("notes"))},
    })
    logger.info("Leave request %s %s", leave_id, status.lower())
    return updated


async def cancel_leave(leave_id: str, reason: Optional[str], current_user: dict, user_id: Optional[str]) -> Dict:
    leave = await get_leave(leave_id)
    if leave["status"] in ("CANCELLED", "REJECTED"):
        raise ValidationError(f"Leave request is already {leave['status'].lower()}")
    start = parse_date(leave["start_date"])
    if leave["status"] == "APPROVED" and start <= get_local_now().date():
        raise ValidationError("Cannot cancel a leave that has already started")

    field = "pending" if leave["status"] == "PENDING" else "used"
    await _shift_balance(leave["employee"], start.year, leave["type"], user_id, **{field: -leave["duration"]})
    updated = await db_ops.modify(Collections.LEAVES, leave_id, {
        "$set": {"status": "CANCELLED", "updated_by": user_id},
        "$push": {"approval_history": _approval_entry("CANCELLED", current_user, reason)},
    })
    logger.info("Leave request %s cancelled", leave_id)
    return updated


async def get_employee_leaves(
    employee_id: str,
    status: Optional[str],
    leave_type: Optional[str],
    year: Optional[int],
    skip: int,
    limit: int,
) -> Tuple[List[Dict], int]:
    await _get_employee(employee_id)
    query = {"employee": employee_id}
    if status:
        query["status"] = status
    if leave_type:
        query["type"] = leave_type
    if year:
        query["start_date"] = {"$gte": f"{year:04d}-01-01", "$lte": f"{year:04d}-12-31"}
    leaves = await db_ops.get_all(Collections.LEAVES, query, skip=skip, limit=limit, sort=[("start_date", -1)])
    return leaves, await db_ops.count(Collections.LEAVES, query)


# ===================== Balances =====================

async def get_leave_balance(employee_id: str, year: Optional[int] = None) -> Dict:
    await _get_employee(employee_id)
    year = year or get_local_now().year
    return with_available(await _get_balance(employee_id, year))


async def initialize_balance(data: Dict, user_id: Optional[str]) -> Dict:
    employee = await _get_employee(data["employee"])
    if await db_ops.exists(Collections.LEAVE_BALANCES, {"employee": data["employee"], "year": data["year"]}):
        raise ValidationError(f"Leave balance already exists for employee {data['employee']} for year {data['year']}")

    given = {b["type"]: {**empty_entry(b["type"]), **b} for b in prepare_doc(data.get("balances") or [])}
    if "ANNUAL" not in given:
        given["ANNUAL"] = empty_entry("ANNUAL", settings.DEFAULT_ANNUAL_ALLOCATION)
    entries = [given.get(t) or empty_entry(t) for t in LEAVE_TYPES]

    accrual_settings = prepare_doc(data.get("accrual_settings")) or {
        "is_monthly_accrual": False,
        "monthly_accrual_amount": 0,
        "max_accrual_limit": 0,
        "accrual_start_date": employee.get("join_date"),
        "is_prorated_first_year": True,
    }
    balance = await db_ops.create(Collections.LEAVE_BALANCES, {
        "employee": data["employee"],
        "year": data["year"],
        "balances": entries,
        "accrual_settings": accrual_settings,
        "accrual_history": [],
        "last_calculation_date": None,
        "created_by": user_id,
        "updated_by": user_id,
    })
    logger.info("Leave balance initialized for employee %s for year %d", data["employee"], data["year"])
    return with_available(balance)


async def adjust_balance(employee_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    await _get_employee(employee_id)
    balance = await _get_balance(employee_id, data["year"])
    entry = find_entry(balance, data["type"])
    if entry is None:
        raise NotFoundError(f"No balance found for leave type: {data['type']}")

    today = get_local_now().date().isoformat()
    entry["additional"] = round(entry.get("additional", 0) + data["amount"], 2)
    entry.setdefault("adjustments", []).append({
        "amount": data["amount"],
        "reason": data["reason"],
        "date": today,
        "approved_by": user_id,
    })
    updated = await db_ops.modify(Collections.LEAVE_BALANCES, str(balance["_id"]), {
        "$set": {"balances": balance["balances"], "updated_by": user_id},
        "$push": {"accrual_history": {
            "date": today,
            "leave_type": data["type"],
            "amount": data["amount"],
            "reason": "ADJUSTMENT",
            "notes": data["reason"],
        }},
    })
    logger.info("Leave balance adjusted for employee %s for year %d", employee_id, data["year"])
    return with_available(updated)


def accrual_amount(settings_doc: Dict, entry: Dict, join_date: Optional[date], on: date) -> float:
    amount = settings_doc.get("monthly_accrual_amount", 0)
    if settings_doc.get("is_prorated_first_year", True) and join_date and join_date.year == on.year:
        amount = amount * (12 - (join_date.month - 1)) / 12
    limit = settings_doc.get("max_accrual_limit", 0)
    if limit > 0:
        current = entry.get("allocated", 0) + entry.get("additional", 0) + entry.get("carried_over", 0)
        if current + amount > limit:
            amount = max(0, limit - current)
    return round(amount, 2)


async def calculate_accruals(data: Dict, user_id: Optional[str]) -> List[Dict]:
    """Monthly ANNUAL accrual for balances that opted in"""
    on = data.get("calculation_date") or get_local_now().date()
    month = on.isoformat()[:7]
    query = {"year": on.year, "accrual_settings.is_monthly_accrual": True}
    if data.get("employees"):
        query["employee"] = {"$in": data["employees"]}

    updated_balances = []
    for balance in await db_ops.get_all(Collections.LEAVE_BALANCES, query, limit=0):
        employee = await db_ops.get_by_id(Collections.EMPLOYEES, balance["employee"])
        if not employee:
            logger.warning("Employee not found for leave balance %s", balance["_id"])
            continue
        last = balance.get("last_calculation_date")
        if last and str(last)[:7] == month:
            logger.info("Accrual already calculated for employee %s for %s", balance["employee"], month)
            continue

        history = []
        entry = find_entry(balance, "ANNUAL")
        if entry is not None:
            join_date = parse_date(employee["join_date"]) if employee.get("join_date") else None
            amount = accrual_amount(balance.get("accrual_settings") or {}, entry, join_date, on)
            if amount > 0:
                entry["additional"] = round(entry.get("additional", 0) + amount, 2)
                history.append({
                    "date": on.isoformat(),
                    "leave_type": "ANNUAL",
                    "amount": amount,
                    "reason": "MONTHLY_ACCRUAL",
                    "notes": f"Monthly accrual for {on.strftime('%B %Y')}",
                })

        operations = {"$set": {
            "balances": balance["balances"],
            "last_calculation_date": on.isoformat(),
            "updated_by": user_id,
        }}
        if history:
            operations["$push"] = {"accrual_history": {"$each": history}}
        updated_balances.append(await db_ops.modify(Collections.LEAVE_BALANCES, str(balance["_id"]), operations))

    logger.info("Leave accruals calculated for %d employees", len(updated_balances))
    return updated_balances


async def process_carryover(data: Dict, user_id: Optional[str]) -> List[Dict]:
    from_year, to_year = data["from_year"], data["to_year"]
    if to_year <= from_year:
        raise ValidationError("To year must be greater than from year")
    query = {"year": from_year}
    if data.get("employees"):
        query["employee"] = {"$in": data["employees"]}

    expiry = date(to_year, 6, 30).isoformat()
    today = get_local_now().date().isoformat()
    created = []
    for source in await db_ops.get_all(Collections.LEAVE_BALANCES, query, limit=0):
        if await db_ops.exists(Collections.LEAVE_BALANCES, {"employee": source["employee"], "year": to_year}):
            logger.info("Leave balance already exists for employee %s for year %d", source["employee"], to_year)
            continue

        entries = []
        history = [{
            "date": today,
            "leave_type": "ANNUAL",
            "amount": settings.DEFAULT_ANNUAL_ALLOCATION,
            "reason": "ANNUAL_ALLOCATION",
            "notes": f"Annual allocation for year {to_year}",
        }]
        for entry in source.get("balances", []):
            max_carry = entry.get("max_carry_over", 0)
            carried = round(max(0, min(available(entry), max_carry)), 2)
            new_entry = empty_entry(entry["type"], settings.DEFAULT_ANNUAL_ALLOCATION if entry["type"] == "ANNUAL" else 0)
            new_entry.update({"carried_over": carried, "carry_over_expiry": expiry, "max_carry_over": max_carry})
            entries.append(new_entry)
            if carried > 0:
                history.append({
                    "date": today,
                    "leave_type": entry["type"],
                    "amount": carried,
                    "reason": "CARRYOVER",
                    "notes": f"Carried over from year {from_year}",
                })

        created.append(await db_ops.create(Collections.LEAVE_BALANCES, {
            "employee": source["employee"],
            "year": to_year,
            "balances": entries,
            "accrual_settings": source.get("accrual_settings"),
            "accrual_history": history,
            "last_calculation_date": None,
            "created_by": user_id,
            "updated_by": user_id,
        }))

    logger.info("Leave carryover processed for %d employees from %d to %d", len(created), from_year, to_year)
    return created
