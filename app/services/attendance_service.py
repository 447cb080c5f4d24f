"""
Attendance bookkeeping: check-in/out, summaries, corrections and anomalies
"""
import logging
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Tuple

from app.config.database import Collections
from app.database.db_operations import db_ops
from app.services import schedule_service
from app.services.geospatial import within_radius
from app.utils.errors import NotFoundError, ValidationError
from app.utils.helpers import LOCAL_TZ, get_local_now, local_datetime, to_local, prepare_doc

logger = logging.getLogger(__name__)

STATUSES = ["PRESENT", "ABSENT", "LATE", "HALF_DAY", "EARLY_DEPARTURE", "ON_LEAVE", "HOLIDAY", "WEEKEND"]
ANOMALY_FLAGS = ["is_late", "is_early_departure", "is_incomplete", "is_outside_geofence"]


def local_moment(value: Optional[datetime]) -> datetime:
    """Naive input is read as local wall-clock time"""
    if value is None:
        return get_local_now()
    if value.tzinfo is None:
        return LOCAL_TZ.localize(value)
    return value.astimezone(LOCAL_TZ)


def minutes_between(start: datetime, end: datetime) -> int:
    return int((to_local(end) - to_local(start)).total_seconds() // 60)


def _shift_for_day(schedule: Dict, employee_schedule: Dict, day: date) -> Optional[Dict]:
    shifts = schedule.get("shifts") or []
    if not shifts:
        return None
    iso = day.isoformat()
    for assignment in employee_schedule.get("shift_assignments") or []:
        if assignment["date"] == iso:
            for shift in shifts:
                if shift["code"] == assignment["shift_code"]:
                    return shift
    return shifts[0]


def expected_times(schedule: Dict, employee_schedule: Dict, day: date) -> Dict:
    """Start, late threshold and end of the working day under a schedule"""
    if schedule.get("type") == "SHIFT":
        shift = _shift_for_day(schedule, employee_schedule, day)
        if shift:
            start = local_datetime(day, shift["start_time"])
            end = local_datetime(day, shift["end_time"])
            if shift.get("is_overnight") or end <= start:
                end += timedelta(days=1)
            return {
                "start": start,
                "late_after": start + timedelta(minutes=shift.get("late_grace_period", 15)),
                "end": end,
                "min_minutes": None,
            }

    if schedule.get("type") == "FLEXIBLE":
        flexible = schedule.get("flexible_settings") or {}
        latest = (flexible.get("flexible_start_time") or {}).get("latest", "10:00")
        earliest_end = (flexible.get("flexible_end_time") or {}).get("earliest", "15:00")
        return {
            "start": local_datetime(day, latest),
            "late_after": local_datetime(day, latest),
            "end": local_datetime(day, earliest_end),
            "min_minutes": int(float(flexible.get("min_working_hours", 8)) * 60),
        }

    regular = (schedule.get("working_hours") or {}).get("regular") or {}
    start = local_datetime(day, regular.get("start_time", "08:00"))
    return {
        "start": start,
        "late_after": start + timedelta(minutes=regular.get("late_grace_period", 15)),
        "end": local_datetime(day, regular.get("end_time", "17:00")),
        "min_minutes": None,
    }


def outside_geofence(schedule: Dict, location: Optional[Dict]) -> bool:
    """Only evaluated when geofencing is on and a location was sent"""
    geofencing = schedule.get("geofencing") or {}
    if not geofencing.get("enabled") or not location:
        return False
    coordinates = location["coordinates"]
    for fence in geofencing.get("locations") or []:
        if within_radius(coordinates, fence["coordinates"]["coordinates"], fence.get("radius", 100)):
            return False
    return True


def overtime_minutes(schedule: Dict, expected: Dict, check_out: datetime, work_duration: int) -> int:
    settings = schedule.get("overtime_settings") or {}
    if not settings.get("is_allowed", True):
        return 0
    if expected["min_minutes"] is not None:
        overtime = work_duration - expected["min_minutes"]
    else:
        overtime = minutes_between(expected["end"], check_out)
    if overtime < settings.get("minimum_duration", 30):
        return 0
    return min(overtime, int(float(settings.get("max_daily_hours", 3)) * 60))


def _punch(request: Dict, moment: datetime) -> Dict:
    return {
        "time": moment,
        "location": request.get("location"),
        "device": request.get("device"),
        "ip_address": request.get("ip_address"),
        "notes": request.get("notes"),
        "verified": False,
        "verified_by": None,
    }


async def _schedule_for(employee_id: str, day: date) -> Tuple[Dict, Dict]:
    employee_schedule = await schedule_service.get_active_employee_schedule(employee_id, day)
    if not employee_schedule:
        raise ValidationError("No active schedule found for employee")
    schedule = await db_ops.get_by_id(Collections.WORK_SCHEDULES, employee_schedule["schedule"])
    if not schedule:
        raise ValidationError("No active schedule found for employee")
    return schedule, employee_schedule


async def _get_employee(employee_id: str) -> Dict:
    employee = await db_ops.get_by_id(Collections.EMPLOYEES, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


async def get_attendance(attendance_id: str) -> Dict:
    attendance = await db_ops.get_by_id(Collections.ATTENDANCE, attendance_id)
    if not attendance:
        raise NotFoundError("Attendance record not found")
    return attendance


async def check_in(request: Dict, user_id: Optional[str]) -> Dict:
    """Employee check-in"""
    employee_id = request["employee"]
    employee = await _get_employee(employee_id)
    moment = local_moment(request.get("time"))
    day = moment.date()

    existing = await db_ops.get_one(Collections.ATTENDANCE, {"employee": employee_id, "date": day.isoformat()})
    if existing and existing.get("check_in"):
        raise ValidationError("Employee has already checked in today")

    schedule, employee_schedule = await _schedule_for(employee_id, day)
    expected = expected_times(schedule, employee_schedule, day)
    is_late = moment > expected["late_after"]
    is_outside = outside_geofence(schedule, request.get("location"))

    fields = {
        "check_in": _punch(request, moment),
        "status": "LATE" if is_late else "PRESENT",
        "anomalies": {
            "is_late": is_late,
            "is_early_departure": False,
            "is_incomplete": True,
            "is_outside_geofence": is_outside,
        },
        "schedule": str(schedule["_id"]),
        "updated_by": user_id,
    }
    if existing:
        attendance = await db_ops.update(Collections.ATTENDANCE, str(existing["_id"]), fields)
    else:
        attendance = await db_ops.create(Collections.ATTENDANCE, {
            "employee": employee_id,
            "employee_code": employee.get("employee_id"),
            "date": day.isoformat(),
            "check_out": None,
            "work_duration": 0,
            "overtime_duration": 0,
            "correction_request": None,
            "created_by": user_id,
            **fields,
        })
    logger.info("Employee %s checked in at %s (%s)", employee_id, moment.isoformat(), fields["status"])
    return attendance


async def _open_record(employee_id: str, day: date) -> Optional[Dict]:
    """Today's record, or yesterday's when an overnight shift is still open"""
    record = await db_ops.get_one(Collections.ATTENDANCE, {"employee": employee_id, "date": day.isoformat()})
    if record:
        return record
    previous = await db_ops.get_one(Collections.ATTENDANCE, {
        "employee": employee_id,
        "date": (day - timedelta(days=1)).isoformat(),
        "check_out": None,
    })
    if previous and previous.get("check_in"):
        return previous
    return None


async def check_out(request: Dict, user_id: Optional[str]) -> Dict:
    """Employee check-out"""
    employee_id = request["employee"]
    await _get_employee(employee_id)
    moment = local_moment(request.get("time"))

    attendance = await _open_record(employee_id, moment.date())
    if not attendance or not attendance.get("check_in"):
        raise ValidationError("Employee has not checked in today")
    if attendance.get("check_out"):
        raise ValidationError("Employee has already checked out today")

    check_in_time = to_local(attendance["check_in"]["time"])
    if moment <= check_in_time:
        raise ValidationError("Check-out must be after check-in")

    day = date.fromisoformat(attendance["date"])
    schedule, employee_schedule = await _schedule_for(employee_id, day)
    expected = expected_times(schedule, employee_schedule, day)

    work_duration = minutes_between(check_in_time, moment)
    if expected["min_minutes"] is not None:
        is_early = work_duration < expected["min_minutes"]
    else:
        is_early = moment < expected["end"]

    anomalies = dict(attendance.get("anomalies") or {})
    anomalies.update({
        "is_early_departure": is_early,
        "is_incomplete": False,
        "is_outside_geofence": anomalies.get("is_outside_geofence", False)
        or outside_geofence(schedule, request.get("location")),
    })
    status = attendance.get("status", "PRESENT")
    if is_early and status != "LATE":
        status = "EARLY_DEPARTURE"

    updated = await db_ops.update(Collections.ATTENDANCE, str(attendance["_id"]), {
        "check_out": _punch(request, moment),
        "work_duration": work_duration,
        "overtime_duration": overtime_minutes(schedule, expected, moment, work_duration),
        "anomalies": anomalies,
        "status": status,
        "updated_by": user_id,
    })
    logger.info("Employee %s checked out at %s after %d minutes", employee_id, moment.isoformat(), work_duration)
    return updated


def date_range_query(start_date: Optional[date], end_date: Optional[date]) -> Dict:
    bounds = {}
    if start_date:
        bounds["$gte"] = start_date.isoformat()
    if end_date:
        bounds["$lte"] = end_date.isoformat()
    if start_date and end_date and end_date < start_date:
        raise ValidationError("End date must not be before start date")
    return bounds


async def get_employee_attendance(
    employee_id: str,
    start_date: Optional[date],
    end_date: Optional[date],
    status: Optional[str],
    skip: int,
    limit: int,
) -> Tuple[List[Dict], int]:
    await _get_employee(employee_id)
    query = {"employee": employee_id}
    bounds = date_range_query(start_date, end_date)
    if bounds:
        query["date"] = bounds
    if status:
        query["status"] = status
    records = await db_ops.get_all(Collections.ATTENDANCE, query, skip=skip, limit=limit, sort=[("date", -1)])
    return records, await db_ops.count(Collections.ATTENDANCE, query)


def summarize(records: List[Dict]) -> Dict:
    status_counts = {status.lower(): 0 for status in STATUSES}
    summary = {
        "total_days": len(records),
        "late_count": 0,
        "early_departure_count": 0,
        "total_work_duration": 0,
        "total_overtime_duration": 0,
    }
    for record in records:
        key = (record.get("status") or "").lower()
        if key in status_counts:
            status_counts[key] += 1
        anomalies = record.get("anomalies") or {}
        if anomalies.get("is_late"):
            summary["late_count"] += 1
        if anomalies.get("is_early_departure"):
            summary["early_departure_count"] += 1
        summary["total_work_duration"] += record.get("work_duration") or 0
        summary["total_overtime_duration"] += record.get("overtime_duration") or 0

    summary["status_counts"] = status_counts
    summary["total_work_hours"] = round(summary["total_work_duration"] / 60, 2)
    summary["total_overtime_hours"] = round(summary["total_overtime_duration"] / 60, 2)
    return summary


async def get_attendance_summary(employee_id: str, start_date: Optional[date], end_date: Optional[date]) -> Dict:
    await _get_employee(employee_id)
    query = {"employee": employee_id}
    bounds = date_range_query(start_date, end_date)
    if bounds:
        query["date"] = bounds
    records = await db_ops.get_all(Collections.ATTENDANCE, query, limit=0)
    summary = summarize(records)
    summary.update({
        "employee": employee_id,
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat() if end_date else None,
    })
    return summary


# ===================== Corrections =====================

def _optional_moment(value: Optional[datetime]) -> Optional[datetime]:
    return local_moment(value) if value is not None else None


async def request_correction(attendance_id: str, data: Dict, user_id: Optional[str]) -> Dict:
    attendance = await get_attendance(attendance_id)
    if attendance.get("correction_request"):
        raise ValidationError("Correction already requested for this attendance record")
    request = {
        "reason": data["reason"],
        "requested_check_in": _optional_moment(data.get("requested_check_in")),
        "requested_check_out": _optional_moment(data.get("requested_check_out")),
        "status": "PENDING",
        "requested_by": user_id,
        "requested_at": datetime.utcnow(),
        "reviewed_by": None,
        "reviewed_at": None,
        "review_notes": None,
    }
    updated = await db_ops.update(Collections.ATTENDANCE, attendance_id, {"correction_request": request, "updated_by": user_id})
    logger.info("Correction requested for attendance %s", attendance_id)
    return updated


def _corrected_punch(current: Optional[Dict], correction: Dict, user_id: Optional[str]) -> Dict:
    punch = dict(current or {})
    punch.update({key: value for key, value in correction.items() if value is not None})
    punch["verified"] = True
    punch["verified_by"] = user_id
    return punch


def _localized(correction: Optional[Dict]) -> Optional[Dict]:
    if not correction:
        return None
    return {**correction, "time": local_moment(correction["time"])}


async def review_correction(attendance_id: str, review: Dict, user_id: Optional[str]) -> Dict:
    attendance = await get_attendance(attendance_id)
    request = attendance.get("correction_request")
    if not request:
        raise ValidationError("No correction request found for this attendance record")
    if request.get("status") != "PENDING":
        raise ValidationError("Correction request already reviewed")

    request = {
        **request,
        "status": review["status"],
        "reviewed_by": user_id,
        "reviewed_at": datetime.utcnow(),
        "review_notes": review.get("review_notes"),
    }
    fields = {"correction_request": request, "updated_by": user_id}

    if review["status"] == "APPROVED":
        corrected = review.get("corrected_data") or {}
        check_in_fix = _localized(corrected.get("check_in"))
        check_out_fix = _localized(corrected.get("check_out"))
        # Fall back to the times asked for in the request
        if check_in_fix is None and request.get("requested_check_in"):
            check_in_fix = {"time": to_local(request["requested_check_in"])}
        if check_out_fix is None and request.get("requested_check_out"):
            check_out_fix = {"time": to_local(request["requested_check_out"])}

        check_in_punch = attendance.get("check_in")
        check_out_punch = attendance.get("check_out")
        if check_in_fix:
            check_in_punch = fields["check_in"] = _corrected_punch(check_in_punch, check_in_fix, user_id)
        if check_out_fix:
            check_out_punch = fields["check_out"] = _corrected_punch(check_out_punch, check_out_fix, user_id)

        anomalies = dict(attendance.get("anomalies") or {})
        if check_in_punch and check_in_punch.get("time") and check_out_punch and check_out_punch.get("time"):
            duration = minutes_between(check_in_punch["time"], check_out_punch["time"])
            if duration <= 0:
                raise ValidationError("Check-out must be after check-in")
            fields["work_duration"] = duration
            anomalies["is_incomplete"] = False
        if corrected.get("status"):
            fields["status"] = corrected["status"]
        if corrected.get("anomalies"):
            anomalies.update({k: v for k, v in corrected["anomalies"].items() if v is not None})
        fields["anomalies"] = anomalies

    updated = await db_ops.update(Collections.ATTENDANCE, attendance_id, prepare_doc(fields))
    logger.info("Attendance correction %s for record %s", review["status"].lower(), attendance_id)
    return updated


# ===================== Anomalies =====================

def anomaly_query(anomaly_type: Optional[str], start_date: Optional[date], end_date: Optional[date]) -> Dict:
    if anomaly_type:
        if anomaly_type not in ANOMALY_FLAGS:
            raise ValidationError(f"Unknown anomaly type {anomaly_type}")
        query = {f"anomalies.{anomaly_type}": True}
    else:
        query = {"$or": [{f"anomalies.{flag}": True} for flag in ANOMALY_FLAGS]}
    bounds = date_range_query(start_date, end_date)
    if bounds:
        query["date"] = bounds
    return query


async def get_anomalies(
    anomaly_type: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
    branch: Optional[str],
    division: Optional[str],
    skip: int,
    limit: int,
) -> Tuple[List[Dict], int]:
    query = anomaly_query(anomaly_type, start_date, end_date)
    if branch or division:
        employee_filter = {}
        if branch:
            employee_filter["current_branch"] = branch
        if division:
            employee_filter["current_division"] = division
        employees = await db_ops.get_all(Collections.EMPLOYEES, employee_filter, limit=0)
        query["employee"] = {"$in": [str(e["_id"]) for e in employees]}
    records = await db_ops.get_all(Collections.ATTENDANCE, query, skip=skip, limit=limit, sort=[("date", -1)])
    return records, await db_ops.count(Collections.ATTENDANCE, query)
