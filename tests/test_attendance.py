from __future__ import annotations

from datetime import date, datetime

import pytest

from app.services import attendance_service
from app.services.attendance_service import expected_times, outside_geofence, overtime_minutes, summarize
from app.utils.helpers import LOCAL_TZ
from conftest import data

MONDAY = date(2024, 3, 4)


def local(*args):
    return LOCAL_TZ.localize(datetime(*args))


def test_regular_schedule_applies_grace_period():
    schedule = {"type": "REGULAR", "working_hours": {"regular": {"start_time": "08:00", "end_time": "17:00", "late_grace_period": 10}}}
    expected = expected_times(schedule, {}, MONDAY)
    assert expected["start"] == local(2024, 3, 4, 8, 0)
    assert expected["late_after"] == local(2024, 3, 4, 8, 10)
    assert expected["end"] == local(2024, 3, 4, 17, 0)
    assert expected["min_minutes"] is None


def test_overnight_shift_ends_next_day():
    schedule = {"type": "SHIFT", "shifts": [
        {"code": "AM", "start_time": "06:00", "end_time": "14:00"},
        {"code": "NT", "start_time": "22:00", "end_time": "06:00", "is_overnight": True},
    ]}
    assignment = {"shift_assignments": [{"date": "2024-03-04", "shift_code": "NT"}]}

    night = expected_times(schedule, assignment, MONDAY)
    assert night["end"] == local(2024, 3, 5, 6, 0)

    # unassigned days fall back to the first shift
    morning = expected_times(schedule, assignment, date(2024, 3, 5))
    assert morning["start"] == local(2024, 3, 5, 6, 0)


def test_flexible_schedule_uses_latest_start_and_minimum_hours():
    schedule = {"type": "FLEXIBLE", "flexible_settings": {
        "flexible_start_time": {"earliest": "07:00", "latest": "09:30"},
        "flexible_end_time": {"earliest": "16:00", "latest": "19:00"},
        "min_working_hours": 7.5,
    }}
    expected = expected_times(schedule, {}, MONDAY)
    assert expected["late_after"] == local(2024, 3, 4, 9, 30)
    assert expected["min_minutes"] == 450


def test_overtime_rules():
    schedule = {"overtime_settings": {"is_allowed": True, "minimum_duration": 30, "max_daily_hours": 2}}
    expected = {"end": local(2024, 3, 4, 17, 0), "min_minutes": None}

    assert overtime_minutes(schedule, expected, local(2024, 3, 4, 17, 20), 560) == 0
    assert overtime_minutes(schedule, expected, local(2024, 3, 4, 18, 0), 600) == 60
    assert overtime_minutes(schedule, expected, local(2024, 3, 4, 21, 0), 780) == 120

    schedule["overtime_settings"]["is_allowed"] = False
    assert overtime_minutes(schedule, expected, local(2024, 3, 4, 21, 0), 780) == 0


def test_flexible_overtime_counts_beyond_minimum():
    schedule = {"overtime_settings": {"minimum_duration": 30, "max_daily_hours": 3}}
    expected = {"end": local(2024, 3, 4, 16, 0), "min_minutes": 480}
    assert overtime_minutes(schedule, expected, local(2024, 3, 4, 18, 0), 540) == 60


def test_geofence_only_when_enabled_and_located():
    schedule = {"geofencing": {"enabled": True, "locations": [
        {"name": "Depot", "coordinates": {"type": "Point", "coordinates": [106.8272, -6.1754]}, "radius": 200},
    ]}}
    near = {"type": "Point", "coordinates": [106.8280, -6.1750]}
    far = {"type": "Point", "coordinates": [106.9000, -6.2000]}

    assert outside_geofence(schedule, near) is False
    assert outside_geofence(schedule, far) is True
    assert outside_geofence(schedule, None) is False
    assert outside_geofence({"geofencing": {"enabled": False}}, far) is False


def test_summary_counts():
    records = [
        {"status": "PRESENT", "work_duration": 480, "overtime_duration": 0, "anomalies": {}},
        {"status": "LATE", "work_duration": 450, "overtime_duration": 45, "anomalies": {"is_late": True, "is_early_departure": True}},
        {"status": "EARLY_DEPARTURE", "work_duration": 300, "anomalies": {"is_early_departure": True}},
    ]
    summary = summarize(records)
    assert summary["total_days"] == 3
    assert summary["late_count"] == 1
    assert summary["early_departure_count"] == 2
    assert summary["status_counts"]["late"] == 1
    assert summary["status_counts"]["absent"] == 0
    assert summary["total_work_duration"] == 1230
    assert summary["total_work_hours"] == 20.5
    assert summary["total_overtime_hours"] == 0.75


def test_anomaly_query_rejects_unknown_flag():
    with pytest.raises(attendance_service.ValidationError):
        attendance_service.anomaly_query("is_sleepy", None, None)


@pytest.fixture
def scheduled_employee(client, make_employee):
    employee = make_employee()
    schedule = data(client.post("/api/schedules/work-schedule", json={
        "name": "Office", "code": "OFF", "effective_start_date": "2024-01-01",
    }))
    r = client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"], "effective_start_date": "2024-01-01",
    })
    assert r.status_code == 201
    return employee


def test_check_in_without_schedule(client, make_employee):
    employee = make_employee()
    r = client.post("/api/attendance/check-in", json={"employee": employee["_id"], "time": "2024-03-04T08:00:00"})
    assert r.status_code == 400
    assert r.json()["message"] == "No active schedule found for employee"


def test_late_check_in_then_check_out(client, scheduled_employee):
    employee_id = scheduled_employee["_id"]
    r = client.post("/api/attendance/check-in", json={"employee": employee_id, "time": "2024-03-04T08:20:00"})
    record = data(r)
    assert record["date"] == "2024-03-04"
    assert record["status"] == "LATE"
    assert record["anomalies"]["is_late"] is True
    assert record["anomalies"]["is_incomplete"] is True

    again = client.post("/api/attendance/check-in", json={"employee": employee_id, "time": "2024-03-04T08:30:00"})
    assert again.status_code == 400

    r = client.post("/api/attendance/check-out", json={"employee": employee_id, "time": "2024-03-04T18:00:00"})
    record = data(r)
    assert record["work_duration"] == 580
    assert record["overtime_duration"] == 60
    assert record["status"] == "LATE"
    assert record["anomalies"]["is_incomplete"] is False

    twice = client.post("/api/attendance/check-out", json={"employee": employee_id, "time": "2024-03-04T18:05:00"})
    assert twice.status_code == 400


def test_early_departure(client, scheduled_employee):
    employee_id = scheduled_employee["_id"]
    client.post("/api/attendance/check-in", json={"employee": employee_id, "time": "2024-03-05T07:55:00"})
    record = data(client.post("/api/attendance/check-out", json={"employee": employee_id, "time": "2024-03-05T15:00:00"}))
    assert record["status"] == "EARLY_DEPARTURE"
    assert record["anomalies"]["is_early_departure"] is True
    assert record["overtime_duration"] == 0


def test_check_out_requires_check_in(client, scheduled_employee):
    r = client.post("/api/attendance/check-out", json={"employee": scheduled_employee["_id"], "time": "2024-03-04T17:00:00"})
    assert r.status_code == 400


def test_overnight_shift_checks_out_next_day(client, make_employee):
    employee = make_employee()
    schedule = data(client.post("/api/schedules/work-schedule", json={
        "name": "Night", "code": "NIGHT", "type": "SHIFT", "effective_start_date": "2024-01-01",
        "shifts": [{"name": "Night", "code": "NT", "start_time": "22:00", "end_time": "06:00", "is_overnight": True}],
    }))
    client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"], "effective_start_date": "2024-01-01",
    })

    data(client.post("/api/attendance/check-in", json={"employee": employee["_id"], "time": "2024-03-04T21:55:00"}))
    record = data(client.post("/api/attendance/check-out", json={"employee": employee["_id"], "time": "2024-03-05T06:30:00"}))
    assert record["date"] == "2024-03-04"
    assert record["work_duration"] == 515
    assert record["overtime_duration"] == 30
    assert record["status"] == "PRESENT"


def test_correction_flow(client, scheduled_employee, fake_db):
    employee_id = scheduled_employee["_id"]
    record = data(client.post("/api/attendance/check-in", json={"employee": employee_id, "time": "2024-03-04T08:40:00"}))

    r = client.post(f"/api/attendance/correction/{record['_id']}", json={
        "reason": "Badge reader offline", "requested_check_in": "2024-03-04T08:00:00",
        "requested_check_out": "2024-03-04T17:00:00",
    })
    assert data(r)["correction_request"]["status"] == "PENDING"

    duplicate = client.post(f"/api/attendance/correction/{record['_id']}", json={"reason": "Again"})
    assert duplicate.status_code == 400

    r = client.post(f"/api/attendance/correction/{record['_id']}/review", json={
        "status": "APPROVED",
        "corrected_data": {"status": "PRESENT", "anomalies": {"is_late": False}},
    })
    corrected = data(r)
    assert corrected["correction_request"]["status"] == "APPROVED"
    assert corrected["check_in"]["verified"] is True
    assert corrected["check_out"]["verified_by"] == "dev-user-id"
    assert corrected["work_duration"] == 540
    assert corrected["status"] == "PRESENT"
    assert corrected["anomalies"] == {
        "is_late": False, "is_early_departure": False, "is_incomplete": False, "is_outside_geofence": False,
    }

    reviewed = client.post(f"/api/attendance/correction/{record['_id']}/review", json={"status": "REJECTED"})
    assert reviewed.status_code == 400


def test_corrected_times_must_be_ordered(client):
    r = client.post("/api/attendance/correction/64b000000000000000000000/review", json={
        "status": "APPROVED",
        "corrected_data": {"check_in": {"time": "2024-03-04T17:00:00"}, "check_out": {"time": "2024-03-04T08:00:00"}},
    })
    assert r.status_code == 400


def test_history_summary_and_anomalies(client, make_branch, scheduled_employee):
    employee_id = scheduled_employee["_id"]
    for day, check_in, check_out in (("04", "08:00", "17:00"), ("05", "08:30", "17:00"), ("06", "08:00", "12:00")):
        client.post("/api/attendance/check-in", json={"employee": employee_id, "time": f"2024-03-{day}T{check_in}:00"})
        client.post("/api/attendance/check-out", json={"employee": employee_id, "time": f"2024-03-{day}T{check_out}:00"})

    body = client.get(f"/api/attendance/employee/{employee_id}?start_date=2024-03-01&end_date=2024-03-31").json()
    assert body["pagination"]["total"] == 3
    assert [r["date"] for r in body["data"]] == ["2024-03-06", "2024-03-05", "2024-03-04"]

    summary = data(client.get(f"/api/attendance/summary/{employee_id}?start_date=2024-03-01&end_date=2024-03-31"))
    assert summary["total_days"] == 3
    assert summary["late_count"] == 1
    assert summary["early_departure_count"] == 1
    assert summary["status_counts"]["present"] == 1

    late = data(client.get("/api/attendance/anomalies?anomaly_type=is_late"))
    assert [r["date"] for r in late] == ["2024-03-05"]

    branch = make_branch("SBY")
    assert data(client.get(f"/api/attendance/anomalies?branch={branch['_id']}")) == []

    bad_range = client.get(f"/api/attendance/summary/{employee_id}?start_date=2024-03-31&end_date=2024-03-01")
    assert bad_range.status_code == 400
