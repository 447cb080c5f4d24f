from __future__ import annotations

from app.services.schedule_service import applies_to, holiday_query, ranges_overlap
from conftest import data

SHIFT_SCHEDULE = {
    "name": "Warehouse shifts",
    "code": "wh-shift",
    "type": "SHIFT",
    "shifts": [
        {"name": "Morning", "code": "AM", "start_time": "06:00", "end_time": "14:00"},
        {"name": "Night", "code": "NT", "start_time": "22:00", "end_time": "06:00", "is_overnight": True},
    ],
    "effective_start_date": "2024-01-01",
}


def test_ranges_overlap_with_open_ends():
    assert ranges_overlap("2024-01-01", None, "2030-01-01", "2030-02-01")
    assert ranges_overlap("2024-01-01", "2024-01-31", "2024-01-31", None)
    assert not ranges_overlap("2024-01-01", "2024-01-31", "2024-02-01", None)


def test_holiday_applicability():
    assert applies_to({"applicable_branches": []}, "b1", None)
    assert applies_to({"applicable_branches": ["b1"]}, "b1", "d9")
    assert not applies_to({"applicable_branches": ["b2"]}, "b1", None)
    assert not applies_to({"applicable_divisions": ["d1"]}, "b1", "d2")


def test_holiday_query_filters():
    query = holiday_query(type="NATIONAL", year=2024, branch="b1")
    assert query["type"] == "NATIONAL"
    assert query["date"] == {"$gte": "2024-01-01", "$lte": "2024-12-31"}
    assert query["$and"][0]["$or"][1] == {"applicable_branches": {"$size": 0}}


def test_shift_schedule_requires_shifts(client):
    r = client.post("/api/schedules/work-schedule", json={**SHIFT_SCHEDULE, "shifts": []})
    assert r.status_code == 400


def test_shift_codes_must_be_unique(client):
    shifts = [SHIFT_SCHEDULE["shifts"][0], SHIFT_SCHEDULE["shifts"][0]]
    r = client.post("/api/schedules/work-schedule", json={**SHIFT_SCHEDULE, "shifts": shifts})
    assert r.status_code == 400


def test_bad_time_format_is_rejected(client):
    r = client.post("/api/schedules/work-schedule", json={
        "name": "Office", "code": "OFF", "effective_start_date": "2024-01-01",
        "working_hours": {"regular": {"start_time": "8am"}},
    })
    assert r.status_code == 400


def test_create_and_filter_work_schedules(client, make_branch):
    branch = make_branch("JKT")
    created = data(client.post("/api/schedules/work-schedule", json={**SHIFT_SCHEDULE, "branches": [branch["_id"]]}))
    assert created["code"] == "WH-SHIFT"

    office = {"name": "Office", "code": "OFF", "effective_start_date": "2024-01-01"}
    assert client.post("/api/schedules/work-schedule", json=office).status_code == 201
    assert client.post("/api/schedules/work-schedule", json=office).status_code == 400

    found = data(client.get(f"/api/schedules/work-schedule?branch={branch['_id']}"))
    assert [s["code"] for s in found] == ["WH-SHIFT"]


def test_employee_schedule_assignment_rules(client, make_employee):
    employee = make_employee()
    schedule = data(client.post("/api/schedules/work-schedule", json=SHIFT_SCHEDULE))

    r = client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"], "effective_start_date": "2024-01-01",
        "shift_assignments": [{"date": "2024-01-02", "shift_code": "XX"}],
    })
    assert r.status_code == 400

    r = client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"],
        "effective_start_date": "2024-01-01", "effective_end_date": "2024-06-30",
        "shift_assignments": [{"date": "2024-01-02", "shift_code": "NT"}],
    })
    assert r.status_code == 201

    overlapping = client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"], "effective_start_date": "2024-06-01",
    })
    assert overlapping.status_code == 400

    later = client.post("/api/schedules/employee-schedule", json={
        "employee": employee["_id"], "schedule": schedule["_id"], "effective_start_date": "2024-07-01",
    })
    assert later.status_code == 201


def test_generate_recurring_holidays_handles_leap_day(client):
    client.post("/api/schedules/holiday", json={"name": "Leap Day", "date": "2024-02-29"})
    client.post("/api/schedules/holiday", json={"name": "Independence Day", "date": "2024-08-17"})
    client.post("/api/schedules/holiday", json={"name": "Company Outing", "date": "2024-05-10", "is_recurring": False})

    r = client.post("/api/schedules/holiday/generate-recurring", json={"year": 2025})
    assert r.status_code == 201
    generated = sorted(h["date"] for h in data(r))
    assert generated == ["2025-02-28", "2025-08-17"]

    again = data(client.post("/api/schedules/holiday/generate-recurring", json={"year": 2025}))
    assert again == []

    listed = data(client.get("/api/schedules/holiday?year=2025"))
    assert len(listed) == 2


def test_holiday_listing_by_branch(client):
    client.post("/api/schedules/holiday", json={"name": "National", "date": "2024-08-17"})
    client.post("/api/schedules/holiday", json={"name": "Local", "date": "2024-09-01", "applicable_branches": ["b1"]})
    client.post("/api/schedules/holiday", json={"name": "Elsewhere", "date": "2024-10-01", "applicable_branches": ["b2"]})

    names = [h["name"] for h in data(client.get("/api/schedules/holiday?branch=b1"))]
    assert names == ["National", "Local"]
