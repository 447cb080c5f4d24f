from __future__ import annotations

import pytest

from conftest import data


@pytest.fixture
def division(client):
    r = client.post("/api/divisions/", json={"name": "Operations", "code": "OPS"})
    return data(r)


@pytest.fixture
def make_position(client, division):
    def _make(code, report_to=None, **extra):
        payload = {"name": f"Position {code}", "code": code, "division": division["_id"], **extra}
        if report_to:
            payload["report_to"] = report_to
        r = client.post("/api/positions/", json=payload)
        assert r.status_code == 201, r.json()
        return data(r)
    return _make


def test_position_requires_existing_division(client):
    r = client.post("/api/positions/", json={"name": "Driver", "code": "DRV", "division": "64b000000000000000000000"})
    assert r.status_code == 404


def test_blank_responsibilities_are_rejected(client, division):
    r = client.post("/api/positions/", json={
        "name": "Driver", "code": "DRV", "division": division["_id"], "responsibilities": ["Drive", "  "],
    })
    assert r.status_code == 400


def test_salary_range_bounds(client, division):
    r = client.post("/api/positions/", json={
        "name": "Driver", "code": "DRV", "division": division["_id"],
        "compensation": {"salary_range": {"min": 5000, "max": 1000}},
    })
    assert r.status_code == 400


def test_reporting_chain_and_org_chart(client, make_position):
    head = make_position("HEAD")
    lead = make_position("LEAD", report_to=head["_id"])
    driver = make_position("DRV", report_to=lead["_id"])

    assert driver["level"] == 2
    assert driver["path"] == "HEAD.LEAD.DRV"

    chain = data(client.get(f"/api/positions/{driver['_id']}/reporting-chain"))
    assert [p["code"] for p in chain] == ["DRV", "LEAD", "HEAD"]

    reports = data(client.get(f"/api/positions/{head['_id']}/reporting"))
    assert [p["code"] for p in reports] == ["LEAD"]

    chart = data(client.get("/api/positions/organization-chart"))
    assert chart[0]["direct_reports"][0]["direct_reports"][0]["code"] == "DRV"


def test_reporting_cycle_is_rejected(client, make_position):
    head = make_position("HEAD")
    lead = make_position("LEAD", report_to=head["_id"])
    r = client.put(f"/api/positions/{head['_id']}", json={"report_to": lead["_id"]})
    assert r.status_code == 400


def test_delete_blocked_by_direct_reports(client, make_position):
    head = make_position("HEAD")
    make_position("LEAD", report_to=head["_id"])
    assert client.delete(f"/api/positions/{head['_id']}").status_code == 400


def test_status_change_is_audited(client, make_position, fake_db):
    head = make_position("HEAD")
    r = client.patch(f"/api/positions/{head['_id']}/status", json={"status": "ARCHIVED"})
    assert data(r)["status"] == "ARCHIVED"
    change = fake_db["organizational_changes"].docs[-1]
    assert change["entity_type"] == "POSITION"
    assert change["change_type"] == "DEACTIVATE"


def test_org_change_endpoints(client, make_position):
    head = make_position("HEAD")
    client.put(f"/api/positions/{head['_id']}", json={"name": "Head of Operations"})

    body = client.get(f"/api/organizational-changes/entity/POSITION/{head['_id']}").json()
    assert body["pagination"]["total"] == 2
    assert {c["change_type"] for c in body["data"]} == {"CREATE", "UPDATE"}

    found = data(client.get("/api/organizational-changes/search/head"))
    assert found

    r = client.get("/api/organizational-changes/date-range/2024-02-10/2024-02-01")
    assert r.status_code == 400
