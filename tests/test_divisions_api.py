from __future__ import annotations

import pytest

from conftest import data


@pytest.fixture
def make_division(client):
    def _make(code, parent=None, **extra):
        payload = {"name": f"Division {code}", "code": code, **extra}
        if parent:
            payload["parent"] = parent
        r = client.post("/api/divisions/", json=payload)
        assert r.status_code == 201, r.json()
        return data(r)
    return _make


def test_create_division_tracks_budget_remaining(make_division):
    ops = make_division("ops", budget={"annual": 1000, "spent": 250})
    assert ops["code"] == "OPS"
    assert ops["level"] == 0
    assert ops["budget"]["remaining"] == 750


def test_create_division_with_unknown_branch(client):
    r = client.post("/api/divisions/", json={"name": "Ops", "code": "OPS", "branch": "64b000000000000000000000"})
    assert r.status_code == 404


def test_children_and_descendants(client, make_division):
    ops = make_division("OPS")
    fleet = make_division("FLEET", parent=ops["_id"])
    make_division("REPAIR", parent=fleet["_id"])

    children = data(client.get(f"/api/divisions/{ops['_id']}/children"))
    assert [c["code"] for c in children] == ["FLEET"]

    descendants = data(client.get(f"/api/divisions/{ops['_id']}/descendants"))
    assert [d["path"] for d in descendants] == ["OPS.FLEET", "OPS.FLEET.REPAIR"]

    tree = data(client.get("/api/divisions/hierarchy"))
    assert tree[0]["children"][0]["children"][0]["code"] == "REPAIR"


def test_transfer_moves_subtree_and_branch(client, make_branch, make_division, fake_db):
    branch = make_branch("JKT")
    ops = make_division("OPS")
    sales = make_division("SALES")
    fleet = make_division("FLEET", parent=ops["_id"])
    make_division("REPAIR", parent=fleet["_id"])

    r = client.patch(f"/api/divisions/{fleet['_id']}/transfer", json={"parent": sales["_id"], "branch": branch["_id"]})
    assert r.status_code == 200
    moved = data(r)
    assert moved["path"] == "SALES.FLEET"
    assert moved["branch"] == branch["_id"]

    repair = next(d for d in fake_db["divisions"].docs if d["code"] == "REPAIR")
    assert repair["path"] == "SALES.FLEET.REPAIR"
    assert fake_db["organizational_changes"].docs[-1]["change_type"] == "TRANSFER"


def test_transfer_requires_a_target(client, make_division):
    ops = make_division("OPS")
    assert client.patch(f"/api/divisions/{ops['_id']}/transfer", json={}).status_code == 400


def test_transfer_into_own_subtree_is_rejected(client, make_division):
    ops = make_division("OPS")
    fleet = make_division("FLEET", parent=ops["_id"])
    r = client.patch(f"/api/divisions/{ops['_id']}/transfer", json={"parent": fleet["_id"]})
    assert r.status_code == 400


def test_deactivation_blocked_by_active_children(client, make_division):
    ops = make_division("OPS")
    make_division("FLEET", parent=ops["_id"])
    r = client.patch(f"/api/divisions/{ops['_id']}/status", json={"status": "INACTIVE"})
    assert r.status_code == 400


def test_delete_blocked_by_positions(client, make_division):
    ops = make_division("OPS")
    r = client.post("/api/positions/", json={"name": "Driver", "code": "DRV", "division": ops["_id"]})
    assert r.status_code == 201
    assert client.delete(f"/api/divisions/{ops['_id']}").status_code == 400


def test_budget_merge_recomputes_remaining(client, make_division):
    ops = make_division("OPS", budget={"annual": 1000, "spent": 0})
    r = client.patch(f"/api/divisions/{ops['_id']}/budget", json={"spent": 400})
    assert data(r)["budget"]["remaining"] == 600
    assert data(r)["budget"]["annual"] == 1000


def test_lookup_by_code_is_case_insensitive(client, make_division):
    make_division("OPS")
    assert data(client.get("/api/divisions/code/ops"))["code"] == "OPS"
    assert client.get("/api/divisions/code/none").status_code == 404


def test_metrics_merge_is_audited(client, make_division, fake_db):
    ops = make_division("OPS")
    client.patch(f"/api/divisions/{ops['_id']}/metrics", json={"headcount": 12})
    r = client.patch(f"/api/divisions/{ops['_id']}/metrics", json={"turnover": 0.1})
    assert data(r)["metrics"] == {"headcount": 12, "turnover": 0.1}

    change = fake_db["organizational_changes"].docs[-1]
    assert change["entity_type"] == "DIVISION" and change["change_type"] == "UPDATE"
    assert change["changed_fields"] == ["metrics"]
    assert change["previous_state"] == {"metrics": {"headcount": 12}}
