from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.models.service_area import AreaGeometry, LocationSearchRequest, outer_ring_center
from app.services import geospatial
from app.services.service_area_service import history_change_type, parse_sort
from app.utils.errors import ValidationError
from conftest import data

SQUARE = [[[106.80, -6.20], [106.84, -6.20], [106.84, -6.16], [106.80, -6.16], [106.80, -6.20]]]


def area_payload(code="JKT-C", **extra):
    return {"code": code, "name": f"Area {code}", "geometry": {"type": "Polygon", "coordinates": SQUARE}, **extra}


@pytest.fixture
def make_area(client):
    def _make(code="JKT-C", **extra):
        r = client.post("/api/service-areas/", json=area_payload(code, **extra))
        assert r.status_code == 201, r.json()
        return data(r)
    return _make


def test_polygon_rings_must_be_closed():
    open_ring = [[[106.80, -6.20], [106.84, -6.20], [106.84, -6.16], [106.80, -6.16]]]
    with pytest.raises(PydanticValidationError):
        AreaGeometry(type="Polygon", coordinates=open_ring)
    with pytest.raises(PydanticValidationError):
        AreaGeometry(type="Polygon", coordinates=[[[200, 0], [0, 0], [0, 1], [200, 0]]])
    AreaGeometry(type="MultiPolygon", coordinates=[SQUARE])


def test_center_excludes_closing_point():
    center = outer_ring_center({"type": "Polygon", "coordinates": SQUARE})
    assert center["coordinates"] == pytest.approx([106.82, -6.18])
    multi = outer_ring_center({"type": "MultiPolygon", "coordinates": [SQUARE]})
    assert multi["coordinates"] == pytest.approx([106.82, -6.18])


def test_location_search_inputs():
    with pytest.raises(PydanticValidationError):
        LocationSearchRequest(search_type="near", longitude=106.8)
    with pytest.raises(PydanticValidationError):
        LocationSearchRequest(search_type="polygon")
    assert LocationSearchRequest(longitude=106.8, latitude=-6.2).search_type == "contains"


def test_query_builders():
    contains = geospatial.build_location_query("contains", 106.82, -6.18)
    assert contains["geometry"]["$geoIntersects"]["$geometry"] == {"type": "Point", "coordinates": [106.82, -6.18]}
    assert contains["status"] == "ACTIVE"

    near = geospatial.build_location_query("near", 106.82, -6.18)
    assert near["center"]["$near"]["$maxDistance"] == 5000
    assert geospatial.near_query(106.82, -6.18, 750)["center"]["$near"]["$maxDistance"] == 750

    polygon = {"type": "Polygon", "coordinates": SQUARE}
    assert geospatial.build_location_query("polygon", polygon=polygon)["geometry"]["$geoIntersects"]["$geometry"] == polygon

    with pytest.raises(ValidationError):
        geospatial.build_location_query("polygon")
    with pytest.raises(ValidationError):
        geospatial.build_location_query("near", longitude=106.82)
    with pytest.raises(ValidationError):
        geospatial.build_location_query("nearest", 106.82, -6.18)


def test_haversine_distance():
    # Monas to Bundaran HI is roughly 2.2 km
    meters = geospatial.haversine(106.8272, -6.1754, 106.8229, -6.1949)
    assert 2000 < meters < 2400
    assert geospatial.within_radius([106.8272, -6.1754], [106.8272, -6.1754], 1)


def test_sort_and_history_helpers():
    assert parse_sort(None) == [("created_at", -1)]
    assert parse_sort("name:desc") == [("name", -1)]
    with pytest.raises(ValidationError):
        parse_sort("geometry:asc")
    assert history_change_type([{"field": "geometry"}, {"field": "status"}]) == "STATUS_CHANGE"
    assert history_change_type([{"field": "geometry"}]) == "BOUNDARY_CHANGE"
    assert history_change_type([{"field": "name"}]) == "UPDATE"


def test_create_area_computes_center_and_history(client, make_area):
    area = make_area("jkt-c")
    assert area["code"] == "JKT-C"
    assert area["center"]["coordinates"] == pytest.approx([106.82, -6.18])

    duplicate = client.post("/api/service-areas/", json=area_payload("JKT-C"))
    assert duplicate.status_code == 400

    history = data(client.get(f"/api/service-areas/{area['_id']}/history"))
    assert [h["change_type"] for h in history] == ["CREATE"]


def test_non_numeric_coordinates_are_a_validation_error(client):
    ring = [["a", "b"]] * 4
    r = client.post("/api/service-areas/", json={
        "code": "BAD", "name": "Bad area", "geometry": {"type": "Polygon", "coordinates": [ring]},
    })
    assert r.status_code == 400
    assert r.json()["message"] == "Validation error"

    with pytest.raises(PydanticValidationError):
        AreaGeometry(type="Polygon", coordinates=[[[106.8, True], [106.84, -6.2], [106.84, -6.16], [106.8, True]]])


def test_list_areas_filters_and_sorts(client, make_area):
    make_area("B-AREA", area_type="REMOTE_AREA")
    make_area("A-AREA")
    make_area("C-AREA", area_type="REMOTE_AREA")

    remote = data(client.get("/api/service-areas/?area_type=REMOTE_AREA&sort=code:desc"))
    assert [a["code"] for a in remote] == ["C-AREA", "B-AREA"]
    assert client.get("/api/service-areas/?sort=geometry").status_code == 400


def test_update_area_records_change_kind(client, make_area):
    area = make_area()
    moved = [[[106.90, -6.30], [106.94, -6.30], [106.94, -6.26], [106.90, -6.26], [106.90, -6.30]]]
    r = client.put(f"/api/service-areas/{area['_id']}", json={
        "geometry": {"type": "Polygon", "coordinates": moved}, "reason": "Boundary survey",
    })
    assert data(r)["center"]["coordinates"] == pytest.approx([106.92, -6.28])

    client.put(f"/api/service-areas/{area['_id']}", json={"status": "INACTIVE"})
    history = data(client.get(f"/api/service-areas/{area['_id']}/history"))
    kinds = {h["change_type"] for h in history}
    assert kinds == {"CREATE", "BOUNDARY_CHANGE", "STATUS_CHANGE"}
    boundary = next(h for h in history if h["change_type"] == "BOUNDARY_CHANGE")
    assert boundary["reason"] == "Boundary survey"


def test_assignments_and_primary_branch(client, make_branch, make_area, fake_db):
    area = make_area()
    north = make_branch("NORTH")
    south = make_branch("SOUTH")

    first = client.post("/api/service-area-assignments/", json={"branch": north["_id"], "service_area": area["_id"], "priority_level": 3})
    assert first.status_code == 201
    second = client.post("/api/service-area-assignments/", json={"branch": south["_id"], "service_area": area["_id"], "priority_level": 1})
    assert second.status_code == 201
    assert client.post("/api/service-area-assignments/", json={"branch": north["_id"], "service_area": area["_id"]}).status_code == 400
    assert client.post("/api/service-area-assignments/", json={
        "branch": north["_id"], "service_area": area["_id"], "priority_level": 11,
    }).status_code == 400

    primary = data(client.get(f"/api/service-area-assignments/service-areas/{area['_id']}/primary-branch"))
    assert primary["branch_detail"]["code"] == "SOUTH"

    branches = data(client.get(f"/api/service-area-assignments/service-areas/{area['_id']}/branches"))
    assert [b["branch_detail"]["code"] for b in branches] == ["SOUTH", "NORTH"]

    areas = data(client.get(f"/api/service-area-assignments/branches/{north['_id']}/service-areas"))
    assert areas[0]["service_area_detail"]["code"] == "JKT-C"

    r = client.put(f"/api/service-area-assignments/{data(second)['_id']}", json={"status": "INACTIVE"})
    assert data(r)["status"] == "INACTIVE"
    primary = data(client.get(f"/api/service-area-assignments/service-areas/{area['_id']}/primary-branch"))
    assert primary["branch_detail"]["code"] == "NORTH"

    assert client.delete(f"/api/service-area-assignments/{data(first)['_id']}").status_code == 200
    missing = client.get(f"/api/service-area-assignments/service-areas/{area['_id']}/primary-branch")
    assert missing.status_code == 404

    changes = [h for h in fake_db["service_area_history"].docs if h["change_type"] == "ASSIGNMENT_CHANGE"]
    assert len(changes) == 4


def test_pricing_crud_and_calculation(client, make_area):
    area = make_area()
    payload = {
        "service_area": area["_id"], "service_type": "EXPRESS", "base_price": 10000,
        "price_per_km": 1000, "price_per_kg": 500, "min_charge": 12000, "insurance_fee": 500,
    }
    created = client.post("/api/service-area-pricing/", json=payload)
    assert created.status_code == 201
    pricing = data(created)
    assert client.post("/api/service-area-pricing/", json=payload).status_code == 400

    r = client.post("/api/service-area-pricing/calculate", json={
        "service_area": area["_id"], "service_type": "EXPRESS", "distance": 5, "weight": 2,
    })
    result = data(r)
    assert result["price"] == 10000 + 5000 + 1000 + 500

    missing = client.post("/api/service-area-pricing/calculate", json={
        "service_area": area["_id"], "service_type": "SAME_DAY", "distance": 5, "weight": 2,
    })
    assert missing.status_code == 404

    listed = data(client.get(f"/api/service-area-pricing/service-areas/{area['_id']}/pricing"))
    assert listed[0]["is_active"] is True

    bad = client.put(f"/api/service-area-pricing/{pricing['_id']}", json={"max_charge": 100})
    assert bad.status_code == 400

    expired = client.put(f"/api/service-area-pricing/{pricing['_id']}", json={"effective_to": "2000-01-01T00:00:00Z"})
    assert expired.status_code == 400

    client.put(f"/api/service-area-pricing/{pricing['_id']}", json={"status": "INACTIVE"})
    inactive = client.post("/api/service-area-pricing/calculate", json={
        "service_area": area["_id"], "service_type": "EXPRESS", "distance": 5, "weight": 2,
    })
    assert inactive.status_code == 404

    assert client.delete(f"/api/service-area-pricing/{pricing['_id']}").status_code == 200
    assert client.get(f"/api/service-area-pricing/{pricing['_id']}").status_code == 404


def test_pricing_not_yet_effective(client, make_area):
    area = make_area()
    client.post("/api/service-area-pricing/", json={
        "service_area": area["_id"], "service_type": "REGULAR", "base_price": 10000,
        "effective_from": "2999-01-01T00:00:00Z",
    })
    r = client.post("/api/service-area-pricing/calculate", json={
        "service_area": area["_id"], "service_type": "REGULAR", "distance": 1, "weight": 1,
    })
    assert r.status_code == 404


def test_delete_area_needs_force_when_referenced(client, make_branch, make_area, fake_db):
    area = make_area()
    branch = make_branch("NORTH")
    client.post("/api/service-area-assignments/", json={"branch": branch["_id"], "service_area": area["_id"]})
    client.post("/api/service-area-pricing/", json={"service_area": area["_id"], "service_type": "REGULAR", "base_price": 1})

    assert client.delete(f"/api/service-areas/{area['_id']}").status_code == 400

    r = client.delete(f"/api/service-areas/{area['_id']}?force=true&reason=Merged")
    assert r.status_code == 200
    assert fake_db["branch_service_areas"].docs == []
    assert fake_db["service_area_pricing"].docs == []
    assert fake_db["service_area_history"].docs[-1]["change_type"] == "DELETE"
    assert fake_db["service_area_history"].docs[-1]["reason"] == "Merged"


def test_find_by_location_route(client, monkeypatch):
    calls = {}

    async def fake_find(search_type, longitude=None, latitude=None, max_distance=None, polygon=None):
        calls.update(search_type=search_type, longitude=longitude, latitude=latitude, max_distance=max_distance)
        return [{"_id": "a1", "code": "JKT-C"}]

    monkeypatch.setattr(geospatial, "find_service_areas", fake_find)
    r = client.post("/api/service-areas/geospatial/find-by-location", json={
        "longitude": 106.82, "latitude": -6.18, "search_type": "near", "max_distance": 1000,
    })
    assert r.status_code == 200
    assert data(r)[0]["code"] == "JKT-C"
    assert calls == {"search_type": "near", "longitude": 106.82, "latitude": -6.18, "max_distance": 1000}

    missing = client.post("/api/service-areas/geospatial/find-by-location", json={"search_type": "polygon"})
    assert missing.status_code == 400


def test_find_branches_by_location_orders_by_priority(client, make_branch, make_area, fake_db, monkeypatch):
    area = make_area()
    north = make_branch("NORTH")
    south = make_branch("SOUTH")
    client.post("/api/service-area-assignments/", json={"branch": north["_id"], "service_area": area["_id"], "priority_level": 2})
    client.post("/api/service-area-assignments/", json={"branch": south["_id"], "service_area": area["_id"], "priority_level": 1})

    # the fake collection cannot evaluate $geoIntersects
    monkeypatch.setattr(geospatial, "contains_query", lambda lng, lat: {"status": "ACTIVE"})
    r = client.post("/api/service-areas/geospatial/find-branches-by-location", json={"longitude": 106.82, "latitude": -6.18})
    found = data(r)
    assert [m["branch"]["code"] for m in found] == ["SOUTH", "NORTH"]
    assert found[0]["service_area"]["code"] == "JKT-C"
    assert found[0]["priority_level"] == 1
