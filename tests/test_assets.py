import pytest


@pytest.fixture
def asset(client, admin):
    res = client.post("/api/assets", headers=admin, json={
        "name": "Skid Steer", "type": "EQUIPMENT", "make": "Bobcat", "serial_number": "S-770",
        "purchase_cost": 42000,
    })
    assert res.status_code == 201, res.text
    return res.json()


def _types(client, headers):
    return [n["type"] for n in client.get("/api/notifications", headers=headers).json()]


def test_asset_crud(client, admin, staff, asset):
    assert asset["status"] == "AVAILABLE"
    assert asset["purchase_cost"] == 42000.0

    res = client.post("/api/assets", headers=admin, json={"name": "No type"})
    assert res.json()["error"] == "Name and type are required"

    found = client.get("/api/assets", headers=admin, params={"search": "bobcat"}).json()
    assert [a["id"] for a in found] == [asset["id"]]
    assert client.get("/api/assets", headers=admin, params={"type": "VEHICLE"}).json() == []

    assert client.delete(f"/api/assets/{asset['id']}", headers=staff).status_code == 403
    assert client.delete(f"/api/assets/{asset['id']}", headers=admin).json() == {"ok": True}


def test_request_approve_return(client, admin, staff, asset):
    res = client.post(f"/api/assets/{asset['id']}/requests", headers=staff, json={"purpose": "Grading at Maple Ave"})
    assert res.status_code == 201
    req = res.json()
    assert req["status"] == "PENDING"
    assert "asset_request" in _types(client, admin)

    assert client.post(f"/api/asset-requests/{req['id']}/approve", headers=staff).status_code == 403
    approved = client.post(f"/api/asset-requests/{req['id']}/approve", headers=admin).json()
    assert approved["status"] == "APPROVED"
    assert "asset_request_approved" in _types(client, staff)

    in_use = client.get(f"/api/assets/{asset['id']}", headers=admin).json()
    assert in_use["status"] == "IN_USE"
    assert in_use["assigned_to"]["email"] == "sam@acme.test"

    res = client.post(f"/api/assets/{asset['id']}/requests", headers=admin, json={"purpose": "Also me"})
    assert res.json()["error"] == "Asset is not available for request"

    res = client.post(f"/api/asset-requests/{req['id']}/approve", headers=admin)
    assert res.json()["error"] == "Request is not pending"

    returned = client.post(f"/api/asset-requests/{req['id']}/return", headers=staff, json={"condition": "good"}).json()
    assert returned["status"] == "RETURNED"
    assert returned["return_condition"] == "GOOD"
    after = client.get(f"/api/assets/{asset['id']}", headers=admin).json()
    assert after["status"] == "AVAILABLE"
    assert after["assigned_to"] is None


def test_damaged_return_flags_asset(client, admin, staff, asset):
    req = client.post(f"/api/assets/{asset['id']}/requests", headers=staff, json={"purpose": "Trenching"}).json()
    client.post(f"/api/asset-requests/{req['id']}/approve", headers=admin)
    client.post(f"/api/asset-requests/{req['id']}/return", headers=staff, json={"condition": "DAMAGED", "notes": "Cracked bucket"})

    assert client.get(f"/api/assets/{asset['id']}", headers=admin).json()["status"] == "LOST_DAMAGED"
    assert "asset_damaged" in _types(client, admin)


def test_reject_request(client, admin, staff, asset):
    req = client.post(f"/api/assets/{asset['id']}/requests", headers=staff, json={"purpose": "Weekend job"}).json()
    rejected = client.post(f"/api/asset-requests/{req['id']}/reject", headers=admin, json={"reason": "Booked"}).json()
    assert rejected["status"] == "REJECTED"
    assert rejected["notes"] == "Rejected: Booked"
    assert client.get(f"/api/assets/{asset['id']}", headers=admin).json()["status"] == "AVAILABLE"


def test_request_requires_purpose(client, staff, asset):
    res = client.post(f"/api/assets/{asset['id']}/requests", headers=staff, json={"purpose": " "})
    assert res.status_code == 400
    assert res.json()["error"] == "Purpose is required"


def test_recurring_maintenance(client, admin, asset):
    url = f"/api/assets/{asset['id']}/maintenance"
    res = client.post(url, headers=admin, json={"title": "Oil change", "type": "RECURRING", "next_due_date": "2026-11-01"})
    assert res.json()["error"] == "Recurring maintenance requires interval_days greater than 0"
    res = client.post(url, headers=admin, json={"title": "Oil change", "type": "RECURRING", "interval_days": "quarterly", "next_due_date": "2026-11-01"})
    assert res.status_code == 400
    assert res.json()["error"] == "interval_days must be a number"

    schedule = client.post(url, headers=admin, json={
        "title": "Oil change", "type": "RECURRING", "interval_days": 90, "next_due_date": "2026-11-01",
    }).json()
    done = client.post(f"/api/maintenance/{schedule['id']}/complete", headers=admin,
                       json={"performed_date": "2026-11-02", "cost": 180}).json()
    assert done["next_due_date"].startswith("2027-01-31")
    assert done["is_active"] is True
    assert len(done["records"]) == 1


def test_one_time_maintenance_closes(client, admin, asset):
    schedule = client.post(f"/api/assets/{asset['id']}/maintenance", headers=admin,
                           json={"title": "Annual inspection", "next_due_date": "2026-12-01"}).json()
    assert schedule["type"] == "ONE_TIME"
    done = client.post(f"/api/maintenance/{schedule['id']}/complete", headers=admin).json()
    assert done["is_active"] is False


def test_assets_are_tenant_scoped(client, other_admin, asset):
    assert client.get(f"/api/assets/{asset['id']}", headers=other_admin).status_code == 404
    res = client.post(f"/api/assets/{asset['id']}/requests", headers=other_admin, json={"purpose": "steal"})
    assert res.status_code == 404
