from datetime import datetime, timedelta


def test_empty_dashboard(client, admin):
    body = client.get("/api/dashboard", headers=admin).json()
    assert body["projects"] == {"total": 0, "active": 0, "completed": 0}
    assert body["tasks"]["total"] == 0
    assert body["tasks"]["upcoming"] == []
    assert body["team_count"] == 1
    assert body["low_stock"] == []
    assert body["financials"]["formatted"]["profit"] == "$0.00"


def test_dashboard_rollup(client, admin, staff, project, vendor):
    pid = project["id"]
    now = datetime.utcnow()
    tasks = f"/api/projects/{pid}/tasks"
    client.post(tasks, headers=admin, json={"title": "Late", "due_date": (now - timedelta(days=1)).isoformat()})
    soon = client.post(tasks, headers=admin, json={"title": "Frame walls", "due_date": (now + timedelta(days=3)).isoformat()}).json()
    done = client.post(tasks, headers=admin, json={"title": "Survey"}).json()
    client.patch(f"/api/tasks/{done['id']}", headers=admin, json={"status": "COMPLETED"})

    client.post(f"/api/projects/{pid}/budget", headers=admin, json={"name": "Contract", "amount": 50000})
    client.post(f"/api/projects/{pid}/budget", headers=admin, json={"name": "Lumber", "amount": 8500, "is_expense": True})

    client.post("/api/inventory", headers=admin, json={"name": "Nails", "unit": "box", "quantity": 3})
    asset = client.post("/api/assets", headers=admin, json={"name": "Trailer", "type": "VEHICLE"}).json()
    client.post(f"/api/assets/{asset['id']}/requests", headers=staff, json={"purpose": "Haul lumber"})

    body = client.get("/api/dashboard", headers=admin).json()
    assert body["projects"] == {"total": 1, "active": 1, "completed": 0}
    assert body["tasks"]["total"] == 3
    assert body["tasks"]["completed"] == 1
    assert body["tasks"]["overdue"] == 1
    assert [t["id"] for t in body["tasks"]["upcoming"]] == [soon["id"]]
    assert body["tasks"]["upcoming"][0]["project"]["title"] == "Maple Ave Addition"
    assert body["team_count"] == 2
    assert body["vendor_count"] == 1
    assert [m["name"] for m in body["low_stock"]] == ["Nails"]
    assert body["pending_asset_requests"][0]["requester"] == "Sam Staff"
    assert body["recent_activities"]

    money = body["financials"]
    assert money["total_budget"] == 50000
    assert money["total_expenses"] == 8500
    assert money["profit"] == 41500
    assert money["currency"] == "USD"
    assert money["formatted"]["profit"] == "$41,500.00"


def test_dashboard_is_tenant_scoped(client, admin, other_admin, project, vendor):
    body = client.get("/api/dashboard", headers=other_admin).json()
    assert body["projects"]["total"] == 0
    assert body["vendor_count"] == 0
    assert body["team_count"] == 1
