import pytest


@pytest.fixture
def material(client, admin):
    res = client.post("/api/inventory", headers=admin, json={
        "name": "Portland Cement", "sku": "CEM-94", "category": "Concrete", "unit": "bag",
        "quantity": 40, "min_stock_level": 15, "unit_cost": 14.5,
    })
    assert res.status_code == 201, res.text
    return res.json()


def test_create_records_initial_stock(client, admin, material):
    assert material["quantity"] == 40
    assert material["is_low_stock"] is False

    page = client.get(f"/api/inventory/{material['id']}/transactions", headers=admin).json()
    assert page["total"] == 1
    tx = page["transactions"][0]
    assert tx["type"] == "STOCK_IN"
    assert tx["previous_qty"] == 0
    assert tx["new_qty"] == 40
    assert tx["notes"] == "Initial stock"


def test_create_validation(client, admin, material):
    res = client.post("/api/inventory", headers=admin, json={"name": "Sand"})
    assert res.json()["error"] == "Name and unit are required"
    res = client.post("/api/inventory", headers=admin, json={"name": "Dup", "unit": "bag", "sku": "CEM-94"})
    assert res.json()["error"] == "A material with this SKU already exists"


def test_stock_movements(client, admin, project, material):
    mid = material["id"]
    res = client.post(f"/api/inventory/{mid}/stock-out", headers=admin,
                      json={"quantity": 30, "project_id": project["id"], "notes": "Footings"})
    assert res.status_code == 200
    body = res.json()
    assert body["material"]["quantity"] == 10
    assert body["material"]["is_low_stock"] is True
    assert body["transaction"]["previous_qty"] == 40
    assert body["transaction"]["new_qty"] == 10
    assert body["transaction"]["card_id"] == project["id"]
    assert body["transaction"]["user_name"] == "Olive Owner"

    res = client.post(f"/api/inventory/{mid}/stock-out", headers=admin, json={"quantity": 11})
    assert res.status_code == 400
    assert res.json()["error"] == "Insufficient stock. Available: 10"

    res = client.post(f"/api/inventory/{mid}/stock-in", headers=admin, json={"quantity": 0})
    assert res.json()["error"] == "Quantity must be greater than 0"

    restocked = client.post(f"/api/inventory/{mid}/stock-in", headers=admin, json={"quantity": 50, "unit_cost": 13}).json()
    assert restocked["material"]["quantity"] == 60
    assert restocked["material"]["unit_cost"] == 13

    page = client.get(f"/api/inventory/{mid}/transactions", headers=admin, params={"limit": 2}).json()
    assert page["total"] == 3
    assert len(page["transactions"]) == 2


def test_update_does_not_touch_quantity(client, admin, material):
    updated = client.patch(f"/api/inventory/{material['id']}", headers=admin,
                           json={"quantity": 999, "location": "Yard B"}).json()
    assert updated["quantity"] == 40
    assert updated["location"] == "Yard B"


def test_low_stock_filter_and_categories(client, admin, material):
    client.post("/api/inventory", headers=admin, json={"name": "Rebar #4", "unit": "stick", "quantity": 5, "category": "Steel"})
    client.post("/api/inventory", headers=admin, json={"name": "Tie wire", "unit": "roll", "quantity": 25, "category": "Steel"})

    low = [m["name"] for m in client.get("/api/inventory", headers=admin, params={"low_stock": True}).json()]
    assert low == ["Rebar #4"]
    assert client.get("/api/inventory/categories", headers=admin).json() == ["Concrete", "Steel"]
    steel = client.get("/api/inventory", headers=admin, params={"category": "Steel"}).json()
    assert len(steel) == 2


def test_delete_material(client, admin, material):
    assert client.delete(f"/api/inventory/{material['id']}", headers=admin).status_code == 204
    assert client.get(f"/api/inventory/{material['id']}", headers=admin).status_code == 404


def test_inventory_is_tenant_scoped(client, other_admin, material):
    assert client.get(f"/api/inventory/{material['id']}", headers=other_admin).status_code == 404
    assert client.post(f"/api/inventory/{material['id']}/stock-out", headers=other_admin, json={"quantity": 1}).status_code == 404
    assert client.get("/api/inventory", headers=other_admin).json() == []
