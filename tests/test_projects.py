def test_create_project_uses_projects_stage(client, admin, project):
    assert project["title"] == "Maple Ave Addition"
    assert project["stage_name"] == "Projects"
    assert project["progress"] == 0
    assert project["formatted_budget"] == "$0.00"

    second = client.post("/api/projects", headers=admin, json={"title": "Garage"}).json()
    assert second["stage_id"] == project["stage_id"]
    names = [s["name"] for s in client.get("/api/stages", headers=admin).json()]
    assert names.count("Projects") == 1


def test_create_project_requires_title(client, admin):
    res = client.post("/api/projects", headers=admin, json={"title": "   "})
    assert res.status_code == 400
    assert res.json() == {"error": "Title is required"}


def test_project_metrics_follow_tasks_and_budget(client, admin, project):
    pid = project["id"]
    t1 = client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "Footings"}).json()
    client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "Framing"})
    client.patch(f"/api/tasks/{t1['id']}", headers=admin, json={"status": "COMPLETED"})
    client.post(f"/api/projects/{pid}/budget", headers=admin, json={"name": "Contract", "amount": 50000})
    client.post(f"/api/projects/{pid}/budget", headers=admin, json={"name": "Lumber", "amount": 1200, "quantity": 10, "is_expense": True})

    detail = client.get(f"/api/projects/{pid}", headers=admin).json()
    assert detail["task_count"] == 2
    assert detail["completed_tasks"] == 1
    assert detail["progress"] == 50
    assert detail["total_budget"] == 50000
    assert detail["total_expenses"] == 12000
    assert detail["profit"] == 38000
    assert detail["formatted_profit"] == "$38,000.00"
    assert len(detail["tasks"]) == 2
    assert len(detail["budget_items"]) == 2
    assert detail["activities"]


def test_project_list_hides_cancelled(client, admin, project):
    client.patch(f"/api/projects/{project['id']}", headers=admin, json={"status": "CANCELLED"})
    assert client.get("/api/projects", headers=admin).json() == []


def test_project_formatting_uses_company_currency(client, admin, project):
    client.patch("/api/company/settings", headers=admin, json={"currency": "GBP"})
    client.post(f"/api/projects/{project['id']}/budget", headers=admin, json={"name": "Fee", "amount": 2500})
    listed = client.get("/api/projects", headers=admin).json()
    assert listed[0]["formatted_budget"] == "£2,500.00"


def test_delete_project_requires_admin(client, admin, staff, project):
    assert client.delete(f"/api/projects/{project['id']}", headers=staff).status_code == 403
    assert client.delete(f"/api/projects/{project['id']}", headers=admin).json() == {"ok": True}
    assert client.get(f"/api/projects/{project['id']}", headers=admin).status_code == 404


def test_projects_are_tenant_scoped(client, admin, other_admin, project):
    res = client.get(f"/api/projects/{project['id']}", headers=other_admin)
    assert res.status_code == 404
    assert res.json() == {"error": "Project not found"}
    assert client.get("/api/projects", headers=other_admin).json() == []
    assert client.patch(f"/api/projects/{project['id']}", headers=other_admin, json={"title": "x"}).status_code == 404
