def _task(client, headers, project_id, **fields):
    fields.setdefault("title", "Task")
    res = client.post(f"/api/projects/{project_id}/tasks", headers=headers, json=fields)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_task_defaults(client, admin, project):
    task = _task(client, admin, project["id"], title="Pour slab", due_date="2026-11-05T09:00:00Z")
    assert task["status"] == "TODO"
    assert task["priority"] == "MEDIUM"
    assert task["due_date"].startswith("2026-11-05 09:00")
    assert task["created_by"]["email"] == "owner@acme.test"


def test_task_requires_title(client, admin, project):
    res = client.post(f"/api/projects/{project['id']}/tasks", headers=admin, json={})
    assert res.status_code == 400
    assert res.json()["error"] == "Title is required"


def test_completing_task_stamps_completed_at(client, admin, project):
    task = _task(client, admin, project["id"])
    done = client.patch(f"/api/tasks/{task['id']}", headers=admin, json={"status": "COMPLETED"}).json()
    assert done["completed_at"] is not None

    reopened = client.patch(f"/api/tasks/{task['id']}", headers=admin, json={"status": "IN_PROGRESS"}).json()
    assert reopened["completed_at"] is None

    actions = [a["action"] for a in client.get(f"/api/projects/{project['id']}/activities", headers=admin).json()]
    assert "task_completed" in actions


def test_task_ordering_follows_categories(client, admin, project):
    pid = project["id"]
    first = client.post(f"/api/projects/{pid}/categories", headers=admin, json={"name": "Site"}).json()
    second = client.post(f"/api/projects/{pid}/categories", headers=admin, json={"name": "Finish"}).json()
    assert (first["order"], second["order"]) == (0, 1)

    loose = _task(client, admin, pid, title="Loose")
    finish = _task(client, admin, pid, title="Paint", category_id=second["id"])
    site = _task(client, admin, pid, title="Clear lot", category_id=first["id"])

    ids = [t["id"] for t in client.get(f"/api/projects/{pid}/tasks", headers=admin).json()]
    assert ids == [site["id"], finish["id"], loose["id"]]


def test_category_with_tasks_cannot_be_deleted(client, admin, project):
    cat = client.post(f"/api/projects/{project['id']}/categories", headers=admin, json={"name": "Roof"}).json()
    _task(client, admin, project["id"], category_id=cat["id"])
    res = client.delete(f"/api/categories/{cat['id']}", headers=admin)
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot delete category with tasks. Please move or delete tasks first."


def test_group_by_milestone(client, admin, project):
    pid = project["id"]
    ms = client.post(f"/api/projects/{pid}/milestones", headers=admin, json={"title": "Foundation"}).json()
    in_ms = _task(client, admin, pid, title="Forms", milestone_id=ms["id"])
    client.patch(f"/api/tasks/{in_ms['id']}", headers=admin, json={"status": "COMPLETED"})
    _task(client, admin, pid, title="Permits")

    grouped = client.get(f"/api/projects/{pid}/tasks", headers=admin, params={"group_by": "milestone"}).json()
    assert len(grouped["groups"]) == 1
    group = grouped["groups"][0]
    assert group["milestone"]["title"] == "Foundation"
    assert [t["title"] for t in group["tasks"]] == ["Forms"]
    assert group["progress"]["progress"] == 100
    assert [t["title"] for t in grouped["unassigned"]] == ["Permits"]


def test_task_reference_validation(client, admin, other_admin, project):
    pid = project["id"]
    other_project = client.post("/api/projects", headers=other_admin, json={"title": "Theirs"}).json()
    foreign_ms = client.post(f"/api/projects/{other_project['id']}/milestones", headers=other_admin, json={"title": "X"}).json()

    res = client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "T", "milestone_id": foreign_ms["id"]})
    assert res.json()["error"] == "Milestone does not belong to this project"

    res = client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "T", "assignee_id": "nobody"})
    assert res.json()["error"] == "Invalid assignee"


def test_task_dependencies(client, admin, project):
    pid = project["id"]
    a = _task(client, admin, pid, title="A")
    b = _task(client, admin, pid, title="B", dependency_ids=[a["id"]])
    assert b["dependency_ids"] == [a["id"]]

    res = client.patch(f"/api/tasks/{a['id']}", headers=admin, json={"dependency_ids": [a["id"]]})
    assert res.status_code == 400
    assert res.json()["error"] == "A task cannot depend on itself"


def test_circular_dependencies_are_rejected(client, admin, project):
    pid = project["id"]
    a = _task(client, admin, pid, title="Excavate")
    b = _task(client, admin, pid, title="Pour footings", dependency_ids=[a["id"]])
    c = _task(client, admin, pid, title="Frame", dependency_ids=[b["id"]])

    res = client.patch(f"/api/tasks/{a['id']}", headers=admin, json={"dependency_ids": [b["id"]]})
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot create circular dependency"

    res = client.patch(f"/api/tasks/{a['id']}", headers=admin, json={"dependency_ids": [c["id"]]})
    assert res.json()["error"] == "Cannot create circular dependency"
    assert client.get(f"/api/tasks/{a['id']}", headers=admin).json()["dependency_ids"] == []


def test_non_numeric_order_is_rejected(client, admin, project):
    task = _task(client, admin, project["id"])
    res = client.patch(f"/api/tasks/{task['id']}", headers=admin, json={"order": "first"})
    assert res.status_code == 400
    assert res.json()["error"] == "order must be a number"

    res = client.patch(f"/api/tasks/{task['id']}", headers=admin, json={"order": 2.5})
    assert res.status_code == 400
    assert client.patch(f"/api/tasks/{task['id']}", headers=admin, json={"order": 4.0}).json()["order"] == 4


def test_tasks_are_tenant_scoped(client, admin, other_admin, project):
    task = _task(client, admin, project["id"])
    assert client.get(f"/api/tasks/{task['id']}", headers=other_admin).status_code == 404
    assert client.delete(f"/api/tasks/{task['id']}", headers=other_admin).status_code == 404
    assert client.post(f"/api/projects/{project['id']}/tasks", headers=other_admin, json={"title": "x"}).status_code == 404


def test_delete_task(client, admin, project):
    task = _task(client, admin, project["id"])
    assert client.delete(f"/api/tasks/{task['id']}", headers=admin).json() == {"ok": True}
    assert client.get(f"/api/tasks/{task['id']}", headers=admin).status_code == 404


def test_duplicate_task(client, admin, admin_user, project):
    pid = project["id"]
    cat = client.post(f"/api/projects/{pid}/categories", headers=admin, json={"name": "Framing"}).json()
    base = _task(client, admin, pid, title="Set trusses")
    source = _task(client, admin, pid, title="Sheath roof", priority="HIGH", category_id=cat["id"],
                   assignee_id=admin_user["id"], estimated_cost=2400, dependency_ids=[base["id"]])
    client.patch(f"/api/tasks/{source['id']}", headers=admin, json={"status": "COMPLETED"})

    res = client.post(f"/api/tasks/{source['id']}/duplicate", headers=admin)
    assert res.status_code == 201
    copy = res.json()
    assert copy["title"] == "Sheath roof (Copy)"
    assert copy["status"] == "TODO"
    assert copy["completed_at"] is None
    assert copy["priority"] == "HIGH"
    assert copy["category_id"] == cat["id"]
    assert copy["assignee"]["id"] == admin_user["id"]
    assert copy["estimated_cost"] == 2400
    assert copy["dependency_ids"] == []
    assert copy["order"] > source["order"]


def test_duplicate_task_is_tenant_scoped(client, admin, other_admin, project):
    task = _task(client, admin, project["id"])
    res = client.post(f"/api/tasks/{task['id']}/duplicate", headers=other_admin)
    assert res.status_code == 404
