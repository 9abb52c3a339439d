def _milestone(client, headers, project_id, **fields):
    fields.setdefault("title", "Milestone")
    res = client.post(f"/api/projects/{project_id}/milestones", headers=headers, json=fields)
    assert res.status_code == 201, res.text
    return res.json()


def test_milestones_are_ordered(client, admin, project):
    pid = project["id"]
    a = _milestone(client, admin, pid, title="Design", amount=5000)
    b = _milestone(client, admin, pid, title="Build", target_date="2027-01-15")
    assert (a["order"], b["order"]) == (0, 1)
    assert a["status"] == "PENDING"

    titles = [m["title"] for m in client.get(f"/api/projects/{pid}/milestones", headers=admin).json()]
    assert titles == ["Design", "Build"]


def test_milestone_vendor_must_belong_to_company(client, admin, other_admin, project):
    theirs = client.post("/api/vendors", headers=other_admin, json={"name": "Elsewhere Co"}).json()
    res = client.post(f"/api/projects/{project['id']}/milestones", headers=admin,
                      json={"title": "Roofing", "vendor_id": theirs["id"]})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid vendor"


def test_milestone_completion(client, admin, project):
    m = _milestone(client, admin, project["id"])
    done = client.patch(f"/api/milestones/{m['id']}", headers=admin, json={"status": "completed"}).json()
    assert done["status"] == "COMPLETED"
    assert done["completed_at"] is not None


def test_checklist_progress(client, admin, admin_user, project):
    m = _milestone(client, admin, project["id"], title="Inspection")
    items = [
        client.post(f"/api/milestones/{m['id']}/checklist", headers=admin, json={"title": t}).json()
        for t in ("Electrical", "Plumbing", "Framing", "Insulation")
    ]
    assert [i["order"] for i in items] == [0, 1, 2, 3]

    done = client.patch(f"/api/milestones/{m['id']}/checklist/{items[0]['id']}", headers=admin,
                        json={"status": "COMPLETED"}).json()
    assert done["completed_by"]["id"] == admin_user["id"]
    assert done["completed_at"] is not None

    detail = client.get(f"/api/milestones/{m['id']}", headers=admin).json()
    assert detail["checklist_total"] == 4
    assert detail["checklist_completed"] == 1
    assert detail["checklist_progress"] == 25
    assert len(detail["checklist"]) == 4

    undone = client.patch(f"/api/milestones/{m['id']}/checklist/{items[0]['id']}", headers=admin,
                          json={"status": "PENDING"}).json()
    assert undone["completed_at"] is None
    assert undone["completed_by"] is None


def test_checklist_requires_title(client, admin, project):
    m = _milestone(client, admin, project["id"])
    res = client.post(f"/api/milestones/{m['id']}/checklist", headers=admin, json={"title": ""})
    assert res.status_code == 400


def test_deleting_milestone_unlinks_tasks(client, admin, project):
    pid = project["id"]
    m = _milestone(client, admin, pid)
    task = client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "Linked", "milestone_id": m["id"]}).json()
    assert client.delete(f"/api/milestones/{m['id']}", headers=admin).json() == {"ok": True}
    assert client.get(f"/api/tasks/{task['id']}", headers=admin).json()["milestone_id"] is None


def test_milestones_are_tenant_scoped(client, admin, other_admin, project):
    m = _milestone(client, admin, project["id"])
    assert client.get(f"/api/milestones/{m['id']}", headers=other_admin).status_code == 404
    assert client.post(f"/api/milestones/{m['id']}/checklist", headers=other_admin, json={"title": "x"}).status_code == 404
