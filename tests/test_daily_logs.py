def _log(client, headers, project_id, **fields):
    res = client.post(f"/api/projects/{project_id}/daily-logs", headers=headers, json=fields)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_daily_log(client, admin, project):
    log = _log(client, admin, project["id"], date="2026-03-14T15:30:00Z", weather_condition="Sunny",
               temperature="18.5", workers_on_site=6, work_completed="Framed north wall",
               photos=["/uploads/north-wall.jpg"])
    assert log["date"] == "2026-03-14"
    assert log["temperature"] == 18.5
    assert log["workers_on_site"] == 6
    assert log["photos"] == ["/uploads/north-wall.jpg"]
    assert log["author"]["email"] == "owner@acme.test"

    fetched = client.get(f"/api/daily-logs/{log['id']}", headers=admin).json()
    assert fetched["project"]["title"] == "Maple Ave Addition"
    assert fetched["work_completed"] == "Framed north wall"

    actions = [a["action"] for a in client.get(f"/api/projects/{project['id']}/activities", headers=admin).json()]
    assert "dailylog_created" in actions


def test_one_log_per_day(client, admin, project):
    _log(client, admin, project["id"], date="2026-03-14T07:00:00")
    res = client.post(f"/api/projects/{project['id']}/daily-logs", headers=admin, json={"date": "2026-03-14T18:45:00"})
    assert res.status_code == 400
    assert res.json()["error"] == "A daily log already exists for this date"


def test_logs_listed_newest_first(client, admin, project):
    _log(client, admin, project["id"], date="2026-03-12")
    _log(client, admin, project["id"], date="2026-03-15")
    _log(client, admin, project["id"], date="2026-03-13")
    dates = [log["date"] for log in client.get(f"/api/projects/{project['id']}/daily-logs", headers=admin).json()]
    assert dates == ["2026-03-15", "2026-03-13", "2026-03-12"]


def test_log_defaults_and_validation(client, admin, project):
    log = _log(client, admin, project["id"])
    assert log["workers_on_site"] == 0
    assert log["photos"] == []

    res = client.patch(f"/api/daily-logs/{log['id']}", headers=admin, json={"workers_on_site": "a few"})
    assert res.status_code == 400
    assert res.json()["error"] == "workers_on_site must be a number"

    res = client.patch(f"/api/daily-logs/{log['id']}", headers=admin, json={"photos": "one.jpg"})
    assert res.status_code == 400
    assert res.json()["error"] == "photos must be a list"


def test_only_author_or_admin_changes_log(client, admin, staff, project):
    log = _log(client, admin, project["id"], date="2026-04-01")
    res = client.patch(f"/api/daily-logs/{log['id']}", headers=staff, json={"issues": "None"})
    assert res.status_code == 403
    assert res.json()["error"] == "Unauthorized to edit this log"
    res = client.delete(f"/api/daily-logs/{log['id']}", headers=staff)
    assert res.status_code == 403
    assert res.json()["error"] == "Unauthorized to delete this log"

    own = _log(client, staff, project["id"], date="2026-04-02")
    updated = client.patch(f"/api/daily-logs/{own['id']}", headers=staff, json={"delays": "Rain"}).json()
    assert updated["delays"] == "Rain"
    assert client.patch(f"/api/daily-logs/{own['id']}", headers=admin, json={"notes": "Checked"}).status_code == 200

    assert client.delete(f"/api/daily-logs/{own['id']}", headers=admin).json() == {"ok": True}
    assert client.get(f"/api/daily-logs/{own['id']}", headers=admin).status_code == 404


def test_logs_are_tenant_scoped(client, admin, other_admin, project):
    log = _log(client, admin, project["id"])
    assert client.get(f"/api/projects/{project['id']}/daily-logs", headers=other_admin).status_code == 404
    res = client.get(f"/api/daily-logs/{log['id']}", headers=other_admin)
    assert res.status_code == 404
    assert res.json()["error"] == "Daily log not found"
