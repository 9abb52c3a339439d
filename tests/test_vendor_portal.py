import pytest
from app.models.models import Vendor

PORTAL_EMAIL = "crew@ridge.test"
PORTAL_PASSWORD = "sparky2026"


@pytest.fixture
def portal_vendor(client, admin, vendor):
    res = client.post(f"/api/vendors/{vendor['id']}/portal-access", headers=admin,
                      json={"email": PORTAL_EMAIL, "password": PORTAL_PASSWORD})
    assert res.status_code == 200, res.text
    return vendor


def _login(client, email=PORTAL_EMAIL, password=PORTAL_PASSWORD):
    res = client.post("/api/vendor-portal/login", json={"email": email, "password": password})
    client.cookies.clear()
    return res


@pytest.fixture
def vendor_headers(client, portal_vendor):
    res = _login(client)
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
def assigned(client, admin, project, portal_vendor):
    pid = project["id"]
    ms = client.post(f"/api/projects/{pid}/milestones", headers=admin,
                     json={"title": "Rough-in", "vendor_id": portal_vendor["id"], "amount": 8000}).json()
    direct = client.post(f"/api/projects/{pid}/tasks", headers=admin,
                         json={"title": "Panel upgrade", "vendor_id": portal_vendor["id"]}).json()
    via_milestone = client.post(f"/api/projects/{pid}/tasks", headers=admin,
                                json={"title": "Run circuits", "milestone_id": ms["id"]}).json()
    unrelated = client.post(f"/api/projects/{pid}/tasks", headers=admin, json={"title": "Drywall"}).json()
    return {"milestone": ms, "direct": direct, "via_milestone": via_milestone, "unrelated": unrelated}


def test_login_and_profile(client, portal_vendor, vendor_headers):
    me = client.get("/api/vendor-portal/me", headers=vendor_headers).json()
    assert me["name"] == "Ridge Electric"
    assert me["portal_email"] == PORTAL_EMAIL
    assert me["company_name"] == "Acme Builders"


def test_login_sets_cookie(client, portal_vendor):
    res = client.post("/api/vendor-portal/login", json={"email": PORTAL_EMAIL, "password": PORTAL_PASSWORD})
    assert res.status_code == 200
    assert "vendor-token" in res.cookies
    assert client.get("/api/vendor-portal/me").status_code == 200
    client.cookies.clear()


def test_login_failures(client, admin, portal_vendor):
    res = _login(client, email="nobody@ridge.test")
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid credentials"

    res = _login(client, password="wrong-password")
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid credentials"

    client.patch(f"/api/vendors/{portal_vendor['id']}", headers=admin, json={"status": "SUSPENDED"})
    res = _login(client)
    assert res.status_code == 403
    assert res.json()["error"] == "Vendor account is suspended"

    client.patch(f"/api/vendors/{portal_vendor['id']}", headers=admin, json={"status": "VERIFIED", "is_active": False})
    res = _login(client)
    assert res.status_code == 401
    assert res.json()["error"] == "Vendor account is inactive"


def test_login_with_portal_disabled(client, db, portal_vendor):
    db.query(Vendor).filter(Vendor.id == portal_vendor["id"]).update({Vendor.portal_enabled: False})
    db.commit()
    res = _login(client)
    assert res.status_code == 401
    assert res.json()["error"] == "Portal access not configured. Please contact the company."


def test_revoked_portal_access(client, admin, portal_vendor):
    client.delete(f"/api/vendors/{portal_vendor['id']}/portal-access", headers=admin)
    res = _login(client)
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid credentials"


def test_tokens_do_not_cross_over(client, admin, vendor_headers):
    res = client.get("/api/vendor-portal/me", headers=admin)
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid token"

    res = client.get("/api/auth/me", headers=vendor_headers)
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid token"


def test_blocked_vendor_token_stops_working(client, admin, portal_vendor, vendor_headers):
    client.patch(f"/api/vendors/{portal_vendor['id']}", headers=admin, json={"status": "BLACKLISTED"})
    assert client.get("/api/vendor-portal/me", headers=vendor_headers).status_code == 401


def test_vendor_sees_only_assigned_tasks(client, vendor_headers, assigned):
    titles = sorted(t["title"] for t in client.get("/api/vendor-portal/tasks", headers=vendor_headers).json())
    assert titles == ["Panel upgrade", "Run circuits"]

    milestones = client.get("/api/vendor-portal/milestones", headers=vendor_headers).json()
    assert [m["title"] for m in milestones] == ["Rough-in"]
    assert milestones[0]["total_tasks"] == 1


def test_vendor_updates_task_status(client, admin, project, vendor_headers, assigned):
    tid = assigned["direct"]["id"]
    url = f"/api/vendor-portal/tasks/{tid}"

    res = client.patch(url, headers=vendor_headers, json={"status": "COMPLETED", "title": "Renamed"})
    assert res.status_code == 400
    assert res.json()["error"] == "Only status can be updated"

    res = client.patch(url, headers=vendor_headers, json={"status": "CANCELLED"})
    assert res.json()["error"] == "Invalid status. Must be one of: TODO, IN_PROGRESS, COMPLETED"

    done = client.patch(url, headers=vendor_headers, json={"status": "completed"}).json()
    assert done["status"] == "COMPLETED"
    assert done["completed_at"] is not None

    res = client.patch(f"/api/vendor-portal/tasks/{assigned['unrelated']['id']}", headers=vendor_headers,
                       json={"status": "IN_PROGRESS"})
    assert res.status_code == 404

    activity = client.get(f"/api/projects/{project['id']}/activities", headers=admin).json()
    assert activity[0]["action"] == "task_status_changed_by_vendor"

    open_tasks = client.get("/api/vendor-portal/tasks", headers=vendor_headers, params={"status": "TODO"}).json()
    assert [t["title"] for t in open_tasks] == ["Run circuits"]


def test_vendor_dashboard(client, admin, project, portal_vendor, vendor_headers, assigned):
    client.post("/api/contracts", headers=admin, json={
        "contract_number": "C-200", "vendor_id": portal_vendor["id"], "type": "LUMP_SUM",
        "total_sum": 8000, "start_date": "2026-01-01", "end_date": "2026-12-31",
    })
    body = client.get("/api/vendor-portal/dashboard", headers=vendor_headers).json()
    assert body["vendor"]["id"] == portal_vendor["id"]
    assert [p["id"] for p in body["projects"]] == [project["id"]]
    assert body["task_stats"]["total"] == 2
    assert body["contracts"][0]["contract_number"] == "C-200"
    assert body["contracts"][0]["balance"] == 8000
    assert body["average_rating"] is None

    contracts = client.get("/api/vendor-portal/contracts", headers=vendor_headers).json()
    assert [c["contract_number"] for c in contracts] == ["C-200"]


def test_logout_clears_cookie(client):
    res = client.post("/api/vendor-portal/logout")
    assert res.json() == {"ok": True}


def test_vendor_comments_on_assigned_tasks(client, admin, project, vendor_headers, assigned):
    tid = assigned["direct"]["id"]
    res = client.post(f"/api/vendor-portal/tasks/{tid}/comments", headers=vendor_headers,
                      json={"content": "Panel delivered"})
    assert res.status_code == 201
    comment = res.json()
    assert comment["is_vendor"] is True
    assert comment["author"]["last_name"] == "(Vendor)"

    staff_view = client.get(f"/api/tasks/{tid}/comments", headers=admin).json()
    assert [c["content"] for c in staff_view] == ["Panel delivered"]

    client.post(f"/api/tasks/{tid}/comments", headers=admin, json={"content": "Thanks", "parent_id": comment["id"]})
    thread = client.get(f"/api/vendor-portal/tasks/{tid}/comments", headers=vendor_headers).json()
    assert [r["content"] for r in thread[0]["replies"]] == ["Thanks"]

    res = client.get(f"/api/vendor-portal/tasks/{assigned['unrelated']['id']}/comments", headers=vendor_headers)
    assert res.status_code == 404

    activity = client.get(f"/api/projects/{project['id']}/activities", headers=admin).json()
    assert "comment_added_by_vendor" in [a["action"] for a in activity]
