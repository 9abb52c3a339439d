from datetime import datetime, timedelta
from app.models.models import TeamInvite


def test_company_settings_roundtrip(client, admin):
    res = client.patch("/api/company/settings", headers=admin, json={"currency": "eur", "city": "Berlin"})
    assert res.status_code == 200
    assert res.json()["currency"] == "EUR"
    assert res.json()["city"] == "Berlin"
    assert client.get("/api/company/settings", headers=admin).json()["currency"] == "EUR"


def test_company_settings_rejects_unknown_currency(client, admin):
    res = client.patch("/api/company/settings", headers=admin, json={"currency": "XYZ"})
    assert res.status_code == 400
    assert res.json()["error"] == "Unsupported currency"


def test_company_settings_require_admin(client, staff):
    res = client.patch("/api/company/settings", headers=staff, json={"name": "Hijacked"})
    assert res.status_code == 403
    assert res.json() == {"error": "Forbidden"}


def test_currencies_list(client):
    codes = [c["code"] for c in client.get("/api/currencies").json()]
    assert {"USD", "EUR", "GBP", "NGN"} <= set(codes)


def test_config_exposes_currencies(client):
    body = client.get("/api/config").json()
    assert body["app_name"]
    assert any(c["code"] == "USD" for c in body["currencies"])


def test_team_management(client, admin, staff):
    users = client.get("/api/users", headers=admin).json()
    assert {u["email"] for u in users} == {"owner@acme.test", "sam@acme.test"}
    assert all("hashed_password" not in u for u in users)

    res = client.post("/api/users", headers=staff, json={
        "email": "x@acme.test", "password": "pw", "first_name": "X", "last_name": "Y",
    })
    assert res.status_code == 403


def test_admin_cannot_demote_self(client, admin, admin_user):
    res = client.patch(f"/api/users/{admin_user['id']}", headers=admin, json={"role": "STAFF"})
    assert res.status_code == 400
    assert res.json()["error"] == "You cannot demote or deactivate yourself"

    res = client.patch(f"/api/users/{admin_user['id']}", headers=admin, json={"role": "staff"})
    assert res.status_code == 400


def test_admin_can_resend_own_role_in_any_case(client, admin, admin_user):
    res = client.patch(f"/api/users/{admin_user['id']}", headers=admin, json={"role": "admin", "first_name": "Olivia"})
    assert res.status_code == 200
    assert res.json()["role"] == "ADMIN"
    assert res.json()["first_name"] == "Olivia"


def test_users_are_scoped_to_company(client, admin, other_admin):
    emails = {u["email"] for u in client.get("/api/users", headers=other_admin).json()}
    assert emails == {"boss@rival.test"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def _invite(client, headers, **fields):
    payload = {"email": "Nia@Acme.test", "first_name": "Nia", "last_name": "New", "role": "staff", **fields}
    return client.post("/api/team/invites", headers=headers, json=payload)


def test_invite_and_accept(client, admin):
    res = _invite(client, admin)
    assert res.status_code == 201
    body = res.json()
    token = body["invite"]["token"]
    assert body["invite"]["email"] == "nia@acme.test"
    assert body["invite"]["role"] == "STAFF"
    assert body["invite_url"].endswith(f"/invite/{token}")

    public = client.get(f"/api/invites/{token}").json()["invite"]
    assert public["company_name"] == "Acme Builders"
    assert public["invited_by"] == "Olive Owner"

    res = client.post(f"/api/invites/{token}/accept", json={"password": "abc"})
    assert res.status_code == 400
    assert res.json()["error"] == "Password must be at least 6 characters long"

    res = client.post(f"/api/invites/{token}/accept", json={"password": "welcome1"})
    assert res.status_code == 201
    assert res.json()["user"]["role"] == "STAFF"

    login = client.post("/api/auth/login", json={"email": "nia@acme.test", "password": "welcome1"})
    client.cookies.clear()
    assert login.status_code == 200
    assert login.json()["user"]["company_id"] == res.json()["user"]["company_id"]

    res = client.get(f"/api/invites/{token}")
    assert res.status_code == 404
    assert res.json()["error"] == "Invalid or expired invitation"

    actions = [a["action"] for a in client.get("/api/activities", headers=admin).json()]
    assert {"user_invited", "user_joined"} <= set(actions)


def test_repeat_invite_reuses_pending_token(client, admin):
    first = _invite(client, admin).json()
    again = _invite(client, admin)
    assert again.status_code == 200
    assert again.json()["invite"]["token"] == first["invite"]["token"]
    assert len(client.get("/api/team/invites", headers=admin).json()) == 1


def test_invite_rejections(client, admin, staff):
    res = _invite(client, admin, email="sam@acme.test")
    assert res.status_code == 400
    assert res.json()["error"] == "User with this email already exists"

    res = _invite(client, admin, first_name="")
    assert res.status_code == 400
    assert res.json()["error"] == "Missing required fields"

    assert _invite(client, staff).status_code == 403


def test_expired_invite_cannot_be_used(client, admin, db):
    token = _invite(client, admin).json()["invite"]["token"]
    db.query(TeamInvite).filter(TeamInvite.token == token).update(
        {TeamInvite.expires_at: datetime.utcnow() - timedelta(hours=1)}
    )
    db.commit()
    res = client.post(f"/api/invites/{token}/accept", json={"password": "welcome1"})
    assert res.status_code == 404
