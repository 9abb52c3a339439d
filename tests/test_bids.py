from datetime import datetime, timedelta
import pytest


@pytest.fixture
def bid_request(client, admin, project):
    deadline = (datetime.utcnow() + timedelta(days=10)).isoformat()
    res = client.post("/api/bid-requests", headers=admin, json={
        "title": "Roof replacement", "description": "Tear off and replace 30 squares",
        "deadline": deadline, "project_id": project["id"],
    })
    assert res.status_code == 201, res.text
    return res.json()


def _submit(client, token, **overrides):
    payload = {
        "company_name": "Peak Roofing", "contact_name": "Pat", "contact_email": "PAT@peak.test",
        "items": [
            {"description": "Shingles", "quantity": 30, "unit_price": 300},
            {"description": "Labour", "total": 6000},
            {"description": ""},
        ],
    }
    payload.update(overrides)
    return client.post(f"/api/bid/{token}", json=payload)


def test_create_bid_request(bid_request):
    assert len(bid_request["share_token"]) == 64
    assert bid_request["share_url"].endswith(f"/bid/{bid_request['share_token']}")
    assert bid_request["status"] == "OPEN"
    assert bid_request["bids"] == []


def test_bid_request_admin_only(client, staff):
    res = client.post("/api/bid-requests", headers=staff, json={"title": "x", "description": "y"})
    assert res.status_code == 403


def test_public_view_counts(client, admin, bid_request):
    token = bid_request["share_token"]
    first = client.get(f"/api/bid/{token}").json()
    assert first["title"] == "Roof replacement"
    assert first["company"]["name"] == "Acme Builders"
    assert first["days_remaining"] == 10
    assert "share_token" not in first
    client.get(f"/api/bid/{token}")
    assert client.get(f"/api/bid-requests/{bid_request['id']}", headers=admin).json()["view_count"] == 2


def test_public_submission_notifies_admins(client, admin, bid_request):
    res = _submit(client, bid_request["share_token"])
    assert res.status_code == 201
    assert res.json()["ok"] is True

    detail = client.get(f"/api/bid-requests/{bid_request['id']}", headers=admin).json()
    bid = detail["bids"][0]
    assert bid["contact_email"] == "pat@peak.test"
    assert bid["total_amount"] == 15000
    assert len(bid["items"]) == 2
    assert bid["status"] == "SUBMITTED"

    notes = client.get("/api/notifications", headers=admin).json()
    assert notes[0]["type"] == "bid_submitted"
    assert notes[0]["entity_id"] == res.json()["bid_id"]


def test_submission_requires_contact(client, bid_request):
    res = _submit(client, bid_request["share_token"], contact_email="")
    assert res.status_code == 400
    assert res.json()["error"] == "Company name, contact name and email are required"


def test_closed_or_expired_requests_reject_bids(client, admin, bid_request):
    token = bid_request["share_token"]
    client.patch(f"/api/bid-requests/{bid_request['id']}", headers=admin, json={"status": "CLOSED"})
    assert _submit(client, token).json()["error"] == "Bid request is closed"

    past = (datetime.utcnow() - timedelta(days=1)).isoformat()
    client.patch(f"/api/bid-requests/{bid_request['id']}", headers=admin, json={"status": "OPEN", "deadline": past})
    assert _submit(client, token).json()["error"] == "Bid deadline has passed"


def test_partial_day_counts_as_remaining(client, admin, bid_request):
    soon = (datetime.utcnow() + timedelta(hours=12)).isoformat()
    client.patch(f"/api/bid-requests/{bid_request['id']}", headers=admin, json={"deadline": soon})
    token = bid_request["share_token"]
    assert client.get(f"/api/bid/{token}").json()["days_remaining"] == 1
    assert _submit(client, token).status_code == 201


def test_unknown_token(client):
    assert client.get("/api/bid/deadbeef").status_code == 404


def test_convert_bid_to_task(client, admin, project, bid_request):
    bid_id = _submit(client, bid_request["share_token"]).json()["bid_id"]
    res = client.post(f"/api/bid-requests/{bid_request['id']}/convert", headers=admin, json={
        "bid_id": bid_id, "convert_to": "task", "project_id": project["id"],
    })
    assert res.status_code == 200
    body = res.json()
    assert body["result"]["type"] == "task"
    assert body["result"]["title"] == "Roof replacement - Peak Roofing"
    assert body["bid"]["status"] == "ACCEPTED"

    task = client.get(f"/api/tasks/{body['result']['id']}", headers=admin).json()
    assert task["estimated_cost"] == 15000
    assert client.get(f"/api/bid-requests/{bid_request['id']}", headers=admin).json()["status"] == "AWARDED"


def test_convert_bid_to_project(client, admin, bid_request):
    bid_id = _submit(client, bid_request["share_token"]).json()["bid_id"]
    url = f"/api/bid-requests/{bid_request['id']}/convert"

    res = client.post(url, headers=admin, json={"bid_id": bid_id, "convert_to": "project"})
    assert res.json()["error"] == "Valid stage_id is required"

    stage = client.get("/api/stages", headers=admin).json()[0]
    body = client.post(url, headers=admin, json={"bid_id": bid_id, "convert_to": "project", "stage_id": stage["id"]}).json()
    card = client.get(f"/api/cards/{body['result']['id']}", headers=admin).json()
    assert card["value"] == 15000
    assert card["contact_name"] == "Pat"


def test_bid_status_update(client, admin, bid_request):
    bid_id = _submit(client, bid_request["share_token"]).json()["bid_id"]
    res = client.patch(f"/api/bids/{bid_id}/status", headers=admin, json={"status": "UNDER_REVIEW"})
    assert res.json()["status"] == "UNDER_REVIEW"


def test_bid_requests_are_tenant_scoped(client, admin, other_admin, bid_request):
    assert client.get(f"/api/bid-requests/{bid_request['id']}", headers=other_admin).status_code == 404
    assert client.get("/api/bid-requests", headers=other_admin).json() == []
