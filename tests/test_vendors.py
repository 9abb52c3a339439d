def test_vendor_requires_name(client, admin):
    res = client.post("/api/vendors", headers=admin, json={"email": "x@y.test"})
    assert res.status_code == 400
    assert res.json() == {"error": "Vendor name is required"}


def test_vendor_defaults(client, admin):
    v = client.post("/api/vendors", headers=admin, json={"name": "Plain Supply"}).json()
    assert v["type"] == "SUPPLIER"
    assert v["status"] == "PENDING_VERIFICATION"
    assert v["average_rating"] is None
    assert v["review_count"] == 0
    assert v["portal_enabled"] is False


def test_vendor_filters(client, admin, vendor):
    cat = client.post("/api/vendor-categories", headers=admin, json={"name": "Electrical"}).json()
    tag = client.post("/api/vendor-tags", headers=admin, json={"name": "Union"}).json()
    client.patch(f"/api/vendors/{vendor['id']}", headers=admin, json={"category_id": cat["id"], "tag_ids": [tag["id"]]})
    client.post("/api/vendors", headers=admin, json={"name": "Lumber Yard", "type": "SUPPLIER"})

    def names(**params):
        return [v["name"] for v in client.get("/api/vendors", headers=admin, params=params).json()]

    assert names() == ["Lumber Yard", "Ridge Electric"]
    assert names(search="ridge") == ["Ridge Electric"]
    assert names(category_id=cat["id"]) == ["Ridge Electric"]
    assert names(tag_ids=tag["id"]) == ["Ridge Electric"]
    assert names(type="supplier") == ["Lumber Yard"]
    assert names(status="VERIFIED") == ["Ridge Electric"]


def test_duplicate_tag_rejected(client, admin):
    client.post("/api/vendor-tags", headers=admin, json={"name": "Insured"})
    res = client.post("/api/vendor-tags", headers=admin, json={"name": "Insured"})
    assert res.status_code == 400
    assert res.json()["error"] == "Tag already exists"


def test_primary_contact_is_unique(client, admin, vendor):
    vid = vendor["id"]
    first = client.post(f"/api/vendors/{vid}/contacts", headers=admin, json={"name": "Ann", "is_primary": True}).json()
    second = client.post(f"/api/vendors/{vid}/contacts", headers=admin, json={"name": "Ben", "is_primary": True}).json()
    assert second["is_primary"] is True

    contacts = {c["id"]: c for c in client.get(f"/api/vendors/{vid}/contacts", headers=admin).json()}
    assert contacts[first["id"]]["is_primary"] is False

    client.patch(f"/api/vendors/{vid}/contacts/{first['id']}", headers=admin, json={"is_primary": True})
    contacts = {c["id"]: c for c in client.get(f"/api/vendors/{vid}/contacts", headers=admin).json()}
    assert contacts[first["id"]]["is_primary"] is True
    assert contacts[second["id"]]["is_primary"] is False


def test_reviews_and_score(client, admin, vendor, project):
    vid = vendor["id"]
    res = client.post(f"/api/vendors/{vid}/reviews", headers=admin, json={
        "quality": 5, "timeliness": 3, "project_id": project["id"], "comments": "Solid work",
    })
    assert res.status_code == 201
    review = res.json()
    assert review["overall_rating"] == 4.1
    assert review["project_title"] == "Maple Ave Addition"

    client.post(f"/api/vendors/{vid}/reviews", headers=admin, json={"quality": 4, "timeliness": 4.2})

    score = client.get(f"/api/vendors/{vid}/score", headers=admin).json()
    assert score["review_count"] == 2
    assert score["average_rating"] == 4.1
    assert score["dimensions"]["quality"] == 4.5
    assert score["dimensions"]["timeliness"] == 3.6
    assert score["dimensions"]["documentation"] is None
    assert abs(sum(score["weights"].values()) - 1.0) < 1e-9

    rated = client.get("/api/vendors", headers=admin, params={"min_rating": 4.1}).json()
    assert [v["id"] for v in rated] == [vid]
    assert client.get("/api/vendors", headers=admin, params={"min_rating": 4.2}).json() == []


def test_review_validation(client, admin, vendor):
    vid = vendor["id"]
    res = client.post(f"/api/vendors/{vid}/reviews", headers=admin, json={"quality": 6})
    assert res.status_code == 400
    assert res.json()["error"] == "quality must be between 1 and 5"

    res = client.post(f"/api/vendors/{vid}/reviews", headers=admin, json={"comments": "meh"})
    assert res.json()["error"] == "At least one rating is required"

    res = client.post(f"/api/vendors/{vid}/reviews", headers=admin, json={"quality": 4, "project_id": "nope"})
    assert res.json()["error"] == "Invalid project"


def test_delete_vendor_without_links_is_hard_delete(client, admin, vendor):
    res = client.delete(f"/api/vendors/{vendor['id']}", headers=admin).json()
    assert res == {"ok": True, "deactivated": False}
    assert client.get(f"/api/vendors/{vendor['id']}", headers=admin).status_code == 404


def test_delete_vendor_with_links_deactivates(client, admin, vendor, project):
    client.post(f"/api/projects/{project['id']}/tasks", headers=admin, json={"title": "Wiring", "vendor_id": vendor["id"]})
    res = client.delete(f"/api/vendors/{vendor['id']}", headers=admin).json()
    assert res["deactivated"] is True

    assert client.get("/api/vendors", headers=admin).json() == []
    listed = client.get("/api/vendors", headers=admin, params={"include_inactive": True}).json()
    assert listed[0]["is_active"] is False
    assert listed[0]["total_projects"] == 1


def test_portal_access(client, admin, staff, vendor):
    vid = vendor["id"]
    res = client.post(f"/api/vendors/{vid}/portal-access", headers=admin, json={"email": "ridge@portal.test", "password": "short"})
    assert res.json()["error"] == "Password must be at least 8 characters"

    res = client.post(f"/api/vendors/{vid}/portal-access", headers=staff, json={"email": "a@b.test", "password": "longenough"})
    assert res.status_code == 403

    res = client.post(f"/api/vendors/{vid}/portal-access", headers=admin, json={"email": "Ridge@Portal.test", "password": "longenough"})
    assert res.json() == {"ok": True, "portal_email": "ridge@portal.test", "portal_enabled": True}

    other = client.post("/api/vendors", headers=admin, json={"name": "Second"}).json()
    res = client.post(f"/api/vendors/{other['id']}/portal-access", headers=admin, json={"email": "ridge@portal.test", "password": "longenough"})
    assert res.json()["error"] == "Email already in use by another vendor"

    assert client.delete(f"/api/vendors/{vid}/portal-access", headers=admin).json() == {"ok": True, "portal_enabled": False}
    assert client.get(f"/api/vendors/{vid}", headers=admin).json()["portal_email"] is None


def test_vendors_are_tenant_scoped(client, admin, other_admin, vendor):
    assert client.get(f"/api/vendors/{vendor['id']}", headers=other_admin).status_code == 404
    assert client.get("/api/vendors", headers=other_admin).json() == []
    tag = client.post("/api/vendor-tags", headers=other_admin, json={"name": "Theirs"}).json()
    res = client.patch(f"/api/vendors/{vendor['id']}", headers=admin, json={"tag_ids": [tag["id"]]})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid tag"
