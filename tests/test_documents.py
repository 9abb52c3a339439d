import os
import pytest


def _upload(client, headers, project_id, filename="site plan.pdf", content=b"%PDF-1.4 plan", **form):
    return client.post(
        f"/api/projects/{project_id}/documents", headers=headers,
        files={"file": (filename, content, "application/pdf")}, data=form,
    )


def test_upload_list_download_delete(client, admin, project, tmp_path):
    pid = project["id"]
    res = _upload(client, admin, pid)
    assert res.status_code == 201, res.text
    doc = res.json()
    assert doc["name"] == "site plan.pdf"
    assert doc["file_size"] == len(b"%PDF-1.4 plan")
    assert doc["url"].startswith(f"/uploads/projects/{pid}/")
    assert doc["url"].endswith("-site_plan.pdf")

    stored = tmp_path / "projects" / pid
    assert len(os.listdir(stored)) == 1

    listed = client.get(f"/api/projects/{pid}/documents", headers=admin).json()
    assert [d["id"] for d in listed] == [doc["id"]]

    download = client.get(f"/api/documents/{doc['id']}/download", headers=admin)
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 plan"

    assert client.delete(f"/api/documents/{doc['id']}", headers=admin).json() == {"ok": True}
    assert os.listdir(stored) == []


def test_upload_requires_file(client, admin, project):
    res = client.post(f"/api/projects/{project['id']}/documents", headers=admin, data={"name": "x"})
    assert res.status_code == 400
    assert res.json()["error"] == "No file provided"


def test_folders(client, admin, project):
    pid = project["id"]
    drawings = client.post(f"/api/projects/{pid}/folders", headers=admin, json={"name": "Drawings"}).json()
    assert drawings["color"] == "#6366f1"
    sub = client.post(f"/api/projects/{pid}/folders", headers=admin,
                      json={"name": "Electrical", "parent_id": drawings["id"]}).json()
    assert sub["parent_id"] == drawings["id"]

    doc = _upload(client, admin, pid, folder_id=sub["id"]).json()
    assert doc["folder_id"] == sub["id"]
    in_folder = client.get(f"/api/projects/{pid}/documents", headers=admin, params={"folder_id": sub["id"]}).json()
    assert len(in_folder) == 1

    res = client.delete(f"/api/folders/{drawings['id']}", headers=admin)
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot delete folder with documents or subfolders"

    res = client.patch(f"/api/folders/{sub['id']}", headers=admin, json={"parent_id": sub["id"]})
    assert res.json()["error"] == "Folder cannot be its own parent"


def test_document_rename_and_share(client, admin, project):
    doc = _upload(client, admin, project["id"]).json()
    updated = client.patch(f"/api/documents/{doc['id']}", headers=admin,
                           json={"name": "Final plan", "is_shared": True}).json()
    assert updated["name"] == "Final plan"
    assert updated["is_shared"] is True


def test_documents_are_tenant_scoped(client, admin, other_admin, project):
    doc = _upload(client, admin, project["id"]).json()
    assert client.get(f"/api/documents/{doc['id']}/download", headers=other_admin).status_code == 404
    assert client.delete(f"/api/documents/{doc['id']}", headers=other_admin).status_code == 404
    assert _upload(client, other_admin, project["id"]).status_code == 404


def _broken_activity_log(*args, **kwargs):
    raise RuntimeError("activity log unavailable")


def test_failed_upload_leaves_no_file(client, admin, project, tmp_path, monkeypatch):
    monkeypatch.setattr("app.api.documents.log_activity", _broken_activity_log)
    with pytest.raises(RuntimeError):
        _upload(client, admin, project["id"])
    stored = tmp_path / "projects" / project["id"]
    assert os.listdir(stored) == []


def test_failed_delete_keeps_file(client, admin, project, tmp_path, monkeypatch):
    doc = _upload(client, admin, project["id"]).json()
    monkeypatch.setattr("app.api.documents.log_activity", _broken_activity_log)
    with pytest.raises(RuntimeError):
        client.delete(f"/api/documents/{doc['id']}", headers=admin)
    stored = tmp_path / "projects" / project["id"]
    assert len(os.listdir(stored)) == 1
    assert client.get(f"/api/documents/{doc['id']}/download", headers=admin).status_code == 200
