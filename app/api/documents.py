import os
import re
import time
from fastapi import APIRouter, Depends, HTTPException, Query, File, UploadFile, Form, Body
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.core.config import UPLOAD_DIR, MAX_UPLOAD_BYTES
from app.core.logging import get_logger
from app.models.models import Document, Folder, Card, User
from app.api.common import get_company_card, user_brief
from app.services.activity_service import log_activity

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["documents"])

DEFAULT_FOLDER_COLOR = "#6366f1"


def serialize_folder(f: Folder) -> dict:
    return {
        "id": f.id,
        "card_id": f.card_id,
        "parent_id": f.parent_id,
        "name": f.name,
        "color": f.color,
        "document_count": len(f.documents),
        "created_at": str(f.created_at),
    }


def serialize_document(d: Document) -> dict:
    return {
        "id": d.id,
        "card_id": d.card_id,
        "folder_id": d.folder_id,
        "name": d.name,
        "file_name": d.file_name,
        "url": d.url,
        "mime_type": d.mime_type,
        "file_size": d.file_size,
        "is_shared": d.is_shared,
        "uploader": user_brief(d.uploader),
        "created_at": str(d.created_at),
        "updated_at": str(d.updated_at),
    }


def _sanitize(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def _get_folder(db: Session, user: User, folder_id: str) -> Folder:
    folder = db.query(Folder).join(Card, Folder.card_id == Card.id).filter(
        Folder.id == folder_id, Card.company_id == user.company_id
    ).first()
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


def _get_document(db: Session, user: User, document_id: str) -> Document:
    doc = db.query(Document).join(Card, Document.card_id == Card.id).filter(
        Document.id == document_id, Card.company_id == user.company_id
    ).first()
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def _check_folder_in_project(db: Session, folder_id, card_id: str, detail: str):
    if folder_id and not db.query(Folder).filter(Folder.id == folder_id, Folder.card_id == card_id).first():
        raise HTTPException(status_code=400, detail=detail)


@router.get("/projects/{project_id}/folders")
def list_folders(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    folders = db.query(Folder).filter(Folder.card_id == card.id).order_by(Folder.name).all()
    return [serialize_folder(f) for f in folders]


@router.post("/projects/{project_id}/folders", status_code=201)
def create_folder(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Folder name is required")
    _check_folder_in_project(db, data.get("parent_id"), card.id, "Invalid parent folder")

    folder = Folder(
        card_id=card.id, name=name, color=data.get("color") or DEFAULT_FOLDER_COLOR,
        parent_id=data.get("parent_id") or None,
    )
    db.add(folder)
    db.commit()
    db.refresh(folder)
    return serialize_folder(folder)


@router.patch("/folders/{folder_id}")
def update_folder(folder_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    folder = _get_folder(db, user, folder_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Folder name is required")
        folder.name = name
    if data.get("color"):
        folder.color = data["color"]
    if "parent_id" in data:
        if data["parent_id"] == folder.id:
            raise HTTPException(status_code=400, detail="Folder cannot be its own parent")
        _check_folder_in_project(db, data["parent_id"], folder.card_id, "Invalid parent folder")
        folder.parent_id = data["parent_id"] or None
    db.commit()
    db.refresh(folder)
    return serialize_folder(folder)


@router.delete("/folders/{folder_id}")
def delete_folder(folder_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    folder = _get_folder(db, user, folder_id)
    has_docs = db.query(Document).filter(Document.folder_id == folder.id).count()
    has_children = db.query(Folder).filter(Folder.parent_id == folder.id).count()
    if has_docs or has_children:
        raise HTTPException(status_code=400, detail="Cannot delete folder with documents or subfolders")
    db.delete(folder)
    db.commit()
    return {"ok": True}


@router.get("/projects/{project_id}/documents")
def list_documents(
    project_id: str,
    folder_id: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    card = get_company_card(db, user, project_id)
    q = db.query(Document).filter(Document.card_id == card.id)
    if folder_id:
        q = q.filter(Document.folder_id == folder_id)
    return [serialize_document(d) for d in q.order_by(Document.created_at.desc()).all()]


@router.post("/projects/{project_id}/documents", status_code=201)
def upload_document(
    project_id: str,
    file: UploadFile = File(None),
    name: str = Form(None),
    folder_id: str = Form(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    card = get_company_card(db, user, project_id)
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    _check_folder_in_project(db, folder_id, card.id, "Invalid folder")

    content = file.file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File too large (max 50MB)")

    project_dir = os.path.join(UPLOAD_DIR, "projects", card.id)
    os.makedirs(project_dir, exist_ok=True)
    stored_name = f"{int(time.time() * 1000)}-{_sanitize(file.filename)}"
    file_path = os.path.join(project_dir, stored_name)
    with open(file_path, "wb") as f:
        f.write(content)

    doc = Document(
        card_id=card.id, folder_id=folder_id or None, uploader_id=user.id,
        name=name or file.filename, file_name=file.filename,
        file_path=file_path, url=f"/uploads/projects/{card.id}/{stored_name}",
        mime_type=file.content_type, file_size=len(content), is_shared=False,
    )
    try:
        db.add(doc)
        db.flush()
        log_activity(
            db, user.company_id, user.id, "document_uploaded", "document",
            entity_id=doc.id, entity_name=doc.name,
            description=f"Uploaded document: {doc.name}", card_id=card.id,
        )
        db.commit()
    except Exception:
        db.rollback()
        os.remove(file_path)
        raise
    db.refresh(doc)
    return serialize_document(doc)


@router.get("/documents/{document_id}/download")
def download_document(document_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    doc = _get_document(db, user, document_id)
    if not os.path.exists(doc.file_path):
        raise HTTPException(status_code=404, detail="File not found on disk")
    return FileResponse(doc.file_path, filename=doc.file_name, media_type=doc.mime_type or "application/octet-stream")


@router.patch("/documents/{document_id}")
def update_document(document_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    doc = _get_document(db, user, document_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        doc.name = name
    if "is_shared" in data:
        doc.is_shared = bool(data["is_shared"])
    if "folder_id" in data:
        _check_folder_in_project(db, data["folder_id"], doc.card_id, "Invalid folder")
        doc.folder_id = data["folder_id"] or None
    db.commit()
    db.refresh(doc)
    return serialize_document(doc)


@router.delete("/documents/{document_id}")
def delete_document(document_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    doc = _get_document(db, user, document_id)
    file_path = doc.file_path
    log_activity(
        db, user.company_id, user.id, "document_deleted", "document",
        entity_id=doc.id, entity_name=doc.name, card_id=doc.card_id,
    )
    db.delete(doc)
    db.commit()
    try:
        os.remove(file_path)
    except FileNotFoundError:
        logger.warning(f"Document file already missing: {file_path}")
    return {"ok": True}
