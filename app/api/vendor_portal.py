from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Response, Body
from sqlalchemy.orm import Session
from sqlalchemy import or_
from app.db.session import get_db
from app.core.auth import verify_password, create_vendor_token, get_current_vendor
from app.core.config import VENDOR_COOKIE_NAME, ACCESS_TOKEN_EXPIRE_MINUTES
from app.core.logging import get_logger, log_security_event
from app.models.models import (
    Vendor, VendorStatus, Task, TaskStatus, ProjectMilestone, Card, VendorContract, VendorReview
)
from app.schemas.schemas import LoginRequest, VendorAuthResponse, VendorPortalProfile
from app.api.common import parse_enum, iso
from app.api.comments import add_comment, task_comments, serialize_comment
from app.services.activity_service import log_activity
from app.services.metrics_service import milestone_progress, contract_summary, average_rating

logger = get_logger(__name__)

router = APIRouter(prefix="/api/vendor-portal", tags=["vendor_portal"])

BLOCKED_STATUSES = (VendorStatus.BLACKLISTED, VendorStatus.SUSPENDED)
VENDOR_TASK_STATUSES = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)


def _profile(v: Vendor) -> VendorPortalProfile:
    return VendorPortalProfile(
        id=v.id, name=v.name, email=v.email, portal_email=v.portal_email, phone=v.phone,
        type=v.type.value, status=v.status.value, company_id=v.company_id,
        company_name=v.company.name if v.company else None,
    )


def _vendor_tasks_query(db: Session, v: Vendor):
    """Tasks assigned to the vendor directly or through one of its milestones."""
    milestone_ids = db.query(ProjectMilestone.id).filter(ProjectMilestone.vendor_id == v.id)
    return db.query(Task).join(Card, Task.card_id == Card.id).filter(
        Card.company_id == v.company_id,
        or_(Task.vendor_id == v.id, Task.milestone_id.in_(milestone_ids)),
    )


def _serialize_task(t: Task) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "status": t.status.value,
        "priority": t.priority.value,
        "start_date": iso(t.start_date),
        "due_date": iso(t.due_date),
        "completed_at": iso(t.completed_at),
        "project": {"id": t.card.id, "title": t.card.title},
        "milestone": {"id": t.milestone.id, "title": t.milestone.title} if t.milestone else None,
    }


def _serialize_contract(c: VendorContract) -> dict:
    summary = contract_summary(c)
    return {
        "id": c.id,
        "contract_number": c.contract_number,
        "title": c.title,
        "type": c.type.value,
        "status": c.status.value,
        "start_date": str(c.start_date),
        "end_date": str(c.end_date),
        "original_value": summary["original_value"],
        "current_value": summary["current_value"],
        "total_paid": summary["total_paid"],
        "balance": summary["balance"],
        "projects": [{"id": p.id, "title": p.title} for p in c.projects],
    }


@router.post("/login", response_model=VendorAuthResponse)
def vendor_login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    vendor = db.query(Vendor).filter(Vendor.portal_email == data.email.strip().lower()).first()
    if not vendor:
        log_security_event("vendor_failed_login", {"email": data.email}, logger)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not vendor.portal_password_hash or not vendor.portal_enabled:
        raise HTTPException(status_code=401, detail="Portal access not configured. Please contact the company.")
    if vendor.status in BLOCKED_STATUSES:
        log_security_event("vendor_blocked_login", {"vendor_id": vendor.id}, logger)
        raise HTTPException(status_code=403, detail=f"Vendor account is {vendor.status.value.lower()}")
    if not vendor.is_active:
        raise HTTPException(status_code=401, detail="Vendor account is inactive")
    if not verify_password(data.password, vendor.portal_password_hash):
        log_security_event("vendor_failed_login", {"vendor_id": vendor.id}, logger)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    vendor.last_portal_login = datetime.utcnow()
    db.commit()
    db.refresh(vendor)

    token = create_vendor_token(vendor)
    response.set_cookie(
        VENDOR_COOKIE_NAME, token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True, samesite="lax",
    )
    return {"token": token, "vendor": _profile(vendor)}


@router.post("/logout")
def vendor_logout(response: Response):
    response.delete_cookie(VENDOR_COOKIE_NAME)
    return {"ok": True}


@router.get("/me", response_model=VendorPortalProfile)
def vendor_me(vendor: Vendor = Depends(get_current_vendor)):
    return _profile(vendor)


@router.get("/dashboard")
def vendor_dashboard(vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    tasks = _vendor_tasks_query(db, vendor).order_by(Task.updated_at.desc()).all()
    milestones = db.query(ProjectMilestone).join(Card, ProjectMilestone.card_id == Card.id).filter(
        ProjectMilestone.vendor_id == vendor.id, Card.company_id == vendor.company_id
    ).all()
    contracts = db.query(VendorContract).filter(
        VendorContract.vendor_id == vendor.id, VendorContract.company_id == vendor.company_id
    ).order_by(VendorContract.created_at.desc()).all()
    reviews = db.query(VendorReview).filter(
        VendorReview.vendor_id == vendor.id
    ).order_by(VendorReview.created_at.desc()).all()

    projects = {}
    for card in [t.card for t in tasks] + [m.card for m in milestones]:
        projects.setdefault(card.id, {"id": card.id, "title": card.title, "status": card.status.value})

    open_statuses = (TaskStatus.TODO, TaskStatus.IN_PROGRESS)
    return {
        "vendor": _profile(vendor).model_dump(),
        "projects": list(projects.values()),
        "recent_tasks": [_serialize_task(t) for t in tasks[:10]],
        "contracts": [_serialize_contract(c) for c in contracts],
        "reviews": [{
            "id": r.id, "overall_rating": r.overall_rating, "comments": r.comments,
            "project_title": r.card.title if r.card else None, "created_at": str(r.created_at),
        } for r in reviews[:5]],
        "average_rating": average_rating(reviews),
        "task_stats": {
            "total": len(tasks),
            "completed": len([t for t in tasks if t.status == TaskStatus.COMPLETED]),
            "in_progress": len([t for t in tasks if t.status == TaskStatus.IN_PROGRESS]),
            "overdue": len([t for t in tasks if t.due_date and t.due_date < now and t.status in open_statuses]),
        },
    }


@router.get("/tasks")
def vendor_tasks(
    status: str = Query(None),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    q = _vendor_tasks_query(db, vendor)
    if status:
        q = q.filter(Task.status == parse_enum(TaskStatus, status))
    return [_serialize_task(t) for t in q.order_by(Task.due_date.is_(None), Task.due_date).all()]


@router.patch("/tasks/{task_id}")
def vendor_update_task(task_id: str, data: dict = Body(...), vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    task = _vendor_task(db, vendor, task_id)

    extra = set(data) - {"status"}
    if extra or not data.get("status"):
        raise HTTPException(status_code=400, detail="Only status can be updated")
    status = parse_enum(TaskStatus, data["status"])
    if status not in VENDOR_TASK_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status. Must be one of: TODO, IN_PROGRESS, COMPLETED")

    previous = task.status
    if status == TaskStatus.COMPLETED and previous != TaskStatus.COMPLETED:
        task.completed_at = datetime.utcnow()
    elif status != TaskStatus.COMPLETED:
        task.completed_at = None
    task.status = status
    log_activity(
        db, vendor.company_id, None, "task_status_changed_by_vendor", "task",
        entity_id=task.id, entity_name=task.title,
        description=f"{vendor.name} changed status from {previous.value} to {status.value}",
        card_id=task.card_id,
    )
    db.commit()
    db.refresh(task)
    return _serialize_task(task)


def _vendor_task(db: Session, vendor: Vendor, task_id: str) -> Task:
    task = _vendor_tasks_query(db, vendor).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/tasks/{task_id}/comments")
def vendor_task_comments(task_id: str, vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    return task_comments(db, _vendor_task(db, vendor, task_id))


@router.post("/tasks/{task_id}/comments", status_code=201)
def vendor_add_comment(task_id: str, data: dict = Body(...), vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    task = _vendor_task(db, vendor, task_id)
    comment = add_comment(db, task, data, vendor=vendor)
    log_activity(
        db, vendor.company_id, None, "comment_added_by_vendor", "task",
        entity_id=task.id, entity_name=task.title,
        description=f"{vendor.name} commented on task: {task.title}", card_id=task.card_id,
    )
    db.commit()
    db.refresh(comment)
    return serialize_comment(comment)


@router.get("/milestones")
def vendor_milestones(vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    milestones = db.query(ProjectMilestone).join(Card, ProjectMilestone.card_id == Card.id).filter(
        ProjectMilestone.vendor_id == vendor.id, Card.company_id == vendor.company_id
    ).order_by(ProjectMilestone.target_date).all()
    result = []
    for m in milestones:
        data = {
            "id": m.id,
            "title": m.title,
            "description": m.description,
            "amount": m.amount,
            "target_date": iso(m.target_date),
            "status": m.status.value,
            "project": {"id": m.card.id, "title": m.card.title},
        }
        data.update(milestone_progress(m))
        result.append(data)
    return result


@router.get("/contracts")
def vendor_contracts(vendor: Vendor = Depends(get_current_vendor), db: Session = Depends(get_db)):
    contracts = db.query(VendorContract).filter(
        VendorContract.vendor_id == vendor.id, VendorContract.company_id == vendor.company_id
    ).order_by(VendorContract.created_at.desc()).all()
    return [_serialize_contract(c) for c in contracts]
