from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import (
    ProjectMilestone, MilestoneStatus, MilestoneChecklistItem, ChecklistStatus,
    Card, User, Vendor
)
from app.api.common import parse_datetime, parse_enum, parse_number, parse_int, get_company_card, next_order, user_brief
from app.services.activity_service import log_activity
from app.services.metrics_service import milestone_progress

router = APIRouter(prefix="/api", tags=["milestones"])


def serialize_checklist_item(i: MilestoneChecklistItem) -> dict:
    return {
        "id": i.id,
        "milestone_id": i.milestone_id,
        "title": i.title,
        "description": i.description,
        "status": i.status.value,
        "due_date": str(i.due_date) if i.due_date else None,
        "order": i.order,
        "completed_at": str(i.completed_at) if i.completed_at else None,
        "completed_by": user_brief(i.completed_by),
    }


def serialize_milestone(m: ProjectMilestone, with_checklist: bool = False) -> dict:
    data = {
        "id": m.id,
        "card_id": m.card_id,
        "title": m.title,
        "description": m.description,
        "amount": m.amount,
        "target_date": str(m.target_date) if m.target_date else None,
        "status": m.status.value,
        "order": m.order,
        "completed_at": str(m.completed_at) if m.completed_at else None,
        "vendor": {"id": m.vendor.id, "name": m.vendor.name} if m.vendor else None,
        "created_at": str(m.created_at),
    }
    data.update(milestone_progress(m))
    if with_checklist:
        data["checklist"] = [serialize_checklist_item(i) for i in m.checklist_items]
    return data


def _get_milestone(db: Session, user: User, milestone_id: str) -> ProjectMilestone:
    m = db.query(ProjectMilestone).join(Card, ProjectMilestone.card_id == Card.id).filter(
        ProjectMilestone.id == milestone_id, Card.company_id == user.company_id
    ).first()
    if not m:
        raise HTTPException(status_code=404, detail="Milestone not found")
    return m


def _check_vendor(db: Session, user: User, vendor_id):
    if vendor_id and not db.query(Vendor).filter(Vendor.id == vendor_id, Vendor.company_id == user.company_id).first():
        raise HTTPException(status_code=400, detail="Invalid vendor")


@router.get("/projects/{project_id}/milestones")
def list_milestones(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    milestones = db.query(ProjectMilestone).filter(
        ProjectMilestone.card_id == card.id
    ).order_by(ProjectMilestone.order).all()
    return [serialize_milestone(m, with_checklist=True) for m in milestones]


@router.post("/projects/{project_id}/milestones", status_code=201)
def create_milestone(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    _check_vendor(db, user, data.get("vendor_id"))

    order = parse_int(data.get("order"), "order")
    if order is None:
        order = next_order(db, ProjectMilestone.order, ProjectMilestone.card_id == card.id)
    m = ProjectMilestone(
        card_id=card.id, title=title,
        description=data.get("description"),
        amount=parse_number(data.get("amount"), "amount"),
        target_date=parse_datetime(data.get("target_date"), "target_date"),
        vendor_id=data.get("vendor_id") or None,
        status=MilestoneStatus.PENDING,
        order=order,
    )
    db.add(m)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "milestone_created", "milestone",
        entity_id=m.id, entity_name=m.title, card_id=card.id,
    )
    db.commit()
    db.refresh(m)
    return serialize_milestone(m, with_checklist=True)


@router.get("/milestones/{milestone_id}")
def get_milestone(milestone_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    data = serialize_milestone(m, with_checklist=True)
    from app.api.tasks import serialize_task, sort_tasks
    data["tasks"] = [serialize_task(t) for t in sort_tasks(m.tasks)]
    return data


@router.patch("/milestones/{milestone_id}")
def update_milestone(milestone_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        m.title = title
    if "description" in data:
        m.description = data["description"]
    if "amount" in data:
        m.amount = parse_number(data["amount"], "amount")
    if "target_date" in data:
        m.target_date = parse_datetime(data["target_date"], "target_date")
    if "vendor_id" in data:
        _check_vendor(db, user, data["vendor_id"])
        m.vendor_id = data["vendor_id"] or None
    if data.get("order") not in (None, ""):
        m.order = parse_int(data["order"], "order")
    if data.get("status"):
        status = parse_enum(MilestoneStatus, data["status"])
        if status == MilestoneStatus.COMPLETED and m.status != MilestoneStatus.COMPLETED:
            m.completed_at = datetime.utcnow()
        elif status != MilestoneStatus.COMPLETED:
            m.completed_at = None
        m.status = status
    log_activity(
        db, user.company_id, user.id, "milestone_updated", "milestone",
        entity_id=m.id, entity_name=m.title, card_id=m.card_id,
    )
    db.commit()
    db.refresh(m)
    return serialize_milestone(m, with_checklist=True)


@router.delete("/milestones/{milestone_id}")
def delete_milestone(milestone_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    for task in m.tasks:
        task.milestone_id = None
    log_activity(
        db, user.company_id, user.id, "milestone_deleted", "milestone",
        entity_id=m.id, entity_name=m.title, card_id=m.card_id,
    )
    db.delete(m)
    db.commit()
    return {"ok": True}


@router.get("/milestones/{milestone_id}/checklist")
def list_checklist(milestone_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    return [serialize_checklist_item(i) for i in m.checklist_items]


@router.post("/milestones/{milestone_id}/checklist", status_code=201)
def create_checklist_item(milestone_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    order = parse_int(data.get("order"), "order")
    if order is None:
        order = next_order(db, MilestoneChecklistItem.order, MilestoneChecklistItem.milestone_id == m.id)
    item = MilestoneChecklistItem(
        milestone_id=m.id, title=title,
        description=(data.get("description") or "").strip() or None,
        due_date=parse_datetime(data.get("due_date"), "due_date"),
        order=order,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return serialize_checklist_item(item)


def _get_checklist_item(db: Session, m: ProjectMilestone, item_id: str) -> MilestoneChecklistItem:
    item = db.query(MilestoneChecklistItem).filter(
        MilestoneChecklistItem.id == item_id, MilestoneChecklistItem.milestone_id == m.id
    ).first()
    if not item:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return item


@router.patch("/milestones/{milestone_id}/checklist/{item_id}")
def update_checklist_item(
    milestone_id: str, item_id: str, data: dict = Body(...),
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    m = _get_milestone(db, user, milestone_id)
    item = _get_checklist_item(db, m, item_id)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        item.title = title
    if "description" in data:
        item.description = (data["description"] or "").strip() or None
    if "due_date" in data:
        item.due_date = parse_datetime(data["due_date"], "due_date")
    if data.get("order") not in (None, ""):
        item.order = parse_int(data["order"], "order")
    if data.get("status"):
        status = parse_enum(ChecklistStatus, data["status"])
        if status == ChecklistStatus.COMPLETED and item.status != ChecklistStatus.COMPLETED:
            item.completed_at = datetime.utcnow()
            item.completed_by_id = user.id
        elif status != ChecklistStatus.COMPLETED and item.status == ChecklistStatus.COMPLETED:
            item.completed_at = None
            item.completed_by_id = None
        item.status = status
    db.commit()
    db.refresh(item)
    return serialize_checklist_item(item)


@router.delete("/milestones/{milestone_id}/checklist/{item_id}")
def delete_checklist_item(milestone_id: str, item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_milestone(db, user, milestone_id)
    item = _get_checklist_item(db, m, item_id)
    db.delete(item)
    db.commit()
    return {"ok": True}
