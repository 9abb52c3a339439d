from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.core.currency import format_currency
from app.models.models import Card, CardStatus, Stage, User, Activity, Company
from app.api.common import parse_enum, get_company_card
from app.api.pipeline import serialize_card, apply_card_fields
from app.services.activity_service import log_activity, serialize_activity
from app.services.metrics_service import project_metrics

router = APIRouter(prefix="/api/projects", tags=["projects"])

PROJECTS_STAGE_NAME = "Projects"
PROJECTS_STAGE_COLOR = "#10b981"


def _serialize_project(card: Card, currency: str) -> dict:
    data = serialize_card(card)
    metrics = project_metrics(card)
    data.update(metrics)
    data["stage_name"] = card.stage.name if card.stage else None
    data["formatted_budget"] = format_currency(metrics["total_budget"], currency)
    data["formatted_profit"] = format_currency(metrics["profit"], currency)
    return data


def _company_currency(db: Session, user: User) -> str:
    return db.query(Company.currency).filter(Company.id == user.company_id).scalar() or "USD"


def _projects_stage(db: Session, company_id: str) -> Stage:
    stage = db.query(Stage).filter(Stage.company_id == company_id, Stage.name == PROJECTS_STAGE_NAME).first()
    if stage:
        return stage
    max_order = db.query(func.max(Stage.order)).filter(Stage.company_id == company_id).scalar()
    stage = Stage(
        company_id=company_id, name=PROJECTS_STAGE_NAME, color=PROJECTS_STAGE_COLOR,
        order=(max_order + 1) if max_order is not None else 0,
    )
    db.add(stage)
    db.flush()
    return stage


@router.get("")
def list_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cards = db.query(Card).filter(
        Card.company_id == user.company_id, Card.status != CardStatus.CANCELLED
    ).order_by(Card.updated_at.desc()).all()
    currency = _company_currency(db, user)
    return [_serialize_project(c, currency) for c in cards]


@router.post("", status_code=201)
def create_project(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    stage = _projects_stage(db, user.company_id)
    card = Card(
        company_id=user.company_id, stage_id=stage.id, owner_id=user.id,
        title=title, status=CardStatus.ACTIVE,
    )
    apply_card_fields(card, data)
    db.add(card)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "project_created", "project",
        entity_id=card.id, entity_name=card.title,
        description=f"Created project {card.title}", card_id=card.id,
    )
    db.commit()
    db.refresh(card)
    return _serialize_project(card, _company_currency(db, user))


@router.get("/{project_id}")
def get_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    from app.api.tasks import serialize_task, sort_tasks, serialize_category
    from app.api.budget import serialize_budget_item
    from app.api.estimates import serialize_estimate
    from app.api.milestones import serialize_milestone
    from app.api.documents import serialize_document, serialize_folder

    card = get_company_card(db, user, project_id)
    currency = _company_currency(db, user)
    activities = db.query(Activity).filter(
        Activity.card_id == card.id
    ).order_by(Activity.created_at.desc()).limit(50).all()

    data = _serialize_project(card, currency)
    data.update({
        "categories": [serialize_category(c) for c in sorted(card.categories, key=lambda c: c.order)],
        "tasks": [serialize_task(t) for t in sort_tasks(card.tasks)],
        "budget_items": [serialize_budget_item(b) for b in card.budget_items],
        "estimates": [serialize_estimate(e) for e in card.estimates],
        "milestones": [serialize_milestone(m) for m in sorted(card.milestones, key=lambda m: m.order)],
        "folders": [serialize_folder(f) for f in card.folders],
        "documents": [serialize_document(d) for d in sorted(card.documents, key=lambda d: d.created_at, reverse=True)],
        "activities": [serialize_activity(a) for a in activities],
    })
    return data


@router.patch("/{project_id}")
def update_project(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        card.title = title
    if "status" in data:
        card.status = parse_enum(CardStatus, data["status"])
    apply_card_fields(card, data)
    log_activity(
        db, user.company_id, user.id, "project_updated", "project",
        entity_id=card.id, entity_name=card.title, card_id=card.id,
    )
    db.commit()
    db.refresh(card)
    return _serialize_project(card, _company_currency(db, user))


@router.delete("/{project_id}")
def delete_project(project_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    title = card.title
    db.delete(card)
    log_activity(db, user.company_id, user.id, "project_deleted", "project", entity_id=project_id, entity_name=title)
    db.commit()
    return {"ok": True}
