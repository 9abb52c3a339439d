from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.models.models import Stage, Card, CardStatus, Priority, User
from app.api.common import parse_datetime, parse_enum, parse_number, parse_int, get_company_card, next_order, user_brief
from app.services.activity_service import log_activity

router = APIRouter(prefix="/api", tags=["pipeline"])

CARD_TEXT_FIELDS = ["description", "contact_name", "contact_email", "contact_phone"]


def serialize_card(c: Card) -> dict:
    return {
        "id": c.id,
        "stage_id": c.stage_id,
        "title": c.title,
        "description": c.description,
        "status": c.status.value,
        "priority": c.priority.value,
        "contact_name": c.contact_name,
        "contact_email": c.contact_email,
        "contact_phone": c.contact_phone,
        "value": c.value,
        "start_date": str(c.start_date) if c.start_date else None,
        "due_date": str(c.due_date) if c.due_date else None,
        "owner": user_brief(c.owner),
        "created_at": str(c.created_at),
        "updated_at": str(c.updated_at),
    }


def _serialize_stage(s: Stage, cards=None) -> dict:
    data = {"id": s.id, "name": s.name, "color": s.color, "order": s.order, "created_at": str(s.created_at)}
    if cards is not None:
        data["cards"] = [serialize_card(c) for c in cards]
    return data


def _get_stage(db: Session, user: User, stage_id: str) -> Stage:
    stage = db.query(Stage).filter(Stage.id == stage_id, Stage.company_id == user.company_id).first()
    if not stage:
        raise HTTPException(status_code=404, detail="Stage not found")
    return stage


def apply_card_fields(card: Card, data: dict):
    for field in CARD_TEXT_FIELDS:
        if field in data:
            setattr(card, field, data[field])
    if "priority" in data and data["priority"]:
        card.priority = parse_enum(Priority, data["priority"], "priority")
    if "value" in data:
        card.value = parse_number(data["value"], "value")
    if "start_date" in data:
        card.start_date = parse_datetime(data["start_date"], "start_date")
    if "due_date" in data:
        card.due_date = parse_datetime(data["due_date"], "due_date")


@router.get("/stages")
def list_stages(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stages = db.query(Stage).filter(Stage.company_id == user.company_id).order_by(Stage.order).all()
    result = []
    for s in stages:
        cards = db.query(Card).filter(
            Card.stage_id == s.id, Card.status == CardStatus.ACTIVE
        ).order_by(Card.created_at.desc()).all()
        result.append(_serialize_stage(s, cards))
    return result


@router.post("/stages", status_code=201)
def create_stage(data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name or not data.get("color"):
        raise HTTPException(status_code=400, detail="Name and color are required")
    stage = Stage(
        company_id=user.company_id, name=name, color=data["color"],
        order=next_order(db, Stage.order, Stage.company_id == user.company_id),
    )
    db.add(stage)
    db.commit()
    db.refresh(stage)
    return _serialize_stage(stage)


@router.put("/stages/{stage_id}")
def update_stage(stage_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    stage = _get_stage(db, user, stage_id)
    stage.name = name
    if data.get("color"):
        stage.color = data["color"]
    if data.get("order") not in (None, ""):
        stage.order = parse_int(data["order"], "order")
    db.commit()
    db.refresh(stage)
    return _serialize_stage(stage)


@router.delete("/stages/{stage_id}")
def delete_stage(stage_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    stage = _get_stage(db, user, stage_id)
    active = db.query(Card).filter(Card.stage_id == stage.id, Card.status == CardStatus.ACTIVE).count()
    if active:
        raise HTTPException(status_code=400, detail="Cannot delete stage with active cards. Move cards first.")
    db.delete(stage)
    db.commit()
    return {"ok": True}


@router.post("/cards", status_code=201)
def create_card(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    title = (data.get("title") or "").strip()
    if not title or not data.get("stage_id"):
        raise HTTPException(status_code=400, detail="Title and stage are required")
    stage = db.query(Stage).filter(Stage.id == data["stage_id"], Stage.company_id == user.company_id).first()
    if not stage:
        raise HTTPException(status_code=400, detail="Invalid stage")

    card = Card(company_id=user.company_id, stage_id=stage.id, owner_id=user.id, title=title,
                priority=Priority.MEDIUM, status=CardStatus.ACTIVE)
    apply_card_fields(card, data)
    db.add(card)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "card_created", "card",
        entity_id=card.id, entity_name=card.title,
        description=f"Created card in {stage.name}", card_id=card.id,
    )
    db.commit()
    db.refresh(card)
    return serialize_card(card)


@router.get("/cards/{card_id}")
def get_card(card_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_card(get_company_card(db, user, card_id, "Card not found"))


@router.patch("/cards/{card_id}")
def update_card(card_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, card_id, "Card not found")
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        card.title = title
    if "status" in data:
        card.status = parse_enum(CardStatus, data["status"])
    apply_card_fields(card, data)
    log_activity(
        db, user.company_id, user.id, "card_updated", "card",
        entity_id=card.id, entity_name=card.title, card_id=card.id,
    )
    db.commit()
    db.refresh(card)
    return serialize_card(card)


@router.delete("/cards/{card_id}")
def delete_card(card_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, card_id, "Card not found")
    db.delete(card)
    log_activity(
        db, user.company_id, user.id, "card_deleted", "card",
        entity_id=card_id, entity_name=card.title,
    )
    db.commit()
    return {"ok": True}


@router.patch("/cards/{card_id}/move")
def move_card(card_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not data.get("stage_id"):
        raise HTTPException(status_code=400, detail="Stage ID is required")
    card = get_company_card(db, user, card_id, "Card not found")
    stage = db.query(Stage).filter(Stage.id == data["stage_id"], Stage.company_id == user.company_id).first()
    if not stage:
        raise HTTPException(status_code=400, detail="Invalid stage")

    from_name = card.stage.name
    card.stage_id = stage.id
    log_activity(
        db, user.company_id, user.id, "card_moved", "card",
        entity_id=card.id, entity_name=card.title,
        description=f"Moved card from {from_name} to {stage.name}", card_id=card.id,
    )
    db.commit()
    db.refresh(card)
    return serialize_card(card)
