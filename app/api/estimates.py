from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import Estimate, EstimateItem, EstimateStatus, User
from app.api.common import parse_datetime, parse_enum, parse_number, get_company_card
from app.services.activity_service import log_activity

router = APIRouter(prefix="/api", tags=["estimates"])

STATUS_STAMPS = {
    EstimateStatus.SENT: "sent_at",
    EstimateStatus.VIEWED: "viewed_at",
    EstimateStatus.ACCEPTED: "accepted_at",
    EstimateStatus.REJECTED: "rejected_at",
}


def serialize_estimate(e: Estimate) -> dict:
    return {
        "id": e.id,
        "card_id": e.card_id,
        "number": e.number,
        "title": e.title,
        "description": e.description,
        "status": e.status.value,
        "subtotal": e.subtotal,
        "tax_rate": e.tax_rate,
        "tax": e.tax,
        "total": e.total,
        "valid_until": str(e.valid_until) if e.valid_until else None,
        "notes": e.notes,
        "sent_at": str(e.sent_at) if e.sent_at else None,
        "viewed_at": str(e.viewed_at) if e.viewed_at else None,
        "accepted_at": str(e.accepted_at) if e.accepted_at else None,
        "rejected_at": str(e.rejected_at) if e.rejected_at else None,
        "items": [{
            "id": i.id, "name": i.name, "description": i.description,
            "quantity": i.quantity, "unit": i.unit, "unit_price": i.unit_price,
            "total": i.total, "order": i.order,
        } for i in e.items],
        "created_at": str(e.created_at),
    }


def _build_items(raw_items) -> list[EstimateItem]:
    items = []
    for idx, raw in enumerate(raw_items or []):
        name = (raw.get("name") or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Each item needs a name")
        qty = parse_number(raw.get("quantity"), "quantity", 1)
        price = parse_number(raw.get("unit_price"), "unit_price", 0)
        items.append(EstimateItem(
            name=name, description=raw.get("description"), quantity=qty,
            unit=raw.get("unit"), unit_price=price, total=qty * price, order=idx,
        ))
    return items


def _recalculate(e: Estimate):
    e.subtotal = sum(i.total for i in e.items)
    e.tax = e.subtotal * (e.tax_rate or 0) / 100
    e.total = e.subtotal + e.tax


def _get_estimate(db: Session, user: User, estimate_id: str) -> Estimate:
    e = db.query(Estimate).filter(Estimate.id == estimate_id, Estimate.company_id == user.company_id).first()
    if not e:
        raise HTTPException(status_code=404, detail="Estimate not found")
    return e


@router.get("/projects/{project_id}/estimates")
def list_estimates(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    estimates = db.query(Estimate).filter(Estimate.card_id == card.id).order_by(Estimate.created_at.desc()).all()
    return [serialize_estimate(e) for e in estimates]


@router.post("/projects/{project_id}/estimates", status_code=201)
def create_estimate(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    count = db.query(Estimate).filter(Estimate.company_id == user.company_id).count()
    e = Estimate(
        company_id=user.company_id, card_id=card.id, created_by_id=user.id,
        number=f"EST-{count + 1:04d}", title=title,
        description=data.get("description"),
        tax_rate=parse_number(data.get("tax_rate"), "tax_rate", 0),
        valid_until=parse_datetime(data.get("valid_until"), "valid_until"),
        notes=data.get("notes"),
        status=EstimateStatus.DRAFT,
    )
    e.items = _build_items(data.get("items"))
    _recalculate(e)
    db.add(e)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "estimate_created", "estimate",
        entity_id=e.id, entity_name=e.number, card_id=card.id,
    )
    db.commit()
    db.refresh(e)
    return serialize_estimate(e)


@router.get("/estimates/{estimate_id}")
def get_estimate(estimate_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_estimate(_get_estimate(db, user, estimate_id))


@router.patch("/estimates/{estimate_id}")
def update_estimate(estimate_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    e = _get_estimate(db, user, estimate_id)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        e.title = title
    for field in ["description", "notes"]:
        if field in data:
            setattr(e, field, data[field])
    if "valid_until" in data:
        e.valid_until = parse_datetime(data["valid_until"], "valid_until")
    if "tax_rate" in data:
        e.tax_rate = parse_number(data["tax_rate"], "tax_rate", 0)
    if "items" in data:
        e.items = _build_items(data["items"])
    _recalculate(e)

    if data.get("status"):
        status = parse_enum(EstimateStatus, data["status"])
        stamp = STATUS_STAMPS.get(status)
        if stamp and getattr(e, stamp) is None:
            setattr(e, stamp, datetime.utcnow())
        e.status = status

    log_activity(
        db, user.company_id, user.id, "estimate_updated", "estimate",
        entity_id=e.id, entity_name=e.number, card_id=e.card_id,
    )
    db.commit()
    db.refresh(e)
    return serialize_estimate(e)


@router.delete("/estimates/{estimate_id}")
def delete_estimate(estimate_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    e = _get_estimate(db, user, estimate_id)
    log_activity(
        db, user.company_id, user.id, "estimate_deleted", "estimate",
        entity_id=e.id, entity_name=e.number, card_id=e.card_id,
    )
    db.delete(e)
    db.commit()
    return {"ok": True}
