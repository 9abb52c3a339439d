from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.core.currency import format_currency
from app.models.models import BudgetItem, Card, Company, User
from app.api.common import parse_number, get_company_card
from app.services.activity_service import log_activity
from app.services.metrics_service import budget_totals

router = APIRouter(prefix="/api", tags=["budget"])


def serialize_budget_item(b: BudgetItem) -> dict:
    return {
        "id": b.id,
        "card_id": b.card_id,
        "name": b.name,
        "description": b.description,
        "category": b.category,
        "amount": b.amount,
        "quantity": b.quantity,
        "unit": b.unit,
        "total": b.total,
        "is_expense": b.is_expense,
        "is_paid": b.is_paid,
        "paid_at": str(b.paid_at) if b.paid_at else None,
        "created_at": str(b.created_at),
    }


def _get_item(db: Session, user: User, item_id: str) -> BudgetItem:
    item = db.query(BudgetItem).join(Card, BudgetItem.card_id == Card.id).filter(
        BudgetItem.id == item_id, Card.company_id == user.company_id
    ).first()
    if not item:
        raise HTTPException(status_code=404, detail="Budget item not found")
    return item


@router.get("/projects/{project_id}/budget")
def get_budget(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    currency = db.query(Company.currency).filter(Company.id == user.company_id).scalar()
    items = db.query(BudgetItem).filter(BudgetItem.card_id == card.id).order_by(BudgetItem.created_at).all()
    summary = budget_totals(items)
    summary["currency"] = currency
    summary["formatted"] = {k: format_currency(v, currency) for k, v in summary.items() if k != "currency"}
    return {"items": [serialize_budget_item(b) for b in items], "summary": summary}


@router.post("/projects/{project_id}/budget", status_code=201)
def create_budget_item(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    name = (data.get("name") or "").strip()
    if not name or data.get("amount") in (None, ""):
        raise HTTPException(status_code=400, detail="Name and amount are required")

    is_expense = bool(data.get("is_expense", False))
    is_paid = bool(data.get("is_paid", False))
    item = BudgetItem(
        card_id=card.id, created_by_id=user.id, name=name,
        description=data.get("description"),
        category=data.get("category"),
        amount=parse_number(data["amount"], "amount"),
        quantity=parse_number(data.get("quantity"), "quantity", 1),
        unit=data.get("unit"),
        is_expense=is_expense,
        is_paid=is_paid,
        paid_at=datetime.utcnow() if is_paid and is_expense else None,
    )
    db.add(item)
    db.flush()
    log_activity(
        db, user.company_id, user.id,
        "expense_added" if is_expense else "budget_item_added", "budget_item",
        entity_id=item.id, entity_name=f"{item.name}: ${item.total:,.2f}", card_id=card.id,
    )
    db.commit()
    db.refresh(item)
    return serialize_budget_item(item)


@router.patch("/budget/{item_id}")
def update_budget_item(item_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        item.name = name
    for field in ["description", "category", "unit"]:
        if field in data:
            setattr(item, field, data[field])
    if "amount" in data:
        item.amount = parse_number(data["amount"], "amount", 0)
    if "quantity" in data:
        item.quantity = parse_number(data["quantity"], "quantity", 1)
    if "is_expense" in data:
        item.is_expense = bool(data["is_expense"])
    if "is_paid" in data:
        is_paid = bool(data["is_paid"])
        if is_paid and not item.is_paid:
            item.paid_at = datetime.utcnow()
        elif not is_paid:
            item.paid_at = None
        item.is_paid = is_paid

    log_activity(
        db, user.company_id, user.id, "budget_item_updated", "budget_item",
        entity_id=item.id, entity_name=item.name, card_id=item.card_id,
    )
    db.commit()
    db.refresh(item)
    return serialize_budget_item(item)


@router.delete("/budget/{item_id}")
def delete_budget_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    log_activity(
        db, user.company_id, user.id, "budget_item_deleted", "budget_item",
        entity_id=item.id, entity_name=item.name, card_id=item.card_id,
    )
    db.delete(item)
    db.commit()
    return {"ok": True}
