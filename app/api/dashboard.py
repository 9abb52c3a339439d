from datetime import datetime, timedelta
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from app.db.session import get_db
from app.core.auth import get_current_user
from app.core.currency import format_currency
from app.models.models import (
    Card, CardStatus, Task, TaskStatus, Activity, User, Vendor, Company,
    InventoryMaterial, AssetRequest, AssetRequestStatus, Asset, BudgetItem
)
from app.services.activity_service import serialize_activity
from app.services.metrics_service import budget_totals, is_low_stock

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

UPCOMING_DAYS = 7
OPEN_TASK_STATUSES = [TaskStatus.TODO, TaskStatus.IN_PROGRESS]


@router.get("")
def get_dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    company_id = user.company_id
    now = datetime.utcnow()

    card_counts = dict(
        db.query(Card.status, func.count(Card.id)).filter(Card.company_id == company_id).group_by(Card.status).all()
    )

    tasks_q = db.query(Task).join(Card, Task.card_id == Card.id).filter(Card.company_id == company_id)
    task_counts = dict(
        db.query(Task.status, func.count(Task.id)).join(Card, Task.card_id == Card.id)
        .filter(Card.company_id == company_id).group_by(Task.status).all()
    )
    overdue = tasks_q.filter(Task.due_date < now, Task.status.in_(OPEN_TASK_STATUSES)).count()
    upcoming = tasks_q.filter(
        Task.due_date >= now,
        Task.due_date <= now + timedelta(days=UPCOMING_DAYS),
        Task.status.in_(OPEN_TASK_STATUSES),
    ).order_by(Task.due_date).all()

    activities = db.query(Activity).filter(
        Activity.company_id == company_id
    ).order_by(Activity.created_at.desc()).limit(10).all()

    team_count = db.query(func.count(User.id)).filter(User.company_id == company_id, User.is_active == True).scalar() or 0
    vendor_count = db.query(func.count(Vendor.id)).filter(Vendor.company_id == company_id, Vendor.is_active == True).scalar() or 0

    materials = db.query(InventoryMaterial).filter(InventoryMaterial.company_id == company_id).order_by(InventoryMaterial.quantity).all()
    low_stock = [{
        "id": m.id, "name": m.name, "quantity": m.quantity, "unit": m.unit,
        "min_stock_level": m.min_stock_level,
    } for m in materials if is_low_stock(m)]

    pending_requests = db.query(AssetRequest).join(Asset, AssetRequest.asset_id == Asset.id).filter(
        Asset.company_id == company_id, AssetRequest.status == AssetRequestStatus.PENDING
    ).order_by(AssetRequest.created_at.desc()).all()

    items = db.query(BudgetItem).join(Card, BudgetItem.card_id == Card.id).filter(Card.company_id == company_id).all()
    totals = budget_totals(items)
    currency = db.query(Company.currency).filter(Company.id == company_id).scalar()

    return {
        "projects": {
            "total": sum(card_counts.values()),
            "active": card_counts.get(CardStatus.ACTIVE, 0),
            "completed": card_counts.get(CardStatus.COMPLETED, 0),
        },
        "tasks": {
            "total": sum(task_counts.values()),
            "completed": task_counts.get(TaskStatus.COMPLETED, 0),
            "in_progress": task_counts.get(TaskStatus.IN_PROGRESS, 0),
            "overdue": overdue,
            "upcoming": [{
                "id": t.id, "title": t.title, "due_date": str(t.due_date),
                "status": t.status.value, "priority": t.priority.value,
                "project": {"id": t.card.id, "title": t.card.title},
            } for t in upcoming],
        },
        "recent_activities": [serialize_activity(a) for a in activities],
        "team_count": team_count,
        "vendor_count": vendor_count,
        "low_stock": low_stock,
        "pending_asset_requests": [{
            "id": r.id, "asset_id": r.asset_id, "asset_name": r.asset.name,
            "requester": r.requester.full_name if r.requester else None,
            "purpose": r.purpose, "created_at": str(r.created_at),
        } for r in pending_requests],
        "financials": {
            "total_budget": totals["total_budget"],
            "total_expenses": totals["total_expenses"],
            "profit": totals["profit"],
            "currency": currency,
            "formatted": {
                "total_budget": format_currency(totals["total_budget"], currency),
                "total_expenses": format_currency(totals["total_expenses"], currency),
                "profit": format_currency(totals["profit"], currency),
            },
        },
    }
