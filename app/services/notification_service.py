from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from app.core.logging import get_logger
from app.models.models import (
    Notification, User, Role, Task, TaskStatus, Card, InventoryMaterial
)

logger = get_logger(__name__)

DUE_SOON_DAYS = 3


def notify(db: Session, company_id: str, user_id: str, type: str, title: str,
           message: str | None = None, link: str | None = None, entity_id: str | None = None) -> Notification:
    n = Notification(
        company_id=company_id, user_id=user_id, type=type, title=title,
        message=message, link=link, entity_id=entity_id,
    )
    db.add(n)
    return n


def company_admins(db: Session, company_id: str) -> list[User]:
    return db.query(User).filter(
        User.company_id == company_id, User.role == Role.ADMIN, User.is_active == True
    ).all()


def notify_admins(db: Session, company_id: str, type: str, title: str,
                  message: str | None = None, link: str | None = None, entity_id: str | None = None) -> int:
    admins = company_admins(db, company_id)
    for admin in admins:
        notify(db, company_id, admin.id, type, title, message, link, entity_id)
    return len(admins)


def _day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def already_notified_today(db: Session, user_id: str, type: str, entity_id: str, now: datetime) -> bool:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.type == type,
        Notification.entity_id == entity_id,
        Notification.created_at >= _day_start(now),
    ).first() is not None


def classify_due(due: datetime, now: datetime) -> str | None:
    today = _day_start(now)
    if due < today:
        return "task_overdue"
    if due < today + timedelta(days=1):
        return "task_due_today"
    if due < today + timedelta(days=DUE_SOON_DAYS + 1):
        return "task_due_soon"
    return None


_DUE_TITLES = {
    "task_overdue": "Task overdue",
    "task_due_today": "Task due today",
    "task_due_soon": "Task due soon",
}


def check_due_tasks(db: Session, company_id: str, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    tasks = db.query(Task).join(Card, Task.card_id == Card.id).filter(
        Card.company_id == company_id,
        Task.due_date.isnot(None),
        Task.assignee_id.isnot(None),
        Task.status.in_([TaskStatus.TODO, TaskStatus.IN_PROGRESS]),
    ).all()

    created = 0
    for task in tasks:
        kind = classify_due(task.due_date, now)
        if kind is None or already_notified_today(db, task.assignee_id, kind, task.id, now):
            continue
        notify(
            db, company_id, task.assignee_id, kind, _DUE_TITLES[kind],
            message=f'"{task.title}" is due {task.due_date.date()}',
            link=f"/projects/{task.card_id}?task={task.id}", entity_id=task.id,
        )
        created += 1
    db.commit()
    if created:
        logger.info(f"Created {created} due-date notifications", extra={"company_id": company_id})
    return created


def check_stock_levels(db: Session, now: datetime | None = None) -> tuple[int, int]:
    now = now or datetime.utcnow()
    materials = db.query(InventoryMaterial).filter(
        InventoryMaterial.min_stock_level.isnot(None),
        InventoryMaterial.quantity <= InventoryMaterial.min_stock_level,
    ).all()

    notified = 0
    for m in materials:
        for admin in company_admins(db, m.company_id):
            if already_notified_today(db, admin.id, "low_stock", m.id, now):
                continue
            notify(
                db, m.company_id, admin.id, "low_stock", f"Low stock: {m.name}",
                message=f"{m.name} is at {m.quantity:g} {m.unit} (minimum {m.min_stock_level:g})",
                link=f"/inventory/{m.id}", entity_id=m.id,
            )
            notified += 1
    db.commit()
    logger.info(f"Stock level check: {len(materials)} low, {notified} notifications")
    return len(materials), notified
