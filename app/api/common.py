from datetime import datetime, date
from fastapi import HTTPException
from sqlalchemy.orm import Session
from app.models.models import Card, Task, User, Vendor


def parse_datetime(value, field: str = "date"):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}")
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def parse_enum(enum_cls, value, field: str = "status"):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise HTTPException(status_code=400, detail=f"Invalid {field}. Must be one of: {allowed}")


def parse_number(value, field: str, default=None):
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{field} must be a number")


def parse_int(value, field: str, default=None):
    if value in (None, ""):
        return default
    if isinstance(value, float) and not value.is_integer():
        raise HTTPException(status_code=400, detail=f"{field} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{field} must be a number")


def next_sequence(numbers, prefix: str) -> int:
    """One past the highest numeric suffix among numbers that start with prefix."""
    highest = 0
    for number in numbers:
        if not number or not number.startswith(prefix):
            continue
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def iso(value):
    return str(value) if value else None


def user_brief(u: User | None):
    if not u:
        return None
    return {"id": u.id, "first_name": u.first_name, "last_name": u.last_name, "email": u.email}


def get_company_card(db: Session, user: User, card_id: str, detail: str = "Project not found") -> Card:
    card = db.query(Card).filter(Card.id == card_id, Card.company_id == user.company_id).first()
    if not card:
        raise HTTPException(status_code=404, detail=detail)
    return card


def get_company_vendor(db: Session, company_id: str, vendor_id: str) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id, Vendor.company_id == company_id).first()
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


def next_order(db: Session, column, *criteria) -> int:
    current = db.query(column).filter(*criteria).order_by(column.desc()).first()
    return (current[0] + 1) if current and current[0] is not None else 0


def get_company_task(db: Session, user: User, task_id: str) -> Task:
    task = db.query(Task).join(Card, Task.card_id == Card.id).filter(
        Task.id == task_id, Card.company_id == user.company_id
    ).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task
