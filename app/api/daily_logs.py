import json
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import DailyLog, Card, User, Role
from app.api.common import parse_datetime, parse_number, parse_int, get_company_card, user_brief
from app.services.activity_service import log_activity

router = APIRouter(prefix="/api", tags=["daily_logs"])

TEXT_FIELDS = [
    "weather_condition", "weather_notes", "work_completed", "materials_used", "equipment",
    "worker_details", "issues", "delays", "safety_incidents", "notes",
]


def serialize_daily_log(log: DailyLog, with_project: bool = False) -> dict:
    data = {
        "id": log.id,
        "card_id": log.card_id,
        "date": log.date.date().isoformat(),
        "author": user_brief(log.author),
        "temperature": log.temperature,
        "workers_on_site": log.workers_on_site,
        "photos": json.loads(log.photos) if log.photos else [],
        "created_at": str(log.created_at),
        "updated_at": str(log.updated_at),
    }
    for field in TEXT_FIELDS:
        data[field] = getattr(log, field)
    if with_project:
        data["project"] = {"id": log.card.id, "title": log.card.title}
    return data


def _apply_fields(log: DailyLog, data: dict):
    for field in TEXT_FIELDS:
        if field in data:
            setattr(log, field, data[field])
    if "temperature" in data:
        log.temperature = parse_number(data["temperature"], "temperature")
    if "workers_on_site" in data:
        log.workers_on_site = parse_int(data["workers_on_site"], "workers_on_site", default=0)
    if "photos" in data:
        photos = data["photos"] or []
        if not isinstance(photos, list):
            raise HTTPException(status_code=400, detail="photos must be a list")
        log.photos = json.dumps(photos) if photos else None


def _get_log(db: Session, user: User, log_id: str) -> DailyLog:
    log = db.query(DailyLog).join(Card, DailyLog.card_id == Card.id).filter(
        DailyLog.id == log_id, Card.company_id == user.company_id
    ).first()
    if not log:
        raise HTTPException(status_code=404, detail="Daily log not found")
    return log


def _require_author(log: DailyLog, user: User, verb: str):
    if log.author_id != user.id and user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail=f"Unauthorized to {verb} this log")


@router.get("/projects/{project_id}/daily-logs")
def list_daily_logs(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    logs = db.query(DailyLog).filter(DailyLog.card_id == card.id).order_by(DailyLog.date.desc()).all()
    return [serialize_daily_log(log) for log in logs]


@router.post("/projects/{project_id}/daily-logs", status_code=201)
def create_daily_log(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    day = (parse_datetime(data.get("date")) or datetime.utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)

    existing = db.query(DailyLog).filter(
        DailyLog.card_id == card.id, DailyLog.date >= day, DailyLog.date < day + timedelta(days=1)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="A daily log already exists for this date")

    log = DailyLog(card_id=card.id, author_id=user.id, date=day, workers_on_site=0)
    _apply_fields(log, data)
    db.add(log)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "dailylog_created", "daily_log",
        entity_id=log.id, entity_name=day.date().isoformat(),
        description=f"Created daily log for {day.date().isoformat()}", card_id=card.id,
    )
    db.commit()
    db.refresh(log)
    return serialize_daily_log(log)


@router.get("/daily-logs/{log_id}")
def get_daily_log(log_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_daily_log(_get_log(db, user, log_id), with_project=True)


@router.patch("/daily-logs/{log_id}")
def update_daily_log(log_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    log = _get_log(db, user, log_id)
    _require_author(log, user, "edit")
    _apply_fields(log, data)
    log_activity(
        db, user.company_id, user.id, "dailylog_updated", "daily_log",
        entity_id=log.id, entity_name=log.date.date().isoformat(),
        description=f"Updated daily log for {log.date.date().isoformat()}", card_id=log.card_id,
    )
    db.commit()
    db.refresh(log)
    return serialize_daily_log(log)


@router.delete("/daily-logs/{log_id}")
def delete_daily_log(log_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    log = _get_log(db, user, log_id)
    _require_author(log, user, "delete")
    log_activity(
        db, user.company_id, user.id, "dailylog_deleted", "daily_log",
        entity_id=log.id, entity_name=log.date.date().isoformat(),
        description=f"Deleted daily log for {log.date.date().isoformat()}", card_id=log.card_id,
    )
    db.delete(log)
    db.commit()
    return {"ok": True}
