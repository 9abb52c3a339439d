import secrets
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.core.config import CRON_SECRET
from app.core.logging import get_logger, log_security_event
from app.models.models import Notification, Company, User
from app.schemas.schemas import NotificationResponse
from app.services.notification_service import check_due_tasks, check_stock_levels

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


def require_cron_secret(request: Request):
    header = request.headers.get("Authorization", "")
    expected = f"Bearer {CRON_SECRET}"
    if not CRON_SECRET or not secrets.compare_digest(header, expected):
        log_security_event("cron_unauthorized", {"path": request.url.path}, logger)
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/notifications", response_model=list[NotificationResponse])
def list_notifications(
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if unread:
        q = q.filter(Notification.is_read == False)
    return q.order_by(Notification.created_at.desc()).limit(limit).all()


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    n = db.query(Notification).filter(
        Notification.id == notification_id, Notification.user_id == user.id
    ).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.is_read = True
    db.commit()
    db.refresh(n)
    return n


@router.post("/notifications/read-all")
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = db.query(Notification).filter(
        Notification.user_id == user.id, Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"ok": True, "updated": updated}


@router.post("/notifications/check-due-tasks")
def check_due_tasks_for_company(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"created": check_due_tasks(db, user.company_id)}


@router.post("/cron/check-stock-levels", dependencies=[Depends(require_cron_secret)])
def cron_check_stock_levels(db: Session = Depends(get_db)):
    checked, notified = check_stock_levels(db)
    return {"checked": checked, "notified": notified}


@router.post("/cron/due-date-notifications", dependencies=[Depends(require_cron_secret)])
def cron_due_date_notifications(db: Session = Depends(get_db)):
    company_ids = [r[0] for r in db.query(Company.id).all()]
    created = sum(check_due_tasks(db, company_id) for company_id in company_ids)
    logger.info(f"Due-date cron: {created} notifications across {len(company_ids)} companies")
    return {"companies": len(company_ids), "created": created}
