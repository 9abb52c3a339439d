from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import Activity, User
from app.api.common import get_company_card
from app.services.activity_service import serialize_activity

router = APIRouter(prefix="/api", tags=["activities"])


@router.get("/activities")
def recent_activities(
    limit: int = Query(50, ge=1, le=200),
    entity_type: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(Activity).filter(Activity.company_id == user.company_id)
    if entity_type:
        q = q.filter(Activity.entity_type == entity_type)
    activities = q.order_by(Activity.created_at.desc()).limit(limit).all()
    return [serialize_activity(a) for a in activities]


@router.get("/projects/{project_id}/activities")
def list_activities(
    project_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    get_company_card(db, user, project_id)
    activities = db.query(Activity).filter(
        Activity.card_id == project_id
    ).order_by(Activity.created_at.desc()).offset(offset).limit(limit).all()
    return [serialize_activity(a) for a in activities]
