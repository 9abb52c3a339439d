from sqlalchemy.orm import Session
from app.models.models import Activity


def log_activity(
    db: Session,
    company_id: str,
    user_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_name: str | None = None,
    description: str | None = None,
    card_id: str | None = None,
) -> Activity:
    """Adds an activity row to the session; the caller commits."""
    activity = Activity(
        company_id=company_id, card_id=card_id, user_id=user_id,
        action=action, entity_type=entity_type,
        entity_id=entity_id, entity_name=entity_name,
        description=description,
    )
    db.add(activity)
    return activity


def serialize_activity(a: Activity) -> dict:
    return {
        "id": a.id,
        "card_id": a.card_id,
        "user_id": a.user_id,
        "user_name": a.user.full_name if a.user else None,
        "action": a.action,
        "entity_type": a.entity_type,
        "entity_id": a.entity_id,
        "entity_name": a.entity_name,
        "description": a.description,
        "created_at": str(a.created_at),
    }
