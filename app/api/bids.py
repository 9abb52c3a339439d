import math
import secrets
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.core.config import APP_URL
from app.core.logging import get_logger
from app.models.models import (
    BidRequest, BidRequestStatus, Bid, BidItem, BidStatus, Card, Stage, Task, User
)
from app.api.common import parse_datetime, parse_enum, parse_number, get_company_card, next_order, iso
from app.services.activity_service import log_activity
from app.services.notification_service import notify_admins

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["bids"])


def _share_url(token: str) -> str:
    return f"{APP_URL}/bid/{token}"


def _days_remaining(deadline: datetime | None, now: datetime | None = None):
    if not deadline:
        return None
    now = now or datetime.utcnow()
    return max(0, math.ceil((deadline - now).total_seconds() / 86400))


def serialize_bid(b: Bid) -> dict:
    return {
        "id": b.id,
        "bid_request_id": b.bid_request_id,
        "company_name": b.company_name,
        "contact_name": b.contact_name,
        "contact_email": b.contact_email,
        "contact_phone": b.contact_phone,
        "total_amount": b.total_amount,
        "timeline": b.timeline,
        "notes": b.notes,
        "status": b.status.value,
        "items": [{
            "id": i.id, "description": i.description, "quantity": i.quantity,
            "unit_price": i.unit_price, "total": i.total,
        } for i in b.items],
        "submitted_at": str(b.submitted_at),
    }


def serialize_bid_request(br: BidRequest, with_bids: bool = False) -> dict:
    data = {
        "id": br.id,
        "title": br.title,
        "description": br.description,
        "requirements": br.requirements,
        "deadline": iso(br.deadline),
        "status": br.status.value,
        "share_token": br.share_token,
        "share_url": _share_url(br.share_token),
        "view_count": br.view_count or 0,
        "bid_count": len(br.bids),
        "project": {"id": br.card.id, "title": br.card.title} if br.card else None,
        "created_at": str(br.created_at),
    }
    if with_bids:
        data["bids"] = [serialize_bid(b) for b in br.bids]
    return data


def _get_request(db: Session, user: User, request_id: str) -> BidRequest:
    br = db.query(BidRequest).filter(
        BidRequest.id == request_id, BidRequest.company_id == user.company_id
    ).first()
    if not br:
        raise HTTPException(status_code=404, detail="Bid request not found")
    return br


def _get_by_token(db: Session, token: str) -> BidRequest:
    br = db.query(BidRequest).filter(BidRequest.share_token == token).first()
    if not br:
        raise HTTPException(status_code=404, detail="Bid request not found")
    return br


@router.get("/bid-requests")
def list_bid_requests(
    project_id: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(BidRequest).filter(BidRequest.company_id == user.company_id)
    if project_id:
        q = q.filter(BidRequest.card_id == project_id)
    return [serialize_bid_request(br) for br in q.order_by(BidRequest.created_at.desc()).all()]


@router.post("/bid-requests", status_code=201)
def create_bid_request(data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    if not title or not description:
        raise HTTPException(status_code=400, detail="Title and description are required")
    card_id = data.get("project_id") or None
    if card_id:
        get_company_card(db, user, card_id)

    br = BidRequest(
        company_id=user.company_id, card_id=card_id, created_by_id=user.id,
        title=title, description=description, requirements=data.get("requirements"),
        deadline=parse_datetime(data.get("deadline"), "deadline"),
        status=BidRequestStatus.OPEN,
        share_token=secrets.token_hex(32),
        view_count=0,
    )
    db.add(br)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "bid_request_created", "bid_request",
        entity_id=br.id, entity_name=br.title, card_id=card_id,
    )
    db.commit()
    db.refresh(br)
    return serialize_bid_request(br, with_bids=True)


@router.get("/bid-requests/{request_id}")
def get_bid_request(request_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_bid_request(_get_request(db, user, request_id), with_bids=True)


@router.patch("/bid-requests/{request_id}")
def update_bid_request(request_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    br = _get_request(db, user, request_id)
    for field in ["title", "description"]:
        if field in data:
            value = (data[field] or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail="Title and description are required")
            setattr(br, field, value)
    if "requirements" in data:
        br.requirements = data["requirements"]
    if "deadline" in data:
        br.deadline = parse_datetime(data["deadline"], "deadline")
    if data.get("status"):
        br.status = parse_enum(BidRequestStatus, data["status"])
    if "project_id" in data:
        if data["project_id"]:
            get_company_card(db, user, data["project_id"])
        br.card_id = data["project_id"] or None
    db.commit()
    db.refresh(br)
    return serialize_bid_request(br, with_bids=True)


@router.delete("/bid-requests/{request_id}")
def delete_bid_request(request_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    db.delete(_get_request(db, user, request_id))
    db.commit()
    return {"ok": True}


@router.get("/bid/{token}")
def view_public_bid_request(token: str, db: Session = Depends(get_db)):
    br = _get_by_token(db, token)
    br.view_count = (br.view_count or 0) + 1
    db.commit()
    db.refresh(br)
    return {
        "id": br.id,
        "title": br.title,
        "description": br.description,
        "requirements": br.requirements,
        "deadline": iso(br.deadline),
        "days_remaining": _days_remaining(br.deadline),
        "status": br.status.value,
        "company": {"name": br.company.name, "logo": br.company.logo} if br.company else None,
        "project": {"title": br.card.title} if br.card else None,
    }


@router.post("/bid/{token}", status_code=201)
def submit_public_bid(token: str, data: dict = Body(...), db: Session = Depends(get_db)):
    br = _get_by_token(db, token)
    if br.deadline and br.deadline < datetime.utcnow():
        raise HTTPException(status_code=400, detail="Bid deadline has passed")
    if br.status != BidRequestStatus.OPEN:
        raise HTTPException(status_code=400, detail="Bid request is closed")

    required = ["company_name", "contact_name", "contact_email"]
    if any(not (data.get(f) or "").strip() for f in required):
        raise HTTPException(status_code=400, detail="Company name, contact name and email are required")

    items = []
    for raw in data.get("items") or []:
        description = (raw.get("description") or "").strip()
        if not description:
            continue
        qty = parse_number(raw.get("quantity"), "quantity", 1)
        price = parse_number(raw.get("unit_price"), "unit_price", 0)
        total = parse_number(raw.get("total"), "total")
        items.append(BidItem(
            description=description, quantity=qty, unit_price=price,
            total=total if total is not None else qty * price,
        ))
    total_amount = parse_number(data.get("total_amount"), "total_amount")
    if total_amount is None:
        total_amount = sum(i.total for i in items)

    bid = Bid(
        bid_request_id=br.id,
        company_name=data["company_name"].strip(),
        contact_name=data["contact_name"].strip(),
        contact_email=data["contact_email"].strip().lower(),
        contact_phone=data.get("contact_phone"),
        total_amount=total_amount,
        timeline=data.get("timeline"),
        notes=data.get("notes"),
        status=BidStatus.SUBMITTED,
    )
    bid.items = items
    db.add(bid)
    db.flush()
    notify_admins(
        db, br.company_id, "bid_submitted", f"New bid: {br.title}",
        message=f"{bid.company_name} submitted a bid of {total_amount:,.2f}",
        link=f"/bids/{br.id}", entity_id=bid.id,
    )
    db.commit()
    db.refresh(bid)
    logger.info(f"Bid submitted for request {br.id}", extra={"company_id": br.company_id})
    return {"ok": True, "bid_id": bid.id}


def _get_bid(db: Session, user: User, bid_id: str) -> Bid:
    bid = db.query(Bid).join(BidRequest, Bid.bid_request_id == BidRequest.id).filter(
        Bid.id == bid_id, BidRequest.company_id == user.company_id
    ).first()
    if not bid:
        raise HTTPException(status_code=404, detail="Bid not found")
    return bid


@router.patch("/bids/{bid_id}/status")
def update_bid_status(bid_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    bid = _get_bid(db, user, bid_id)
    if not data.get("status"):
        raise HTTPException(status_code=400, detail="Status is required")
    bid.status = parse_enum(BidStatus, data["status"])
    db.commit()
    db.refresh(bid)
    return serialize_bid(bid)


@router.post("/bid-requests/{request_id}/convert")
def convert_bid(request_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    br = _get_request(db, user, request_id)
    bid = db.query(Bid).filter(Bid.id == data.get("bid_id"), Bid.bid_request_id == br.id).first()
    if not bid:
        raise HTTPException(status_code=404, detail="Bid not found")

    convert_to = data.get("convert_to")
    if convert_to == "project":
        stage = db.query(Stage).filter(
            Stage.id == data.get("stage_id"), Stage.company_id == user.company_id
        ).first()
        if not stage:
            raise HTTPException(status_code=400, detail="Valid stage_id is required")
        card = Card(
            company_id=user.company_id, stage_id=stage.id, owner_id=user.id,
            title=br.title, description=br.description,
            contact_name=bid.contact_name, contact_email=bid.contact_email,
            contact_phone=bid.contact_phone, value=bid.total_amount,
        )
        db.add(card)
        db.flush()
        result = {"type": "project", "id": card.id, "title": card.title}
        card_id = card.id
    elif convert_to == "task":
        if not data.get("project_id"):
            raise HTTPException(status_code=400, detail="project_id is required")
        card = get_company_card(db, user, data["project_id"])
        task = Task(
            card_id=card.id, created_by_id=user.id,
            title=f"{br.title} - {bid.company_name}",
            description=bid.notes or br.description,
            estimated_cost=bid.total_amount,
            order=next_order(db, Task.order, Task.card_id == card.id),
        )
        db.add(task)
        db.flush()
        result = {"type": "task", "id": task.id, "title": task.title}
        card_id = card.id
    else:
        raise HTTPException(status_code=400, detail="convert_to must be 'project' or 'task'")

    bid.status = BidStatus.ACCEPTED
    br.status = BidRequestStatus.AWARDED
    log_activity(
        db, user.company_id, user.id, "bid_converted", "bid",
        entity_id=bid.id, entity_name=bid.company_name,
        description=f"Bid from {bid.company_name} converted to {convert_to}", card_id=card_id,
    )
    db.commit()
    return {"ok": True, "result": result, "bid": serialize_bid(bid)}
