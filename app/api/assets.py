from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from sqlalchemy import desc
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.core.logging import get_logger
from app.models.models import (
    Asset, AssetType, AssetStatus, AssetRequest, AssetRequestStatus,
    MaintenanceSchedule, MaintenanceRecord, MaintenanceType, User, Role
)
from app.api.common import parse_datetime, parse_enum, parse_number, parse_int, iso, user_brief
from app.services.notification_service import notify, notify_admins

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["assets"])

ASSET_TEXT_FIELDS = ["description", "serial_number", "make", "model", "location", "notes"]


def _serialize_asset(a: Asset) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "type": a.type.value,
        "status": a.status.value,
        "description": a.description,
        "serial_number": a.serial_number,
        "make": a.make,
        "model": a.model,
        "purchase_date": iso(a.purchase_date),
        "purchase_cost": float(a.purchase_cost or 0),
        "location": a.location,
        "notes": a.notes,
        "assigned_to": user_brief(a.assigned_to),
        "pending_requests": len([r for r in a.requests if r.status == AssetRequestStatus.PENDING]),
        "created_at": str(a.created_at),
        "updated_at": str(a.updated_at),
    }


def _serialize_request(r: AssetRequest) -> dict:
    return {
        "id": r.id,
        "asset_id": r.asset_id,
        "asset_name": r.asset.name if r.asset else None,
        "requester": user_brief(r.requester),
        "purpose": r.purpose,
        "start_date": iso(r.start_date),
        "end_date": iso(r.end_date),
        "status": r.status.value,
        "notes": r.notes,
        "approved_by": user_brief(r.approved_by),
        "approved_at": iso(r.approved_at),
        "returned_at": iso(r.returned_at),
        "return_condition": r.return_condition,
        "created_at": str(r.created_at),
    }


def _serialize_schedule(s: MaintenanceSchedule) -> dict:
    return {
        "id": s.id,
        "asset_id": s.asset_id,
        "title": s.title,
        "description": s.description,
        "type": s.type.value,
        "interval_days": s.interval_days,
        "next_due_date": str(s.next_due_date),
        "is_active": s.is_active,
        "records": [{
            "id": rec.id,
            "performed_date": str(rec.performed_date),
            "performed_by_id": rec.performed_by_id,
            "cost": rec.cost,
            "notes": rec.notes,
        } for rec in s.records],
    }


def _get_asset(db: Session, user: User, asset_id: str) -> Asset:
    a = db.query(Asset).filter(Asset.id == asset_id, Asset.company_id == user.company_id).first()
    if not a:
        raise HTTPException(status_code=404, detail="Asset not found")
    return a


def _get_request(db: Session, user: User, request_id: str) -> AssetRequest:
    r = db.query(AssetRequest).join(Asset, AssetRequest.asset_id == Asset.id).filter(
        AssetRequest.id == request_id, Asset.company_id == user.company_id
    ).first()
    if not r:
        raise HTTPException(status_code=404, detail="Request not found")
    return r


def _check_assignee(db: Session, user: User, user_id):
    if user_id and not db.query(User).filter(User.id == user_id, User.company_id == user.company_id).first():
        raise HTTPException(status_code=400, detail="Invalid assignee")


@router.get("/assets")
def list_assets(
    type: str = Query(None),
    status: str = Query(None),
    search: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(Asset).filter(Asset.company_id == user.company_id)
    if type:
        q = q.filter(Asset.type == parse_enum(AssetType, type, "type"))
    if status:
        q = q.filter(Asset.status == parse_enum(AssetStatus, status))
    if search:
        q = q.filter(
            (Asset.name.ilike(f"%{search}%")) |
            (Asset.serial_number.ilike(f"%{search}%")) |
            (Asset.make.ilike(f"%{search}%"))
        )
    return [_serialize_asset(a) for a in q.order_by(desc(Asset.updated_at)).all()]


@router.post("/assets", status_code=201)
def create_asset(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name or not data.get("type"):
        raise HTTPException(status_code=400, detail="Name and type are required")
    _check_assignee(db, user, data.get("assigned_to_id"))
    asset = Asset(
        company_id=user.company_id,
        name=name,
        type=parse_enum(AssetType, data["type"], "type"),
        status=parse_enum(AssetStatus, data["status"]) if data.get("status") else AssetStatus.AVAILABLE,
        purchase_date=parse_datetime(data.get("purchase_date"), "purchase_date"),
        purchase_cost=parse_number(data.get("purchase_cost"), "purchase_cost"),
        assigned_to_id=data.get("assigned_to_id") or None,
        **{f: data.get(f) for f in ASSET_TEXT_FIELDS},
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return _serialize_asset(asset)


@router.get("/assets/{asset_id}")
def get_asset(asset_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    result = _serialize_asset(a)
    result["requests"] = [_serialize_request(r) for r in a.requests]
    result["maintenance"] = [_serialize_schedule(s) for s in a.maintenance_schedules]
    return result


@router.patch("/assets/{asset_id}")
def update_asset(asset_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        a.name = name
    for field in ASSET_TEXT_FIELDS:
        if field in data:
            setattr(a, field, data[field])
    if data.get("type"):
        a.type = parse_enum(AssetType, data["type"], "type")
    if data.get("status"):
        a.status = parse_enum(AssetStatus, data["status"])
    if "purchase_date" in data:
        a.purchase_date = parse_datetime(data["purchase_date"], "purchase_date")
    if "purchase_cost" in data:
        a.purchase_cost = parse_number(data["purchase_cost"], "purchase_cost")
    if "assigned_to_id" in data:
        _check_assignee(db, user, data["assigned_to_id"])
        a.assigned_to_id = data["assigned_to_id"] or None
    db.commit()
    db.refresh(a)
    return _serialize_asset(a)


@router.delete("/assets/{asset_id}")
def delete_asset(asset_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    db.delete(a)
    db.commit()
    return {"ok": True}


@router.get("/assets/{asset_id}/requests")
def list_asset_requests(asset_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    return [_serialize_request(r) for r in a.requests]


@router.post("/assets/{asset_id}/requests", status_code=201)
def create_asset_request(asset_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    if a.status != AssetStatus.AVAILABLE:
        raise HTTPException(status_code=400, detail="Asset is not available for request")
    purpose = (data.get("purpose") or "").strip()
    if not purpose:
        raise HTTPException(status_code=400, detail="Purpose is required")

    r = AssetRequest(
        asset_id=a.id, requester_id=user.id, purpose=purpose,
        start_date=parse_datetime(data.get("start_date"), "start_date"),
        end_date=parse_datetime(data.get("end_date"), "end_date"),
        status=AssetRequestStatus.PENDING,
        notes=data.get("notes"),
    )
    db.add(r)
    db.flush()
    notify_admins(
        db, user.company_id, "asset_request", f"Asset request: {a.name}",
        message=f"{user.full_name} requested {a.name}: {purpose}",
        link=f"/assets/{a.id}", entity_id=r.id,
    )
    db.commit()
    db.refresh(r)
    return _serialize_request(r)


@router.post("/asset-requests/{request_id}/approve")
def approve_asset_request(request_id: str, data: dict = Body(None), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    r = _get_request(db, user, request_id)
    if r.status != AssetRequestStatus.PENDING:
        raise HTTPException(status_code=400, detail="Request is not pending")
    if r.asset.status != AssetStatus.AVAILABLE:
        raise HTTPException(status_code=400, detail="Asset is no longer available")

    r.status = AssetRequestStatus.APPROVED
    r.approved_by_id = user.id
    r.approved_at = datetime.utcnow()
    if data and data.get("notes"):
        r.notes = data["notes"]
    r.asset.status = AssetStatus.IN_USE
    r.asset.assigned_to_id = r.requester_id
    notify(
        db, user.company_id, r.requester_id, "asset_request_approved",
        f"Request approved: {r.asset.name}", link=f"/assets/{r.asset_id}", entity_id=r.id,
    )
    db.commit()
    db.refresh(r)
    return _serialize_request(r)


@router.post("/asset-requests/{request_id}/reject")
def reject_asset_request(request_id: str, data: dict = Body(None), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    r = _get_request(db, user, request_id)
    if r.status != AssetRequestStatus.PENDING:
        raise HTTPException(status_code=400, detail="Request is not pending")
    reason = ((data or {}).get("reason") or "").strip()
    r.status = AssetRequestStatus.REJECTED
    r.notes = f"Rejected: {reason}" if reason else "Rejected"
    notify(
        db, user.company_id, r.requester_id, "asset_request_rejected",
        f"Request rejected: {r.asset.name}", message=reason or None,
        link=f"/assets/{r.asset_id}", entity_id=r.id,
    )
    db.commit()
    db.refresh(r)
    return _serialize_request(r)


@router.post("/asset-requests/{request_id}/return")
def return_asset(request_id: str, data: dict = Body(None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    r = _get_request(db, user, request_id)
    if r.status != AssetRequestStatus.APPROVED:
        raise HTTPException(status_code=400, detail="Only approved requests can be returned")
    if r.requester_id != user.id and user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Forbidden")

    data = data or {}
    condition = (data.get("condition") or "GOOD").upper()
    r.status = AssetRequestStatus.RETURNED
    r.returned_at = datetime.utcnow()
    r.return_condition = condition
    if data.get("notes"):
        r.notes = data["notes"]
    damaged = condition == "DAMAGED"
    r.asset.status = AssetStatus.LOST_DAMAGED if damaged else AssetStatus.AVAILABLE
    r.asset.assigned_to_id = None
    if damaged:
        notify_admins(
            db, user.company_id, "asset_damaged", f"Asset returned damaged: {r.asset.name}",
            message=data.get("notes"), link=f"/assets/{r.asset_id}", entity_id=r.asset_id,
        )
        logger.warning(f"Asset {r.asset_id} returned damaged", extra={"company_id": user.company_id})
    db.commit()
    db.refresh(r)
    return _serialize_request(r)


@router.get("/assets/{asset_id}/maintenance")
def list_maintenance(asset_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    schedules = db.query(MaintenanceSchedule).filter(
        MaintenanceSchedule.asset_id == a.id
    ).order_by(MaintenanceSchedule.next_due_date).all()
    return [_serialize_schedule(s) for s in schedules]


@router.post("/assets/{asset_id}/maintenance", status_code=201)
def create_maintenance(asset_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    a = _get_asset(db, user, asset_id)
    title = (data.get("title") or "").strip()
    if not title or not data.get("next_due_date"):
        raise HTTPException(status_code=400, detail="Title and next due date are required")
    mtype = parse_enum(MaintenanceType, data["type"], "type") if data.get("type") else MaintenanceType.ONE_TIME
    interval = parse_int(data.get("interval_days"), "interval_days")
    if mtype == MaintenanceType.RECURRING and (not interval or interval <= 0):
        raise HTTPException(status_code=400, detail="Recurring maintenance requires interval_days greater than 0")

    s = MaintenanceSchedule(
        asset_id=a.id, title=title, description=data.get("description"), type=mtype,
        interval_days=interval, next_due_date=parse_datetime(data["next_due_date"], "next_due_date"),
        is_active=True,
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return _serialize_schedule(s)


@router.post("/maintenance/{schedule_id}/complete")
def complete_maintenance(schedule_id: str, data: dict = Body(None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = db.query(MaintenanceSchedule).join(Asset, MaintenanceSchedule.asset_id == Asset.id).filter(
        MaintenanceSchedule.id == schedule_id, Asset.company_id == user.company_id
    ).first()
    if not s:
        raise HTTPException(status_code=404, detail="Maintenance schedule not found")

    data = data or {}
    performed = parse_datetime(data.get("performed_date"), "performed_date") or datetime.utcnow()
    db.add(MaintenanceRecord(
        schedule_id=s.id, asset_id=s.asset_id, performed_by_id=user.id,
        performed_date=performed, cost=parse_number(data.get("cost"), "cost"), notes=data.get("notes"),
    ))
    if s.type == MaintenanceType.RECURRING:
        s.next_due_date = performed + timedelta(days=s.interval_days)
    else:
        s.is_active = False
    if s.asset.status == AssetStatus.UNDER_MAINTENANCE:
        s.asset.status = AssetStatus.IN_USE if s.asset.assigned_to_id else AssetStatus.AVAILABLE
    db.commit()
    db.refresh(s)
    return _serialize_schedule(s)
