import math
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.core.logging import get_logger
from app.models.models import (
    PurchaseOrder, PurchaseOrderItem, POStatus, ProcurementItem, PriceComparison, User
)
from app.api.common import parse_datetime, parse_enum, parse_number, get_company_card, get_company_vendor, iso, next_sequence
from app.services.activity_service import log_activity

logger = get_logger(__name__)

router = APIRouter(prefix="/api/purchase-orders", tags=["purchase_orders"])

DEFAULT_PAGE_SIZE = 20
DELETABLE = {POStatus.DRAFT, POStatus.CANCELLED}
RECEIVABLE = {POStatus.SENT, POStatus.PARTIALLY_RECEIVED}


def serialize_po(po: PurchaseOrder, detail: bool = False) -> dict:
    data = {
        "id": po.id,
        "number": po.number,
        "status": po.status.value,
        "vendor": {"id": po.vendor.id, "name": po.vendor.name} if po.vendor else None,
        "project": {"id": po.card.id, "title": po.card.title} if po.card else None,
        "order_date": iso(po.order_date),
        "expected_date": iso(po.expected_date),
        "delivered_date": iso(po.delivered_date),
        "subtotal": po.subtotal,
        "tax": po.tax,
        "shipping": po.shipping,
        "total": po.total,
        "notes": po.notes,
        "approved_by_id": po.approved_by_id,
        "approved_at": iso(po.approved_at),
        "sent_at": iso(po.sent_at),
        "item_count": len(po.items),
        "created_at": str(po.created_at),
    }
    if detail:
        data["items"] = [{
            "id": i.id,
            "procurement_item_id": i.procurement_item_id,
            "name": i.procurement_item.name if i.procurement_item else None,
            "unit": i.procurement_item.unit if i.procurement_item else None,
            "description": i.description,
            "quantity": i.quantity,
            "unit_price": i.unit_price,
            "total_price": i.total_price,
            "received_quantity": i.received_quantity,
        } for i in po.items]
    return data


def _get_po(db: Session, user: User, po_id: str) -> PurchaseOrder:
    po = db.query(PurchaseOrder).filter(
        PurchaseOrder.id == po_id, PurchaseOrder.company_id == user.company_id
    ).first()
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return po


def _next_number(db: Session, company_id: str, now: datetime) -> str:
    prefix = f"PO-{now:%y%m}-"
    rows = db.query(PurchaseOrder.number).filter(
        PurchaseOrder.company_id == company_id, PurchaseOrder.number.like(f"{prefix}%")
    ).all()
    return f"{prefix}{next_sequence([r[0] for r in rows], prefix):04d}"


def _build_items(db: Session, user: User, raw_items) -> list[PurchaseOrderItem]:
    if not raw_items:
        raise HTTPException(status_code=400, detail="At least one item is required")
    items = []
    for raw in raw_items:
        item_id = raw.get("procurement_item_id")
        qty = parse_number(raw.get("quantity"), "quantity")
        price = parse_number(raw.get("unit_price"), "unit_price")
        if not item_id or qty is None or price is None:
            raise HTTPException(status_code=400, detail="Each item needs procurement_item_id, quantity and unit_price")
        if qty <= 0:
            raise HTTPException(status_code=400, detail="Quantity must be greater than 0")
        exists = db.query(ProcurementItem.id).filter(
            ProcurementItem.id == item_id, ProcurementItem.company_id == user.company_id
        ).first()
        if not exists:
            raise HTTPException(status_code=400, detail="Invalid procurement item")
        items.append(PurchaseOrderItem(
            procurement_item_id=item_id, description=raw.get("description"),
            quantity=qty, unit_price=price, total_price=qty * price, received_quantity=0,
        ))
    return items


def _recalculate(po: PurchaseOrder):
    po.subtotal = sum(i.total_price for i in po.items)
    po.total = po.subtotal + (po.tax or 0) + (po.shipping or 0)


@router.get("")
def list_purchase_orders(
    status: str = Query(None),
    vendor_id: str = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(PurchaseOrder).filter(PurchaseOrder.company_id == user.company_id)
    if status:
        q = q.filter(PurchaseOrder.status == parse_enum(POStatus, status))
    if vendor_id:
        q = q.filter(PurchaseOrder.vendor_id == vendor_id)
    total = q.count()
    orders = q.order_by(PurchaseOrder.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "purchase_orders": [serialize_po(po) for po in orders],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.post("", status_code=201)
def create_purchase_order(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not data.get("vendor_id"):
        raise HTTPException(status_code=400, detail="Vendor is required")
    vendor = get_company_vendor(db, user.company_id, data["vendor_id"])
    card_id = data.get("project_id") or None
    if card_id:
        get_company_card(db, user, card_id)

    po = PurchaseOrder(
        company_id=user.company_id, vendor_id=vendor.id, card_id=card_id,
        number=_next_number(db, user.company_id, datetime.utcnow()),
        status=POStatus.DRAFT,
        order_date=parse_datetime(data.get("order_date"), "order_date") or datetime.utcnow(),
        expected_date=parse_datetime(data.get("expected_date"), "expected_date"),
        tax=parse_number(data.get("tax"), "tax", 0),
        shipping=parse_number(data.get("shipping"), "shipping", 0),
        notes=data.get("notes"),
        created_by_id=user.id,
    )
    po.items = _build_items(db, user, data.get("items"))
    _recalculate(po)
    db.add(po)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "purchase_order_created", "purchase_order",
        entity_id=po.id, entity_name=po.number, card_id=card_id,
        description=f"Purchase order {po.number} created for {vendor.name}",
    )
    db.commit()
    db.refresh(po)
    return serialize_po(po, detail=True)


@router.get("/{po_id}")
def get_purchase_order(po_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_po(_get_po(db, user, po_id), detail=True)


@router.patch("/{po_id}")
def update_purchase_order(po_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status != POStatus.DRAFT:
        raise HTTPException(status_code=400, detail="Only draft purchase orders can be edited")
    if data.get("vendor_id"):
        po.vendor_id = get_company_vendor(db, user.company_id, data["vendor_id"]).id
    if "project_id" in data:
        if data["project_id"]:
            get_company_card(db, user, data["project_id"])
        po.card_id = data["project_id"] or None
    if "expected_date" in data:
        po.expected_date = parse_datetime(data["expected_date"], "expected_date")
    if "notes" in data:
        po.notes = data["notes"]
    if "tax" in data:
        po.tax = parse_number(data["tax"], "tax", 0)
    if "shipping" in data:
        po.shipping = parse_number(data["shipping"], "shipping", 0)
    if "items" in data:
        po.items = _build_items(db, user, data["items"])
    _recalculate(po)
    db.commit()
    db.refresh(po)
    return serialize_po(po, detail=True)


@router.delete("/{po_id}")
def delete_purchase_order(po_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status not in DELETABLE:
        raise HTTPException(status_code=400, detail="Only draft or cancelled purchase orders can be deleted")
    db.delete(po)
    db.commit()
    return {"ok": True}


@router.post("/{po_id}/approve")
def approve_purchase_order(po_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status not in (POStatus.DRAFT, POStatus.PENDING_APPROVAL):
        raise HTTPException(status_code=400, detail=f"Cannot approve a purchase order in {po.status.value} status")
    po.status = POStatus.APPROVED
    po.approved_by_id = user.id
    po.approved_at = datetime.utcnow()
    log_activity(
        db, user.company_id, user.id, "purchase_order_approved", "purchase_order",
        entity_id=po.id, entity_name=po.number, card_id=po.card_id,
    )
    db.commit()
    db.refresh(po)
    return serialize_po(po, detail=True)


@router.post("/{po_id}/send")
def send_purchase_order(po_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status != POStatus.APPROVED:
        raise HTTPException(status_code=400, detail="Purchase order must be approved before sending")
    po.status = POStatus.SENT
    po.sent_at = datetime.utcnow()
    log_activity(
        db, user.company_id, user.id, "purchase_order_sent", "purchase_order",
        entity_id=po.id, entity_name=po.number, card_id=po.card_id,
    )
    db.commit()
    db.refresh(po)
    return serialize_po(po, detail=True)


def _record_purchase(db: Session, po: PurchaseOrder, line: PurchaseOrderItem, qty: float, when: datetime):
    price = db.query(PriceComparison).filter(
        PriceComparison.item_id == line.procurement_item_id, PriceComparison.vendor_id == po.vendor_id
    ).first()
    if not price:
        price = PriceComparison(
            item_id=line.procurement_item_id, vendor_id=po.vendor_id, unit_price=line.unit_price,
            total_purchased_qty=0, total_purchased_value=0,
        )
        db.add(price)
    price.last_purchase_date = when
    price.total_purchased_qty = (price.total_purchased_qty or 0) + qty
    price.total_purchased_value = (price.total_purchased_value or 0) + qty * line.unit_price


@router.post("/{po_id}/receive")
def receive_purchase_order(po_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status not in RECEIVABLE:
        raise HTTPException(status_code=400, detail="Purchase order must be sent before receiving")
    received = data.get("items") or []
    if not received:
        raise HTTPException(status_code=400, detail="No items to receive")

    lines = {i.id: i for i in po.items}
    now = datetime.utcnow()
    for entry in received:
        line = lines.get(entry.get("line_item_id"))
        if not line:
            raise HTTPException(status_code=400, detail="Line item does not belong to this purchase order")
        qty = parse_number(entry.get("received_quantity"), "received_quantity", 0)
        if qty < 0:
            raise HTTPException(status_code=400, detail="Received quantity cannot be negative")
        if line.received_quantity + qty > line.quantity:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot receive more than ordered. Remaining: {line.quantity - line.received_quantity:g}",
            )
        if qty == 0:
            continue
        line.received_quantity += qty
        db.flush()
        _record_purchase(db, po, line, qty, now)

    if all(i.received_quantity >= i.quantity for i in po.items):
        po.status = POStatus.RECEIVED
        po.delivered_date = now
    else:
        po.status = POStatus.PARTIALLY_RECEIVED
    log_activity(
        db, user.company_id, user.id, "purchase_order_received", "purchase_order",
        entity_id=po.id, entity_name=po.number, card_id=po.card_id,
        description=f"{po.number} {po.status.value.lower().replace('_', ' ')}",
    )
    db.commit()
    db.refresh(po)
    logger.info(f"PO {po.number} received -> {po.status.value}", extra={"company_id": user.company_id})
    return serialize_po(po, detail=True)


@router.post("/{po_id}/cancel")
def cancel_purchase_order(po_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    po = _get_po(db, user, po_id)
    if po.status in (POStatus.RECEIVED, POStatus.PARTIALLY_RECEIVED):
        raise HTTPException(status_code=400, detail="Cannot cancel a purchase order that has been received")
    if po.status == POStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Purchase order is already cancelled")
    po.status = POStatus.CANCELLED
    log_activity(
        db, user.company_id, user.id, "purchase_order_cancelled", "purchase_order",
        entity_id=po.id, entity_name=po.number, card_id=po.card_id,
    )
    db.commit()
    db.refresh(po)
    return serialize_po(po, detail=True)
