from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.models.models import (
    VendorContract, ContractType, ContractStatus, ContractLineItem, ContractPayment,
    ChangeOrder, ChangeOrderItem, ChangeOrderStatus, Card, User
)
from app.api.common import parse_datetime, parse_enum, parse_number, parse_int, get_company_vendor, iso, next_sequence
from app.services.activity_service import log_activity
from app.services.metrics_service import contract_summary

router = APIRouter(prefix="/api/contracts", tags=["contracts"])

CO_TRANSITIONS = {
    ChangeOrderStatus.DRAFT: {ChangeOrderStatus.PENDING_APPROVAL},
    ChangeOrderStatus.PENDING_APPROVAL: {
        ChangeOrderStatus.APPROVED, ChangeOrderStatus.REJECTED, ChangeOrderStatus.DRAFT,
    },
    ChangeOrderStatus.REJECTED: {ChangeOrderStatus.DRAFT},
    ChangeOrderStatus.APPROVED: set(),
}


def _serialize_line_item(li: ContractLineItem) -> dict:
    return {
        "id": li.id, "description": li.description, "quantity": li.quantity,
        "unit": li.unit, "unit_price": li.unit_price, "total_price": li.total_price,
        "order": li.order,
    }


def _serialize_payment(p: ContractPayment) -> dict:
    return {
        "id": p.id, "amount": p.amount, "payment_date": str(p.payment_date),
        "reference": p.reference, "method": p.method, "notes": p.notes,
        "created_at": str(p.created_at),
    }


def serialize_change_order(co: ChangeOrder) -> dict:
    return {
        "id": co.id,
        "contract_id": co.contract_id,
        "number": co.number,
        "title": co.title,
        "description": co.description,
        "reason": co.reason,
        "status": co.status.value,
        "total": co.total,
        "submitted_at": iso(co.submitted_at),
        "approved_at": iso(co.approved_at),
        "approved_by_id": co.approved_by_id,
        "rejected_at": iso(co.rejected_at),
        "rejected_by_id": co.rejected_by_id,
        "rejection_reason": co.rejection_reason,
        "items": [{
            "id": i.id, "description": i.description, "quantity": i.quantity,
            "unit": i.unit, "unit_price": i.unit_price, "total_price": i.total_price,
        } for i in co.items],
        "created_at": str(co.created_at),
    }


def serialize_contract(c: VendorContract, detail: bool = False) -> dict:
    data = {
        "id": c.id,
        "contract_number": c.contract_number,
        "title": c.title,
        "type": c.type.value,
        "status": c.status.value,
        "total_sum": c.total_sum,
        "retention_percentage": c.retention_percentage,
        "warranty_years": c.warranty_years,
        "start_date": str(c.start_date),
        "end_date": str(c.end_date),
        "terms": c.terms,
        "notes": c.notes,
        "vendor": {"id": c.vendor.id, "name": c.vendor.name} if c.vendor else None,
        "projects": [{"id": p.id, "title": p.title} for p in c.projects],
        "created_at": str(c.created_at),
    }
    if detail:
        data["line_items"] = [_serialize_line_item(li) for li in c.line_items]
        data["payments"] = [_serialize_payment(p) for p in c.payments]
        data["change_orders"] = [serialize_change_order(co) for co in c.change_orders]
        data["summary"] = contract_summary(c)
    return data


def _get_contract(db: Session, user: User, contract_id: str) -> VendorContract:
    c = db.query(VendorContract).filter(
        VendorContract.id == contract_id, VendorContract.company_id == user.company_id
    ).first()
    if not c:
        raise HTTPException(status_code=404, detail="Contract not found")
    return c


def _resolve_projects(db: Session, user: User, project_ids) -> list[Card]:
    ids = [p for p in (project_ids or []) if p]
    if not ids:
        return []
    cards = db.query(Card).filter(Card.id.in_(ids), Card.company_id == user.company_id).all()
    if len(cards) != len(set(ids)):
        raise HTTPException(status_code=400, detail="One or more projects not found")
    return cards


def _parse_warranty(value):
    if value in (None, ""):
        return None
    try:
        years = int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="warranty_years must be a number")
    if years < 1 or years > 10:
        raise HTTPException(status_code=400, detail="Warranty years must be between 1 and 10")
    return years


def _recompute_total(db: Session, c: VendorContract):
    db.flush()
    db.refresh(c)
    c.total_sum = sum(li.total_price for li in c.line_items)


@router.get("")
def list_contracts(
    vendor_id: str = Query(None),
    status: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(VendorContract).filter(VendorContract.company_id == user.company_id)
    if vendor_id:
        q = q.filter(VendorContract.vendor_id == vendor_id)
    if status:
        q = q.filter(VendorContract.status == parse_enum(ContractStatus, status))
    return [serialize_contract(c) for c in q.order_by(VendorContract.created_at.desc()).all()]


@router.post("", status_code=201)
def create_contract(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    required = ["contract_number", "vendor_id", "type", "total_sum", "start_date", "end_date"]
    if any(data.get(f) in (None, "") for f in required):
        raise HTTPException(status_code=400, detail="Missing required fields")

    vendor = get_company_vendor(db, user.company_id, data["vendor_id"])
    number = str(data["contract_number"]).strip()
    if db.query(VendorContract).filter(
        VendorContract.company_id == user.company_id, VendorContract.contract_number == number
    ).first():
        raise HTTPException(status_code=400, detail="Contract number already exists")

    start = parse_datetime(data["start_date"], "start_date")
    end = parse_datetime(data["end_date"], "end_date")
    if end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    c = VendorContract(
        company_id=user.company_id, vendor_id=vendor.id, created_by_id=user.id,
        contract_number=number, title=data.get("title"),
        type=parse_enum(ContractType, data["type"], "type"),
        status=parse_enum(ContractStatus, data["status"]) if data.get("status") else ContractStatus.DRAFT,
        total_sum=parse_number(data["total_sum"], "total_sum"),
        retention_percentage=parse_number(data.get("retention_percentage"), "retention_percentage"),
        warranty_years=_parse_warranty(data.get("warranty_years")),
        start_date=start, end_date=end,
        terms=data.get("terms"), notes=data.get("notes"),
    )
    c.projects = _resolve_projects(db, user, data.get("project_ids"))
    db.add(c)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "contract_created", "contract",
        entity_id=c.id, entity_name=c.contract_number,
        description=f"Contract {c.contract_number} created with {vendor.name}",
    )
    db.commit()
    db.refresh(c)
    return serialize_contract(c, detail=True)


@router.get("/{contract_id}")
def get_contract(contract_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_contract(_get_contract(db, user, contract_id), detail=True)


@router.patch("/{contract_id}")
def update_contract(contract_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    if "contract_number" in data:
        number = str(data["contract_number"] or "").strip()
        if not number:
            raise HTTPException(status_code=400, detail="Contract number is required")
        clash = db.query(VendorContract).filter(
            VendorContract.company_id == user.company_id,
            VendorContract.contract_number == number,
            VendorContract.id != c.id,
        ).first()
        if clash:
            raise HTTPException(status_code=400, detail="Contract number already exists")
        c.contract_number = number
    if data.get("vendor_id"):
        c.vendor_id = get_company_vendor(db, user.company_id, data["vendor_id"]).id
    for field in ["title", "terms", "notes"]:
        if field in data:
            setattr(c, field, data[field])
    if data.get("type"):
        c.type = parse_enum(ContractType, data["type"], "type")
    if data.get("status"):
        c.status = parse_enum(ContractStatus, data["status"])
    if "total_sum" in data:
        c.total_sum = parse_number(data["total_sum"], "total_sum", 0)
    if "retention_percentage" in data:
        c.retention_percentage = parse_number(data["retention_percentage"], "retention_percentage")
    if "warranty_years" in data:
        c.warranty_years = _parse_warranty(data["warranty_years"])
    if data.get("start_date"):
        c.start_date = parse_datetime(data["start_date"], "start_date")
    if data.get("end_date"):
        c.end_date = parse_datetime(data["end_date"], "end_date")
    if c.end_date < c.start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    if "project_ids" in data:
        c.projects = _resolve_projects(db, user, data["project_ids"])
    db.commit()
    db.refresh(c)
    return serialize_contract(c, detail=True)


@router.delete("/{contract_id}")
def delete_contract(contract_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    log_activity(
        db, user.company_id, user.id, "contract_deleted", "contract",
        entity_id=c.id, entity_name=c.contract_number,
    )
    db.delete(c)
    db.commit()
    return {"ok": True}


@router.get("/{contract_id}/summary")
def get_contract_summary(contract_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    summary = contract_summary(c)
    summary["contract_id"] = c.id
    summary["contract_number"] = c.contract_number
    return summary


@router.get("/{contract_id}/line-items")
def list_line_items(contract_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    return [_serialize_line_item(li) for li in c.line_items]


@router.post("/{contract_id}/line-items", status_code=201)
def create_line_item(contract_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    description = (data.get("description") or "").strip()
    if not description:
        raise HTTPException(status_code=400, detail="Description is required")
    qty = parse_number(data.get("quantity"), "quantity", 1)
    price = parse_number(data.get("unit_price"), "unit_price", 0)
    li = ContractLineItem(
        contract_id=c.id, description=description, quantity=qty, unit=data.get("unit"),
        unit_price=price, total_price=qty * price, order=len(c.line_items),
    )
    db.add(li)
    _recompute_total(db, c)
    db.commit()
    db.refresh(li)
    return _serialize_line_item(li)


def _get_line_item(db: Session, c: VendorContract, item_id: str) -> ContractLineItem:
    li = db.query(ContractLineItem).filter(
        ContractLineItem.id == item_id, ContractLineItem.contract_id == c.id
    ).first()
    if not li:
        raise HTTPException(status_code=404, detail="Line item not found")
    return li


@router.patch("/{contract_id}/line-items/{item_id}")
def update_line_item(
    contract_id: str, item_id: str, data: dict = Body(...),
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    c = _get_contract(db, user, contract_id)
    li = _get_line_item(db, c, item_id)
    if "description" in data:
        description = (data["description"] or "").strip()
        if not description:
            raise HTTPException(status_code=400, detail="Description is required")
        li.description = description
    if "unit" in data:
        li.unit = data["unit"]
    if "quantity" in data:
        li.quantity = parse_number(data["quantity"], "quantity", 1)
    if "unit_price" in data:
        li.unit_price = parse_number(data["unit_price"], "unit_price", 0)
    if data.get("order") not in (None, ""):
        li.order = parse_int(data["order"], "order")
    li.total_price = li.quantity * li.unit_price
    _recompute_total(db, c)
    db.commit()
    db.refresh(li)
    return _serialize_line_item(li)


@router.delete("/{contract_id}/line-items/{item_id}")
def delete_line_item(contract_id: str, item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    db.delete(_get_line_item(db, c, item_id))
    _recompute_total(db, c)
    db.commit()
    return {"ok": True, "total_sum": c.total_sum}


@router.get("/{contract_id}/payments")
def list_payments(contract_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    return [_serialize_payment(p) for p in c.payments]


@router.post("/{contract_id}/payments", status_code=201)
def create_payment(contract_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    if data.get("amount") in (None, "") or not data.get("payment_date"):
        raise HTTPException(status_code=400, detail="Amount and payment date are required")
    amount = parse_number(data["amount"], "amount")
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")
    p = ContractPayment(
        contract_id=c.id, recorded_by_id=user.id, amount=amount,
        payment_date=parse_datetime(data["payment_date"], "payment_date"),
        reference=data.get("reference"), method=data.get("method"), notes=data.get("notes"),
    )
    db.add(p)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "contract_payment_recorded", "contract",
        entity_id=c.id, entity_name=c.contract_number,
        description=f"Payment of {amount:,.2f} recorded",
    )
    db.commit()
    db.refresh(p)
    return _serialize_payment(p)


def _build_co_items(raw_items) -> list[ChangeOrderItem]:
    items = []
    for raw in raw_items or []:
        description = (raw.get("description") or "").strip()
        if not description:
            raise HTTPException(status_code=400, detail="Each item needs a description")
        qty = parse_number(raw.get("quantity"), "quantity", 1)
        price = parse_number(raw.get("unit_price"), "unit_price", 0)
        items.append(ChangeOrderItem(
            description=description, quantity=qty, unit=raw.get("unit"),
            unit_price=price, total_price=qty * price,
        ))
    return items


def _get_change_order(db: Session, c: VendorContract, co_id: str) -> ChangeOrder:
    co = db.query(ChangeOrder).filter(ChangeOrder.id == co_id, ChangeOrder.contract_id == c.id).first()
    if not co:
        raise HTTPException(status_code=404, detail="Change order not found")
    return co


@router.get("/{contract_id}/change-orders")
def list_change_orders(contract_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    return [serialize_change_order(co) for co in c.change_orders]


@router.post("/{contract_id}/change-orders", status_code=201)
def create_change_order(contract_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    numbers = [r[0] for r in db.query(ChangeOrder.number).filter(ChangeOrder.contract_id == c.id).all()]
    co = ChangeOrder(
        contract_id=c.id, created_by_id=user.id, number=f"CO-{next_sequence(numbers, 'CO-'):03d}",
        title=title, description=data.get("description"), reason=data.get("reason"),
        status=ChangeOrderStatus.DRAFT,
    )
    co.items = _build_co_items(data.get("items"))
    co.total = sum(i.total_price for i in co.items)
    db.add(co)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "change_order_created", "change_order",
        entity_id=co.id, entity_name=f"{c.contract_number} {co.number}",
    )
    db.commit()
    db.refresh(co)
    return serialize_change_order(co)


@router.get("/{contract_id}/change-orders/{co_id}")
def get_change_order(contract_id: str, co_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    return serialize_change_order(_get_change_order(db, c, co_id))


@router.patch("/{contract_id}/change-orders/{co_id}")
def update_change_order(
    contract_id: str, co_id: str, data: dict = Body(...),
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    c = _get_contract(db, user, contract_id)
    co = _get_change_order(db, c, co_id)

    editing = [f for f in ("title", "description", "reason", "items") if f in data]
    if editing and co.status != ChangeOrderStatus.DRAFT:
        raise HTTPException(status_code=400, detail="Only draft change orders can be edited")
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        co.title = title
    for field in ["description", "reason"]:
        if field in data:
            setattr(co, field, data[field])
    if "items" in data:
        co.items = _build_co_items(data["items"])
        co.total = sum(i.total_price for i in co.items)

    if data.get("status"):
        target = parse_enum(ChangeOrderStatus, data["status"])
        if target != co.status:
            if target not in CO_TRANSITIONS[co.status]:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid status transition from {co.status.value} to {target.value}",
                )
            now = datetime.utcnow()
            if target == ChangeOrderStatus.PENDING_APPROVAL:
                co.submitted_at = now
            elif target == ChangeOrderStatus.APPROVED:
                co.approved_at = now
                co.approved_by_id = user.id
            elif target == ChangeOrderStatus.REJECTED:
                co.rejected_at = now
                co.rejected_by_id = user.id
                co.rejection_reason = data.get("rejection_reason")
            co.status = target
            log_activity(
                db, user.company_id, user.id, f"change_order_{target.value.lower()}", "change_order",
                entity_id=co.id, entity_name=f"{c.contract_number} {co.number}",
            )

    db.commit()
    db.refresh(co)
    return serialize_change_order(co)


@router.delete("/{contract_id}/change-orders/{co_id}")
def delete_change_order(contract_id: str, co_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = _get_contract(db, user, contract_id)
    co = _get_change_order(db, c, co_id)
    if co.status != ChangeOrderStatus.DRAFT:
        raise HTTPException(status_code=400, detail="Only draft change orders can be deleted")
    db.delete(co)
    db.commit()
    return {"ok": True}
