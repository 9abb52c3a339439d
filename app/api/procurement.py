from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin
from app.models.models import ProcurementItem, PriceComparison, PurchaseOrderItem, User
from app.api.common import parse_number, parse_int, get_company_vendor, iso

router = APIRouter(prefix="/api/procurement", tags=["procurement"])


def serialize_price(p: PriceComparison) -> dict:
    return {
        "id": p.id,
        "item_id": p.item_id,
        "vendor": {"id": p.vendor.id, "name": p.vendor.name} if p.vendor else None,
        "vendor_id": p.vendor_id,
        "unit_price": p.unit_price,
        "lead_time_days": p.lead_time_days,
        "min_order_qty": p.min_order_qty,
        "notes": p.notes,
        "is_preferred": bool(p.is_preferred),
        "last_purchase_date": iso(p.last_purchase_date),
        "total_purchased_qty": p.total_purchased_qty or 0,
        "total_purchased_value": p.total_purchased_value or 0,
        "updated_at": str(p.updated_at),
    }


def serialize_item(item: ProcurementItem, with_prices: bool = False) -> dict:
    prices = sorted(item.prices, key=lambda p: p.unit_price)
    preferred = next((p for p in prices if p.is_preferred), None)
    data = {
        "id": item.id,
        "name": item.name,
        "sku": item.sku,
        "category": item.category,
        "unit": item.unit,
        "description": item.description,
        "price_count": len(prices),
        "lowest_price": prices[0].unit_price if prices else None,
        "preferred_vendor": {"id": preferred.vendor_id, "name": preferred.vendor.name} if preferred else None,
        "created_at": str(item.created_at),
    }
    if with_prices:
        data["prices"] = [serialize_price(p) for p in prices]
    return data


def _get_item(db: Session, user: User, item_id: str) -> ProcurementItem:
    item = db.query(ProcurementItem).filter(
        ProcurementItem.id == item_id, ProcurementItem.company_id == user.company_id
    ).first()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


def _check_sku(db: Session, company_id: str, sku, exclude_id=None):
    if not sku:
        return
    q = db.query(ProcurementItem).filter(ProcurementItem.company_id == company_id, ProcurementItem.sku == sku)
    if exclude_id:
        q = q.filter(ProcurementItem.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="An item with this SKU already exists")


@router.get("/items")
def list_items(
    search: str = Query(None),
    category: str = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(ProcurementItem).filter(ProcurementItem.company_id == user.company_id)
    if search:
        q = q.filter(ProcurementItem.name.ilike(f"%{search}%") | ProcurementItem.sku.ilike(f"%{search}%"))
    if category:
        q = q.filter(ProcurementItem.category == category)
    categories = [
        r[0] for r in db.query(ProcurementItem.category).filter(
            ProcurementItem.company_id == user.company_id
        ).distinct().order_by(ProcurementItem.category)
    ]
    return {
        "items": [serialize_item(i) for i in q.order_by(ProcurementItem.name).all()],
        "categories": categories,
    }


@router.post("/items", status_code=201)
def create_item(data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    category = (data.get("category") or "").strip()
    unit = (data.get("unit") or "").strip()
    if not name or not category or not unit:
        raise HTTPException(status_code=400, detail="Name, category, and unit are required")
    sku = (data.get("sku") or "").strip() or None
    _check_sku(db, user.company_id, sku)

    item = ProcurementItem(
        company_id=user.company_id, name=name, sku=sku, category=category, unit=unit,
        description=data.get("description"),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return serialize_item(item, with_prices=True)


@router.get("/items/{item_id}")
def get_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_item(_get_item(db, user, item_id), with_prices=True)


@router.patch("/items/{item_id}")
def update_item(item_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    for field in ["name", "category", "unit"]:
        if field in data:
            value = (data[field] or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail=f"{field.capitalize()} is required")
            setattr(item, field, value)
    if "sku" in data:
        sku = (data["sku"] or "").strip() or None
        _check_sku(db, user.company_id, sku, exclude_id=item.id)
        item.sku = sku
    if "description" in data:
        item.description = data["description"]
    db.commit()
    db.refresh(item)
    return serialize_item(item, with_prices=True)


@router.delete("/items/{item_id}")
def delete_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    if db.query(PurchaseOrderItem).filter(PurchaseOrderItem.procurement_item_id == item.id).first():
        raise HTTPException(status_code=400, detail="Item is used on purchase orders and cannot be deleted")
    db.delete(item)
    db.commit()
    return {"ok": True}


@router.get("/items/{item_id}/prices")
def list_prices(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    prices = db.query(PriceComparison).filter(
        PriceComparison.item_id == item.id
    ).order_by(PriceComparison.unit_price.asc()).all()
    return [serialize_price(p) for p in prices]


@router.post("/items/{item_id}/prices", status_code=201)
def create_price(item_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    if not data.get("vendor_id") or data.get("unit_price") in (None, ""):
        raise HTTPException(status_code=400, detail="Vendor and unit price are required")
    vendor = get_company_vendor(db, user.company_id, data["vendor_id"])
    if db.query(PriceComparison).filter(
        PriceComparison.item_id == item.id, PriceComparison.vendor_id == vendor.id
    ).first():
        raise HTTPException(status_code=400, detail="This vendor already has a price for this item")

    price = PriceComparison(
        item_id=item.id, vendor_id=vendor.id,
        unit_price=parse_number(data["unit_price"], "unit_price"),
        lead_time_days=parse_int(data.get("lead_time_days"), "lead_time_days"),
        min_order_qty=parse_number(data.get("min_order_qty"), "min_order_qty"),
        notes=data.get("notes"),
    )
    db.add(price)
    db.commit()
    db.refresh(price)
    return serialize_price(price)


def _get_price(db: Session, user: User, price_id: str) -> PriceComparison:
    price = db.query(PriceComparison).join(
        ProcurementItem, PriceComparison.item_id == ProcurementItem.id
    ).filter(PriceComparison.id == price_id, ProcurementItem.company_id == user.company_id).first()
    if not price:
        raise HTTPException(status_code=404, detail="Price not found")
    return price


@router.patch("/prices/{price_id}")
def update_price(price_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    price = _get_price(db, user, price_id)
    if "unit_price" in data:
        value = parse_number(data["unit_price"], "unit_price")
        if value is None:
            raise HTTPException(status_code=400, detail="Unit price is required")
        price.unit_price = value
    if "lead_time_days" in data:
        price.lead_time_days = parse_int(data["lead_time_days"], "lead_time_days")
    if "min_order_qty" in data:
        price.min_order_qty = parse_number(data["min_order_qty"], "min_order_qty")
    if "notes" in data:
        price.notes = data["notes"]
    db.commit()
    db.refresh(price)
    return serialize_price(price)


@router.delete("/prices/{price_id}")
def delete_price(price_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    db.delete(_get_price(db, user, price_id))
    db.commit()
    return {"ok": True}


@router.put("/items/{item_id}/preferred-vendor")
def set_preferred_vendor(item_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    vendor_id = data.get("vendor_id")
    if not vendor_id:
        raise HTTPException(status_code=400, detail="Vendor is required")
    chosen = next((p for p in item.prices if p.vendor_id == vendor_id), None)
    if not chosen:
        raise HTTPException(status_code=400, detail="Vendor does not have pricing for this item. Add to catalog first.")
    for p in item.prices:
        p.is_preferred = p is chosen
    db.commit()
    db.refresh(item)
    return serialize_item(item, with_prices=True)


@router.delete("/items/{item_id}/preferred-vendor")
def clear_preferred_vendor(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_item(db, user, item_id)
    for p in item.prices:
        p.is_preferred = False
    db.commit()
    db.refresh(item)
    return serialize_item(item, with_prices=True)
