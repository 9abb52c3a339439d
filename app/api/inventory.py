from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import InventoryMaterial, InventoryTransaction, TransactionType, User
from app.api.common import parse_number, get_company_card
from app.schemas.schemas import (
    MaterialResponse, InventoryTransactionResponse, TransactionPage, StockMovementResponse
)
from app.services.metrics_service import is_low_stock

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


def _material_response(m: InventoryMaterial) -> MaterialResponse:
    return MaterialResponse(
        id=m.id, name=m.name, sku=m.sku, category=m.category,
        unit=m.unit, quantity=m.quantity, min_stock_level=m.min_stock_level,
        unit_cost=m.unit_cost, location=m.location, description=m.description,
        is_low_stock=is_low_stock(m), created_at=m.created_at, updated_at=m.updated_at,
    )


def _transaction_response(t: InventoryTransaction) -> InventoryTransactionResponse:
    return InventoryTransactionResponse(
        id=t.id, material_id=t.material_id, card_id=t.card_id, user_id=t.user_id,
        user_name=t.user.full_name if t.user else None,
        type=t.type.value, quantity=t.quantity, previous_qty=t.previous_qty, new_qty=t.new_qty,
        unit_cost=t.unit_cost, notes=t.notes, created_at=t.created_at,
    )


def _get_material(db: Session, user: User, material_id: str) -> InventoryMaterial:
    m = db.query(InventoryMaterial).filter(
        InventoryMaterial.id == material_id, InventoryMaterial.company_id == user.company_id
    ).first()
    if not m:
        raise HTTPException(status_code=404, detail="Material not found")
    return m


def _check_sku(db: Session, company_id: str, sku, exclude_id=None):
    if not sku:
        return
    q = db.query(InventoryMaterial).filter(InventoryMaterial.company_id == company_id, InventoryMaterial.sku == sku)
    if exclude_id:
        q = q.filter(InventoryMaterial.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="A material with this SKU already exists")


def _positive_quantity(value) -> float:
    qty = parse_number(value, "quantity")
    if qty is None or qty <= 0:
        raise HTTPException(status_code=400, detail="Quantity must be greater than 0")
    return qty


def _record(db: Session, m: InventoryMaterial, user: User, type: TransactionType, qty: float,
            new_qty: float, card_id=None, unit_cost=None, notes=None) -> InventoryTransaction:
    t = InventoryTransaction(
        material_id=m.id, card_id=card_id, user_id=user.id, type=type,
        quantity=qty, previous_qty=m.quantity, new_qty=new_qty,
        unit_cost=unit_cost, notes=notes,
    )
    m.quantity = new_qty
    db.add(t)
    return t


@router.get("/categories", response_model=list[str])
def list_categories(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.query(InventoryMaterial.category).filter(
        InventoryMaterial.company_id == user.company_id, InventoryMaterial.category.isnot(None)
    ).distinct().order_by(InventoryMaterial.category).all()
    return [r[0] for r in rows]


@router.get("", response_model=list[MaterialResponse])
def list_materials(
    search: str = Query(None),
    category: str = Query(None),
    low_stock: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(InventoryMaterial).filter(InventoryMaterial.company_id == user.company_id)
    if search:
        q = q.filter(InventoryMaterial.name.ilike(f"%{search}%") | InventoryMaterial.sku.ilike(f"%{search}%"))
    if category:
        q = q.filter(InventoryMaterial.category == category)
    materials = q.order_by(InventoryMaterial.name).all()
    if low_stock:
        materials = [m for m in materials if is_low_stock(m)]
    return [_material_response(m) for m in materials]


@router.post("", response_model=MaterialResponse, status_code=201)
def create_material(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    unit = (data.get("unit") or "").strip()
    if not name or not unit:
        raise HTTPException(status_code=400, detail="Name and unit are required")
    sku = (data.get("sku") or "").strip() or None
    _check_sku(db, user.company_id, sku)

    qty = parse_number(data.get("quantity"), "quantity", 0)
    if qty < 0:
        raise HTTPException(status_code=400, detail="Quantity cannot be negative")
    unit_cost = parse_number(data.get("unit_cost"), "unit_cost")
    m = InventoryMaterial(
        company_id=user.company_id, name=name, sku=sku, category=data.get("category") or None,
        unit=unit, quantity=0,
        min_stock_level=parse_number(data.get("min_stock_level"), "min_stock_level"),
        unit_cost=unit_cost, location=data.get("location"), description=data.get("description"),
    )
    db.add(m)
    db.flush()
    if qty > 0:
        _record(db, m, user, TransactionType.STOCK_IN, qty, qty, unit_cost=unit_cost, notes="Initial stock")
    db.commit()
    db.refresh(m)
    return _material_response(m)


@router.get("/{material_id}", response_model=MaterialResponse)
def get_material(material_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _material_response(_get_material(db, user, material_id))


@router.patch("/{material_id}", response_model=MaterialResponse)
def update_material(material_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_material(db, user, material_id)
    for field in ["name", "unit"]:
        if field in data:
            value = (data[field] or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail="Name and unit are required")
            setattr(m, field, value)
    if "sku" in data:
        sku = (data["sku"] or "").strip() or None
        _check_sku(db, user.company_id, sku, exclude_id=m.id)
        m.sku = sku
    for field in ["category", "location", "description"]:
        if field in data:
            setattr(m, field, data[field])
    if "min_stock_level" in data:
        m.min_stock_level = parse_number(data["min_stock_level"], "min_stock_level")
    if "unit_cost" in data:
        m.unit_cost = parse_number(data["unit_cost"], "unit_cost")
    db.commit()
    db.refresh(m)
    return _material_response(m)


@router.delete("/{material_id}", status_code=204)
def delete_material(material_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_material(db, user, material_id)
    db.delete(m)
    db.commit()


def _project_id(db: Session, user: User, data: dict):
    card_id = data.get("project_id") or None
    if card_id:
        get_company_card(db, user, card_id)
    return card_id


@router.post("/{material_id}/stock-in", response_model=StockMovementResponse)
def stock_in(material_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_material(db, user, material_id)
    qty = _positive_quantity(data.get("quantity"))
    unit_cost = parse_number(data.get("unit_cost"), "unit_cost")
    t = _record(
        db, m, user, TransactionType.STOCK_IN, qty, m.quantity + qty,
        card_id=_project_id(db, user, data), unit_cost=unit_cost, notes=data.get("notes"),
    )
    if unit_cost is not None:
        m.unit_cost = unit_cost
    db.commit()
    db.refresh(m)
    db.refresh(t)
    return StockMovementResponse(material=_material_response(m), transaction=_transaction_response(t))


@router.post("/{material_id}/stock-out", response_model=StockMovementResponse)
def stock_out(material_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = _get_material(db, user, material_id)
    qty = _positive_quantity(data.get("quantity"))
    if qty > m.quantity:
        raise HTTPException(status_code=400, detail=f"Insufficient stock. Available: {m.quantity:g}")
    t = _record(
        db, m, user, TransactionType.STOCK_OUT, qty, m.quantity - qty,
        card_id=_project_id(db, user, data), unit_cost=m.unit_cost, notes=data.get("notes"),
    )
    db.commit()
    db.refresh(m)
    db.refresh(t)
    return StockMovementResponse(material=_material_response(m), transaction=_transaction_response(t))


@router.get("/{material_id}/transactions", response_model=TransactionPage)
def list_transactions(
    material_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    m = _get_material(db, user, material_id)
    q = db.query(InventoryTransaction).filter(InventoryTransaction.material_id == m.id)
    total = q.count()
    rows = q.order_by(InventoryTransaction.created_at.desc()).offset(offset).limit(limit).all()
    return TransactionPage(transactions=[_transaction_response(t) for t in rows], total=total)
