from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin, hash_password
from app.core.logging import get_logger
from app.models.models import (
    Vendor, VendorType, VendorStatus, VendorCategory, VendorTag, VendorContact,
    VendorReview, User, Task, ProjectMilestone, VendorContract, PriceComparison,
    PurchaseOrder, Card
)
from app.api.common import parse_enum, parse_number, get_company_vendor, user_brief
from app.services.metrics_service import REVIEW_WEIGHTS, overall_rating, average_rating

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["vendors"])

VENDOR_TEXT_FIELDS = [
    "email", "phone", "website", "address", "city", "state", "country", "tax_id", "notes",
]
MIN_PORTAL_PASSWORD = 8


def _total_projects(db: Session, vendor_id: str) -> int:
    task_cards = {r[0] for r in db.query(Task.card_id).filter(Task.vendor_id == vendor_id).distinct()}
    milestone_cards = {r[0] for r in db.query(ProjectMilestone.card_id).filter(ProjectMilestone.vendor_id == vendor_id).distinct()}
    return len(task_cards | milestone_cards)


def serialize_vendor(db: Session, v: Vendor, detail: bool = False) -> dict:
    data = {
        "id": v.id,
        "name": v.name,
        "type": v.type.value,
        "status": v.status.value,
        "email": v.email,
        "phone": v.phone,
        "website": v.website,
        "address": v.address,
        "city": v.city,
        "state": v.state,
        "country": v.country,
        "tax_id": v.tax_id,
        "notes": v.notes,
        "is_active": v.is_active,
        "category": {"id": v.category.id, "name": v.category.name, "color": v.category.color} if v.category else None,
        "tags": [{"id": t.id, "name": t.name, "color": t.color} for t in v.tags],
        "portal_enabled": bool(v.portal_enabled),
        "portal_email": v.portal_email,
        "last_portal_login": str(v.last_portal_login) if v.last_portal_login else None,
        "average_rating": average_rating(v.reviews),
        "review_count": len(v.reviews),
        "total_projects": _total_projects(db, v.id),
        "created_at": str(v.created_at),
    }
    if detail:
        data["contacts"] = [_serialize_contact(c) for c in v.contacts]
        data["reviews"] = [_serialize_review(r) for r in sorted(v.reviews, key=lambda r: r.created_at, reverse=True)]
    return data


def _serialize_contact(c: VendorContact) -> dict:
    return {
        "id": c.id, "vendor_id": c.vendor_id, "name": c.name, "title": c.title,
        "email": c.email, "phone": c.phone, "is_primary": c.is_primary, "notes": c.notes,
    }


def _serialize_review(r: VendorReview) -> dict:
    data = {k: getattr(r, k) for k in REVIEW_WEIGHTS}
    data.update({
        "id": r.id,
        "vendor_id": r.vendor_id,
        "card_id": r.card_id,
        "project_title": r.card.title if r.card else None,
        "overall_rating": r.overall_rating,
        "comments": r.comments,
        "reviewer": user_brief(r.reviewer),
        "created_at": str(r.created_at),
    })
    return data


def _resolve_tags(db: Session, company_id: str, tag_ids) -> list[VendorTag]:
    ids = [t for t in (tag_ids or []) if t]
    if not ids:
        return []
    tags = db.query(VendorTag).filter(VendorTag.id.in_(ids), VendorTag.company_id == company_id).all()
    if len(tags) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Invalid tag")
    return tags


def _check_category(db: Session, company_id: str, category_id):
    if category_id and not db.query(VendorCategory).filter(
        VendorCategory.id == category_id, VendorCategory.company_id == company_id
    ).first():
        raise HTTPException(status_code=400, detail="Invalid category")


def _apply_vendor_fields(db: Session, user: User, v: Vendor, data: dict):
    for field in VENDOR_TEXT_FIELDS:
        if field in data:
            setattr(v, field, data[field])
    if data.get("type"):
        v.type = parse_enum(VendorType, data["type"], "type")
    if data.get("status"):
        v.status = parse_enum(VendorStatus, data["status"])
    if "category_id" in data:
        _check_category(db, user.company_id, data["category_id"])
        v.category_id = data["category_id"] or None
    if "tag_ids" in data:
        v.tags = _resolve_tags(db, user.company_id, data["tag_ids"])


@router.get("/vendors")
def list_vendors(
    search: str = Query(None),
    category_id: str = Query(None),
    tag_ids: str = Query(None),
    min_rating: float = Query(None),
    type: str = Query(None),
    status: str = Query(None),
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    q = db.query(Vendor).filter(Vendor.company_id == user.company_id)
    if not include_inactive:
        q = q.filter(Vendor.is_active == True)
    if search:
        q = q.filter(Vendor.name.ilike(f"%{search}%") | Vendor.email.ilike(f"%{search}%"))
    if category_id:
        q = q.filter(Vendor.category_id == category_id)
    if type:
        q = q.filter(Vendor.type == parse_enum(VendorType, type, "type"))
    if status:
        q = q.filter(Vendor.status == parse_enum(VendorStatus, status))
    if tag_ids:
        ids = [t.strip() for t in tag_ids.split(",") if t.strip()]
        q = q.filter(Vendor.tags.any(VendorTag.id.in_(ids)))

    vendors = [serialize_vendor(db, v) for v in q.order_by(Vendor.name).all()]
    if min_rating is not None:
        vendors = [v for v in vendors if (v["average_rating"] or 0) >= min_rating]
    return vendors


@router.post("/vendors", status_code=201)
def create_vendor(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Vendor name is required")

    v = Vendor(company_id=user.company_id, name=name)
    _apply_vendor_fields(db, user, v, data)
    for raw in data.get("contacts") or []:
        if not (raw.get("name") or "").strip():
            raise HTTPException(status_code=400, detail="Contact name is required")
        v.contacts.append(VendorContact(
            name=raw["name"].strip(), title=raw.get("title"), email=raw.get("email"),
            phone=raw.get("phone"), is_primary=bool(raw.get("is_primary")), notes=raw.get("notes"),
        ))
    db.add(v)
    db.commit()
    db.refresh(v)
    return serialize_vendor(db, v, detail=True)


@router.get("/vendors/{vendor_id}")
def get_vendor(vendor_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_vendor(db, get_company_vendor(db, user.company_id, vendor_id), detail=True)


@router.patch("/vendors/{vendor_id}")
def update_vendor(vendor_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Vendor name is required")
        v.name = name
    if "is_active" in data:
        v.is_active = bool(data["is_active"])
    _apply_vendor_fields(db, user, v, data)
    db.commit()
    db.refresh(v)
    return serialize_vendor(db, v, detail=True)


@router.delete("/vendors/{vendor_id}")
def delete_vendor(vendor_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    linked = any([
        db.query(Task).filter(Task.vendor_id == v.id).first(),
        db.query(ProjectMilestone).filter(ProjectMilestone.vendor_id == v.id).first(),
        db.query(VendorContract).filter(VendorContract.vendor_id == v.id).first(),
        db.query(PriceComparison).filter(PriceComparison.vendor_id == v.id).first(),
        db.query(PurchaseOrder).filter(PurchaseOrder.vendor_id == v.id).first(),
        v.reviews,
    ])
    if linked:
        v.is_active = False
        db.commit()
        return {"ok": True, "deactivated": True, "message": "Vendor has associated records and was deactivated"}
    db.delete(v)
    db.commit()
    return {"ok": True, "deactivated": False}


@router.get("/vendor-categories")
def list_vendor_categories(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cats = db.query(VendorCategory).filter(VendorCategory.company_id == user.company_id).order_by(VendorCategory.name).all()
    return [{"id": c.id, "name": c.name, "description": c.description, "color": c.color,
             "vendor_count": len(c.vendors)} for c in cats]


@router.post("/vendor-categories", status_code=201)
def create_vendor_category(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    cat = VendorCategory(company_id=user.company_id, name=name, description=data.get("description"),
                         color=data.get("color") or "#6366f1")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return {"id": cat.id, "name": cat.name, "description": cat.description, "color": cat.color, "vendor_count": 0}


@router.delete("/vendor-categories/{category_id}")
def delete_vendor_category(category_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cat = db.query(VendorCategory).filter(
        VendorCategory.id == category_id, VendorCategory.company_id == user.company_id
    ).first()
    if not cat:
        raise HTTPException(status_code=404, detail="Category not found")
    for v in cat.vendors:
        v.category_id = None
    db.delete(cat)
    db.commit()
    return {"ok": True}


@router.get("/vendor-tags")
def list_vendor_tags(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tags = db.query(VendorTag).filter(VendorTag.company_id == user.company_id).order_by(VendorTag.name).all()
    return [{"id": t.id, "name": t.name, "color": t.color} for t in tags]


@router.post("/vendor-tags", status_code=201)
def create_vendor_tag(data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    if db.query(VendorTag).filter(VendorTag.company_id == user.company_id, VendorTag.name == name).first():
        raise HTTPException(status_code=400, detail="Tag already exists")
    tag = VendorTag(company_id=user.company_id, name=name, color=data.get("color") or "#64748b")
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return {"id": tag.id, "name": tag.name, "color": tag.color}


@router.delete("/vendor-tags/{tag_id}")
def delete_vendor_tag(tag_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tag = db.query(VendorTag).filter(VendorTag.id == tag_id, VendorTag.company_id == user.company_id).first()
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    for v in db.query(Vendor).filter(Vendor.tags.any(VendorTag.id == tag.id)).all():
        v.tags.remove(tag)
    db.delete(tag)
    db.commit()
    return {"ok": True}


def _clear_primary(v: Vendor, keep: VendorContact | None = None):
    for c in v.contacts:
        if c is not keep:
            c.is_primary = False


@router.get("/vendors/{vendor_id}/contacts")
def list_contacts(vendor_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    return [_serialize_contact(c) for c in v.contacts]


@router.post("/vendors/{vendor_id}/contacts", status_code=201)
def create_contact(vendor_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Contact name is required")
    contact = VendorContact(
        vendor_id=v.id, name=name, title=data.get("title"), email=data.get("email"),
        phone=data.get("phone"), is_primary=bool(data.get("is_primary")), notes=data.get("notes"),
    )
    if contact.is_primary:
        _clear_primary(v)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return _serialize_contact(contact)


def _get_contact(db: Session, v: Vendor, contact_id: str) -> VendorContact:
    contact = db.query(VendorContact).filter(VendorContact.id == contact_id, VendorContact.vendor_id == v.id).first()
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.patch("/vendors/{vendor_id}/contacts/{contact_id}")
def update_contact(vendor_id: str, contact_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    contact = _get_contact(db, v, contact_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Contact name is required")
        contact.name = name
    for field in ["title", "email", "phone", "notes"]:
        if field in data:
            setattr(contact, field, data[field])
    if "is_primary" in data:
        contact.is_primary = bool(data["is_primary"])
        if contact.is_primary:
            _clear_primary(v, keep=contact)
    db.commit()
    db.refresh(contact)
    return _serialize_contact(contact)


@router.delete("/vendors/{vendor_id}/contacts/{contact_id}")
def delete_contact(vendor_id: str, contact_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    db.delete(_get_contact(db, v, contact_id))
    db.commit()
    return {"ok": True}


@router.get("/vendors/{vendor_id}/reviews")
def list_reviews(vendor_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    reviews = db.query(VendorReview).filter(VendorReview.vendor_id == v.id).order_by(VendorReview.created_at.desc()).all()
    return [_serialize_review(r) for r in reviews]


@router.post("/vendors/{vendor_id}/reviews", status_code=201)
def create_review(vendor_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    scores = {}
    for dim in REVIEW_WEIGHTS:
        value = parse_number(data.get(dim), dim)
        if value is None:
            continue
        if value < 1 or value > 5:
            raise HTTPException(status_code=400, detail=f"{dim} must be between 1 and 5")
        scores[dim] = value
    if not scores:
        raise HTTPException(status_code=400, detail="At least one rating is required")

    card_id = data.get("card_id") or data.get("project_id")
    if card_id and not db.query(Card).filter(Card.id == card_id, Card.company_id == user.company_id).first():
        raise HTTPException(status_code=400, detail="Invalid project")

    review = VendorReview(
        vendor_id=v.id, card_id=card_id or None, reviewer_id=user.id,
        overall_rating=overall_rating(scores), comments=data.get("comments"), **scores,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    return _serialize_review(review)


@router.delete("/vendor-reviews/{review_id}")
def delete_review(review_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review = db.query(VendorReview).join(Vendor, VendorReview.vendor_id == Vendor.id).filter(
        VendorReview.id == review_id, Vendor.company_id == user.company_id
    ).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    db.delete(review)
    db.commit()
    return {"ok": True}


@router.get("/vendors/{vendor_id}/score")
def vendor_score(vendor_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    dimensions = {}
    for dim in REVIEW_WEIGHTS:
        values = [getattr(r, dim) for r in v.reviews if getattr(r, dim) is not None]
        dimensions[dim] = round(sum(values) / len(values), 1) if values else None
    return {
        "vendor_id": v.id,
        "review_count": len(v.reviews),
        "average_rating": average_rating(v.reviews),
        "dimensions": dimensions,
        "weights": REVIEW_WEIGHTS,
    }


@router.post("/vendors/{vendor_id}/portal-access")
def enable_portal_access(vendor_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if len(password) < MIN_PORTAL_PASSWORD:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    taken = db.query(Vendor).filter(Vendor.portal_email == email, Vendor.id != v.id).first()
    if taken:
        raise HTTPException(status_code=400, detail="Email already in use by another vendor")

    v.portal_email = email
    v.portal_password_hash = hash_password(password)
    v.portal_enabled = True
    db.commit()
    logger.info(f"Portal access enabled for vendor {v.id}", extra={"company_id": user.company_id, "vendor_id": v.id})
    return {"ok": True, "portal_email": v.portal_email, "portal_enabled": True}


@router.delete("/vendors/{vendor_id}/portal-access")
def revoke_portal_access(vendor_id: str, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    v = get_company_vendor(db, user.company_id, vendor_id)
    v.portal_email = None
    v.portal_password_hash = None
    v.portal_enabled = False
    v.last_portal_login = None
    db.commit()
    return {"ok": True, "portal_enabled": False}
