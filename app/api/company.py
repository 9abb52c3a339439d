import secrets
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Body, Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user, get_current_admin, hash_password
from app.core.config import APP_URL
from app.core.currency import is_supported_currency, supported_currencies
from app.models.models import Company, User, Role, TeamInvite
from app.schemas.schemas import CompanyResponse, UserCreate
from app.api.auth import serialize_user
from app.api.common import parse_enum
from app.services.activity_service import log_activity

router = APIRouter(prefix="/api", tags=["company"])

INVITE_EXPIRE_DAYS = 7
MIN_PASSWORD_LENGTH = 6

COMPANY_FIELDS = [
    "name", "app_name", "logo", "website", "phone", "email", "address",
    "city", "state", "zip_code", "country", "currency",
]


@router.get("/company/settings", response_model=CompanyResponse)
def get_settings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Company).filter(Company.id == user.company_id).first()


@router.patch("/company/settings", response_model=CompanyResponse)
def update_settings(data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    company = db.query(Company).filter(Company.id == user.company_id).first()
    if "name" in data and not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Company name is required")
    if "currency" in data:
        if not is_supported_currency(data["currency"]):
            raise HTTPException(status_code=400, detail="Unsupported currency")
        data["currency"] = data["currency"].upper()
    for field in COMPANY_FIELDS:
        if field in data:
            setattr(company, field, data[field])
    db.commit()
    db.refresh(company)
    return company


@router.get("/currencies")
def list_currencies():
    return supported_currencies()


@router.get("/users")
def list_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    users = db.query(User).filter(
        User.company_id == user.company_id, User.is_active == True
    ).order_by(User.first_name, User.last_name).all()
    return [serialize_user(u) for u in users]


@router.post("/users", status_code=201)
def create_user(data: UserCreate, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    if not all([data.email, data.password, data.first_name, data.last_name]):
        raise HTTPException(status_code=400, detail="Missing required fields")
    email = data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists")

    member = User(
        company_id=user.company_id,
        email=email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        phone=data.phone,
        role=parse_enum(Role, data.role, "role"),
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return serialize_user(member)


@router.patch("/users/{user_id}")
def update_user(user_id: str, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    member = db.query(User).filter(User.id == user_id, User.company_id == user.company_id).first()
    if not member:
        raise HTTPException(status_code=404, detail="User not found")
    role = parse_enum(Role, data["role"], "role") if "role" in data else None
    if member.id == user.id and (data.get("is_active") is False or role not in (None, Role.ADMIN)):
        raise HTTPException(status_code=400, detail="You cannot demote or deactivate yourself")

    for field in ["first_name", "last_name", "phone"]:
        if field in data:
            setattr(member, field, data[field])
    if role is not None:
        member.role = role
    if "is_active" in data:
        member.is_active = bool(data["is_active"])
    db.commit()
    db.refresh(member)
    return serialize_user(member)



def serialize_invite(i: TeamInvite) -> dict:
    return {
        "id": i.id,
        "email": i.email,
        "first_name": i.first_name,
        "last_name": i.last_name,
        "role": i.role.value,
        "token": i.token,
        "expires_at": str(i.expires_at),
        "is_accepted": i.is_accepted,
    }


def _invite_url(token: str) -> str:
    return f"{APP_URL}/invite/{token}"


def _pending_invites(db: Session):
    return db.query(TeamInvite).filter(
        TeamInvite.is_accepted == False, TeamInvite.expires_at >= datetime.utcnow()
    )


def _open_invite(db: Session, token: str) -> TeamInvite:
    invite = _pending_invites(db).filter(TeamInvite.token == token).first()
    if not invite:
        raise HTTPException(status_code=404, detail="Invalid or expired invitation")
    return invite


@router.get("/team/invites")
def list_invites(user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    invites = _pending_invites(db).filter(TeamInvite.company_id == user.company_id).order_by(TeamInvite.created_at.desc()).all()
    return [serialize_invite(i) for i in invites]


@router.post("/team/invites", status_code=201)
def create_invite(response: Response, data: dict = Body(...), user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    email = (data.get("email") or "").strip().lower()
    first_name = (data.get("first_name") or "").strip()
    last_name = (data.get("last_name") or "").strip()
    if not all([email, first_name, last_name]):
        raise HTTPException(status_code=400, detail="Missing required fields")
    role = parse_enum(Role, data.get("role") or Role.STAFF, "role")
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    existing = _pending_invites(db).filter(
        TeamInvite.company_id == user.company_id, TeamInvite.email == email
    ).first()
    if existing:
        response.status_code = 200
        return {"invite": serialize_invite(existing), "invite_url": _invite_url(existing.token)}

    invite = TeamInvite(
        company_id=user.company_id, invited_by_id=user.id,
        email=email, first_name=first_name, last_name=last_name, role=role,
        token=secrets.token_hex(32),
        expires_at=datetime.utcnow() + timedelta(days=INVITE_EXPIRE_DAYS),
    )
    db.add(invite)
    log_activity(
        db, user.company_id, user.id, "user_invited", "user",
        entity_name=email,
        description=f"Invited {first_name} {last_name} ({email}) to join as {role.value}",
    )
    db.commit()
    db.refresh(invite)
    return {"invite": serialize_invite(invite), "invite_url": _invite_url(invite.token)}


@router.get("/invites/{token}")
def get_invite(token: str, db: Session = Depends(get_db)):
    invite = _open_invite(db, token)
    data = serialize_invite(invite)
    data["company_name"] = invite.company.app_name or invite.company.name
    data["invited_by"] = invite.invited_by.full_name if invite.invited_by else None
    return {"invite": data}


@router.post("/invites/{token}/accept", status_code=201)
def accept_invite(token: str, data: dict = Body(...), db: Session = Depends(get_db)):
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    invite = _open_invite(db, token)
    if db.query(User).filter(User.email == invite.email).first():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    member = User(
        company_id=invite.company_id, email=invite.email,
        hashed_password=hash_password(password),
        first_name=invite.first_name, last_name=invite.last_name,
        role=invite.role, is_active=True,
    )
    db.add(member)
    db.flush()
    invite.is_accepted = True
    invite.accepted_at = datetime.utcnow()
    log_activity(
        db, invite.company_id, member.id, "user_joined", "user",
        entity_id=member.id, entity_name=member.full_name,
        description=f"{member.full_name} joined the team",
    )
    db.commit()
    db.refresh(member)
    return {"user": serialize_user(member)}
