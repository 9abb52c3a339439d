from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import hash_password, verify_password, create_user_token, get_current_user
from app.core.config import AUTH_COOKIE_NAME, ACCESS_TOKEN_EXPIRE_MINUTES
from app.core.logging import get_logger, log_security_event
from app.models.models import User, Company, Stage, Role
from app.schemas.schemas import LoginRequest, RegisterRequest, AuthResponse, UserWithCompany, CompanyResponse
from app.services.activity_service import log_activity

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

DEFAULT_STAGES = [
    ("New Lead", "#3b82f6"),
    ("Contacted", "#8b5cf6"),
    ("Qualified", "#ec4899"),
    ("Proposal", "#f59e0b"),
    ("Negotiation", "#84cc16"),
    ("Won", "#10b981"),
]


def serialize_user(user: User, with_company: bool = False) -> dict:
    data = {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "role": user.role.value,
        "company_id": user.company_id,
        "is_active": user.is_active,
        "last_login": user.last_login,
        "created_at": user.created_at,
    }
    if with_company:
        data["company"] = CompanyResponse.model_validate(user.company)
    return data


def _set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        AUTH_COOKIE_NAME, token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True, samesite="lax",
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(data: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    if not all([data.email, data.password, data.first_name, data.last_name, data.company_name]):
        raise HTTPException(status_code=400, detail="Missing required fields")

    email = data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists")

    company = Company(name=data.company_name.strip())
    db.add(company)
    db.flush()

    user = User(
        company_id=company.id,
        email=email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        role=Role.ADMIN,
        last_login=datetime.utcnow(),
    )
    db.add(user)
    for order, (name, color) in enumerate(DEFAULT_STAGES):
        db.add(Stage(company_id=company.id, name=name, color=color, order=order))
    db.commit()
    db.refresh(user)

    logger.info(f"Registered company {company.name}", extra={"company_id": company.id, "user_id": user.id})
    token = create_user_token(user)
    _set_auth_cookie(response, token)
    return {"token": token, "user": serialize_user(user, with_company=True)}


@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.hashed_password):
        log_security_event("failed_login", {"email": data.email}, logger)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        log_security_event("disabled_login", {"user_id": user.id}, logger)
        raise HTTPException(status_code=401, detail="Account is disabled")

    user.last_login = datetime.utcnow()
    log_activity(
        db, user.company_id, user.id, "user_login", "user",
        entity_id=user.id, entity_name=user.full_name,
        description=f"{user.full_name} logged in",
    )
    db.commit()
    db.refresh(user)

    token = create_user_token(user)
    _set_auth_cookie(response, token)
    return {"token": token, "user": serialize_user(user, with_company=True)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME)
    return {"ok": True}


@router.get("/me", response_model=UserWithCompany)
def get_me(user: User = Depends(get_current_user)):
    return serialize_user(user, with_company=True)
