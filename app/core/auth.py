import hashlib
import secrets
from datetime import datetime, timedelta
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core.config import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, AUTH_COOKIE_NAME, VENDOR_COOKIE_NAME,
)
from app.core.logging import get_logger, log_security_event
from app.db.session import get_db
from app.models.models import User, Role, Vendor, VendorStatus

logger = get_logger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

PORTAL_VENDOR_STATUSES = (VendorStatus.VERIFIED, VendorStatus.PENDING_VERIFICATION)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    h = hashlib.pbkdf2_hmac('sha256', password.encode(), salt.encode(), 100000)
    return f"{salt}${h.hex()}"


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed or '$' not in hashed:
        return False
    salt, h = hashed.split('$', 1)
    check = hashlib.pbkdf2_hmac('sha256', plain.encode(), salt.encode(), 100000)
    return secrets.compare_digest(check.hex(), h)


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_user_token(user: User) -> str:
    return create_access_token({
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "company_id": user.company_id,
    })


def create_vendor_token(vendor: Vendor) -> str:
    return create_access_token({
        "sub": vendor.id,
        "email": vendor.portal_email,
        "company_id": vendor.company_id,
        "type": "vendor",
    })


def _decode(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def _resolve_token(request: Request, bearer: str | None, cookie_name: str) -> str:
    token = bearer or request.cookies.get(cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return token


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    payload = _decode(_resolve_token(request, token, AUTH_COOKIE_NAME))
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") == "vendor":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_role(allowed_roles: list[Role]):
    def dependency(user: User = Depends(get_current_user)):
        if user.role not in allowed_roles:
            log_security_event("privilege_escalation", {"user_id": user.id, "company_id": user.company_id}, logger)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user
    return dependency


get_current_admin = require_role([Role.ADMIN])


def get_current_vendor(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Vendor:
    payload = _decode(_resolve_token(request, token, VENDOR_COOKIE_NAME))
    if payload.get("type") != "vendor" or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    vendor = db.query(Vendor).filter(
        Vendor.id == payload["sub"],
        Vendor.portal_email == payload.get("email"),
        Vendor.is_active == True,
        Vendor.status.in_(PORTAL_VENDOR_STATUSES),
    ).first()
    if vendor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return vendor
