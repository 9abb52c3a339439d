from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None


class CompanyResponse(BaseModel):
    id: str
    name: str
    app_name: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    currency: str = "USD"

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str
    company_id: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserWithCompany(UserResponse):
    company: Optional[CompanyResponse] = None


class AuthResponse(BaseModel):
    token: str
    user: UserWithCompany


class UserCreate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "STAFF"


class StageResponse(BaseModel):
    id: str
    name: str
    color: str
    order: int
    created_at: datetime

    class Config:
        from_attributes = True


class VendorPortalProfile(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    portal_email: Optional[str] = None
    phone: Optional[str] = None
    type: str
    status: str
    company_id: str
    company_name: Optional[str] = None


class VendorAuthResponse(BaseModel):
    token: str
    vendor: VendorPortalProfile


class MaterialResponse(BaseModel):
    id: str
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    unit: str
    quantity: float
    min_stock_level: Optional[float] = None
    unit_cost: Optional[float] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_low_stock: bool = False
    created_at: datetime
    updated_at: datetime


class InventoryTransactionResponse(BaseModel):
    id: str
    material_id: str
    card_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    type: str
    quantity: float
    previous_qty: float
    new_qty: float
    unit_cost: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime


class TransactionPage(BaseModel):
    transactions: list[InventoryTransactionResponse]
    total: int


class StockMovementResponse(BaseModel):
    material: MaterialResponse
    transaction: InventoryTransactionResponse


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    entity_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
