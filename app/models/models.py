import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, DateTime, ForeignKey,
    Enum as SAEnum, Index, UniqueConstraint, Table
)
from sqlalchemy.orm import relationship
from app.models.base import Base
import enum

__all__ = [
    "Role", "CardStatus", "Priority", "TaskStatus", "MilestoneStatus",
    "ChecklistStatus", "EstimateStatus", "VendorType", "VendorStatus",
    "ContractType", "ContractStatus", "ChangeOrderStatus", "POStatus",
    "BidRequestStatus", "BidStatus", "AssetType", "AssetStatus",
    "AssetRequestStatus", "MaintenanceType", "TransactionType",
    "Company", "User", "Stage", "Card", "Activity", "TaskCategory", "Task",
    "ProjectMilestone", "MilestoneChecklistItem", "BudgetItem", "Estimate",
    "EstimateItem", "Folder", "Document", "VendorCategory", "VendorTag",
    "Vendor", "VendorContact", "VendorReview", "VendorContract",
    "ContractLineItem", "ContractPayment", "ChangeOrder", "ChangeOrderItem",
    "ProcurementItem", "PriceComparison", "PurchaseOrder",
    "PurchaseOrderItem", "BidRequest", "Bid", "BidItem", "Asset",
    "AssetRequest", "MaintenanceSchedule", "MaintenanceRecord",
    "InventoryMaterial", "InventoryTransaction", "Notification",
    "TeamInvite", "TaskComment", "TaskCommentMention", "DailyLog",
    "gen_uuid",
]


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    SUBCONTRACTOR = "SUBCONTRACTOR"
    CLIENT = "CLIENT"


class CardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MilestoneStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


class ChecklistStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class EstimateStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class VendorType(str, enum.Enum):
    SUPPLIER = "SUPPLIER"
    CONTRACTOR = "CONTRACTOR"
    SUBCONTRACTOR = "SUBCONTRACTOR"
    CONSULTANT = "CONSULTANT"


class VendorStatus(str, enum.Enum):
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"
    SUSPENDED = "SUSPENDED"
    BLACKLISTED = "BLACKLISTED"


class ContractType(str, enum.Enum):
    LUMP_SUM = "LUMP_SUM"
    REMEASURABLE = "REMEASURABLE"
    ADDENDUM = "ADDENDUM"


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    TERMINATED = "TERMINATED"
    EXPIRED = "EXPIRED"


class ChangeOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class POStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    SENT = "SENT"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class BidRequestStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    AWARDED = "AWARDED"


class BidStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class AssetType(str, enum.Enum):
    VEHICLE = "VEHICLE"
    EQUIPMENT = "EQUIPMENT"
    TOOL = "TOOL"


class AssetStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    RETIRED = "RETIRED"
    LOST_DAMAGED = "LOST_DAMAGED"


class AssetRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"


class MaintenanceType(str, enum.Enum):
    ONE_TIME = "ONE_TIME"
    RECURRING = "RECURRING"


class TransactionType(str, enum.Enum):
    STOCK_IN = "STOCK_IN"
    STOCK_OUT = "STOCK_OUT"
    ADJUSTMENT = "ADJUSTMENT"


def gen_uuid():
    return str(uuid.uuid4())


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(255), nullable=False)
    app_name = Column(String(255), nullable=True)
    logo = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="company", cascade="all, delete-orphan")
    stages = relationship("Stage", back_populates="company", cascade="all, delete-orphan", order_by="Stage.order")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(SAEnum(Role, name="role_enum"), nullable=False, default=Role.STAFF)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", back_populates="users")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Stage(Base):
    __tablename__ = "stages"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=False, default="#3b82f6")
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", back_populates="stages")
    cards = relationship("Card", back_populates="stage", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_stage_company_order", "company_id", "order"),
    )


class Card(Base):
    __tablename__ = "cards"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    stage_id = Column(String(36), ForeignKey("stages.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SAEnum(CardStatus, name="card_status_enum"), nullable=False, default=CardStatus.ACTIVE)
    priority = Column(SAEnum(Priority, name="priority_enum"), nullable=False, default=Priority.MEDIUM)
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    value = Column(Float, nullable=True)
    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    stage = relationship("Stage", back_populates="cards")
    owner = relationship("User", foreign_keys=[owner_id])
    tasks = relationship("Task", back_populates="card", cascade="all, delete-orphan")
    categories = relationship("TaskCategory", back_populates="card", cascade="all, delete-orphan")
    milestones = relationship("ProjectMilestone", back_populates="card", cascade="all, delete-orphan")
    budget_items = relationship("BudgetItem", back_populates="card", cascade="all, delete-orphan")
    estimates = relationship("Estimate", back_populates="card", cascade="all, delete-orphan")
    folders = relationship("Folder", back_populates="card", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="card", cascade="all, delete-orphan")
    activities = relationship("Activity", back_populates="card", cascade="all, delete-orphan")
    daily_logs = relationship("DailyLog", back_populates="card", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_card_company_status", "company_id", "status"),
    )


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(255), nullable=True)
    entity_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    card = relationship("Card", back_populates="activities")
    user = relationship("User")

    __table_args__ = (
        Index("idx_activity_company", "company_id", "created_at"),
        Index("idx_activity_card", "card_id", "created_at"),
    )


task_dependencies = Table(
    "task_dependencies",
    Base.metadata,
    Column("task_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("depends_on_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
)


class TaskCategory(Base):
    __tablename__ = "task_categories"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=False, default="#6366f1")
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    card = relationship("Card", back_populates="categories")
    tasks = relationship("Task", back_populates="category")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(String(36), ForeignKey("task_categories.id", ondelete="SET NULL"), nullable=True)
    milestone_id = Column(String(36), ForeignKey("project_milestones.id", ondelete="SET NULL"), nullable=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SAEnum(TaskStatus, name="task_status_enum"), nullable=False, default=TaskStatus.TODO)
    priority = Column(SAEnum(Priority, name="priority_enum"), nullable=False, default=Priority.MEDIUM)
    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    estimated_cost = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="tasks")
    category = relationship("TaskCategory", back_populates="tasks")
    milestone = relationship("ProjectMilestone", back_populates="tasks")
    assignee = relationship("User", foreign_keys=[assignee_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    vendor = relationship("Vendor")
    dependencies = relationship(
        "Task",
        secondary=task_dependencies,
        primaryjoin=id == task_dependencies.c.task_id,
        secondaryjoin=id == task_dependencies.c.depends_on_id,
    )
    comments = relationship("TaskComment", back_populates="task", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_task_card_status", "card_id", "status"),
    )


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=True)
    target_date = Column(DateTime, nullable=True)
    status = Column(SAEnum(MilestoneStatus, name="milestone_status_enum"), nullable=False, default=MilestoneStatus.PENDING)
    order = Column(Integer, nullable=False, default=0)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="milestones")
    vendor = relationship("Vendor")
    tasks = relationship("Task", back_populates="milestone")
    checklist_items = relationship(
        "MilestoneChecklistItem", back_populates="milestone",
        cascade="all, delete-orphan", order_by="MilestoneChecklistItem.order"
    )


class MilestoneChecklistItem(Base):
    __tablename__ = "milestone_checklist_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    milestone_id = Column(String(36), ForeignKey("project_milestones.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SAEnum(ChecklistStatus, name="checklist_status_enum"), nullable=False, default=ChecklistStatus.PENDING)
    due_date = Column(DateTime, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    completed_at = Column(DateTime, nullable=True)
    completed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    milestone = relationship("ProjectMilestone", back_populates="checklist_items")
    completed_by = relationship("User")


class BudgetItem(Base):
    __tablename__ = "budget_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    is_expense = Column(Boolean, default=False)
    is_paid = Column(Boolean, default=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="budget_items")

    @property
    def total(self):
        return (self.amount or 0) * (self.quantity if self.quantity is not None else 1)


class Estimate(Base):
    __tablename__ = "estimates"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SAEnum(EstimateStatus, name="estimate_status_enum"), nullable=False, default=EstimateStatus.DRAFT)
    subtotal = Column(Float, default=0)
    tax_rate = Column(Float, default=0)
    tax = Column(Float, default=0)
    total = Column(Float, default=0)
    valid_until = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    viewed_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="estimates")
    items = relationship("EstimateItem", back_populates="estimate", cascade="all, delete-orphan", order_by="EstimateItem.order")


class EstimateItem(Base):
    __tablename__ = "estimate_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    estimate_id = Column(String(36), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False, default=0)
    order = Column(Integer, nullable=False, default=0)

    estimate = relationship("Estimate", back_populates="items")


class Folder(Base):
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(String(36), ForeignKey("folders.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=False, default="#6366f1")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="folders")
    parent = relationship("Folder", remote_side=[id], backref="children")
    documents = relationship("Document", back_populates="folder")


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    uploader_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    url = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    is_shared = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="documents")
    folder = relationship("Folder", back_populates="documents")
    uploader = relationship("User")


vendor_tag_links = Table(
    "vendor_tag_links",
    Base.metadata,
    Column("vendor_id", String(36), ForeignKey("vendors.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("vendor_tags.id", ondelete="CASCADE"), primary_key=True),
)


class VendorCategory(Base):
    __tablename__ = "vendor_categories"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True, default="#6366f1")
    created_at = Column(DateTime, default=datetime.utcnow)

    vendors = relationship("Vendor", back_populates="category")


class VendorTag(Base):
    __tablename__ = "vendor_tags"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True, default="#64748b")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_vendor_tag_name"),
    )


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("vendor_categories.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    type = Column(SAEnum(VendorType, name="vendor_type_enum"), nullable=False, default=VendorType.SUPPLIER)
    status = Column(SAEnum(VendorStatus, name="vendor_status_enum"), nullable=False, default=VendorStatus.PENDING_VERIFICATION)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    tax_id = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    portal_email = Column(String(255), unique=True, nullable=True)
    portal_password_hash = Column(String(255), nullable=True)
    portal_enabled = Column(Boolean, default=False)
    last_portal_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company")
    category = relationship("VendorCategory", back_populates="vendors")
    tags = relationship("VendorTag", secondary=vendor_tag_links)
    contacts = relationship("VendorContact", back_populates="vendor", cascade="all, delete-orphan")
    reviews = relationship("VendorReview", back_populates="vendor", cascade="all, delete-orphan")


class VendorContact(Base):
    __tablename__ = "vendor_contacts"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    is_primary = Column(Boolean, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="contacts")


class VendorReview(Base):
    __tablename__ = "vendor_reviews"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="SET NULL"), nullable=True)
    reviewer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    quality = Column(Float, nullable=True)
    timeliness = Column(Float, nullable=True)
    communication = Column(Float, nullable=True)
    professionalism = Column(Float, nullable=True)
    pricing_accuracy = Column(Float, nullable=True)
    safety_compliance = Column(Float, nullable=True)
    problem_resolution = Column(Float, nullable=True)
    documentation = Column(Float, nullable=True)
    overall_rating = Column(Float, nullable=False)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="reviews")
    card = relationship("Card")
    reviewer = relationship("User")


contract_projects = Table(
    "contract_projects",
    Base.metadata,
    Column("contract_id", String(36), ForeignKey("vendor_contracts.id", ondelete="CASCADE"), primary_key=True),
    Column("card_id", String(36), ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True),
)


class VendorContract(Base):
    __tablename__ = "vendor_contracts"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    contract_number = Column(String(100), nullable=False)
    title = Column(String(255), nullable=True)
    type = Column(SAEnum(ContractType, name="contract_type_enum"), nullable=False)
    status = Column(SAEnum(ContractStatus, name="contract_status_enum"), nullable=False, default=ContractStatus.DRAFT)
    total_sum = Column(Float, nullable=False, default=0)
    retention_percentage = Column(Float, nullable=True)
    warranty_years = Column(Integer, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    terms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor")
    projects = relationship("Card", secondary=contract_projects)
    line_items = relationship("ContractLineItem", back_populates="contract", cascade="all, delete-orphan", order_by="ContractLineItem.order")
    payments = relationship("ContractPayment", back_populates="contract", cascade="all, delete-orphan", order_by="ContractPayment.payment_date.desc()")
    change_orders = relationship("ChangeOrder", back_populates="contract", cascade="all, delete-orphan", order_by="ChangeOrder.created_at")

    __table_args__ = (
        UniqueConstraint("company_id", "contract_number", name="uq_contract_number"),
    )


class ContractLineItem(Base):
    __tablename__ = "contract_line_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    contract_id = Column(String(36), ForeignKey("vendor_contracts.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    total_price = Column(Float, nullable=False, default=0)
    order = Column(Integer, nullable=False, default=0)

    contract = relationship("VendorContract", back_populates="line_items")


class ContractPayment(Base):
    __tablename__ = "contract_payments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    contract_id = Column(String(36), ForeignKey("vendor_contracts.id", ondelete="CASCADE"), nullable=False)
    recorded_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Float, nullable=False)
    payment_date = Column(DateTime, nullable=False)
    reference = Column(String(255), nullable=True)
    method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    contract = relationship("VendorContract", back_populates="payments")


class ChangeOrder(Base):
    __tablename__ = "change_orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    contract_id = Column(String(36), ForeignKey("vendor_contracts.id", ondelete="CASCADE"), nullable=False)
    number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(SAEnum(ChangeOrderStatus, name="change_order_status_enum"), nullable=False, default=ChangeOrderStatus.DRAFT)
    total = Column(Float, nullable=False, default=0)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejected_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract = relationship("VendorContract", back_populates="change_orders")
    items = relationship("ChangeOrderItem", back_populates="change_order", cascade="all, delete-orphan")


class ChangeOrderItem(Base):
    __tablename__ = "change_order_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    change_order_id = Column(String(36), ForeignKey("change_orders.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(50), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    total_price = Column(Float, nullable=False, default=0)

    change_order = relationship("ChangeOrder", back_populates="items")


class ProcurementItem(Base):
    __tablename__ = "procurement_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    category = Column(String(100), nullable=False)
    unit = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    prices = relationship("PriceComparison", back_populates="item", cascade="all, delete-orphan", order_by="PriceComparison.unit_price")

    __table_args__ = (
        UniqueConstraint("company_id", "sku", name="uq_procurement_sku"),
    )


class PriceComparison(Base):
    __tablename__ = "price_comparisons"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    item_id = Column(String(36), ForeignKey("procurement_items.id", ondelete="CASCADE"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    unit_price = Column(Float, nullable=False)
    lead_time_days = Column(Integer, nullable=True)
    min_order_qty = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    is_preferred = Column(Boolean, default=False)
    last_purchase_date = Column(DateTime, nullable=True)
    total_purchased_qty = Column(Float, default=0)
    total_purchased_value = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    item = relationship("ProcurementItem", back_populates="prices")
    vendor = relationship("Vendor")

    __table_args__ = (
        UniqueConstraint("item_id", "vendor_id", name="uq_price_item_vendor"),
    )


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="SET NULL"), nullable=True)
    number = Column(String(50), nullable=False)
    status = Column(SAEnum(POStatus, name="po_status_enum"), nullable=False, default=POStatus.DRAFT)
    order_date = Column(DateTime, default=datetime.utcnow)
    expected_date = Column(DateTime, nullable=True)
    delivered_date = Column(DateTime, nullable=True)
    subtotal = Column(Float, default=0)
    tax = Column(Float, default=0)
    shipping = Column(Float, default=0)
    total = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor")
    card = relationship("Card")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("company_id", "number", name="uq_po_number"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    purchase_order_id = Column(String(36), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    procurement_item_id = Column(String(36), ForeignKey("procurement_items.id"), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    received_quantity = Column(Float, nullable=False, default=0)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    procurement_item = relationship("ProcurementItem")


class BidRequest(Base):
    __tablename__ = "bid_requests"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    requirements = Column(Text, nullable=True)
    deadline = Column(DateTime, nullable=True)
    status = Column(SAEnum(BidRequestStatus, name="bid_request_status_enum"), nullable=False, default=BidRequestStatus.OPEN)
    share_token = Column(String(64), unique=True, nullable=False, index=True)
    view_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company")
    card = relationship("Card")
    bids = relationship("Bid", back_populates="bid_request", cascade="all, delete-orphan", order_by="Bid.submitted_at.desc()")


class Bid(Base):
    __tablename__ = "bids"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    bid_request_id = Column(String(36), ForeignKey("bid_requests.id", ondelete="CASCADE"), nullable=False)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    total_amount = Column(Float, default=0)
    timeline = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(SAEnum(BidStatus, name="bid_status_enum"), nullable=False, default=BidStatus.SUBMITTED)
    submitted_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bid_request = relationship("BidRequest", back_populates="bids")
    items = relationship("BidItem", back_populates="bid", cascade="all, delete-orphan")


class BidItem(Base):
    __tablename__ = "bid_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    bid_id = Column(String(36), ForeignKey("bids.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False, default=0)

    bid = relationship("Bid", back_populates="items")


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SAEnum(AssetType, name="asset_type_enum"), nullable=False)
    status = Column(SAEnum(AssetStatus, name="asset_status_enum"), nullable=False, default=AssetStatus.AVAILABLE)
    description = Column(Text, nullable=True)
    serial_number = Column(String(255), nullable=True)
    make = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    purchase_date = Column(DateTime, nullable=True)
    purchase_cost = Column(Float, nullable=True)
    location = Column(String(255), nullable=True)
    assigned_to_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_to = relationship("User")
    requests = relationship("AssetRequest", back_populates="asset", cascade="all, delete-orphan", order_by="AssetRequest.created_at.desc()")
    maintenance_schedules = relationship("MaintenanceSchedule", back_populates="asset", cascade="all, delete-orphan")


class AssetRequest(Base):
    __tablename__ = "asset_requests"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    asset_id = Column(String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False)
    requester_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose = Column(Text, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    status = Column(SAEnum(AssetRequestStatus, name="asset_request_status_enum"), nullable=False, default=AssetRequestStatus.PENDING)
    notes = Column(Text, nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    return_condition = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    asset = relationship("Asset", back_populates="requests")
    requester = relationship("User", foreign_keys=[requester_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])


class MaintenanceSchedule(Base):
    __tablename__ = "maintenance_schedules"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    asset_id = Column(String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(SAEnum(MaintenanceType, name="maintenance_type_enum"), nullable=False, default=MaintenanceType.ONE_TIME)
    interval_days = Column(Integer, nullable=True)
    next_due_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    asset = relationship("Asset", back_populates="maintenance_schedules")
    records = relationship("MaintenanceRecord", back_populates="schedule", cascade="all, delete-orphan", order_by="MaintenanceRecord.performed_date.desc()")


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    schedule_id = Column(String(36), ForeignKey("maintenance_schedules.id", ondelete="CASCADE"), nullable=False)
    asset_id = Column(String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False)
    performed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    performed_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    cost = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    schedule = relationship("MaintenanceSchedule", back_populates="records")


class InventoryMaterial(Base):
    __tablename__ = "inventory_materials"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    unit = Column(String(50), nullable=False)
    quantity = Column(Float, nullable=False, default=0)
    min_stock_level = Column(Float, nullable=True)
    unit_cost = Column(Float, nullable=True)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("InventoryTransaction", back_populates="material", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("company_id", "sku", name="uq_material_sku"),
    )


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    material_id = Column(String(36), ForeignKey("inventory_materials.id", ondelete="CASCADE"), nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(SAEnum(TransactionType, name="transaction_type_enum"), nullable=False)
    quantity = Column(Float, nullable=False)
    previous_qty = Column(Float, nullable=False)
    new_qty = Column(Float, nullable=False)
    unit_cost = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    material = relationship("InventoryMaterial", back_populates="transactions")
    user = relationship("User")

    __table_args__ = (
        Index("idx_inventory_tx_material", "material_id", "created_at"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    entity_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("idx_notification_user", "user_id", "is_read", "created_at"),
    )


class TeamInvite(Base):
    __tablename__ = "team_invites"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    invited_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(SAEnum(Role, name="role_enum"), nullable=False, default=Role.STAFF)
    token = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    is_accepted = Column(Boolean, default=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company")
    invited_by = relationship("User")

    __table_args__ = (
        Index("idx_invite_company_email", "company_id", "email"),
    )


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(String(36), ForeignKey("task_comments.id", ondelete="CASCADE"), nullable=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    edited_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="comments")
    parent = relationship("TaskComment", remote_side=[id], backref="replies")
    author = relationship("User")
    vendor = relationship("Vendor")
    mentions = relationship("TaskCommentMention", back_populates="comment", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_comment_task", "task_id", "created_at"),
    )


class TaskCommentMention(Base):
    __tablename__ = "task_comment_mentions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    comment_id = Column(String(36), ForeignKey("task_comments.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    comment = relationship("TaskComment", back_populates="mentions")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_mention"),
    )


class DailyLog(Base):
    __tablename__ = "daily_logs"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    date = Column(DateTime, nullable=False)
    weather_condition = Column(String(100), nullable=True)
    temperature = Column(Float, nullable=True)
    weather_notes = Column(Text, nullable=True)
    work_completed = Column(Text, nullable=True)
    materials_used = Column(Text, nullable=True)
    equipment = Column(Text, nullable=True)
    workers_on_site = Column(Integer, nullable=False, default=0)
    worker_details = Column(Text, nullable=True)
    issues = Column(Text, nullable=True)
    delays = Column(Text, nullable=True)
    safety_incidents = Column(Text, nullable=True)
    photos = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    card = relationship("Card", back_populates="daily_logs")
    author = relationship("User")

    __table_args__ = (
        UniqueConstraint("card_id", "date", name="uq_daily_log_card_date"),
    )
