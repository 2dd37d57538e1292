"""
SQLModel definitions for the IT Asset Tracker.
Defines the equipment table (one row per tracked asset) and the users table.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False)


class AssetStatus(str, Enum):
    """Lifecycle state of an asset. Values are the strings used on the wire."""
    IN_USE = "In Use"
    IN_STOCK = "In Stock"
    DAMAGED = "Damaged"
    E_WASTE = "E-Waste"
    REMOVED = "Removed"


class Role(str, Enum):
    ADMIN = "Admin"
    EDITOR = "Editor"
    VIEWER = "Viewer"


# Canonical categories offered by the UI; any other string is accepted as custom
CATEGORIES = ["Laptop", "Headset", "Keyboard", "Mouse", "Monitor", "Other"]

ASSIGNEE_FIELDS = (
    "assignee_name",
    "position",
    "employee_email",
    "phone_number",
    "department",
)


class Asset(SQLModel, table=True):
    """
    Equipment table.

    asset_id and serial_number are unique across active and soft-deleted
    rows alike. serial_number may be NULL (several NULLs are allowed).
    version is bumped on every write and backs the optional stale-write check.
    """
    __tablename__ = "equipment"

    # Primary key - UUID so ids can be handed out before insert
    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        index=True,
        nullable=False
    )

    asset_id: str = Field(
        index=True,
        unique=True,
        nullable=False,
        max_length=100
    )

    serial_number: Optional[str] = Field(
        default=None,
        index=True,
        unique=True,
        nullable=True,
        max_length=255
    )

    category: str = Field(nullable=False, max_length=100, index=True)

    status: str = Field(
        default=AssetStatus.IN_STOCK.value,
        nullable=False,
        max_length=20,
        index=True
    )

    # Descriptive fields
    model: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    comment: Optional[str] = Field(default=None)

    purchase_price: float = Field(default=0.0, nullable=False)
    warranty_expiry_date: Optional[date] = Field(default=None, index=True)
    purchase_date: Optional[date] = Field(default=None)

    # Assignee - populated only while status is In Use
    assignee_name: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)
    employee_email: Optional[str] = Field(default=None, max_length=255, index=True)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    department: Optional[str] = Field(default=None, max_length=255)

    # Populated only while status is Damaged
    damage_description: Optional[str] = Field(default=None)

    # Soft-delete flag, independent of status
    is_deleted: bool = Field(default=False, nullable=False, index=True)

    version: int = Field(default=1, nullable=False)

    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class User(SQLModel, table=True):
    """Application user. Passwords are stored hashed."""
    __tablename__ = "users"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        index=True,
        nullable=False
    )
    name: str = Field(nullable=False, min_length=2, max_length=100)
    email: str = Field(index=True, unique=True, nullable=False, max_length=255)
    password_hash: str = Field(nullable=False, max_length=255)
    role: str = Field(default=Role.VIEWER.value, nullable=False, max_length=20)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
