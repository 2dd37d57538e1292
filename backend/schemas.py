"""
Request and response bodies for the REST surface.

JSON keys are camelCase (assetId, serialNumber, ...); Python attributes are
snake_case and line up with the columns on models.Asset. Each write operation
has its own input model so nothing outside the listed fields reaches the engine.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models import AssetStatus, Role


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AssetFields(CamelModel):
    """Descriptive and assignee fields shared by every asset write."""
    model: Optional[str] = None
    location: Optional[str] = None
    comment: Optional[str] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    warranty_expiry_date: Optional[date] = None
    purchase_date: Optional[date] = None
    assignee_name: Optional[str] = None
    position: Optional[str] = None
    employee_email: Optional[str] = None
    phone_number: Optional[str] = None
    department: Optional[str] = None
    damage_description: Optional[str] = None


class AssetCreate(AssetFields):
    """Body of POST /api/equipment. assetId is generated when omitted."""
    model_config = ConfigDict(extra="forbid")

    asset_id: Optional[str] = None
    serial_number: Optional[str] = None
    category: str = Field(..., min_length=1)
    status: AssetStatus = AssetStatus.IN_STOCK


class AssetEdit(AssetFields):
    """Body of PUT /api/equipment/{id}. Status cannot be changed here."""
    model_config = ConfigDict(extra="forbid")

    asset_id: Optional[str] = None
    serial_number: Optional[str] = None
    category: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=1)


class AssetTransition(AssetFields):
    """Body of POST /api/equipment/{id}/transition."""
    model_config = ConfigDict(extra="forbid")

    status: AssetStatus
    asset_id: Optional[str] = None
    serial_number: Optional[str] = None
    category: Optional[str] = None
    mark_deleted: bool = False
    expected_version: Optional[int] = Field(default=None, ge=1)


# Keys of the write models that are controls rather than asset columns
CONTROL_KEYS = {"status", "mark_deleted", "expected_version"}


class AssetRead(CamelModel):
    """An asset as returned by the API."""
    id: UUID
    asset_id: str
    serial_number: Optional[str] = None
    category: str
    status: AssetStatus
    model: Optional[str] = None
    location: Optional[str] = None
    comment: Optional[str] = None
    purchase_price: float = 0.0
    warranty_expiry_date: Optional[date] = None
    purchase_date: Optional[date] = None
    assignee_name: Optional[str] = None
    position: Optional[str] = None
    employee_email: Optional[str] = None
    phone_number: Optional[str] = None
    department: Optional[str] = None
    damage_description: Optional[str] = None
    is_deleted: bool = False
    version: int = 1
    created_at: datetime
    updated_at: datetime


class StatusSummary(CamelModel):
    total_assets: int
    in_use: int
    in_stock: int
    damaged: int
    e_waste: int
    removed: int


class TotalValue(CamelModel):
    total_value: float


class CategoryCount(CamelModel):
    category: str
    count: int


class NextAssetId(CamelModel):
    category: str
    asset_id: str


class AssigneeGroup(CamelModel):
    employee_email: Optional[str] = None
    assignee_name: Optional[str] = None
    position: Optional[str] = None
    phone_number: Optional[str] = None
    department: Optional[str] = None
    assets: List[AssetRead]
    count: int


class ModelGroup(CamelModel):
    model: str
    category: str
    assets: List[AssetRead]
    count: int


class DedupeResult(CamelModel):
    groups_fixed: int
    renamed: int


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# --- Users ---

class LoginRequest(CamelModel):
    email: str
    password: str


class UserRead(CamelModel):
    id: UUID
    name: str
    email: str
    role: Role


class LoginResponse(CamelModel):
    token: str
    user: UserRead


class UserCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    role: Role = Role.VIEWER


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3)
    role: Optional[Role] = None
    password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    email: str
    token: str
    new_password: str = Field(..., min_length=1)
