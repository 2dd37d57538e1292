"""
FastAPI backend for the IT Asset Tracker.

Provides REST API endpoints for:
- Login, user management and password reset
- Creating, editing and moving equipment through its lifecycle
- Dashboard reporting (status counts, value, warranties, groupings)
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import assets as asset_ops
import queries
import users as user_ops
from auth import create_access_token, get_current_user, require_admin, require_editor
from config import CORS_ORIGINS, LOG_LEVEL, RESET_TOKEN_TTL_SECONDS
from database import async_session, engine, get_session
from errors import AssetError
from maintenance import cleanup_duplicate_serial_numbers, ensure_indexes
from models import AssetStatus, User
from reset_tokens import InMemoryResetTokenStore, ResetTokenError, ResetTokenManager
from schemas import (
    AssetCreate,
    AssetEdit,
    AssetRead,
    AssetTransition,
    AssigneeGroup,
    CategoryCount,
    DedupeResult,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ModelGroup,
    NextAssetId,
    ResetPasswordRequest,
    StatusSummary,
    TotalValue,
    UserCreate,
    UserRead,
    UserUpdate,
)


logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# Initialize FastAPI app
app = FastAPI(
    title="IT Asset Tracker API",
    description="Equipment inventory and lifecycle tracking - Backend API",
    version=APP_VERSION,
)

# Configure CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Outstanding password reset tokens live in process memory
reset_tokens = ResetTokenManager(InMemoryResetTokenStore(), ttl_seconds=RESET_TOKEN_TTL_SECONDS)


def get_reset_tokens() -> ResetTokenManager:
    return reset_tokens


def get_reset_link_sender():
    return user_ops.log_reset_link


@app.exception_handler(AssetError)
async def asset_error_handler(request: Request, exc: AssetError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Startup event
@app.on_event("startup")
async def on_startup():
    """Create tables, repair duplicate serials, sync indexes and seed the first admin."""
    await ensure_indexes(engine, async_session)
    async with async_session() as session:
        await user_ops.seed_admin_user(session)
    logger.info("Database initialized successfully")


# Health check endpoint
@app.get("/")
async def root():
    """Root endpoint - health check"""
    return {
        "service": "IT Asset Tracker API",
        "status": "operational",
        "version": APP_VERSION
    }


# ---------------------------------------------------------------- users

@app.post("/api/users/login", response_model=LoginResponse)
async def login(body: LoginRequest, session=Depends(get_session)):
    user = await user_ops.authenticate(session, body.email, body.password)
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return LoginResponse(token=create_access_token(user), user=UserRead.model_validate(user))


@app.post("/api/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    session=Depends(get_session),
    tokens: ResetTokenManager = Depends(get_reset_tokens),
    send_link=Depends(get_reset_link_sender),
):
    """Issue a reset token and pass the reset link to the link sender."""
    try:
        await user_ops.request_password_reset(session, body.email, tokens, send_link)
    except AssetError:
        raise HTTPException(status_code=404, detail="No account found with that email address.")
    return MessageResponse(message="Password reset link sent to your email successfully.")


@app.post("/api/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    session=Depends(get_session),
    tokens: ResetTokenManager = Depends(get_reset_tokens),
):
    try:
        await user_ops.reset_password(session, body.email, body.token, body.new_password, tokens)
    except ResetTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MessageResponse(message="Password reset successfully!")


@app.get("/api/users", response_model=List[UserRead])
async def list_users(session=Depends(get_session), _: User = Depends(require_admin)):
    return await user_ops.list_users(session)


@app.post("/api/users", response_model=UserRead, status_code=201)
async def create_user(body: UserCreate, session=Depends(get_session), _: User = Depends(require_admin)):
    return await user_ops.create_user(session, body)


@app.put("/api/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    session=Depends(get_session),
    _: User = Depends(require_admin),
):
    return await user_ops.update_user(session, user_id, body)


@app.delete("/api/users/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: UUID, session=Depends(get_session), admin: User = Depends(require_admin)):
    await user_ops.delete_user(session, user_id, admin)
    return MessageResponse(message="User deleted")


# ------------------------------------------------------------ reporting

@app.get("/api/equipment/summary", response_model=StatusSummary)
async def equipment_summary(session=Depends(get_session), _: User = Depends(get_current_user)):
    return StatusSummary(**await queries.get_summary(session))


@app.get("/api/equipment/total-value", response_model=TotalValue)
async def equipment_total_value(session=Depends(get_session), _: User = Depends(get_current_user)):
    return TotalValue(total_value=await queries.get_total_value(session))


@app.get("/api/equipment/expiring-warranty", response_model=List[AssetRead])
async def equipment_expiring_warranty(session=Depends(get_session), _: User = Depends(get_current_user)):
    items = await queries.get_expiring_warranty(session)
    logger.info(f"Found {len(items)} expiring items")
    return items


@app.get("/api/equipment/grouped-by-email", response_model=List[AssigneeGroup])
async def equipment_grouped_by_email(session=Depends(get_session), _: User = Depends(get_current_user)):
    return await queries.get_grouped_by_assignee(session)


@app.get("/api/equipment/grouped-by-model", response_model=List[ModelGroup])
async def equipment_grouped_by_model(
    status: AssetStatus = Query(..., description="Status whose active assets are grouped"),
    session=Depends(get_session),
    _: User = Depends(get_current_user),
):
    records = await queries.get_assets_by_status(session, status)
    return queries.group_by_model(records)


@app.get("/api/equipment/removed", response_model=List[AssetRead])
async def equipment_removed(session=Depends(get_session), _: User = Depends(get_current_user)):
    return await asset_ops.list_removed(session)


@app.get("/api/equipment/count/{category}", response_model=CategoryCount)
async def equipment_count(category: str, session=Depends(get_session), _: User = Depends(get_current_user)):
    return CategoryCount(category=category, count=await queries.count_by_category(session, category))


@app.get("/api/equipment/next-asset-id/{category}", response_model=NextAssetId)
async def equipment_next_asset_id(category: str, session=Depends(get_session),
                                  _: User = Depends(get_current_user)):
    return NextAssetId(category=category, asset_id=await asset_ops.next_asset_id(session, category))


@app.get("/api/equipment/search", response_model=List[AssetRead])
async def equipment_search(
    q: str = Query(..., min_length=1, description="Search query string"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum results to return"),
    session=Depends(get_session),
    _: User = Depends(get_current_user),
):
    return await queries.search_assets(session, q, limit=limit)


# ------------------------------------------------------------ equipment

@app.get("/api/equipment", response_model=List[AssetRead])
async def list_equipment(session=Depends(get_session), _: User = Depends(get_current_user)):
    return await asset_ops.list_active(session)


@app.post("/api/equipment", response_model=AssetRead, status_code=201)
async def create_equipment(body: AssetCreate, session=Depends(get_session),
                           _: User = Depends(require_editor)):
    return await asset_ops.create_asset(session, body)


@app.get("/api/equipment/{asset_id}", response_model=AssetRead)
async def get_equipment(asset_id: UUID, session=Depends(get_session), _: User = Depends(get_current_user)):
    return await asset_ops.get_asset(session, asset_id)


@app.put("/api/equipment/{asset_id}", response_model=AssetRead)
async def edit_equipment(asset_id: UUID, body: AssetEdit, session=Depends(get_session),
                         _: User = Depends(require_editor)):
    return await asset_ops.edit_asset(session, asset_id, body)


@app.post("/api/equipment/{asset_id}/transition", response_model=AssetRead)
async def transition_equipment(asset_id: UUID, body: AssetTransition, session=Depends(get_session),
                               _: User = Depends(require_editor)):
    return await asset_ops.transition_asset(session, asset_id, body)


@app.delete("/api/equipment/{asset_id}", response_model=AssetRead)
async def soft_delete_equipment(asset_id: UUID, session=Depends(get_session),
                                _: User = Depends(require_admin)):
    return await asset_ops.soft_delete_asset(session, asset_id)


@app.delete("/api/equipment/{asset_id}/purge", response_model=MessageResponse)
async def purge_equipment(asset_id: UUID, session=Depends(get_session), _: User = Depends(require_admin)):
    await asset_ops.purge_asset(session, asset_id)
    return MessageResponse(message="Equipment permanently deleted")


@app.post("/api/maintenance/dedupe-serials", response_model=DedupeResult)
async def dedupe_serials(session=Depends(get_session), _: User = Depends(require_admin)):
    return DedupeResult(**await cleanup_duplicate_serial_numbers(session))
