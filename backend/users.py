"""
User accounts: login, admin management, first-admin seeding and the
password reset flow.
"""

import logging
from typing import Callable, List, Optional
from urllib.parse import quote
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from auth import hash_password, verify_password
from config import ADMIN_EMAIL, ADMIN_PASSWORD, FRONTEND_URL
from errors import DuplicateKey, NotFound, ValidationFailed
from models import Role, User
from reset_tokens import ResetTokenManager
from schemas import UserCreate, UserUpdate


logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session, email: str) -> Optional[User]:
    result = await session.exec(select(User).where(User.email == _normalize_email(email)))
    return result.first()


async def authenticate(session, email: str, password: str) -> Optional[User]:
    """Return the user when the credentials match, otherwise None."""
    user = await get_user_by_email(session, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


async def list_users(session) -> List[User]:
    result = await session.exec(select(User).order_by(col(User.created_at)))
    return list(result.all())


async def create_user(session, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    if await get_user_by_email(session, email):
        raise DuplicateKey("email")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateKey("email")
    await session.refresh(user)
    logger.info(f"Created user {user.email} ({user.role})")
    return user


async def update_user(session, user_id: UUID, payload: UserUpdate) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)

    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.email is not None:
        email = _normalize_email(payload.email)
        other = await get_user_by_email(session, email)
        if other is not None and other.id != user.id:
            raise DuplicateKey("email")
        user.email = email
    if payload.role is not None:
        user.role = payload.role.value
    if payload.password and payload.password.strip():
        user.password_hash = hash_password(payload.password)

    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateKey("email")
    await session.refresh(user)
    return user


async def delete_user(session, user_id: UUID, acting_user: User) -> None:
    if user_id == acting_user.id:
        raise ValidationFailed("id", "cannot delete your own account")
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)
    await session.delete(user)
    await session.commit()
    logger.info(f"Deleted user {user.email}")


async def seed_admin_user(session, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> None:
    """Create the first admin account if it does not exist yet."""
    if await get_user_by_email(session, email):
        logger.info("Admin user already exists.")
        return
    logger.info(f"No user found with email {email}. Creating one...")
    session.add(User(
        name="Admin",
        email=_normalize_email(email),
        password_hash=hash_password(password),
        role=Role.ADMIN.value,
    ))
    await session.commit()
    logger.info("Admin user created successfully!")


def build_reset_link(email: str, token: str) -> str:
    return f"{FRONTEND_URL}/?page=reset-password&token={token}&email={quote(email)}"


def log_reset_link(email: str, link: str) -> None:
    """Default link sender: mail delivery is handled outside this service."""
    logger.info(f"Password reset link for {email}: {link}")


async def request_password_reset(
    session,
    email: str,
    tokens: ResetTokenManager,
    send_link: Callable[[str, str], None] = log_reset_link,
) -> str:
    """
    Issue a reset token for an existing account and hand the link to send_link.

    Raises:
        NotFound: No account with that email
    """
    logger.info(f"Password reset requested for: {email}")
    user = await get_user_by_email(session, email)
    if user is None:
        raise NotFound("User", email)
    token = tokens.issue(user.email)
    send_link(user.email, build_reset_link(user.email, token))
    return token


async def reset_password(session, email: str, token: str, new_password: str,
                         tokens: ResetTokenManager) -> None:
    """
    Redeem a reset token and store the new password.

    Raises:
        ResetTokenError: Token unknown, expired or for another email
        NotFound: No account with that email; the token is left in place
    """
    email = _normalize_email(email)
    user = await get_user_by_email(session, email)
    if user is None:
        raise NotFound("User", email)
    tokens.redeem(token, email)
    user.password_hash = hash_password(new_password)
    session.add(user)
    await session.commit()
    logger.info(f"Password reset for {email}")
