"""Session lifecycle: register, login, refresh (rotation + reuse detection), logout.

A user holds at most one live refresh token; only its SHA-256 digest is
stored. Presenting a validly signed refresh token whose digest differs from
the stored one means the token was superseded or stolen, and the whole
session is revoked.
"""
import hmac
import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import InvalidCredentials, InvalidToken, SessionRevoked, TokenExpired
from core.security import SessionManager, session_manager
from db.models.user import User as UserModel
from db.types import utcnow
from schemas.auth_schema import RegisterRequest
from utils.db import safe_commit
from utils.logging_config import SECURITY_LOGGER
from utils.timing import timeit

logger = logging.getLogger(__name__)
security_logger = logging.getLogger(SECURITY_LOGGER)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_admin(user: UserModel) -> bool:
    """DB flag or membership in ADMIN_EMAILS."""
    if user.is_admin:
        return True
    return bool(user.email) and user.email.lower() in settings.admin_emails


def serialize_user(user: UserModel) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "companyName": user.company_name,
        "contactType": user.contact_type,
        "approved": user.approved,
        "eulaAcceptedAt": user.eula_accepted_at,
        "docUploaded": user.doc_uploaded,
        "mustChangePassword": user.must_change_password,
        "isAdmin": is_admin(user),
    }


async def _issue_session(user: UserModel, db: AsyncSession, manager: SessionManager) -> dict:
    """Sign a fresh token pair and make its refresh token the only live one."""
    access_token = manager.sign_access_token({"userId": user.id, "email": user.email})
    refresh_token = manager.sign_refresh_token(user.id)
    user.refresh_token_hash = manager.hash_refresh_token(refresh_token)
    user.refresh_token_expires_at = manager.refresh_token_expires_at()
    await safe_commit(db, client_error_message="Could not persist session")
    return {"user": serialize_user(user), "access_token": access_token, "refresh_token": refresh_token}


async def _clear_session(user: UserModel, db: AsyncSession) -> None:
    user.refresh_token_hash = None
    user.refresh_token_expires_at = None
    await safe_commit(db, client_error_message="Could not clear session")


@timeit("register_user")
async def register_user(data: RegisterRequest, db: AsyncSession, manager: SessionManager = session_manager) -> dict:
    email = normalize_email(data.email)
    result = await db.execute(select(UserModel).where(UserModel.email == email))
    if result.scalars().first() is not None:
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = UserModel(
        email=email,
        password_hash=await manager.hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        company_name=data.company_name,
        contact_type=data.contact_type,
        phone=data.phone or None,
        address=data.address or None,
        city=data.city or None,
        postal_code=data.postal_code or None,
        mailing_country=data.mailing_country or None,
        # EULA acceptance is part of the registration form
        eula_accepted_at=utcnow(),
        doc_uploaded=False,
        approved=False,
    )
    db.add(user)
    await safe_commit(db, client_error_message="An account with this email already exists", conflict_status=409)

    session = await _issue_session(user, db, manager)
    logger.info(f"New user registered: {email}")
    return session


@timeit("login_user")
async def login_user(email: str, password: str, db: AsyncSession, manager: SessionManager = session_manager) -> dict:
    email = normalize_email(email)
    result = await db.execute(select(UserModel).where(UserModel.email == email))
    user = result.scalars().first()
    # Same error for unknown email and wrong password
    if not user or not user.password_hash:
        raise InvalidCredentials()
    if not await manager.compare_password(password, user.password_hash):
        raise InvalidCredentials()

    session = await _issue_session(user, db, manager)
    logger.info(f"User logged in: {email}")
    return session


@timeit("refresh_session")
async def refresh_session(refresh_token: str, db: AsyncSession, manager: SessionManager = session_manager) -> dict:
    """Rotate the session behind ``refresh_token``.

    Raises ``InvalidToken`` for a bad or unknown session, ``SessionRevoked``
    after clearing the stored session when the token was already rotated
    away, and ``TokenExpired`` when the stored session ran out.
    """
    if not refresh_token:
        raise InvalidToken("No refresh token")
    try:
        payload = manager.verify_refresh_token(refresh_token)
    except TokenExpired as e:
        raise TokenExpired("Refresh token expired") from e
    except InvalidToken as e:
        raise InvalidToken("Invalid refresh token") from e

    user = await db.get(UserModel, payload["userId"])
    if user is None or not user.refresh_token_hash:
        # Nothing to revoke: never logged in, logged out, or already revoked
        raise InvalidToken("Session expired")

    presented = manager.hash_refresh_token(refresh_token)
    if not hmac.compare_digest(presented, user.refresh_token_hash):
        await _clear_session(user, db)
        security_logger.warning(f"Refresh token reuse detected for user {user.id}; session revoked")
        raise SessionRevoked()

    if user.refresh_token_expires_at and user.refresh_token_expires_at < utcnow():
        raise TokenExpired("Session expired")

    return await _issue_session(user, db, manager)


async def logout_user(refresh_token: str, db: AsyncSession, manager: SessionManager = session_manager) -> None:
    """Clear the stored session if the cookie names one. Always succeeds."""
    if not refresh_token:
        return
    try:
        payload = manager.verify_refresh_token(refresh_token)
    except InvalidToken:
        return
    user = await db.get(UserModel, payload["userId"])
    if user is None or user.refresh_token_hash is None:
        return
    await _clear_session(user, db)
    logger.info(f"User logged out: {user.id}")
