from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.exceptions import InvalidCredentials, UserNotFound
from core.security import SessionManager, session_manager
from db.models.user import User as UserModel
from db.types import utcnow
from schemas.auth_schema import ChangePasswordRequest
from services.auth_service import serialize_user
from utils.db import safe_commit
from utils.logging_config import SECURITY_LOGGER

logger = logging.getLogger(__name__)
security_logger = logging.getLogger(SECURITY_LOGGER)


def onboarding_status(user: UserModel) -> str:
    """Drives client routing: the first unmet onboarding step, else ACTIVE."""
    if not user.eula_accepted_at:
        return "EULA_REQUIRED"
    if not user.doc_uploaded:
        return "DOC_REQUIRED"
    if not user.approved:
        return "PENDING_APPROVAL"
    return "ACTIVE"


async def get_existing_user(user_id: str, db: AsyncSession) -> UserModel:
    user = await db.get(UserModel, user_id)
    if user is None:
        raise UserNotFound()
    return user


async def get_user_status(user_id: str, db: AsyncSession) -> dict:
    user = await get_existing_user(user_id, db)
    return {"status": onboarding_status(user), "user": serialize_user(user)}


async def accept_eula(user_id: str, db: AsyncSession) -> dict:
    user = await get_existing_user(user_id, db)
    if not user.approved:
        raise HTTPException(status_code=403, detail="Account not yet approved")
    if user.eula_accepted_at:
        return {"message": "EULA already accepted", "eulaAcceptedAt": user.eula_accepted_at}
    user.eula_accepted_at = utcnow()
    await safe_commit(db)
    logger.info(f"EULA accepted by {user.email}")
    return {"message": "EULA accepted", "eulaAcceptedAt": user.eula_accepted_at}


async def record_agreement_upload(user_id: str, db: AsyncSession, require_onboarding: bool = False) -> dict:
    """Mark the sales agreement as received.

    Pre-approval uploads go through /api/auth/upload-agreement; the onboarding
    route (``require_onboarding``) also needs an approved account and the EULA.
    """
    user = await get_existing_user(user_id, db)
    if require_onboarding:
        if not user.approved:
            raise HTTPException(status_code=403, detail="Account not yet approved")
        if not user.eula_accepted_at:
            raise HTTPException(status_code=400, detail="Must accept EULA before uploading document")
    if user.doc_uploaded:
        return {"message": "Document already uploaded"}
    user.doc_uploaded = True
    await safe_commit(db)
    logger.info(f"Agreement uploaded by {user.email}")
    return {"message": "Document upload recorded"}


async def change_password(
    user_id: str,
    data: ChangePasswordRequest,
    db: AsyncSession,
    manager: SessionManager = session_manager,
) -> dict:
    user = await get_existing_user(user_id, db)
    if not await manager.compare_password(data.current_password, user.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    user.password_hash = await manager.hash_password(data.new_password)
    user.must_change_password = False
    # Every outstanding refresh token dies with the old password
    user.refresh_token_hash = None
    user.refresh_token_expires_at = None
    await safe_commit(db)
    security_logger.info(f"Password changed for {user.email}")
    return {"message": "Password updated"}
