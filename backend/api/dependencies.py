from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.exceptions import InvalidToken
from core.security import oauth2_scheme, session_manager
from db.models.user import User as UserModel
from db.session import get_db_session
from services.auth_service import is_admin

logger = logging.getLogger(__name__)


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """Authenticate the Bearer access token; the DB is not consulted."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = session_manager.verify_access_token(token)
    except InvalidToken:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload["userId"]


def _forbidden(message: str, code: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"message": message, "code": code})


async def get_marketplace_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Approved user who has accepted the EULA and uploaded the agreement."""
    user = await db.get(UserModel, user_id)
    if user is None:
        raise _forbidden("Account not found", "NOT_FOUND")
    if not user.approved:
        raise _forbidden("Account pending approval", "PENDING_APPROVAL")
    if not user.eula_accepted_at:
        raise _forbidden("EULA not accepted", "EULA_REQUIRED")
    if not user.doc_uploaded:
        raise _forbidden("Document upload required", "DOC_REQUIRED")
    return user


async def require_admin(user: UserModel = Depends(get_marketplace_user)) -> UserModel:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

