from typing import Optional

from fastapi import APIRouter, Cookie, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user_id
from core.config import settings
from core.exceptions import AuthException
from db.session import get_db_session
from schemas.auth_schema import LoginRequest, RegisterRequest
from services.auth_service import login_user, logout_user, refresh_session, register_user
from services.user_service import record_agreement_upload
from utils.rate_limit import auth_rate_limit
from utils.responses import clear_refresh_cookie, error_json, no_store_json, set_refresh_cookie

router = APIRouter(prefix="/api/auth", dependencies=[auth_rate_limit])


def _session_response(session: dict, status_code: int = 200):
    """Access token in the body, refresh token only in the HttpOnly cookie."""
    response = no_store_json(
        {"user": session["user"], "accessToken": session["access_token"]},
        status_code=status_code,
    )
    return set_refresh_cookie(response, session["refresh_token"])


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db_session)):
    return _session_response(await register_user(data, db), status_code=201)


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db_session)):
    return _session_response(await login_user(data.email, data.password, db))


@router.post("/refresh")
async def refresh(
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.REFRESH_COOKIE_NAME),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        session = await refresh_session(refresh_token, db)
    except AuthException as e:
        # a failed refresh always drops the client's cookie
        return clear_refresh_cookie(error_json(e.message, e.status_code))
    return _session_response(session)


@router.post("/logout")
async def logout(
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.REFRESH_COOKIE_NAME),
    db: AsyncSession = Depends(get_db_session),
):
    await logout_user(refresh_token, db)
    return clear_refresh_cookie(no_store_json({"message": "Logged out"}))


@router.post("/upload-agreement")
async def upload_agreement(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await record_agreement_upload(user_id, db))
