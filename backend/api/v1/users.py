from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user_id
from db.session import get_db_session
from schemas.auth_schema import ChangePasswordRequest
from services.user_service import accept_eula, change_password, get_user_status, record_agreement_upload
from utils.rate_limit import auth_rate_limit
from utils.responses import clear_refresh_cookie, no_store_json

router = APIRouter(dependencies=[auth_rate_limit])


@router.get("/api/user/status")
async def user_status(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await get_user_status(user_id, db))


@router.post("/api/user/change-password")
async def change_password_endpoint(
    data: ChangePasswordRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    result = await change_password(user_id, data, db)
    # the stored session was revoked; the client must log in again
    return clear_refresh_cookie(no_store_json(result))


@router.post("/api/onboarding/accept-eula")
async def accept_eula_endpoint(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await accept_eula(user_id, db))


@router.post("/api/onboarding/upload-doc")
async def upload_doc_endpoint(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await record_agreement_upload(user_id, db, require_onboarding=True))
