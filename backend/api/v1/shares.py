from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_admin
from db.models.user import User as UserModel
from db.session import get_db_session
from schemas.share_schema import ShareCreate, ShareUpdate
from services.share_service import (
    create_share,
    delete_share,
    get_shared_products,
    list_shares,
    update_share,
    validate_share_token,
)
from utils.rate_limit import api_rate_limit, public_rate_limit
from utils.responses import no_store_json

router = APIRouter(prefix="/api/shares", dependencies=[api_rate_limit])

# No auth: the share token is the access control
public_router = APIRouter(prefix="/api/shares/public", dependencies=[public_rate_limit])


@router.post("")
async def create_share_endpoint(
    data: ShareCreate,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await create_share(data, admin.id, db))


@router.get("")
async def list_shares_endpoint(admin: UserModel = Depends(require_admin), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await list_shares(db))


@router.patch("/{share_id}")
async def update_share_endpoint(
    share_id: str,
    data: ShareUpdate,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await update_share(share_id, data, db))


@router.delete("/{share_id}")
async def delete_share_endpoint(
    share_id: str,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await delete_share(share_id, db))


@public_router.get("/validate/{token}")
async def validate_share_endpoint(token: str, db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await validate_share_token(token, db))


@public_router.get("/{token}/products")
async def shared_products_endpoint(token: str, db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await get_shared_products(token, db))
