from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_marketplace_user
from db.models.user import User as UserModel
from db.session import get_db_session
from schemas.shortlist_schema import ShortlistToggle
from services import shortlist_service
from utils.rate_limit import api_rate_limit
from utils.responses import no_store_json

router = APIRouter(prefix="/api/shortlist", dependencies=[api_rate_limit])


@router.post("/toggle")
async def toggle_endpoint(
    data: ShortlistToggle,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await shortlist_service.toggle_shortlist(user.id, data.product_id, db))


@router.get("")
async def list_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, max_length=100),
    sort: Literal["date", "name", "price"] = "date",
    order: Literal["asc", "desc"] = "desc",
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await shortlist_service.list_shortlist(user.id, db, page, limit, category, sort, order))


@router.get("/check")
async def check_endpoint(
    product_ids: str = Query(..., alias="productIds", min_length=1),
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    ids = shortlist_service.parse_product_ids(product_ids)
    return no_store_json(await shortlist_service.check_shortlisted(user.id, ids, db))


@router.get("/count")
async def count_endpoint(user: UserModel = Depends(get_marketplace_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await shortlist_service.count_shortlist(user.id, db))
