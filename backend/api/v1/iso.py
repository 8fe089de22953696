from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_marketplace_user, require_admin
from db.models.iso import IsoStatus
from db.models.user import User as UserModel
from db.session import get_db_session
from schemas.iso_schema import IsoCreate, IsoRespond, IsoUpdate
from services import iso_service
from utils.rate_limit import api_rate_limit, write_rate_limit
from utils.responses import no_store_json

router = APIRouter(prefix="/api/iso", dependencies=[api_rate_limit])

SortField = Literal["date", "expiry", "budget"]
SortOrder = Literal["asc", "desc"]


@router.post("", status_code=201, dependencies=[write_rate_limit])
async def create_iso_endpoint(
    data: IsoCreate,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await iso_service.create_iso(user.id, data, db), status_code=201)


# Fixed paths are registered before /{iso_id}
@router.get("/my")
async def my_isos_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[IsoStatus] = None,
    category: Optional[str] = Query(None, max_length=100),
    sort: SortField = "date",
    order: SortOrder = "desc",
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(
        await iso_service.list_my_isos(user.id, db, page, limit, status, category, sort, order)
    )


@router.get("/matches")
async def iso_matches_endpoint(user: UserModel = Depends(get_marketplace_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await iso_service.list_matches(user.id, db))


@router.get("/admin")
async def iso_admin_endpoint(admin: UserModel = Depends(require_admin), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await iso_service.list_admin(db))


@router.get("")
async def iso_board_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[IsoStatus] = None,
    category: Optional[str] = Query(None, max_length=100),
    mine: bool = False,
    sort: SortField = "date",
    order: SortOrder = "desc",
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(
        await iso_service.list_board(user, db, page, limit, status, category, mine, sort, order)
    )


@router.get("/{iso_id}")
async def iso_detail_endpoint(
    iso_id: str,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await iso_service.get_iso_detail(iso_id, user.id, db))


@router.patch("/{iso_id}", dependencies=[write_rate_limit])
async def update_iso_endpoint(
    iso_id: str,
    data: IsoUpdate,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await iso_service.update_iso(iso_id, user.id, data, db))


@router.post("/{iso_id}/respond", status_code=201, dependencies=[write_rate_limit])
async def respond_iso_endpoint(
    iso_id: str,
    data: IsoRespond,
    user: UserModel = Depends(get_marketplace_user),
    db: AsyncSession = Depends(get_db_session),
):
    return no_store_json(await iso_service.respond_to_iso(iso_id, user.id, data, db), status_code=201)
