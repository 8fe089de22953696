"""ISO (in search of) board: buyers post requests, sellers answer "I have this".

The public board is anonymised; only the owner sees buyer identity,
responses and the matched product.
"""
import logging
import math
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import settings
from db.models.iso import IsoRequest, IsoResponse, IsoStatus
from db.models.product import Product
from db.models.user import User as UserModel
from db.types import utcnow
from schemas.iso_schema import IsoCreate, IsoRespond, IsoUpdate
from services.iso_matching_service import match_iso_to_products
from utils.db import safe_commit

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "date": IsoRequest.created_at,
    "expiry": IsoRequest.expires_at,
    "budget": IsoRequest.budget_max,
}

RESPONDABLE = (IsoStatus.OPEN, IsoStatus.MATCHED)


def _product_brief(product: Optional[Product]) -> Optional[dict]:
    if product is None:
        return None
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "type": product.type,
        "pricePerUnit": product.price_per_unit,
        "gramsAvailable": product.grams_available,
        "imageUrls": product.image_urls or [],
    }


def _contact_brief(user: Optional[UserModel]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "companyName": user.company_name,
        "firstName": user.first_name,
        "lastName": user.last_name,
    }


def _public_view(iso: IsoRequest, viewer_id: str, response_count: int) -> dict:
    data = iso.to_dict()
    is_owner = iso.buyer_id == viewer_id
    if not is_owner:
        data.pop("buyerId")
    data.pop("matchedProductId")
    data.pop("updatedAt")
    data["responseCount"] = response_count
    data["isOwner"] = is_owner
    return data


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)}


async def _response_counts(iso_ids: list, db: AsyncSession) -> dict:
    if not iso_ids:
        return {}
    result = await db.execute(
        select(IsoResponse.iso_request_id, func.count(IsoResponse.id))
        .where(IsoResponse.iso_request_id.in_(iso_ids))
        .group_by(IsoResponse.iso_request_id)
    )
    return dict(result.all())


async def _get_iso_or_404(iso_id: str, db: AsyncSession, *options) -> IsoRequest:
    stmt = select(IsoRequest).where(IsoRequest.id == iso_id)
    if options:
        stmt = stmt.options(*options)
    iso = (await db.execute(stmt)).scalars().first()
    if iso is None:
        raise HTTPException(status_code=404, detail="ISO request not found")
    return iso


async def create_iso(buyer_id: str, data: IsoCreate, db: AsyncSession) -> dict:
    iso = IsoRequest(
        buyer_id=buyer_id,
        expires_at=utcnow() + timedelta(days=settings.ISO_EXPIRY_DAYS),
        status=IsoStatus.OPEN,
        **data.model_dump(),
    )
    db.add(iso)
    await safe_commit(db, client_error_message="Failed to create ISO request")

    try:
        matches = await match_iso_to_products(iso.id, db)
        logger.info(f"ISO {iso.id} created with {len(matches)} candidate product(s)")
    except Exception as e:
        # the request exists either way; matching is best effort
        logger.error(f"ISO auto-match failed for {iso.id}: {e}")
    return {"iso": iso.to_dict()}


async def _paginate(stmt, page: int, limit: int, sort: str, order: str, db: AsyncSession):
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    column = SORT_COLUMNS.get(sort, IsoRequest.created_at)
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc())
    stmt = stmt.offset((page - 1) * limit).limit(limit)
    items = (await db.execute(stmt)).scalars().all()
    return items, total


async def list_board(
    viewer: UserModel,
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status: Optional[IsoStatus] = None,
    category: Optional[str] = None,
    mine: bool = False,
    sort: str = "date",
    order: str = "desc",
) -> dict:
    stmt = select(IsoRequest)
    if mine:
        stmt = stmt.where(IsoRequest.buyer_id == viewer.id)
    if status is not None:
        stmt = stmt.where(IsoRequest.status == status)
    elif not mine:
        # public board defaults to live requests
        stmt = stmt.where(IsoRequest.status == IsoStatus.OPEN, IsoRequest.expires_at > utcnow())
    if category:
        stmt = stmt.where(IsoRequest.category == category)

    items, total = await _paginate(stmt, page, limit, sort, order, db)
    ids = [iso.id for iso in items]
    counts = await _response_counts(ids, db)

    responded = set()
    if viewer.is_seller and ids:
        result = await db.execute(
            select(IsoResponse.iso_request_id).where(
                IsoResponse.iso_request_id.in_(ids), IsoResponse.seller_id == viewer.id
            )
        )
        responded = set(result.scalars().all())

    board = []
    for iso in items:
        view = _public_view(iso, viewer.id, counts.get(iso.id, 0))
        view["hasResponded"] = iso.id in responded
        board.append(view)
    return {"items": board, "pagination": _pagination(page, limit, total)}


async def list_my_isos(
    buyer_id: str,
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status: Optional[IsoStatus] = None,
    category: Optional[str] = None,
    sort: str = "date",
    order: str = "desc",
) -> dict:
    stmt = select(IsoRequest).where(IsoRequest.buyer_id == buyer_id).options(selectinload(IsoRequest.matched_product))
    if status is not None:
        stmt = stmt.where(IsoRequest.status == status)
    if category:
        stmt = stmt.where(IsoRequest.category == category)

    items, total = await _paginate(stmt, page, limit, sort, order, db)
    counts = await _response_counts([iso.id for iso in items], db)
    rows = []
    for iso in items:
        row = iso.to_dict()
        row["matchedProduct"] = _product_brief(iso.matched_product)
        row["responseCount"] = counts.get(iso.id, 0)
        rows.append(row)
    return {"items": rows, "pagination": _pagination(page, limit, total)}


async def list_matches(buyer_id: str, db: AsyncSession) -> dict:
    result = await db.execute(
        select(IsoRequest)
        .where(
            IsoRequest.buyer_id == buyer_id,
            IsoRequest.status == IsoStatus.MATCHED,
            IsoRequest.matched_product_id.is_not(None),
        )
        .options(selectinload(IsoRequest.matched_product))
        .order_by(IsoRequest.updated_at.desc())
    )
    items = []
    for iso in result.scalars().all():
        row = iso.to_dict()
        product = _product_brief(iso.matched_product)
        if product is not None:
            p = iso.matched_product
            product.update({
                "certification": p.certification,
                "thcMin": p.thc_min,
                "thcMax": p.thc_max,
                "cbdMin": p.cbd_min,
                "cbdMax": p.cbd_max,
                "isActive": p.is_active,
            })
        row["matchedProduct"] = product
        items.append(row)
    return {"items": items}


async def list_admin(db: AsyncSession, limit: int = 100) -> dict:
    result = await db.execute(
        select(IsoRequest)
        .options(
            selectinload(IsoRequest.buyer),
            selectinload(IsoRequest.matched_product),
            selectinload(IsoRequest.responses).selectinload(IsoResponse.seller),
            selectinload(IsoRequest.responses).selectinload(IsoResponse.product),
        )
        .order_by(IsoRequest.created_at.desc())
        .limit(limit)
    )
    items = []
    for iso in result.scalars().all():
        row = iso.to_dict()
        row["buyer"] = _contact_brief(iso.buyer)
        row["matchedProduct"] = _product_brief(iso.matched_product)
        row["responses"] = [_response_view(r, full_seller=True) for r in iso.responses]
        row["responseCount"] = len(iso.responses)
        items.append(row)
    return {"items": items}


def _response_view(response: IsoResponse, full_seller: bool = False) -> dict:
    data = response.to_dict()
    seller = response.seller
    if full_seller:
        data["seller"] = _contact_brief(seller)
    else:
        data["seller"] = {"id": seller.id, "companyName": seller.company_name} if seller else None
    data["product"] = {"id": response.product.id, "name": response.product.name} if response.product else None
    return data


async def get_iso_detail(iso_id: str, viewer_id: str, db: AsyncSession) -> dict:
    iso = await _get_iso_or_404(
        iso_id,
        db,
        selectinload(IsoRequest.matched_product),
        selectinload(IsoRequest.responses).selectinload(IsoResponse.seller),
        selectinload(IsoRequest.responses).selectinload(IsoResponse.product),
    )
    view = _public_view(iso, viewer_id, len(iso.responses))
    if view["isOwner"]:
        view["matchedProduct"] = _product_brief(iso.matched_product)
        view["responses"] = [_response_view(r) for r in iso.responses]
    return {"iso": view}


async def update_iso(iso_id: str, owner_id: str, data: IsoUpdate, db: AsyncSession) -> dict:
    iso = await _get_iso_or_404(iso_id, db)
    if iso.buyer_id != owner_id:
        raise HTTPException(status_code=403, detail="You can only modify your own ISO requests")

    if data.status == "CLOSED":
        iso.status = IsoStatus.CLOSED
    if data.renew:
        iso.expires_at = utcnow() + timedelta(days=settings.ISO_EXPIRY_DAYS)
        if iso.status in (IsoStatus.EXPIRED, IsoStatus.CLOSED):
            iso.status = IsoStatus.OPEN
    await safe_commit(db, client_error_message="Failed to update ISO request")
    return {"iso": iso.to_dict()}


async def respond_to_iso(iso_id: str, seller_id: str, data: IsoRespond, db: AsyncSession) -> dict:
    iso = await _get_iso_or_404(iso_id, db)
    if iso.status not in RESPONDABLE:
        raise HTTPException(status_code=400, detail="This ISO request is no longer accepting responses")
    if iso.buyer_id == seller_id:
        raise HTTPException(status_code=400, detail="You cannot respond to your own ISO request")

    if data.product_id:
        product = await db.get(Product, data.product_id)
        if product is None:
            raise HTTPException(status_code=404, detail="Product not found")
        if product.seller_id != seller_id:
            raise HTTPException(status_code=403, detail="You can only reference your own products")

    response = IsoResponse(
        iso_request_id=iso.id,
        seller_id=seller_id,
        product_id=data.product_id or None,
        message=data.message or None,
        status="admin_notified",
    )
    db.add(response)
    await safe_commit(
        db,
        client_error_message="You have already responded to this ISO request",
        conflict_status=409,
    )
    logger.info(f"Seller {seller_id} responded to ISO {iso_id}")
    return {"response": response.to_dict()}
