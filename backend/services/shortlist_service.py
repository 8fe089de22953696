import logging
import math
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from core.config import settings
from db.models.product import Product
from db.models.shortlist import ShortlistItem
from utils.db import safe_commit

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "date": ShortlistItem.created_at,
    "name": Product.name,
    "price": Product.price_per_unit,
}


async def toggle_shortlist(buyer_id: str, product_id: str, db: AsyncSession) -> dict:
    if await db.get(Product, product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")

    result = await db.execute(
        select(ShortlistItem).where(ShortlistItem.buyer_id == buyer_id, ShortlistItem.product_id == product_id)
    )
    existing = result.scalars().first()
    if existing is not None:
        await db.delete(existing)
        await safe_commit(db)
        return {"shortlisted": False}

    db.add(ShortlistItem(buyer_id=buyer_id, product_id=product_id))
    await safe_commit(db, client_error_message="Product already shortlisted", conflict_status=409)
    return {"shortlisted": True}


async def list_shortlist(
    buyer_id: str,
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    sort: str = "date",
    order: str = "desc",
) -> dict:
    stmt = (
        select(ShortlistItem)
        .join(ShortlistItem.product)
        .where(ShortlistItem.buyer_id == buyer_id)
    )
    if category:
        stmt = stmt.where(Product.category == category)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = SORT_COLUMNS.get(sort, ShortlistItem.created_at)
    stmt = (
        stmt.options(contains_eager(ShortlistItem.product))
        .order_by(column.asc() if order == "asc" else column.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = []
    for item in (await db.execute(stmt)).scalars().all():
        row = item.product.to_summary()
        row["shortlistedAt"] = item.created_at
        items.append(row)

    return {
        "items": items,
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)},
    }


def parse_product_ids(raw: str) -> list:
    ids = [p.strip() for p in (raw or "").split(",") if p.strip()]
    if not ids:
        raise HTTPException(status_code=400, detail="productIds is required")
    if len(ids) > settings.SHORTLIST_CHECK_MAX:
        raise HTTPException(status_code=400, detail=f"Maximum {settings.SHORTLIST_CHECK_MAX} product IDs allowed")
    return ids


async def check_shortlisted(buyer_id: str, product_ids: list, db: AsyncSession) -> dict:
    result = await db.execute(
        select(ShortlistItem.product_id).where(
            ShortlistItem.buyer_id == buyer_id, ShortlistItem.product_id.in_(product_ids)
        )
    )
    shortlisted = set(result.scalars().all())
    return {"shortlisted": {pid: pid in shortlisted for pid in product_ids}}


async def count_shortlist(buyer_id: str, db: AsyncSession) -> dict:
    result = await db.execute(select(func.count(ShortlistItem.id)).where(ShortlistItem.buyer_id == buyer_id))
    return {"count": result.scalar_one()}
