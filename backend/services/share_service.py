import logging
import secrets

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.curated_share import CuratedShare
from db.models.product import Product
from db.types import utcnow
from schemas.share_schema import ShareCreate, ShareUpdate
from utils.db import safe_commit

logger = logging.getLogger(__name__)


async def _count_existing_products(product_ids: list, db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Product.id)).where(Product.id.in_(product_ids)))
    return result.scalar_one()


async def create_share(data: ShareCreate, created_by_id: str, db: AsyncSession) -> dict:
    product_ids = list(dict.fromkeys(data.product_ids))
    if await _count_existing_products(product_ids, db) != len(product_ids):
        raise HTTPException(status_code=400, detail="Some product IDs are invalid")

    share = CuratedShare(
        token=secrets.token_urlsafe(32),
        label=data.label,
        product_ids=product_ids,
        expires_at=data.expires_at,
        created_by_id=created_by_id,
    )
    db.add(share)
    await safe_commit(db, client_error_message="Could not create share")
    logger.info(f"Curated share created: {share.id} ({len(product_ids)} products)")
    return {"share": share.to_dict()}


async def list_shares(db: AsyncSession) -> dict:
    result = await db.execute(select(CuratedShare).order_by(CuratedShare.created_at.desc()))
    return {"shares": [s.to_dict() for s in result.scalars().all()]}


async def update_share(share_id: str, data: ShareUpdate, db: AsyncSession) -> dict:
    share = await db.get(CuratedShare, share_id)
    if share is None:
        raise HTTPException(status_code=404, detail="Share not found")

    provided = data.model_fields_set
    if "label" in provided and data.label is not None:
        share.label = data.label
    if "product_ids" in provided and data.product_ids is not None:
        share.product_ids = list(dict.fromkeys(data.product_ids))
    if "active" in provided and data.active is not None:
        share.active = data.active
    if "expires_at" in provided:
        share.expires_at = data.expires_at
    await safe_commit(db, client_error_message="Could not update share")
    return {"share": share.to_dict()}


async def delete_share(share_id: str, db: AsyncSession) -> dict:
    share = await db.get(CuratedShare, share_id)
    if share is None:
        raise HTTPException(status_code=404, detail="Share not found")
    await db.delete(share)
    await safe_commit(db, client_error_message="Could not delete share")
    return {"success": True}


async def _get_live_share(token: str, db: AsyncSession) -> CuratedShare:
    result = await db.execute(select(CuratedShare).where(CuratedShare.token == token))
    share = result.scalars().first()
    if share is None or not share.active:
        raise HTTPException(status_code=404, detail="Invalid or expired share link")
    if share.expires_at and share.expires_at < utcnow():
        raise HTTPException(status_code=410, detail="Share link has expired")
    return share


async def validate_share_token(token: str, db: AsyncSession) -> dict:
    share = await _get_live_share(token, db)
    return {
        "label": share.label,
        "productCount": len(share.product_ids or []),
        "expiresAt": share.expires_at,
    }


async def get_shared_products(token: str, db: AsyncSession) -> dict:
    share = await _get_live_share(token, db)

    share.last_used_at = utcnow()
    share.use_count = (share.use_count or 0) + 1
    await safe_commit(db)

    products = []
    if share.product_ids:
        result = await db.execute(
            select(Product).where(Product.id.in_(share.product_ids), Product.is_active.is_(True))
        )
        products = [p.to_summary() for p in result.scalars().all()]
    return {"label": share.label, "products": products}
