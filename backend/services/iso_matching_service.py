"""Score marketplace products against ISO requests.

Weights: category 25, type 15, THC 15, CBD 10, price 15, quantity 10,
certification 10. A criterion the buyer left blank earns its full weight.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.models.iso import IsoRequest, IsoStatus
from db.models.product import Product
from db.types import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)


def _same_text(wanted: Optional[str], actual: Optional[str]) -> bool:
    return bool(actual) and actual.lower() == wanted.lower()


def _in_range(value: Optional[float], low: Optional[float], high: Optional[float]) -> bool:
    if value is None:
        return False
    return (low is None or value >= low) and (high is None or value <= high)


def score_product_against_iso(product: Product, iso: IsoRequest) -> Tuple[int, dict]:
    """Return ``(score, breakdown)`` for one product against one request."""
    breakdown = {}

    breakdown["category"] = 25 if not iso.category or _same_text(iso.category, product.category) else 0
    breakdown["type"] = 15 if not iso.type or _same_text(iso.type, product.type) else 0

    if iso.thc_min is None and iso.thc_max is None:
        breakdown["thcFit"] = 15
    else:
        thc = product.thc_max if product.thc_max is not None else product.thc_min
        breakdown["thcFit"] = 15 if _in_range(thc, iso.thc_min, iso.thc_max) else 0

    if iso.cbd_min is None and iso.cbd_max is None:
        breakdown["cbdFit"] = 10
    else:
        cbd = product.cbd_max if product.cbd_max is not None else product.cbd_min
        breakdown["cbdFit"] = 10 if _in_range(cbd, iso.cbd_min, iso.cbd_max) else 0

    if iso.budget_max is None:
        breakdown["priceFit"] = 15
    else:
        price = product.price_per_unit
        breakdown["priceFit"] = 15 if price is not None and price <= iso.budget_max else 0

    if iso.quantity_min is None and iso.quantity_max is None:
        breakdown["quantityFit"] = 10
    else:
        breakdown["quantityFit"] = 10 if _in_range(product.grams_available, iso.quantity_min, iso.quantity_max) else 0

    if not iso.certification:
        breakdown["certificationMatch"] = 10
    else:
        cert = product.certification or ""
        breakdown["certificationMatch"] = 10 if iso.certification.lower() in cert.lower() else 0

    return sum(breakdown.values()), breakdown


async def match_iso_to_products(iso_id: str, db: AsyncSession) -> list:
    """Best-scoring active products for an OPEN request. Read only."""
    iso = await db.get(IsoRequest, iso_id)
    if iso is None or iso.status != IsoStatus.OPEN:
        return []

    result = await db.execute(select(Product).where(Product.is_active.is_(True)))
    matches = []
    for product in result.scalars().all():
        score, breakdown = score_product_against_iso(product, iso)
        if score >= settings.ISO_MATCH_THRESHOLD:
            matches.append({
                "productId": product.id,
                "productName": product.name,
                "score": score,
                "breakdown": breakdown,
            })

    matches.sort(key=lambda m: m["score"], reverse=True)
    return matches[: settings.ISO_MATCH_LIMIT]


async def match_product_to_open_isos(product_id: str, db: AsyncSession) -> int:
    """Score a newly listed product against every OPEN, unexpired request.

    Requests scoring at or above the threshold that have no match yet record
    this product and become MATCHED. Returns how many requests matched.
    """
    product = await db.get(Product, product_id)
    if product is None:
        return 0

    result = await db.execute(
        select(IsoRequest).where(
            IsoRequest.status == IsoStatus.OPEN,
            IsoRequest.expires_at > utcnow(),
        )
    )
    match_count = 0
    for iso in result.scalars().all():
        score, _ = score_product_against_iso(product, iso)
        if score < settings.ISO_MATCH_THRESHOLD:
            continue
        match_count += 1
        if iso.matched_product_id is None:
            iso.matched_product_id = product.id
            iso.status = IsoStatus.MATCHED

    if match_count:
        await safe_commit(db, client_error_message="Could not record ISO match")
        logger.info(f"Product {product.id} matched {match_count} open ISO request(s)")
    return match_count
