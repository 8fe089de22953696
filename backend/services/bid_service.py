from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.product import Product
from utils.proximity import calculate_proximity, get_proximity_label


async def preview_proximity(product_id: str, price_per_unit: float, db: AsyncSession) -> dict:
    """Score a prospective bid against the product's asking price."""
    product = await db.get(Product, product_id)
    if product is None or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    score = calculate_proximity(price_per_unit, product.price_per_unit or 0)
    return {"proximityScore": score, "label": get_proximity_label(score)}
