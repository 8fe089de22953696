from pydantic import BaseModel, Field


class ProximityRequest(BaseModel):
    product_id: str = Field(alias="productId", min_length=1)
    price_per_unit: float = Field(alias="pricePerUnit", gt=0)

    class Config:
        populate_by_name = True
