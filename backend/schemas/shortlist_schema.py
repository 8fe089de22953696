from pydantic import BaseModel, Field


class ShortlistToggle(BaseModel):
    product_id: str = Field(alias="productId", min_length=1)

    class Config:
        populate_by_name = True
