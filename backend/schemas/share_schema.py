from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class ShareCreate(BaseModel):
    label: str = Field(min_length=1, max_length=200)
    product_ids: List[str] = Field(alias="productIds", min_length=1)
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    class Config:
        populate_by_name = True


class ShareUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=200)
    product_ids: Optional[List[str]] = Field(default=None, alias="productIds")
    active: Optional[bool] = None
    # explicit null clears the expiry; omission leaves it unchanged
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    class Config:
        populate_by_name = True
