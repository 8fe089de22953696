from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional


class IsoCreate(BaseModel):
    category: Optional[str] = Field(default=None, max_length=100)
    type: Optional[str] = Field(default=None, max_length=100)
    certification: Optional[str] = Field(default=None, max_length=200)
    thc_min: Optional[float] = Field(default=None, alias="thcMin", ge=0, le=100)
    thc_max: Optional[float] = Field(default=None, alias="thcMax", ge=0, le=100)
    cbd_min: Optional[float] = Field(default=None, alias="cbdMin", ge=0, le=100)
    cbd_max: Optional[float] = Field(default=None, alias="cbdMax", ge=0, le=100)
    quantity_min: Optional[float] = Field(default=None, alias="quantityMin", ge=0)
    quantity_max: Optional[float] = Field(default=None, alias="quantityMax", ge=0)
    budget_max: Optional[float] = Field(default=None, alias="budgetMax", gt=0)
    notes: Optional[str] = Field(default=None, max_length=1000)

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _check_ranges(self):
        for low, high in (("thc_min", "thc_max"), ("cbd_min", "cbd_max"), ("quantity_min", "quantity_max")):
            lo, hi = getattr(self, low), getattr(self, high)
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"{low} must not exceed {high}")
        return self


class IsoUpdate(BaseModel):
    status: Optional[Literal["CLOSED"]] = None
    renew: Optional[bool] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if self.status is None and not self.renew:
            raise ValueError("Provide status=CLOSED or renew=true")
        return self


class IsoRespond(BaseModel):
    product_id: Optional[str] = Field(default=None, alias="productId")
    message: Optional[str] = Field(default=None, max_length=1000)

    class Config:
        populate_by_name = True
