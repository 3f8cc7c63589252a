from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from instant_quote.pricing.rates import MAX_MEASUREMENT

MAX_SQFT = int(MAX_MEASUREMENT)
# Far above any price the rate cards can produce for MAX_SQFT
MAX_AMOUNT = 10_000_000


class ServiceItem(BaseModel):
    key: str = Field(min_length=1, max_length=40)
    frequency: Optional[Literal["weekly", "biweekly"]] = None
    price: Decimal = Field(ge=0, le=MAX_AMOUNT)


class QuoteSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=7, max_length=40)
    email: EmailStr = Field(max_length=180)
    address: str = Field(min_length=3, max_length=300)
    preferred_date: Optional[str] = Field(default=None, max_length=40, alias="preferredDate")
    sqft: int = Field(ge=0, le=MAX_SQFT)
    services: List[ServiceItem] = Field(min_length=1)
    total: Decimal = Field(ge=0, le=MAX_AMOUNT)


class QuoteSubmissionResult(BaseModel):
    ok: bool = True


class QuotePreviewRequest(BaseModel):
    sqft: float = Field(default=0, ge=0, le=MAX_SQFT, allow_inf_nan=False)
    services: List[str] = Field(default_factory=lambda: ["mowing"])
    frequency: Literal["weekly", "biweekly"] = "weekly"


class LineItemRead(BaseModel):
    key: str
    label: str
    price: int
    frequency: Optional[str] = None


class QuotePreviewRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sqft: int
    line_items: List[LineItemRead] = Field(alias="lineItems")
    total: int
    pricing_model: str = Field(alias="pricingModel")
