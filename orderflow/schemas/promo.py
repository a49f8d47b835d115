"""
Promo code Pydantic schemas.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orderflow.schemas.order import OrderItemInput


class PromoValidateRequest(BaseModel):
    """Preview a promo code against the current cart."""

    code: str = Field(..., min_length=1, max_length=64)
    items: list[OrderItemInput] = Field(default_factory=list)
    cart_total: Optional[Decimal] = Field(None, ge=0, alias="cartTotal")

    model_config = ConfigDict(populate_by_name=True)


class PromoValidateResponse(BaseModel):
    valid: bool
    code: str
    discount_amount: Decimal = Field(alias="discountAmount")
    discount_percentage: Optional[Decimal] = Field(None, alias="discountPercentage")
    eligible_total: Decimal = Field(alias="eligibleTotal")

    model_config = ConfigDict(populate_by_name=True)
