"""
Loyalty points Pydantic schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PointsTransactionResponse(BaseModel):
    amount: int
    type: str
    reference_id: Optional[str] = Field(None, alias="referenceId")
    description: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PointsSummaryResponse(BaseModel):
    balance: int
    balance_value: Decimal = Field(alias="balanceValue")
    min_redeemable: int = Field(alias="minRedeemable")
    history: list[PointsTransactionResponse]

    model_config = ConfigDict(populate_by_name=True)
