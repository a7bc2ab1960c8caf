from pydantic import BaseModel, Field, ConfigDict
from typing import List
from datetime import datetime
from decimal import Decimal

class ExchangeRateSnapshot(BaseModel):
    """Par de tasas identificado e inmutable; la venta guarda solo su id"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    usd_rate: Decimal
    thb_rate: Decimal
    created_date: datetime

# ==================== REQUEST SCHEMAS ====================

class ExchangeRateCreateRequest(BaseModel):
    usd_rate: Decimal = Field(..., description="LAK por 1 USD")
    thb_rate: Decimal = Field(..., description="LAK por 1 THB")

# ==================== RESPONSE SCHEMAS ====================

class ExchangeRateHistoryResponse(BaseModel):
    success: bool
    rates: List[ExchangeRateSnapshot]
    count: int
