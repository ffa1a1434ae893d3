"""
Pydantic schemas for ExchangeRate entity.
"""
from pydantic import BaseModel, Field
from decimal import Decimal


class ExchangeRateUpdate(BaseModel):
    """Schema for setting one currency's rate."""
    rate: Decimal = Field(gt=0)  # Units of currency per one unit of trip's base currency
    is_enabled: bool = True


class ExchangeRateResponse(BaseModel):
    """Schema for exchange rate response."""
    currency: str
    rate: Decimal
    is_enabled: bool
    base_currency: str  # Trip's base currency
