"""
Pydantic schemas for Settlement entity.
"""
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import date
from decimal import Decimal


class ParticipantBalance(BaseModel):
    """Net position of one participant."""
    participant_id: int
    name: str
    balance_base: Decimal  # Positive = is owed money, negative = owes money


class TransferItem(BaseModel):
    """Schema for a single suggested transfer in settlement."""
    from_participant_id: int
    from_name: str
    to_participant_id: int
    to_name: str
    amount_base: Decimal  # Transfer amount in trip's base currency
    amount_display: Decimal  # Transfer amount in the requested display currency


class BalancesResponse(BaseModel):
    """Schema for net balances of a trip."""
    trip_id: int
    base_currency: str
    net_balances: List[ParticipantBalance]


class SettlementSummary(BaseModel):
    """Schema for settlement summary."""
    trip_id: int
    base_currency: str
    display_currency: str
    net_balances: List[ParticipantBalance]
    transfers: List[TransferItem]
    total_expenses_base: Decimal  # Total non-settlement expenses in trip's base currency
    participant_count: int
    is_settled: bool


class SettlementRecordRequest(BaseModel):
    """Schema for recording a payment between two participants."""
    from_participant_id: int
    to_participant_id: int
    amount: Decimal = Field(gt=0)  # Amount actually paid, in `currency`
    currency: Optional[str] = None  # Defaults to the trip's base currency
    expense_date: Optional[date] = None

    @model_validator(mode="after")
    def check_distinct(self):
        if self.from_participant_id == self.to_participant_id:
            raise ValueError("A participant cannot settle with themselves")
        return self
