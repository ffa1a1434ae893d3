"""
Pydantic schemas for Expense entity.
"""
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


class ExpensePayerEntry(BaseModel):
    """Amount one participant paid, in the expense currency."""
    participant_id: int
    amount_paid: Decimal = Field(ge=0)


class ExpenseSplitEntry(BaseModel):
    """One participant's share, in the expense currency."""
    participant_id: int
    share_amount: Decimal = Field(ge=0)


class ExpenseCreate(BaseModel):
    """
    Schema for expense creation.

    Either give explicit payers / splits, or participant id lists which are
    divided evenly.
    """
    expense_name: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(gt=0)
    currency: Optional[str] = None  # Defaults to the trip's base currency
    expense_date: Optional[date] = None
    category: Optional[str] = None  # Detected from expense_name when omitted
    payers: List[ExpensePayerEntry] = []
    splits: List[ExpenseSplitEntry] = []
    payer_ids: List[int] = []  # Paid in equal parts
    split_participant_ids: List[int] = []  # Shared in equal parts

    @model_validator(mode="after")
    def check_sides(self):
        """Each side needs explicit entries or an id list, not both."""
        if self.payers and self.payer_ids:
            raise ValueError("Give either payers or payer_ids, not both")
        if self.splits and self.split_participant_ids:
            raise ValueError("Give either splits or split_participant_ids, not both")
        if not self.payers and not self.payer_ids:
            raise ValueError("At least one payer is required")
        if not self.splits and not self.split_participant_ids:
            raise ValueError("At least one split is required")
        return self


class ExpensePayerResponse(BaseModel):
    """Schema for expense payer response."""
    participant_id: int
    amount_paid: Decimal
    
    class Config:
        from_attributes = True


class ExpenseSplitResponse(BaseModel):
    """Schema for expense split response."""
    participant_id: int
    share_amount: Decimal
    
    class Config:
        from_attributes = True


class ExpenseResponse(BaseModel):
    """Schema for expense response."""
    id: int
    trip_id: int
    expense_name: str
    amount: Decimal
    currency: str
    conversion_rate: Decimal  # Units of currency per one unit of trip's base currency
    expense_date: Optional[date] = None
    category: Optional[str] = None
    is_settlement: bool
    payers: List[ExpensePayerResponse] = []
    splits: List[ExpenseSplitResponse] = []
    created_at: datetime
    
    class Config:
        from_attributes = True


class CategoryExpenseItem(BaseModel):
    """Schema for category expense item in summary."""
    category: str
    total_amount_base: Decimal  # Total amount spent in this category (trip's base currency)
    expense_count: int  # Number of expenses in this category
    percentage: float  # Percentage of total expenses (0-100)


class ParticipantShareItem(BaseModel):
    """What one participant consumed, in trip's base currency."""
    participant_id: int
    name: str
    share_base: Decimal


class CategorySummaryResponse(BaseModel):
    """Schema for category summary response. Settlements are not counted."""
    trip_id: int
    base_currency: str  # Trip's base currency
    total_expenses_base: Decimal  # Total expenses in trip's base currency
    categories: List[CategoryExpenseItem]  # Category-wise breakdown
    participant_shares: List[ParticipantShareItem] = []
