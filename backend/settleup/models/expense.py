"""
Expense model for tracking shared spending.
"""
from sqlalchemy import Column, String, Numeric, Date, ForeignKey, Integer, Boolean
from sqlalchemy.orm import relationship
from settleup.db.base import BaseModel


class Expense(BaseModel):
    """Expense model representing a single spending event, or a recorded settlement."""
    __tablename__ = "expenses"
    
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    expense_name = Column(String(200), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    # Units of `currency` per one unit of the trip's base currency, captured at creation
    conversion_rate = Column(Numeric(18, 8), nullable=False, default=1)
    expense_date = Column(Date, nullable=True, index=True)
    category = Column(String(50), nullable=True)
    is_settlement = Column(Boolean, nullable=False, default=False, index=True)
    
    # Relationships
    trip = relationship("Trip", back_populates="expenses")
    payers = relationship(
        "ExpensePayer", back_populates="expense", cascade="all, delete-orphan", order_by="ExpensePayer.id"
    )
    splits = relationship(
        "ExpenseSplit", back_populates="expense", cascade="all, delete-orphan", order_by="ExpenseSplit.id"
    )


class ExpensePayer(BaseModel):
    """How much one participant paid towards an expense, in the expense currency."""
    __tablename__ = "expense_payers"
    
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    amount_paid = Column(Numeric(15, 2), nullable=False)
    
    # Relationships
    expense = relationship("Expense", back_populates="payers")
    participant = relationship("Participant")


class ExpenseSplit(BaseModel):
    """One participant's share of an expense, in the expense currency."""
    __tablename__ = "expense_splits"
    
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    share_amount = Column(Numeric(15, 2), nullable=False)
    
    # Relationships
    expense = relationship("Expense", back_populates="splits")
    participant = relationship("Participant")
