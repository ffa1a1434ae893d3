"""
Exchange rate model for currency conversion.
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Integer, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from settleup.db.base import BaseModel


class ExchangeRate(BaseModel):
    """Trip-level rate table entry: units of `currency` per one unit of the trip's base currency."""
    __tablename__ = "exchange_rates"
    
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    currency = Column(String(3), nullable=False)
    rate = Column(Numeric(18, 8), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    
    # Relationships
    trip = relationship("Trip", back_populates="exchange_rates")
    
    # Unique constraint: one rate per currency per trip
    __table_args__ = (
        UniqueConstraint('trip_id', 'currency', name='uq_trip_currency'),
    )
