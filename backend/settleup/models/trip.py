"""
Trip and participant models for group travel.
"""
from sqlalchemy import Column, String, ForeignKey, Integer
from sqlalchemy.orm import relationship
from settleup.db.base import BaseModel


class Trip(BaseModel):
    """Trip model representing a group travel event."""
    __tablename__ = "trips"
    
    name = Column(String(200), nullable=False)
    base_currency = Column(String(3), nullable=False, default="USD")  # Unit all balances are normalized to
    
    # Relationships
    participants = relationship(
        "Participant", back_populates="trip", cascade="all, delete-orphan", order_by="Participant.id"
    )
    expenses = relationship("Expense", back_populates="trip", cascade="all, delete-orphan")
    exchange_rates = relationship("ExchangeRate", back_populates="trip", cascade="all, delete-orphan")


class Participant(BaseModel):
    """A person taking part in a trip. Managed outside the settlement engine."""
    __tablename__ = "participants"
    
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)  # Theme color chosen by the participant
    
    # Relationships
    trip = relationship("Trip", back_populates="participants")
