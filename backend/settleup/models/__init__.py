"""Models package - Import all models for SQLAlchemy registration."""
from settleup.models.trip import Trip, Participant
from settleup.models.expense import Expense, ExpensePayer, ExpenseSplit
from settleup.models.exchange_rate import ExchangeRate

__all__ = [
    "Trip",
    "Participant",
    "Expense",
    "ExpensePayer",
    "ExpenseSplit",
    "ExchangeRate",
]
