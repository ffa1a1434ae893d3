"""
Shared fixtures: an in-memory database, an API client bound to it, and expense builders.
"""
import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from settleup.db.base import Base
from settleup.db.session import get_db
from settleup.main import app
from settleup.models import Trip, Participant, ExchangeRate, Expense, ExpensePayer, ExpenseSplit

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def trip(db):
    """USD trip with Alice, Bob and Carol; 1 USD = 0.9 EUR = 150 JPY."""
    trip = Trip(name="Lisbon", base_currency="USD")
    trip.participants = [Participant(name="Alice"), Participant(name="Bob"), Participant(name="Carol")]
    trip.exchange_rates = [
        ExchangeRate(currency="EUR", rate=Decimal("0.9")),
        ExchangeRate(currency="JPY", rate=Decimal("150")),
    ]
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


@pytest.fixture
def make_expense():
    """Build a transient expense from {participant_id: amount} mappings."""
    def _make(amount, payers, splits, currency="USD", rate=1, is_settlement=False, category=None, name=None):
        return Expense(
            expense_name=name or "Shared expense",
            amount=Decimal(str(amount)),
            currency=currency,
            conversion_rate=Decimal(str(rate)),
            category=category,
            is_settlement=is_settlement,
            payers=[ExpensePayer(participant_id=pid, amount_paid=Decimal(str(v))) for pid, v in payers.items()],
            splits=[ExpenseSplit(participant_id=pid, share_amount=Decimal(str(v))) for pid, v in splits.items()]
        )
    return _make
