"""
Expense service for expense-related business logic.
"""
from sqlalchemy.orm import Session, selectinload
from decimal import Decimal, ROUND_DOWN
from typing import List
import logging
from settleup.models.expense import Expense, ExpensePayer, ExpenseSplit
from settleup.models.trip import Trip, Participant
from settleup.schemas.expense import ExpenseCreate
from settleup.services.balance_service import validate_expense, ExpenseValidationError
from settleup.services.category_service import detect_category
from settleup.services.fx_service import get_base_currency, get_conversion_rate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def split_evenly(amount: Decimal, participant_ids: List[int]) -> List[tuple]:
    """
    Divide an amount into cent-exact equal parts.
    Leftover cents go one each to the first participants, so the parts always
    sum to the amount.
    """
    if not participant_ids:
        raise ExpenseValidationError("Cannot split an amount between nobody")

    count = len(participant_ids)
    base_share = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    leftover_cents = int(((amount - base_share * count) / CENT).to_integral_value())

    parts = []
    for index, participant_id in enumerate(participant_ids):
        share = base_share + CENT if index < leftover_cents else base_share
        parts.append((participant_id, share))
    return parts


def ensure_cents(value: Decimal, label: str) -> Decimal:
    """
    Amounts are stored in whole cents. Finer amounts are rejected rather than
    rounded, since rounding can hide or create a payer / split mismatch.
    """
    if value != value.quantize(CENT):
        raise ExpenseValidationError(f"{label} must be in whole cents, got {value}")
    return value


def get_trip(trip_id: int, db: Session) -> Trip:
    """Load a trip or raise ValueError."""
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise ValueError("Trip not found")
    return trip


def create_expense(trip_id: int, expense_data: ExpenseCreate, db: Session) -> Expense:
    """
    Create an expense with payers and splits.

    The conversion rate is captured from the trip's rate table now, so later
    rate changes do not alter this expense. Disabled currencies are refused.
    """
    trip = get_trip(trip_id, db)
    currency = (expense_data.currency or get_base_currency(trip)).upper()
    rate = get_conversion_rate(trip, currency, db, enabled_only=True)
    amount = ensure_cents(expense_data.amount, "Amount")

    if expense_data.payers:
        payer_parts = [
            (p.participant_id, ensure_cents(p.amount_paid, f"Amount paid by {p.participant_id}"))
            for p in expense_data.payers
        ]
    else:
        payer_parts = split_evenly(amount, expense_data.payer_ids)

    if expense_data.splits:
        split_parts = [
            (s.participant_id, ensure_cents(s.share_amount, f"Share of {s.participant_id}"))
            for s in expense_data.splits
        ]
    else:
        split_parts = split_evenly(amount, expense_data.split_participant_ids)

    # Every referenced participant must belong to this trip
    trip_participant_ids = {
        pid for (pid,) in db.query(Participant.id).filter(Participant.trip_id == trip_id).all()
    }
    unknown = {pid for pid, _ in payer_parts + split_parts} - trip_participant_ids
    if unknown:
        raise ExpenseValidationError(f"Participants {sorted(unknown)} are not part of trip {trip_id}")

    expense = Expense(
        trip_id=trip_id,
        expense_name=expense_data.expense_name,
        amount=amount,
        currency=currency,
        conversion_rate=rate,
        expense_date=expense_data.expense_date,
        category=expense_data.category or detect_category(expense_data.expense_name),
        is_settlement=False,
        payers=[ExpensePayer(participant_id=pid, amount_paid=paid) for pid, paid in payer_parts],
        splits=[ExpenseSplit(participant_id=pid, share_amount=share) for pid, share in split_parts]
    )

    # Reject malformed expenses at ingestion rather than at aggregation
    validate_expense(expense)

    db.add(expense)
    db.commit()
    db.refresh(expense)

    logger.info(f"Created expense {expense.id} on trip {trip_id}: {amount} {currency} at rate {rate}")
    return expense


def list_expenses(trip_id: int, db: Session) -> List[Expense]:
    """List a trip's expenses, newest first."""
    get_trip(trip_id, db)
    return db.query(Expense).options(
        selectinload(Expense.payers),
        selectinload(Expense.splits)
    ).filter(
        Expense.trip_id == trip_id
    ).order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def delete_expense(trip_id: int, expense_id: int, db: Session) -> None:
    """Delete an expense (ordinary or settlement) with its payers and splits."""
    expense = db.query(Expense).filter(
        Expense.id == expense_id,
        Expense.trip_id == trip_id
    ).first()
    if not expense:
        raise ValueError("Expense not found")

    db.delete(expense)
    db.commit()
    logger.info(f"Deleted expense {expense_id} from trip {trip_id}")
