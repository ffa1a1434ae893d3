"""
Settlement service for debt simplification and settlement recording.
"""
from sqlalchemy.orm import Session, selectinload
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import date
from decimal import Decimal
import logging
from settleup.models.expense import Expense, ExpensePayer, ExpenseSplit
from settleup.models.trip import Trip, Participant
from settleup.services.balance_service import compute_net_balances, ExpenseValidationError
from settleup.services.category_service import total_spent
from settleup.services.expense_service import ensure_cents, get_trip
from settleup.services.fx_service import (
    RateResolver, get_base_currency, get_conversion_rate, get_rate_table,
    rate_table_resolver, stored_rate_resolver, convert_from_base, to_decimal
)

logger = logging.getLogger(__name__)

# Balances within this distance of zero count as settled
SETTLEMENT_TOLERANCE = Decimal("0.01")

SETTLEMENT_CATEGORY = "Settlement"


class Transfer:
    """Represents a single transfer between participants."""
    def __init__(self, from_participant_id: int, to_participant_id: int, amount: Decimal):
        self.from_participant_id = from_participant_id
        self.to_participant_id = to_participant_id
        self.amount = amount

    def __repr__(self):
        return f"Transfer({self.from_participant_id} -> {self.to_participant_id}: {self.amount})"


def minimize_transfers(
    net_balances: Dict[int, Decimal],
    tolerance: Decimal = SETTLEMENT_TOLERANCE
) -> List[Transfer]:
    """
    Minimize the number of transfers needed to settle debts.
    Uses a greedy algorithm matching the largest debtor with the largest creditor.

    Participants within tolerance of zero are treated as settled. Equal
    magnitudes keep the iteration order of `net_balances`. At most
    len(debtors) + len(creditors) - 1 transfers are produced.
    """
    tolerance = to_decimal(tolerance)
    balances = [(pid, to_decimal(bal)) for pid, bal in net_balances.items()]

    # Separate creditors (positive balance) and debtors (negative balance)
    creditors = [[pid, bal] for pid, bal in balances if bal > tolerance]
    debtors = [[pid, -bal] for pid, bal in balances if bal < -tolerance]  # Store as positive for easier calculation

    # Sort in descending order; sort is stable so ties keep input order
    creditors.sort(key=lambda x: x[1], reverse=True)
    debtors.sort(key=lambda x: x[1], reverse=True)

    transfers = []
    cred_idx = 0
    debt_idx = 0

    while cred_idx < len(creditors) and debt_idx < len(debtors):
        creditor = creditors[cred_idx]
        debtor = debtors[debt_idx]

        # Transfer the minimum of what's owed and what's needed
        transfer_amount = min(creditor[1], debtor[1])
        transfers.append(Transfer(debtor[0], creditor[0], transfer_amount))

        creditor[1] -= transfer_amount
        debtor[1] -= transfer_amount

        if creditor[1] <= tolerance:
            cred_idx += 1
        if debtor[1] <= tolerance:
            debt_idx += 1

    return transfers


def recompute_settlement(
    expenses: Iterable,
    participants: Iterable,
    rate_resolver: RateResolver,
    tolerance: Decimal = SETTLEMENT_TOLERANCE
) -> Tuple[Dict[int, Decimal], List[Transfer]]:
    """
    Recompute balances and the repayment plan from a full expense snapshot.
    Callers must invoke this again after every write; nothing is cached.
    """
    net_balances = compute_net_balances(expenses, participants, rate_resolver)
    transfers = minimize_transfers(net_balances, tolerance)
    logger.debug(f"Recomputed {len(net_balances)} balances into {len(transfers)} transfers")
    return net_balances, transfers


def build_settlement_expense(
    transfer: Transfer,
    currency: str,
    conversion_rate: Decimal,
    trip_id: Optional[int] = None,
    from_name: Optional[str] = None,
    to_name: Optional[str] = None,
    expense_date: Optional[date] = None
) -> Expense:
    """
    Build the synthetic expense recording a payment from debtor to creditor.

    The debtor is the single payer and the creditor the single splitter, both
    for the full amount, so re-aggregation moves each of them towards zero by
    amount / conversion_rate. The amount may differ from the suggested
    transfer (partial or overpaid settlements are allowed).
    """
    amount = to_decimal(transfer.amount)
    if amount <= 0:
        raise ExpenseValidationError("Settlement amount must be positive")
    if transfer.from_participant_id == transfer.to_participant_id:
        raise ExpenseValidationError("A participant cannot settle with themselves")

    from_label = from_name or f"#{transfer.from_participant_id}"
    to_label = to_name or f"#{transfer.to_participant_id}"

    return Expense(
        trip_id=trip_id,
        expense_name=f"Settlement: {from_label} to {to_label}",
        amount=amount,
        currency=currency.upper(),
        conversion_rate=to_decimal(conversion_rate),
        expense_date=expense_date,
        category=SETTLEMENT_CATEGORY,
        is_settlement=True,
        payers=[ExpensePayer(participant_id=transfer.from_participant_id, amount_paid=amount)],
        splits=[ExpenseSplit(participant_id=transfer.to_participant_id, share_amount=amount)]
    )


def record_settlement(
    trip_id: int,
    transfer: Transfer,
    currency: str,
    db: Session,
    expense_date: Optional[date] = None
) -> Expense:
    """
    Persist a confirmed transfer as a settlement expense.

    The payment currency's rate is taken from the trip's rate table at
    recording time. The expense and its payer / split rows are written in a
    single commit; on failure the session is rolled back and nothing changes.
    """
    trip = get_trip(trip_id, db)

    participants = {
        p.id: p for p in db.query(Participant).filter(
            Participant.trip_id == trip_id,
            Participant.id.in_([transfer.from_participant_id, transfer.to_participant_id])
        ).all()
    }
    for pid in (transfer.from_participant_id, transfer.to_participant_id):
        if pid not in participants:
            raise ExpenseValidationError(f"Participant {pid} is not part of trip {trip_id}")

    rate = get_conversion_rate(trip, currency, db, enabled_only=True)
    ensure_cents(to_decimal(transfer.amount), "Settlement amount")

    expense = build_settlement_expense(
        transfer,
        currency,
        rate,
        trip_id=trip_id,
        from_name=participants[transfer.from_participant_id].name,
        to_name=participants[transfer.to_participant_id].name,
        expense_date=expense_date or date.today()
    )

    try:
        db.add(expense)
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to record settlement on trip {trip_id}", exc_info=True)
        raise
    db.refresh(expense)

    logger.info(
        f"Recorded settlement on trip {trip_id}: {transfer.from_participant_id} -> "
        f"{transfer.to_participant_id} {expense.amount} {expense.currency}"
    )
    return expense


def load_trip_snapshot(trip_id: int, db: Session) -> Tuple[Trip, List[Participant], List[Expense]]:
    """Load a trip with its roster and every expense, payers and splits included."""
    trip = get_trip(trip_id, db)

    participants = db.query(Participant).filter(
        Participant.trip_id == trip_id
    ).order_by(Participant.id).all()

    expenses = db.query(Expense).options(
        selectinload(Expense.payers),
        selectinload(Expense.splits)
    ).filter(Expense.trip_id == trip_id).order_by(Expense.id).all()

    return trip, participants, expenses


def calculate_settlement(
    trip_id: int,
    db: Session,
    display_currency: Optional[str] = None,
    use_current_rates: bool = False
) -> dict:
    """
    Calculate the settlement plan for a trip from a fresh snapshot.

    By default each expense is converted with the rate captured when it was
    recorded. With use_current_rates the trip's current rate table is used
    instead. Transfer amounts are also reported in display_currency.
    """
    trip, participants, expenses = load_trip_snapshot(trip_id, db)
    base_currency = get_base_currency(trip)

    rate_table = get_rate_table(trip, db)
    resolver = rate_table_resolver(rate_table, base_currency) if use_current_rates else stored_rate_resolver

    net_balances, transfers = recompute_settlement(expenses, participants, resolver)

    display_currency = (display_currency or base_currency).upper()
    display_rate = get_conversion_rate(trip, display_currency, db)

    names = {p.id: p.name for p in participants}

    calculation_data = {
        "trip_id": trip.id,
        "base_currency": base_currency,
        "display_currency": display_currency,
        "net_balances": [
            {
                "participant_id": pid,
                "name": names.get(pid, ""),
                "balance_base": balance
            }
            for pid, balance in net_balances.items()
        ],
        "transfers": [
            {
                "from_participant_id": t.from_participant_id,
                "from_name": names.get(t.from_participant_id, ""),
                "to_participant_id": t.to_participant_id,
                "to_name": names.get(t.to_participant_id, ""),
                "amount_base": t.amount,
                "amount_display": convert_from_base(t.amount, display_rate)
            }
            for t in transfers
        ],
        "total_expenses_base": total_spent(expenses, resolver),
        "participant_count": len(participants),
        "is_settled": not transfers
    }

    logger.debug(f"Settlement for trip {trip_id}: {len(transfers)} transfers in {display_currency}")
    return calculation_data
