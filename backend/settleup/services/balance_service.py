"""
Balance service: folds a trip's expenses into one net balance per participant.

Works on any expense-like object exposing `amount`, `currency`, `payers`
(items with `participant_id` and `amount_paid`) and `splits` (items with
`participant_id` and `share_amount`): ORM rows and transient objects alike.
"""
from decimal import Decimal
from typing import Dict, Iterable
import logging
from settleup.services.fx_service import RateResolver, RateResolutionError, convert_to_base, to_decimal

logger = logging.getLogger(__name__)

# Maximum drift allowed between an expense amount and its payer / split sums
EXPENSE_SUM_TOLERANCE = Decimal("0.000001")


class ExpenseValidationError(ValueError):
    """Raised when an expense does not balance or is missing payers or splits."""


def validate_expense(expense, tolerance: Decimal = EXPENSE_SUM_TOLERANCE) -> None:
    """
    Check that an expense is internally consistent.

    Payers and splits must both be non-empty, no entry may be negative, and
    both the payer sum and the split sum must equal the amount within
    tolerance.

    Raises:
        ExpenseValidationError: describing the first problem found
    """
    label = getattr(expense, "expense_name", None) or f"expense {getattr(expense, 'id', '?')}"
    amount = to_decimal(expense.amount) if expense.amount is not None else None

    if amount is None or amount <= 0:
        raise ExpenseValidationError(f"{label}: amount must be positive")
    if not expense.payers:
        raise ExpenseValidationError(f"{label}: at least one payer is required")
    if not expense.splits:
        raise ExpenseValidationError(f"{label}: at least one split is required")

    paid = [to_decimal(p.amount_paid) for p in expense.payers]
    shares = [to_decimal(s.share_amount) for s in expense.splits]
    if any(value < 0 for value in paid + shares):
        raise ExpenseValidationError(f"{label}: payer and split amounts cannot be negative")

    if abs(sum(paid) - amount) > tolerance:
        raise ExpenseValidationError(f"{label}: payers sum to {sum(paid)}, expected {amount}")
    if abs(sum(shares) - amount) > tolerance:
        raise ExpenseValidationError(f"{label}: splits sum to {sum(shares)}, expected {amount}")


def _participant_ids(participants: Iterable) -> list:
    """Accept either participant objects or bare ids."""
    return [getattr(p, "id", p) for p in participants]


def compute_net_balances(
    expenses: Iterable,
    participants: Iterable,
    rate_resolver: RateResolver
) -> Dict[int, Decimal]:
    """
    Compute each participant's net balance in the trip's base unit.

    Positive balance = is owed money, negative = owes money. Every participant
    of the roster is present in the result, in roster order, with zero for
    those not involved in any expense.

    Args:
        expenses: Ordinary and settlement expenses of the trip, in any order
        participants: Trip roster (objects with `id`, or ids)
        rate_resolver: Returns the divisor converting an expense into the base unit

    Raises:
        ExpenseValidationError: if any expense does not balance
        RateResolutionError: if a rate cannot be resolved for any expense
    """
    net_balances: Dict[int, Decimal] = {pid: Decimal(0) for pid in _participant_ids(participants)}

    for expense in expenses:
        validate_expense(expense)
        try:
            rate = to_decimal(rate_resolver(expense))
        except RateResolutionError:
            logger.error(f"Cannot resolve rate for expense {getattr(expense, 'id', None)} in {expense.currency}")
            raise
        if rate <= 0:
            raise RateResolutionError(f"Invalid conversion rate for {expense.currency}: {rate}")

        # Credit what each payer paid
        for payer in expense.payers:
            if payer.participant_id not in net_balances:
                logger.warning(f"Ignoring unknown payer {payer.participant_id} on expense {getattr(expense, 'id', None)}")
                continue
            net_balances[payer.participant_id] += convert_to_base(payer.amount_paid, rate)

        # Debit what each participant consumed
        for split in expense.splits:
            if split.participant_id not in net_balances:
                logger.warning(f"Ignoring unknown splitter {split.participant_id} on expense {getattr(expense, 'id', None)}")
                continue
            net_balances[split.participant_id] -= convert_to_base(split.share_amount, rate)

    return net_balances
