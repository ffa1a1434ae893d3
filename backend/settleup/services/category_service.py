"""
Category service: keyword-based categorization and spending analytics.

Settlement expenses only move money between participants, so every
analytic here skips them. Balance aggregation does not.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from settleup.services.fx_service import RateResolver, convert_to_base, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Others"

# Predefined categories and the keywords that identify them in an expense name
EXPENSE_CATEGORIES = {
    "Food": ["restaurant", "cafe", "breakfast", "lunch", "dinner", "drinks", "starbucks", "grocery", "snacks", "bar"],
    "Accommodation": ["hotel", "airbnb", "hostel", "resort", "stay", "booking"],
    "Commute": ["taxi", "uber", "grab", "bus", "metro", "train", "subway", "gas", "parking", "toll"],
    "Flights": ["flight", "airline", "plane", "baggage", "visa", "airport"],
    "Entertainment": ["museum", "cinema", "tour", "theme park", "disney", "ticket", "concert", "sightseeing"],
    "Shopping": ["souvenir", "mall", "outlet", "clothes", "gift", "duty free", "pharmacy"],
    DEFAULT_CATEGORY: [],
}


def detect_category(expense_name: Optional[str]) -> str:
    """
    Classify an expense by looking for category keywords in its name.
    First matching category wins; falls back to "Others".
    """
    if not expense_name or not expense_name.strip():
        return DEFAULT_CATEGORY

    lower_name = expense_name.lower()
    for category, keywords in EXPENSE_CATEGORIES.items():
        if any(keyword in lower_name for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def _spending(expenses: Iterable) -> List:
    return [e for e in expenses if not e.is_settlement]


def total_spent(expenses: Iterable, rate_resolver: RateResolver) -> Decimal:
    """Total spending of a trip in base unit, settlements excluded."""
    total = Decimal(0)
    for expense in _spending(expenses):
        total += convert_to_base(expense.amount, rate_resolver(expense))
    return total


def summarize_categories(expenses: Iterable, rate_resolver: RateResolver) -> dict:
    """
    Break a trip's spending down per category in base unit.

    Returns:
        Dict with total_expenses_base and a categories list sorted by amount,
        each item carrying category, total_amount_base, expense_count and
        percentage (0-100).
    """
    totals: Dict[str, Decimal] = {}
    counts: Dict[str, int] = {}

    for expense in _spending(expenses):
        category = expense.category or DEFAULT_CATEGORY
        amount_base = convert_to_base(expense.amount, rate_resolver(expense))
        totals[category] = totals.get(category, Decimal(0)) + amount_base
        counts[category] = counts.get(category, 0) + 1

    grand_total = sum(totals.values(), Decimal(0))

    categories = [
        {
            "category": category,
            "total_amount_base": amount,
            "expense_count": counts[category],
            "percentage": float(amount / grand_total * 100) if grand_total else 0.0
        }
        for category, amount in totals.items()
    ]
    categories.sort(key=lambda item: item["total_amount_base"], reverse=True)

    return {
        "total_expenses_base": grand_total,
        "categories": categories
    }


def participant_shares(expenses: Iterable, participants: Iterable, rate_resolver: RateResolver) -> Dict[int, Decimal]:
    """What each participant consumed in base unit, based on splits, settlements excluded."""
    shares: Dict[int, Decimal] = {getattr(p, "id", p): Decimal(0) for p in participants}

    for expense in _spending(expenses):
        rate = to_decimal(rate_resolver(expense))
        for split in expense.splits:
            if split.participant_id in shares:
                shares[split.participant_id] += convert_to_base(split.share_amount, rate)

    return shares
