"""
Foreign exchange service for currency conversion.

Rates are expressed as units of a currency per one unit of the trip's base
currency, so converting to the base unit is a division. The base currency
itself always has rate 1. Where rates come from (a stored per-expense rate,
or the trip's current rate table) is decided by the caller through a
rate resolver: a callable taking an expense and returning its divisor.
"""
from sqlalchemy.orm import Session
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Mapping, Optional
import logging
from settleup.core.config import settings
from settleup.models.exchange_rate import ExchangeRate
from settleup.models.trip import Trip

logger = logging.getLogger(__name__)

RateResolver = Callable[[object], Decimal]


class RateResolutionError(ValueError):
    """Raised when no usable conversion rate exists for a currency."""


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _positive_rate(value, currency: str) -> Decimal:
    """Coerce a raw rate to Decimal and make sure it can be used as a divisor."""
    if value is None:
        raise RateResolutionError(f"No conversion rate available for {currency}")
    try:
        rate = to_decimal(value)
    except (InvalidOperation, ValueError):
        raise RateResolutionError(f"Invalid conversion rate for {currency}: {value!r}")
    if not rate.is_finite() or rate <= 0:
        raise RateResolutionError(f"Invalid conversion rate for {currency}: {rate}")
    return rate


def get_base_currency(trip: Optional[Trip] = None) -> str:
    """
    Get the base currency for a trip.
    Falls back to the DEFAULT_BASE_CURRENCY setting when the trip has none.
    """
    if trip is not None and trip.base_currency:
        return trip.base_currency.upper()
    return settings.DEFAULT_BASE_CURRENCY.upper()


def stored_rate_resolver(expense) -> Decimal:
    """Use the rate captured on the expense when it was created."""
    return _positive_rate(getattr(expense, "conversion_rate", None), expense.currency)


def rate_table_resolver(rates: Mapping[str, Decimal], base_currency: Optional[str] = None) -> RateResolver:
    """
    Build a resolver that looks each expense's currency up in a rate table.

    Args:
        rates: Mapping of currency code to units per base unit
        base_currency: Trip's base currency, always resolved to 1 even if absent from `rates`

    Returns:
        Callable mapping an expense to its divisor. Raises RateResolutionError
        for a currency missing from the table.
    """
    table = {code.upper(): value for code, value in rates.items()}
    if base_currency:
        table.setdefault(base_currency.upper(), Decimal(1))

    def resolve(expense) -> Decimal:
        currency = expense.currency.upper()
        if currency not in table:
            logger.error(f"No rate configured for {currency}. Known currencies: {sorted(table)}")
            raise RateResolutionError(f"No conversion rate available for {currency}")
        return _positive_rate(table[currency], currency)

    return resolve


def get_rate_table(trip: Trip, db: Session) -> Dict[str, Decimal]:
    """
    Load a trip's rate table. The base currency is always present with rate 1.
    Disabled currencies are included so existing expenses in them still convert.
    """
    rows = db.query(ExchangeRate).filter(ExchangeRate.trip_id == trip.id).all()

    rates = {row.currency.upper(): to_decimal(row.rate) for row in rows}
    rates[get_base_currency(trip)] = Decimal(1)
    return rates


def get_conversion_rate(trip: Trip, currency: str, db: Session, enabled_only: bool = False) -> Decimal:
    """
    Get the current rate for one currency of a trip.
    Raises RateResolutionError instead of assuming 1:1 when no rate is configured.

    Args:
        enabled_only: Also reject a currency switched off in the trip's rate table.
            The base currency is always enabled.
    """
    currency_upper = currency.upper()
    if currency_upper == get_base_currency(trip):
        return Decimal(1)

    rate = db.query(ExchangeRate).filter(
        ExchangeRate.trip_id == trip.id,
        ExchangeRate.currency == currency_upper
    ).first()

    if not rate:
        logger.error(f"No rate configured for {currency_upper} on trip {trip.id}")
        raise RateResolutionError(f"No conversion rate available for {currency_upper}")
    if enabled_only and not rate.is_enabled:
        logger.warning(f"Rejected disabled currency {currency_upper} on trip {trip.id}")
        raise RateResolutionError(f"Currency {currency_upper} is disabled for this trip")

    return _positive_rate(rate.rate, currency_upper)


def set_conversion_rate(trip: Trip, currency: str, rate: Decimal, db: Session, is_enabled: bool = True) -> ExchangeRate:
    """Create or update one entry of a trip's rate table."""
    currency_upper = currency.upper()
    rate = _positive_rate(rate, currency_upper)
    if currency_upper == get_base_currency(trip) and rate != 1:
        raise RateResolutionError(f"Base currency {currency_upper} must have rate 1")

    entry = db.query(ExchangeRate).filter(
        ExchangeRate.trip_id == trip.id,
        ExchangeRate.currency == currency_upper
    ).first()

    if entry:
        entry.rate = rate
        entry.is_enabled = is_enabled
    else:
        entry = ExchangeRate(trip_id=trip.id, currency=currency_upper, rate=rate, is_enabled=is_enabled)
        db.add(entry)

    db.commit()
    db.refresh(entry)

    logger.info(f"Rate for {currency_upper} on trip {trip.id} set to {rate}")
    return entry


def convert_to_base(amount: Decimal, rate: Decimal) -> Decimal:
    """
    Convert amount from its currency to the base unit.

    Args:
        amount: Amount in the source currency
        rate: Units of the source currency per one base unit

    Returns:
        Amount in base unit
    """
    return to_decimal(amount) / to_decimal(rate)


def convert_from_base(amount: Decimal, rate: Decimal) -> Decimal:
    """Convert a base-unit amount into a currency with the given rate."""
    return to_decimal(amount) * to_decimal(rate)
