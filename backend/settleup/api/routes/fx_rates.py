"""
Foreign exchange rates routes.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from settleup.db.session import get_db
from settleup.models.trip import Trip
from settleup.models.exchange_rate import ExchangeRate
from settleup.schemas.exchange_rate import ExchangeRateResponse, ExchangeRateUpdate
from settleup.api.dependencies import get_trip_or_404
from settleup.services.fx_service import RateResolutionError, get_base_currency, set_conversion_rate

router = APIRouter(prefix="/fx-rates", tags=["fx-rates"])


@router.get("/{trip_id}", response_model=List[ExchangeRateResponse])
async def list_exchange_rates(
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """List a trip's rate table. The base currency is listed first with rate 1."""
    base_currency = get_base_currency(trip)
    rows = db.query(ExchangeRate).filter(
        ExchangeRate.trip_id == trip.id
    ).order_by(ExchangeRate.currency).all()

    rates = [ExchangeRateResponse(currency=base_currency, rate=1, is_enabled=True, base_currency=base_currency)]
    rates.extend(
        ExchangeRateResponse(
            currency=row.currency,
            rate=row.rate,
            is_enabled=row.is_enabled,
            base_currency=base_currency
        )
        for row in rows if row.currency != base_currency
    )
    return rates


@router.put("/{trip_id}/{currency}", response_model=ExchangeRateResponse)
async def update_exchange_rate(
    currency: str,
    rate_data: ExchangeRateUpdate,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Set the rate for one currency. Existing expenses keep their captured rate."""
    try:
        entry = set_conversion_rate(trip, currency, rate_data.rate, db, rate_data.is_enabled)
    except RateResolutionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return ExchangeRateResponse(
        currency=entry.currency,
        rate=entry.rate,
        is_enabled=entry.is_enabled,
        base_currency=get_base_currency(trip)
    )
