"""
Settlement routes: balances, suggested transfers and recording payments.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional

from settleup.db.session import get_db
from settleup.models.trip import Trip
from settleup.schemas.expense import ExpenseResponse
from settleup.schemas.settlement import (
    BalancesResponse, ParticipantBalance, SettlementSummary, SettlementRecordRequest
)
from settleup.api.dependencies import get_trip_or_404
from settleup.services.balance_service import compute_net_balances, ExpenseValidationError
from settleup.services.fx_service import RateResolutionError, get_base_currency, stored_rate_resolver
from settleup.services.settlement_service import (
    Transfer, calculate_settlement, load_trip_snapshot, record_settlement
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settlement", tags=["settlement"])


@router.get("/{trip_id}/balances", response_model=BalancesResponse)
async def get_balances(
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Net balance of every participant in the trip's base currency."""
    _, participants, expenses = load_trip_snapshot(trip.id, db)
    try:
        net_balances = compute_net_balances(expenses, participants, stored_rate_resolver)
    except ExpenseValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RateResolutionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    names = {p.id: p.name for p in participants}
    return BalancesResponse(
        trip_id=trip.id,
        base_currency=get_base_currency(trip),
        net_balances=[
            ParticipantBalance(participant_id=pid, name=names[pid], balance_base=balance)
            for pid, balance in net_balances.items()
        ]
    )


@router.get("/{trip_id}", response_model=SettlementSummary)
async def get_settlement(
    display_currency: Optional[str] = None,
    use_current_rates: bool = False,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Suggested transfers that bring every balance to zero.

    Args:
        display_currency: Currency to express transfer amounts in (default: trip's base currency)
        use_current_rates: Convert expenses with the current rate table instead of their stored rates
    """
    try:
        return calculate_settlement(trip.id, db, display_currency, use_current_rates)
    except ExpenseValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RateResolutionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{trip_id}/record", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    request: SettlementRecordRequest,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Record a payment between two participants as a settlement expense."""
    transfer = Transfer(request.from_participant_id, request.to_participant_id, request.amount)
    currency = request.currency or get_base_currency(trip)
    try:
        return record_settlement(trip.id, transfer, currency, db, request.expense_date)
    except ExpenseValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RateResolutionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
