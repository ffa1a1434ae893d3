"""
Expense management routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from settleup.db.session import get_db
from settleup.models.trip import Trip, Participant
from settleup.schemas.expense import (
    ExpenseCreate, ExpenseResponse, CategorySummaryResponse,
    CategoryExpenseItem, ParticipantShareItem
)
from settleup.api.dependencies import get_trip_or_404
from settleup.services.balance_service import ExpenseValidationError
from settleup.services.fx_service import RateResolutionError, get_base_currency, stored_rate_resolver
from settleup.services import expense_service, category_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("/{trip_id}", response_model=List[ExpenseResponse])
async def get_expenses(
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """List all expenses of a trip, settlements included."""
    return expense_service.list_expenses(trip.id, db)


@router.post("/{trip_id}", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Create a new expense, capturing today's rate for its currency."""
    try:
        return expense_service.create_expense(trip.id, expense_data, db)
    except ExpenseValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except RateResolutionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.delete("/{trip_id}/{expense_id}")
async def delete_expense(
    expense_id: int,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Delete an expense."""
    try:
        expense_service.delete_expense(trip.id, expense_id, db)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Expense not found"
        )
    return {"message": "Expense deleted successfully"}


@router.get("/{trip_id}/summary/categories", response_model=CategorySummaryResponse)
async def get_category_summary(
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db)
):
    """Spending per category and per participant, excluding settlements."""
    expenses = expense_service.list_expenses(trip.id, db)
    participants = db.query(Participant).filter(
        Participant.trip_id == trip.id
    ).order_by(Participant.id).all()

    try:
        summary = category_service.summarize_categories(expenses, stored_rate_resolver)
        shares = category_service.participant_shares(expenses, participants, stored_rate_resolver)
    except RateResolutionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    names = {p.id: p.name for p in participants}
    return CategorySummaryResponse(
        trip_id=trip.id,
        base_currency=get_base_currency(trip),
        total_expenses_base=summary["total_expenses_base"],
        categories=[CategoryExpenseItem(**item) for item in summary["categories"]],
        participant_shares=[
            ParticipantShareItem(participant_id=pid, name=names[pid], share_base=share)
            for pid, share in shares.items()
        ]
    )
