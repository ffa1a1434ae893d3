"""
Shared route dependencies.
"""
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session
from settleup.db.session import get_db
from settleup.models.trip import Trip
from settleup.services.expense_service import get_trip


def get_trip_or_404(trip_id: int, db: Session = Depends(get_db)) -> Trip:
    """Resolve the trip in the path or fail with 404."""
    try:
        return get_trip(trip_id, db)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
