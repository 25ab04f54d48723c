"""
Circulation Service Event Models

Event data models for the borrower history and the activity log.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Event Models
# ============================================================================


class HistoryRecordedEventData(BaseModel):
    """
    Event: circulation.history.recorded
    Triggered after a loan or reservation change has been committed
    """

    user_id: str = Field(..., description="Borrower the history entry belongs to")
    event_type: str = Field(..., description="Loan, Return, Update, Delete or Reservation")
    loan_id: Optional[str] = Field(None, description="Loan concerned, if any")
    reservation_id: Optional[str] = Field(None, description="Reservation concerned, if any")
    event_date: datetime = Field(..., description="When the entry was recorded")


class ActivityLoggedEventData(BaseModel):
    """
    Event: circulation.activity.logged
    Triggered for every committed circulation action
    """

    user_id: str = Field(..., description="User who performed the action")
    action: str = Field(..., description="Action name, e.g. CreateLoan")
    details: Optional[str] = Field(None, description="Free-form key=value details")
    timestamp: datetime = Field(..., description="When the action happened")
