"""
Circulation Service Data Models

Loans, reservations and stock records for the loan-and-reservation
lifecycle, plus the typed response models returned by CirculationService.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ====================
# Enums
# ====================

class ReservationStatus(str, Enum):
    """Reservation status"""
    PENDING = "pending"
    AVAILABLE = "available"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.AVAILABLE)

# One-way reservation lifecycle
RESERVATION_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.AVAILABLE, ReservationStatus.CANCELLED},
    ReservationStatus.AVAILABLE: {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED},
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
}


class CirculationErrorKind(str, Enum):
    """Business error kinds reported to callers"""
    NOT_FOUND = "not_found"
    POLICY_VIOLATION = "policy_violation"
    UNAVAILABLE = "unavailable"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"


class HistoryEventType(str, Enum):
    """Event types written to the borrower history"""
    LOAN = "Loan"
    RETURN = "Return"
    UPDATE = "Update"
    DELETE = "Delete"
    RESERVATION = "Reservation"


class ActivityAction(str, Enum):
    """Actions written to the activity log"""
    CREATE_LOAN = "CreateLoan"
    RETURN_LOAN = "ReturnLoan"
    UPDATE_LOAN = "UpdateLoan"
    DELETE_LOAN = "DeleteLoan"
    CREATE_RESERVATION = "CreateReservation"
    UPDATE_RESERVATION = "UpdateReservation"
    DELETE_RESERVATION = "DeleteReservation"


# ====================
# Core Data Models
# ====================

def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StockRecord(BaseModel):
    """Copy count for one catalog item"""
    stock_id: str = Field(..., description="Stock record ID")
    item_id: str = Field(..., description="Catalog item ID")
    quantity: int = Field(default=0, ge=0)

    @property
    def available(self) -> bool:
        return self.quantity > 0


class Loan(BaseModel):
    """Loan of one physical copy to a borrower"""
    loan_id: str = Field(..., description="Unique loan ID")
    borrower_id: str = Field(..., description="Borrower user ID")
    item_id: str = Field(..., description="Catalog item ID")
    stock_id: str = Field(..., description="Stock record the copy came from")
    checkout_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    fine: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator('checkout_date', 'due_date', 'return_date')
    @classmethod
    def _aware(cls, v):
        return ensure_utc(v)

    @property
    def active(self) -> bool:
        return self.return_date is None


class Reservation(BaseModel):
    """Place in the FIFO queue for a catalog item"""
    reservation_id: str = Field(..., description="Unique reservation ID")
    borrower_id: str = Field(..., description="Borrower user ID")
    item_id: str = Field(..., description="Catalog item ID")
    status: ReservationStatus = ReservationStatus.PENDING
    created_at: datetime
    available_at: Optional[datetime] = None
    assigned_stock_id: Optional[str] = None

    @field_validator('created_at', 'available_at')
    @classmethod
    def _aware(cls, v):
        return ensure_utc(v)

    @property
    def active(self) -> bool:
        return self.status in ACTIVE_RESERVATION_STATUSES

    def pickup_deadline(self, window: timedelta) -> Optional[datetime]:
        """End of the pickup window once the reservation became available"""
        if self.available_at is None:
            return None
        return self.available_at + window


class ActivityLogEntry(BaseModel):
    """Entry for the time-bounded activity log"""
    user_id: str
    action: ActivityAction
    details: Optional[str] = None
    timestamp: datetime


# ====================
# Request Models
# ====================

class ReservationUpdateRequest(BaseModel):
    """Reservation update request"""
    status: Optional[ReservationStatus] = None
    item_id: Optional[str] = None


# ====================
# Response Models
# ====================

class CirculationResponse(BaseModel):
    """Common response envelope"""
    success: bool
    message: str
    error: Optional[CirculationErrorKind] = None


class LoanResponse(CirculationResponse):
    """Single loan response"""
    loan: Optional[Loan] = None
    due_date: Optional[datetime] = None


class ReturnLoanResponse(CirculationResponse):
    """Loan return response"""
    loan: Optional[Loan] = None
    fine: Decimal = Field(default=Decimal("0"))
    reservation_notified: bool = False


class LoanListResponse(CirculationResponse):
    """Loan list response"""
    loans: List[Loan] = Field(default_factory=list)
    total: int = 0


class ReservationResponse(CirculationResponse):
    """Single reservation response"""
    reservation: Optional[Reservation] = None
    pickup_deadline: Optional[datetime] = None


class ReservationListResponse(CirculationResponse):
    """Reservation list response"""
    reservations: List[Reservation] = Field(default_factory=list)
    total: int = 0


class StockResponse(CirculationResponse):
    """Stock record response"""
    stock: Optional[StockRecord] = None


class DeleteResponse(CirculationResponse):
    """Deletion response"""
    deleted_id: Optional[str] = None


class ReturnOutcome(BaseModel):
    """Result of LoanManager.return_loan"""
    loan: Loan
    reservation_notified: bool = False
    promoted_reservation: Optional[Reservation] = None
