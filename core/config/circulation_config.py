#!/usr/bin/env python3
"""Circulation policy configuration

Borrowing limits, loan period, late fee and reservation pickup window.
"""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _decimal(val: str, default: Decimal) -> Decimal:
    try:
        return Decimal(val) if val else default
    except InvalidOperation:
        return default


@dataclass
class CirculationConfig:
    """Loan and reservation policy"""
    max_active_loans_per_user: int = 5
    loan_period_days: int = 14
    late_fee_per_day: Decimal = Decimal("0.50")
    reservation_pickup_hours: int = 48

    @classmethod
    def from_env(cls) -> 'CirculationConfig':
        """Load circulation policy from environment variables"""
        return cls(
            max_active_loans_per_user=_int(os.getenv("MAX_ACTIVE_LOANS_PER_USER", "5"), 5),
            loan_period_days=_int(os.getenv("LOAN_PERIOD_DAYS", "14"), 14),
            late_fee_per_day=_decimal(os.getenv("LATE_FEE_PER_DAY", "0.50"), Decimal("0.50")),
            reservation_pickup_hours=_int(os.getenv("RESERVATION_PICKUP_HOURS", "48"), 48),
        )
