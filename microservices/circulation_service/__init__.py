"""
Circulation Service

Loan and reservation lifecycle for the library platform.

Features:
- Checkout with per-borrower loan limit and atomic last-copy decrement
- Returns with calendar-day late fees
- FIFO reservation queue with single promotion per returned copy
- Borrower notification when a reserved item becomes available
- History and activity-log events published after commit
"""

__version__ = "1.0.0"
