"""
Borrower Directory

Borrower existence comes from account_service; active-loan counts come
from the loan repository of the current unit of work, so the count is
taken under the same transaction and borrower lock as the checkout.
"""

from .protocols import AccountClientProtocol, LoanRepositoryProtocol


class BorrowerDirectory:
    """BorrowerDirectoryProtocol over account_service + loans"""

    def __init__(self, account_client: AccountClientProtocol, loans: LoanRepositoryProtocol):
        self.account_client = account_client
        self.loans = loans

    async def exists(self, borrower_id: str) -> bool:
        return await self.account_client.user_exists(borrower_id)

    async def active_loan_count(self, borrower_id: str) -> int:
        return await self.loans.count_active_for_borrower(borrower_id)


__all__ = ["BorrowerDirectory"]
