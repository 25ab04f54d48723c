"""
Unit of Work base

Collects after-commit callbacks for one request. Callbacks run once the
transaction has committed; each one is best effort and a failure is
logged without affecting the committed result.
"""

import logging
from typing import Any, Awaitable, Callable, List

logger = logging.getLogger(__name__)


class BaseUnitOfWork:
    """Shared after-commit bookkeeping for the circulation stores"""

    def __init__(self):
        self._after_commit: List[Callable[[], Awaitable[Any]]] = []

    def after_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        self._after_commit.append(callback)

    async def run_after_commit(self) -> None:
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                await callback()
            except Exception as e:
                logger.error(f"After-commit callback failed: {e}", exc_info=True)


__all__ = ["BaseUnitOfWork"]
