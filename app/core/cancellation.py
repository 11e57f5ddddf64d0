"""
One-shot cancellation handle shared by all work belonging to one dispatch.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Transitions once, irreversibly, from active to cancelled.

    Any holder can poll `cancelled` or `await wait()`. cancel() must be called
    from the event loop that runs the dispatch (e.g. an async route handler).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        """Signal cancellation. Returns False if it was already signalled."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        logger.info("[cancellation:cancel] reason=%r", reason)
        return True

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancellationToken {state}>"
