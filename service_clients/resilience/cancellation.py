"""
Cooperative cancellation for retry loops.

A CancellationToken is shared by the caller and the retry loop; the same
token aborts an in-progress backoff sleep.
"""

import asyncio

from service_clients.errors import AbortedError


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AbortedError(self.reason or "Operation aborted", code="ABORTED")

    async def wait(self) -> None:
        await self._event.wait()


async def cancellable_sleep(delay: float, token: CancellationToken | None = None) -> None:
    """
    Sleep for ``delay`` seconds unless ``token`` fires first.

    Raises:
        AbortedError: If the token is (or becomes) cancelled.
    """
    if token is None:
        await asyncio.sleep(delay)
        return

    token.raise_if_cancelled()
    try:
        await asyncio.wait_for(token.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    token.raise_if_cancelled()
