"""
Race helpers: first-settled-wins composition of awaitables.

Used by the context retriever (search vs. timer vs. cancellation) and by every
provider client (HTTP call vs. cancellation). Losers are cancelled and awaited,
so an abandoned HTTP request is actually torn down rather than left running.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

from app.core.cancellation import CancellationToken
from app.core.errors import Aborted, TimedOut

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
WORK = "work"
TIMEOUT = "timeout"


def _discard(aw: Awaitable[Any]) -> None:
    """Close a coroutine that will never be awaited (avoids 'never awaited' warnings)."""
    if asyncio.iscoroutine(aw):
        aw.close()
    elif isinstance(aw, asyncio.Future):
        aw.cancel()


async def _cancel_all(tasks: list[asyncio.Future]) -> None:
    for t in tasks:
        t.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def first_settled(contenders: dict[str, Awaitable[Any]]) -> tuple[str, asyncio.Future]:
    """
    Run the named awaitables concurrently and return (name, future) of the first to settle.

    When several settle in the same scheduling turn the one listed first wins,
    so callers put the cancellation contender first. Every other contender is
    cancelled and awaited before returning. The winner's result or exception is
    read by the caller via future.result().
    """
    if not contenders:
        raise ValueError("first_settled needs at least one awaitable")
    names = list(contenders)
    futures = [asyncio.ensure_future(contenders[name]) for name in names]
    try:
        done, pending = await asyncio.wait(futures, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _cancel_all(futures)
        raise
    winner = next(i for i, f in enumerate(futures) if f in done)
    for i, f in enumerate(futures):
        # Mark tie losers' exceptions as retrieved; their values are discarded.
        if i != winner and f in done and not f.cancelled():
            f.exception()
    await _cancel_all(list(pending))
    return names[winner], futures[winner]


async def race_with_cancellation(
    work: Awaitable[Any],
    cancellation: CancellationToken,
    timeout: float | None = None,
) -> Any:
    """
    Await `work` unless cancellation fires (raises Aborted) or `timeout` seconds
    elapse first (raises TimedOut). Exceptions raised by `work` propagate.

    Cancellation is checked again after the race so a result settling in the
    same turn as the cancellation is never surfaced.
    """
    if cancellation.cancelled:
        _discard(work)
        raise Aborted(cancellation.reason or "cancelled by caller")

    contenders: dict[str, Awaitable[Any]] = {CANCELLED: cancellation.wait(), WORK: work}
    if timeout is not None:
        contenders[TIMEOUT] = asyncio.sleep(timeout)

    name, future = await first_settled(contenders)
    if name == CANCELLED or cancellation.cancelled:
        raise Aborted(cancellation.reason or "cancelled by caller")
    if name == TIMEOUT:
        logger.info("[concurrency:race_with_cancellation] timed out after %.3fs", timeout)
        raise TimedOut(timeout)
    return future.result()
