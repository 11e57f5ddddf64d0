"""
Tests for the race helpers: first_settled and race_with_cancellation.
"""

import asyncio
import time

import pytest

from app.core.cancellation import CancellationToken
from app.core.concurrency import first_settled, race_with_cancellation
from app.core.errors import Aborted, TimedOut

pytestmark = pytest.mark.anyio


async def _value_after(delay: float, value):
    await asyncio.sleep(delay)
    return value


class _Tracked:
    """Coroutine factory that records whether it was cancelled."""

    def __init__(self) -> None:
        self.cancelled = False

    async def sleep(self, delay: float, value=None):
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return value


class TestFirstSettled:
    async def test_fastest_wins_and_losers_are_cancelled(self) -> None:
        slow = _Tracked()
        name, fut = await first_settled({"slow": slow.sleep(5, "slow"), "fast": _value_after(0.01, "fast")})
        assert name == "fast"
        assert fut.result() == "fast"
        assert slow.cancelled

    async def test_tie_goes_to_first_listed(self) -> None:
        loop = asyncio.get_running_loop()
        a, b = loop.create_future(), loop.create_future()
        a.set_result("a")
        b.set_result("b")
        name, fut = await first_settled({"b": b, "a": a})
        assert name == "b"
        assert fut.result() == "b"

    async def test_winner_exception_is_returned_not_raised(self) -> None:
        async def boom():
            raise RuntimeError("boom")

        name, fut = await first_settled({"boom": boom(), "slow": _value_after(5, None)})
        assert name == "boom"
        with pytest.raises(RuntimeError, match="boom"):
            fut.result()

    async def test_empty_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            await first_settled({})


class TestRaceWithCancellation:
    async def test_returns_work_result(self, token: CancellationToken) -> None:
        assert await race_with_cancellation(_value_after(0.01, 42), token) == 42

    async def test_pre_cancelled_never_starts_work(self, token: CancellationToken) -> None:
        started = False

        async def work():
            nonlocal started
            started = True

        token.cancel()
        with pytest.raises(Aborted):
            await race_with_cancellation(work(), token)
        assert not started

    async def test_cancellation_mid_flight_cancels_work(self, token: CancellationToken) -> None:
        work = _Tracked()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        t0 = time.monotonic()
        with pytest.raises(Aborted):
            await race_with_cancellation(work.sleep(5), token)
        assert time.monotonic() - t0 < 1.0
        assert work.cancelled

    async def test_timeout(self, token: CancellationToken) -> None:
        work = _Tracked()
        with pytest.raises(TimedOut):
            await race_with_cancellation(work.sleep(5), token, timeout=0.02)
        assert work.cancelled

    async def test_work_exception_propagates(self, token: CancellationToken) -> None:
        async def boom():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await race_with_cancellation(boom(), token, timeout=1.0)

    async def test_cancellation_beats_result_in_same_turn(self, token: CancellationToken) -> None:
        async def work():
            token.cancel("late stop")
            return "too late"

        with pytest.raises(Aborted, match="late stop"):
            await race_with_cancellation(work(), token)


class TestCancellationToken:
    async def test_one_shot(self, token: CancellationToken) -> None:
        assert not token.cancelled
        assert token.cancel("first") is True
        assert token.cancel("second") is False
        assert token.cancelled
        assert token.reason == "first"

    async def test_wait_returns_after_cancel(self, token: CancellationToken) -> None:
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        await asyncio.wait_for(token.wait(), timeout=1.0)
        assert token.cancelled
