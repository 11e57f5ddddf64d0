"""Shared fixtures. No test touches the network."""

import pytest

from app.core import session_store
from app.core.cancellation import CancellationToken


@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_sessions():
    session_store.clear()
    yield
    session_store.clear()


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()
