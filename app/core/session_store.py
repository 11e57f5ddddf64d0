"""
In-memory chat session store. Keyed by session_id; nothing is persisted.

Holds the transcript (with the provider that answered) and the cancellation
tokens of dispatches currently running for the session.
"""

import logging
import threading
from typing import Any

from app.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# session_id -> list of {"role": "user"|"assistant", "content": str, "provider": str|None}
_sessions: dict[str, list[dict[str, Any]]] = {}
# session_id -> tokens of in-flight dispatches
_active: dict[str, set[CancellationToken]] = {}
_lock = threading.Lock()


def get_history(session_id: str) -> list[dict[str, Any]]:
    """Return chat history for the session (copy so caller cannot mutate store)."""
    if not session_id or not isinstance(session_id, str):
        logger.info("[session_store:get_history] IN  session_id=%r -> empty", session_id)
        return []
    with _lock:
        out = [dict(m) for m in _sessions.get(session_id) or []]
    logger.info("[session_store:get_history] IN  session_id=%s OUT messages=%d", session_id[:16], len(out))
    return out


def append_message(session_id: str, role: str, content: str, provider: str | None = None) -> None:
    """Append one message to the session's history."""
    if not session_id or not isinstance(session_id, str):
        logger.info("[session_store:append_message] skip invalid session_id=%r", session_id)
        return
    with _lock:
        _sessions.setdefault(session_id, []).append(
            {"role": role, "content": content or "", "provider": provider}
        )
    logger.info(
        "[session_store:append_message] session_id=%s role=%s provider=%s content_len=%d",
        session_id[:16], role, provider, len(content or ""),
    )


def register_token(session_id: str, token: CancellationToken) -> None:
    with _lock:
        _active.setdefault(session_id, set()).add(token)


def release_token(session_id: str, token: CancellationToken) -> None:
    with _lock:
        tokens = _active.get(session_id)
        if tokens is None:
            return
        tokens.discard(token)
        if not tokens:
            del _active[session_id]


def cancel_session(session_id: str, reason: str = "stopped by user") -> int:
    """Signal every in-flight dispatch of the session. Returns how many were signalled."""
    with _lock:
        tokens = list(_active.get(session_id) or ())
    count = sum(1 for t in tokens if t.cancel(reason))
    logger.info("[session_store:cancel_session] session_id=%s cancelled=%d", session_id[:16], count)
    return count


def clear() -> None:
    """Drop all sessions and tokens (tests, process reset)."""
    with _lock:
        _sessions.clear()
        _active.clear()
