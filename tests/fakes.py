"""Offline stand-ins for the embedder, retrieval index and provider clients."""

import asyncio
import re

from app.core.cancellation import CancellationToken
from app.core.concurrency import race_with_cancellation
from app.core.types import AnswerSource
from app.services.vector_store import ScoredCandidate

_WORD = re.compile(r"\w+")

VOCAB = (
    "java", "spring", "boot", "dependency", "injection", "jvm",
    "machine", "rest", "api", "restful", "hello", "bytecode",
)


class FakeEmbedder:
    """Bag-of-words over a tiny vocabulary; deterministic and offline."""

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        out = []
        for text in texts:
            words = _WORD.findall(text.lower())
            out.append([float(words.count(w)) for w in VOCAB] + [0.01])
        return out


class FakeIndex:
    """Stand-in for KnowledgeIndex with scripted hits, delay or failure."""

    def __init__(self, hits=(), delay: float = 0.0, error: Exception | None = None) -> None:
        self.hits = [
            h if isinstance(h, ScoredCandidate) else ScoredCandidate(text=h, score=0.9 - i * 0.1, entry_index=i)
            for i, h in enumerate(hits)
        ]
        self.delay = delay
        self.error = error
        self.ready = True
        self.searches = 0
        self.search_cancelled = False

    async def search(self, query: str, top_k: int = 3) -> list[ScoredCandidate]:
        self.searches += 1
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.search_cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.hits[:top_k]

    def stats(self) -> dict:
        return {"ready": self.ready, "entries": len(self.hits), "dim": 0}


class FakeProvider:
    """Scripted provider client honoring the cancellation handle like the real ones."""

    def __init__(
        self,
        source: AnswerSource,
        reply: str = "fake answer",
        delay: float = 0.0,
        error: Exception | None = None,
        configured: bool = True,
    ) -> None:
        self.source = source
        self.reply = reply
        self.delay = delay
        self.error = error
        self.configured = configured
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def call(self, query: str, context: tuple[str, ...], cancellation: CancellationToken) -> str:
        self.calls.append((query, context))
        if self.delay:
            await race_with_cancellation(asyncio.sleep(self.delay), cancellation)
        if self.error is not None:
            raise self.error
        return self.reply
