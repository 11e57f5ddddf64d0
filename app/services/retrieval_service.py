"""
Context retrieval: semantic search over the knowledge base under a fixed budget.

Responsibility: Race the index search against the retrieval timeout and the
dispatch's cancellation handle. Every failure mode (no index, index error,
timeout) degrades to "no context"; nothing is raised to the dispatcher.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from app.core.cancellation import CancellationToken
from app.core.concurrency import race_with_cancellation
from app.core.config import RETRIEVAL_MIN_SCORE, RETRIEVAL_TIMEOUT_SECONDS, RETRIEVAL_TOP_K
from app.core.errors import Aborted, TimedOut
from app.services.vector_store import KnowledgeIndex

logger = logging.getLogger(__name__)


class RetrievalStatus(str, Enum):
    FOUND = "found"
    EMPTY = "empty"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"
    ERROR = "error"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class RetrievalResult:
    status: RetrievalStatus
    context: tuple[str, ...] = ()
    detail: str = ""

    @property
    def top(self) -> str | None:
        return self.context[0] if self.context else None


class ContextRetriever:
    """Optional retrieval layer. With index=None every call reports UNAVAILABLE."""

    def __init__(
        self,
        index: KnowledgeIndex | None,
        timeout: float = RETRIEVAL_TIMEOUT_SECONDS,
        top_k: int = RETRIEVAL_TOP_K,
        min_score: float | None = RETRIEVAL_MIN_SCORE,
    ) -> None:
        self.index = index
        self.timeout = timeout
        self.top_k = top_k
        self.min_score = min_score

    @property
    def available(self) -> bool:
        return self.index is not None and self.index.ready

    async def retrieve(self, query: str, cancellation: CancellationToken) -> RetrievalResult:
        logger.info("[retrieval:retrieve] IN  query=%r timeout=%.3fs", query, self.timeout)
        if cancellation.cancelled:
            return RetrievalResult(RetrievalStatus.ABORTED)
        if not self.available:
            logger.info("[retrieval:retrieve] OUT unavailable (no built index)")
            return RetrievalResult(RetrievalStatus.UNAVAILABLE)

        try:
            hits = await race_with_cancellation(
                self.index.search(query, top_k=self.top_k), cancellation, timeout=self.timeout
            )
        except Aborted:
            logger.info("[retrieval:retrieve] OUT aborted")
            return RetrievalResult(RetrievalStatus.ABORTED)
        except TimedOut as e:
            logger.warning("[retrieval:retrieve] OUT timed out: %s", e)
            return RetrievalResult(RetrievalStatus.TIMED_OUT, detail=str(e))
        except Exception as e:
            logger.warning("[retrieval:retrieve] OUT error, continuing without context: %s", e)
            return RetrievalResult(RetrievalStatus.ERROR, detail=str(e))

        if self.min_score is not None:
            hits = [h for h in hits if h.score >= self.min_score]
        context = tuple(h.text for h in hits if h.text)
        if not context:
            logger.info("[retrieval:retrieve] OUT empty")
            return RetrievalResult(RetrievalStatus.EMPTY)
        logger.info(
            "[retrieval:retrieve] OUT found=%d top_score=%.4f", len(context), hits[0].score
        )
        return RetrievalResult(RetrievalStatus.FOUND, context=context)
