"""
Retrieval index over the knowledge base: embeddings (HF Inference API) and cosine search.

Responsibility: Embed knowledge-base entries once via all-MiniLM-L6-v2, keep the
normalized vectors in memory, and rank entries against a query. The index is an
explicitly constructed dependency: call build() once, then search() from any
number of concurrent dispatches (read-only after build).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from app.core.config import (
    EMBED_API_TIMEOUT,
    EMBED_BATCH_SIZE,
    HF_API_KEY_ENV,
    HF_EMBED_MODEL,
    get_secret,
)
from app.core.errors import RetrievalError
from app.services.knowledge_base import KNOWLEDGE_BASE, KnowledgeEntry
from app.services.text_processing import clean_text, normalize_query

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)
HF_API_URL_STANDARD = f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}"


class Embedder(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in order."""
        ...


def _normalize(vec: list[float]) -> list[float]:
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


class HFEmbedder:
    """
    Batch embed texts using the Hugging Face Inference API (all-MiniLM-L6-v2).

    Tries the router endpoint first and falls back to the standard endpoint on 403.
    Returned vectors are normalized for cosine similarity.
    """

    def __init__(
        self,
        api_key: str | None = None,
        batch_size: int = EMBED_BATCH_SIZE,
        timeout: float = EMBED_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else get_secret(HF_API_KEY_ENV)
        self.batch_size = batch_size
        self.timeout = timeout
        self._transport = transport

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self.api_key:
            raise ValueError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        all_embeddings: list[list[float]] = []

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]
                payload = {"inputs": batch, "options": {"wait_for_model": True}}
                response = await self._post_batch(client, payload, headers)
                result = response.json()
                if isinstance(result, list) and result and isinstance(result[0], list):
                    batch_emb = result
                else:
                    batch_emb = [
                        item if isinstance(item, list) else [item]
                        for item in (result if isinstance(result, list) else [result])
                    ]
                if len(batch_emb) != len(batch):
                    raise RuntimeError(
                        f"HF API returned {len(batch_emb)} vectors for {len(batch)} inputs"
                    )
                all_embeddings.extend(_normalize([float(x) for x in vec]) for vec in batch_emb)

        return all_embeddings

    async def _post_batch(self, client: httpx.AsyncClient, payload: dict, headers: dict) -> httpx.Response:
        api_urls = [HF_API_URL_ROUTER, HF_API_URL_STANDARD]
        response = None
        last_error: str | None = None

        for api_url in api_urls:
            try:
                response = await client.post(api_url, json=payload, headers=headers)
                if response.status_code == 200:
                    break
                if response.status_code == 403 and api_url == HF_API_URL_ROUTER:
                    last_error = response.text
                    continue
                break
            except httpx.HTTPError as e:
                last_error = str(e)
                if api_url == api_urls[-1]:
                    raise
                continue

        if response is None or response.status_code != 200:
            msg = response.text if response is not None else last_error
            if response is not None and response.status_code == 503:
                raise RuntimeError(f"HF model is loading. Retry later. {msg}")
            if response is not None and response.status_code == 401:
                raise ValueError(
                    "Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens"
                )
            if response is not None and response.status_code == 403:
                raise ValueError(
                    f"HF token lacks Inference API permission. Create a token with read access. {msg}"
                )
            raise RuntimeError(f"HF API error: {msg}")
        return response


@dataclass(frozen=True)
class ScoredCandidate:
    """One ranked search hit: the entry's answer text and its cosine score."""

    text: str
    score: float
    entry_index: int


def entry_document(entry: KnowledgeEntry) -> str:
    """Text embedded for an entry: its keywords as a topic line, then the answer."""
    return clean_text(f"{', '.join(entry.keywords)}\n{entry.answer}")


class KnowledgeIndex:
    """In-memory cosine index over knowledge-base entries."""

    def __init__(self, embedder: Embedder, entries: tuple[KnowledgeEntry, ...] = KNOWLEDGE_BASE) -> None:
        self.embedder = embedder
        self.entries = entries
        self._vectors: list[list[float]] | None = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._vectors is not None

    async def build(self) -> None:
        """Embed every entry once. Safe to call repeatedly; later calls are no-ops."""
        async with self._lock:
            if self._vectors is not None:
                return
            docs = [entry_document(e) for e in self.entries]
            logger.info("[vector_store:build] IN  entries=%d", len(docs))
            try:
                vectors = await self.embedder.embed(docs)
            except Exception as e:
                raise RetrievalError(f"failed to build retrieval index: {e}") from e
            if len(vectors) != len(docs):
                raise RetrievalError(
                    f"embedder returned {len(vectors)} vectors for {len(docs)} entries"
                )
            self._vectors = [_normalize(list(v)) for v in vectors]
            logger.info("[vector_store:build] OUT dim=%d", len(self._vectors[0]) if self._vectors else 0)

    async def search(self, query: str, top_k: int = 3) -> list[ScoredCandidate]:
        """Rank entries by cosine similarity to the query; highest first, ties in definition order."""
        if self._vectors is None:
            raise RetrievalError("retrieval index has not been built")
        q = normalize_query(query)
        if not q or not self._vectors:
            return []
        try:
            query_vec = await self.embedder.embed([q])
        except Exception as e:
            raise RetrievalError(f"failed to embed query: {e}") from e
        if not query_vec:
            raise RetrievalError("embedder returned no vector for the query")
        qv = _normalize(list(query_vec[0]))
        if len(qv) != len(self._vectors[0]):
            raise RetrievalError(
                f"query vector dim {len(qv)} does not match index dim {len(self._vectors[0])}"
            )

        scored = [
            ScoredCandidate(
                text=self.entries[i].answer,
                score=sum(a * b for a, b in zip(qv, vec)),
                entry_index=i,
            )
            for i, vec in enumerate(self._vectors)
        ]
        scored.sort(key=lambda c: -c.score)
        hits = scored[: max(top_k, 0)]
        logger.info(
            "[vector_store:search] OUT hits=%d scores=%s",
            len(hits), [round(c.score, 4) for c in hits],
        )
        return hits

    def stats(self) -> dict:
        """Index status for the health endpoint."""
        return {
            "ready": self.ready,
            "entries": len(self.entries),
            "dim": len(self._vectors[0]) if self._vectors else 0,
        }
