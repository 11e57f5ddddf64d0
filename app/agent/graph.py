"""
LangGraph dispatcher: retrieve context → (answer locally | call provider) → END.

Orchestration only; retrieval and provider calls live in their own modules.
Every query yields exactly one outcome: Answer, Cancelled or Failed.
Cancellation short-circuits every other result and is re-checked before the
outcome is committed.
"""

import logging
import time
from collections.abc import Mapping
from typing import Literal, TypedDict

from langgraph.graph import END, StateGraph

from app.agent.llm import ProviderClient
from app.core.cancellation import CancellationToken
from app.core.errors import Aborted, ProviderError
from app.core.types import Answer, AnswerSource, Cancelled, DispatchOutcome, Failed
from app.services.knowledge_base import answer_locally
from app.services.retrieval_service import ContextRetriever, RetrievalStatus

logger = logging.getLogger(__name__)


class DispatchState(TypedDict):
    query: str
    source: AnswerSource
    cancellation: CancellationToken
    context: tuple
    retrieval_status: str
    answer: str
    resolved_by: str  # retrieval | knowledge_base | provider | provider_error
    cancelled: bool
    failure: str


class QueryDispatcher:
    """
    Answers one query per dispatch() call.

    retriever: optional ContextRetriever (None behaves like an unavailable index).
    providers: remote clients keyed by source; read-only after construction.
    """

    def __init__(
        self,
        retriever: ContextRetriever | None = None,
        providers: Mapping[AnswerSource, ProviderClient] | None = None,
    ) -> None:
        self.retriever = retriever
        self.providers = dict(providers or {})
        self._graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(DispatchState)

        graph.add_node("retrieve_context", self._retrieve_context)
        graph.add_node("answer_locally", self._answer_locally)
        graph.add_node("call_provider", self._call_provider)

        graph.set_entry_point("retrieve_context")
        graph.add_conditional_edges(
            "retrieve_context",
            self._route_after_retrieve,
            {"answer_locally": "answer_locally", "call_provider": "call_provider", END: END},
        )
        graph.add_edge("answer_locally", END)
        graph.add_edge("call_provider", END)

        return graph.compile()

    async def _retrieve_context(self, state: DispatchState) -> dict:
        """Node 1: race retrieval against the budget and cancellation. Never fatal."""
        if self.retriever is None:
            return {"retrieval_status": RetrievalStatus.UNAVAILABLE.value, "context": ()}
        result = await self.retriever.retrieve(state["query"], state["cancellation"])
        update = {"retrieval_status": result.status.value, "context": result.context}
        if result.status is RetrievalStatus.ABORTED:
            update["cancelled"] = True
        return update

    def _route_after_retrieve(
        self, state: DispatchState
    ) -> Literal["answer_locally", "call_provider", "__end__"]:
        if state.get("cancelled") or state["cancellation"].cancelled:
            logger.info("[graph:route_after_retrieve] cancelled -> end")
            return END
        next_node = "call_provider" if state["source"].is_remote else "answer_locally"
        logger.info(
            "[graph:route_after_retrieve] source=%s retrieval=%s -> %s",
            state["source"].value, state.get("retrieval_status"), next_node,
        )
        return next_node

    async def _answer_locally(self, state: DispatchState) -> dict:
        """Node 2a: top retrieved candidate, else first keyword match, else the fixed fallback."""
        context = state.get("context") or ()
        if context:
            return {"answer": context[0], "resolved_by": "retrieval"}
        return {"answer": answer_locally(state["query"]), "resolved_by": "knowledge_base"}

    async def _call_provider(self, state: DispatchState) -> dict:
        """Node 2b: remote provider. Credential/transport failures become visible answer text."""
        source = state["source"]
        provider = self.providers.get(source)
        if provider is None:
            return {"failure": f"no provider client registered for {source.value!r}"}
        try:
            text = await provider.call(state["query"], tuple(state.get("context") or ()), state["cancellation"])
        except Aborted:
            return {"cancelled": True}
        except ProviderError as e:
            logger.warning("[graph:call_provider] %s failed: %s", e.provider, e.message)
            return {"answer": f"{e.provider} error: {e.message}", "resolved_by": "provider_error"}
        return {"answer": text, "resolved_by": "provider"}

    async def dispatch(
        self, query: str, source: AnswerSource | str, cancellation: CancellationToken
    ) -> DispatchOutcome:
        """
        Answer `query` from `source`, honoring `cancellation` throughout.

        Raises ValueError for an empty query or unknown source (caller errors);
        every other failure is returned as an outcome.
        """
        if not query or not str(query).strip():
            raise ValueError("query is required")
        q = str(query).strip()
        src = AnswerSource(source)
        if cancellation.cancelled:
            logger.info("[graph:dispatch] already cancelled, nothing started")
            return Cancelled()

        start = time.monotonic()
        logger.info("[graph:dispatch] START source=%s query=%r", src.value, q)
        initial: DispatchState = {
            "query": q,
            "source": src,
            "cancellation": cancellation,
            "context": (),
            "retrieval_status": "",
            "answer": "",
            "resolved_by": "",
            "cancelled": False,
            "failure": "",
        }
        try:
            final = await self._graph.ainvoke(initial)
        except Exception as e:
            if cancellation.cancelled:
                return Cancelled()
            logger.exception("[graph:dispatch] dispatch failed")
            return Failed(str(e) or type(e).__name__)

        elapsed = time.monotonic() - start
        if cancellation.cancelled or final.get("cancelled"):
            logger.info("[graph:dispatch] END cancelled after %.3fs", elapsed)
            return Cancelled()
        if final.get("failure"):
            logger.warning("[graph:dispatch] END failed: %s", final["failure"])
            return Failed(final["failure"])
        logger.info(
            "[graph:dispatch] END source=%s resolved_by=%s retrieval=%s answer_len=%d in %.3fs",
            src.value, final.get("resolved_by"), final.get("retrieval_status"),
            len(final.get("answer") or ""), elapsed,
        )
        return Answer(text=final.get("answer") or "", source=src)
