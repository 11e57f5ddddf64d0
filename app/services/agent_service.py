"""
Agent wiring: build the dispatcher from configuration and warm up retrieval.

Responsibility: Decide which optional collaborators exist (retrieval index only
when an embedding key is configured), construct them once, and hand a ready
QueryDispatcher to the API or CLI. No HTTP here.
"""

import logging

from app.agent.graph import QueryDispatcher
from app.agent.llm import default_providers
from app.core.config import HF_API_KEY_ENV, get_secret
from app.services.retrieval_service import ContextRetriever
from app.services.vector_store import HFEmbedder, KnowledgeIndex

logger = logging.getLogger(__name__)


def build_dispatcher() -> QueryDispatcher:
    """Dispatcher with both providers and, when HF_API_KEY is set, a (not yet built) index."""
    index = None
    if get_secret(HF_API_KEY_ENV):
        index = KnowledgeIndex(HFEmbedder())
    else:
        logger.info("[agent_service:build_dispatcher] %s not set; retrieval disabled", HF_API_KEY_ENV)
    return QueryDispatcher(retriever=ContextRetriever(index), providers=default_providers())


async def warm_up(dispatcher: QueryDispatcher) -> bool:
    """
    Build the retrieval index once. Returns True when retrieval is ready.
    A failed build is logged and leaves the app answering without context.
    """
    retriever = dispatcher.retriever
    if retriever is None or retriever.index is None:
        return False
    try:
        await retriever.index.build()
    except Exception as e:
        logger.warning("[agent_service:warm_up] retrieval index unavailable: %s", e)
        return False
    logger.info("[agent_service:warm_up] retrieval index ready")
    return True
