"""
API route aggregator: register endpoints and delegate to handlers.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends

from app.agent.graph import QueryDispatcher
from app.api.handlers import handle_query
from app.core.errors import ServiceUnavailableError
from app.core.session_store import cancel_session, get_history
from app.core.types import AnswerSource
from app.schemas.query import (
    CancelRequest,
    CancelResponse,
    HistoryResponse,
    ProviderInfo,
    QueryRequest,
    QueryResponse,
)
from app.services.agent_service import build_dispatcher
from app.services.knowledge_base import GREETING

logger = logging.getLogger(__name__)
router = APIRouter()


@lru_cache(maxsize=1)
def get_dispatcher() -> QueryDispatcher:
    """Process-wide dispatcher; overridden in tests via app.dependency_overrides."""
    try:
        return build_dispatcher()
    except Exception as e:
        logger.exception("Failed to build dispatcher")
        raise ServiceUnavailableError(f"Dispatcher unavailable: {e}") from e


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "growGPT backend running", "greeting": GREETING}


@router.get("/health", tags=["system"])
def health(dispatcher: QueryDispatcher = Depends(get_dispatcher)):
    retriever = dispatcher.retriever
    index = retriever.index if retriever is not None else None
    retrieval = index.stats() if index is not None else {"ready": False}
    return {"ok": True, "retrieval": retrieval}


@router.get(
    "/providers",
    response_model=list[ProviderInfo],
    tags=["query"],
    summary="List answer sources",
    description="Local is always available; remote providers report whether their API key is configured.",
)
def list_providers(dispatcher: QueryDispatcher = Depends(get_dispatcher)) -> list[ProviderInfo]:
    out = [ProviderInfo(id=AnswerSource.LOCAL, label=AnswerSource.LOCAL.label, icon=AnswerSource.LOCAL.icon, configured=True)]
    for source, client in dispatcher.providers.items():
        out.append(ProviderInfo(id=source, label=source.label, icon=source.icon, configured=client.configured))
    return out


# --- Query ---

@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Answer a question from the selected source",
    description=(
        "Dispatch the question to local, gemini or chatgpt. Returns status answered, cancelled "
        "(stopped via POST /query/cancel) or failed. Provider misconfiguration is reported as answer text."
    ),
)
async def post_query(body: QueryRequest, dispatcher: QueryDispatcher = Depends(get_dispatcher)) -> QueryResponse:
    logger.info("[api:post_query] IN  question=%r session_id=%s provider=%s", body.question, body.session_id, body.provider.value)
    return await handle_query(body, dispatcher)


@router.post(
    "/query/cancel",
    response_model=CancelResponse,
    tags=["query"],
    summary="Stop in-flight queries for a session",
)
async def post_cancel(body: CancelRequest) -> CancelResponse:
    # async so the tokens are signalled on the event loop that awaits them
    return CancelResponse(cancelled=cancel_session(body.session_id))


@router.get(
    "/history/{session_id}",
    response_model=HistoryResponse,
    tags=["query"],
    summary="Transcript of the current session",
)
def read_history(session_id: str) -> HistoryResponse:
    return HistoryResponse(session_id=session_id, messages=get_history(session_id))
