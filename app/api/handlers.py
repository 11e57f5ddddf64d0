"""
API handlers: run a dispatch for a request and map its outcome to the response schema.

Responsibility: Bridge HTTP types and the dispatcher. Registers the query's
cancellation token under its session so POST /query/cancel can stop it, and
records answered exchanges in the session transcript.
"""

import logging

from fastapi import HTTPException

from app.agent.graph import QueryDispatcher
from app.core.cancellation import CancellationToken
from app.core.session_store import append_message, register_token, release_token
from app.core.types import Answer, Cancelled, DispatchOutcome
from app.schemas.query import QueryRequest, QueryResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong while answering. Please try again."


def outcome_to_response(outcome: DispatchOutcome) -> QueryResponse:
    if isinstance(outcome, Answer):
        return QueryResponse(status="answered", answer=outcome.text, provider=outcome.source)
    if isinstance(outcome, Cancelled):
        return QueryResponse(status="cancelled")
    return QueryResponse(status="failed", answer=GENERIC_ERROR, error=outcome.reason)


async def handle_query(body: QueryRequest, dispatcher: QueryDispatcher) -> QueryResponse:
    token = CancellationToken()
    register_token(body.session_id, token)
    try:
        outcome = await dispatcher.dispatch(body.question, body.provider, token)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    finally:
        release_token(body.session_id, token)

    if isinstance(outcome, Answer):
        append_message(body.session_id, "user", body.question)
        append_message(body.session_id, "assistant", outcome.text, provider=outcome.source.value)
    response = outcome_to_response(outcome)
    logger.info("[api:handle_query] OUT status=%s answer_len=%d", response.status, len(response.answer))
    return response
