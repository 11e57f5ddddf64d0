"""Schemas for the query, cancel, provider and history endpoints."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from app.core.types import AnswerSource


class QueryRequest(BaseModel):
    """Request body for POST /query. History is stored server-side by session_id."""

    question: str = Field(..., min_length=1, description="User question.")
    session_id: str = Field(..., min_length=1, description="Session ID; stop requests and history are keyed by it.")
    provider: AnswerSource = Field(AnswerSource.LOCAL, description="Answer source: local, gemini or chatgpt.")

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v


class QueryResponse(BaseModel):
    """Response for POST /query."""

    status: Literal["answered", "cancelled", "failed"] = Field(..., description="Dispatch outcome.")
    answer: str = Field("", description="Answer text; a generic error message when failed; empty when cancelled.")
    provider: AnswerSource | None = Field(None, description="Source that produced the answer.")
    error: str | None = Field(None, description="Failure reason when status is failed.")


class CancelRequest(BaseModel):
    """Request body for POST /query/cancel."""

    session_id: str = Field(..., min_length=1)


class CancelResponse(BaseModel):
    cancelled: int = Field(..., description="Number of in-flight queries that were stopped.")


class ProviderInfo(BaseModel):
    id: AnswerSource
    label: str
    icon: str
    configured: bool = Field(..., description="False when the provider's API key is missing.")


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    provider: AnswerSource | None = None


class HistoryResponse(BaseModel):
    session_id: str
    messages: list[HistoryMessage] = Field(default_factory=list)
