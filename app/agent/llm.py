"""
Provider clients: Gemini (REST over httpx) and ChatGPT (OpenAI Responses API).

Each client is a function from (query, context, cancellation) to answer text,
raising CredentialError, TransportError or Aborted. API keys are read at call
time; the HTTP request runs as a task that is cancelled when the handle fires.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from app.core.cancellation import CancellationToken
from app.core.concurrency import race_with_cancellation
from app.core.config import (
    GEMINI_API_BASE,
    GEMINI_API_KEY_ENV,
    GEMINI_MODEL,
    LLM_API_TIMEOUT,
    LLM_MAX_OUTPUT_TOKENS,
    LLM_TEMPERATURE,
    OPENAI_API_KEY_ENV,
    OPENAI_LLM_MODEL,
    get_secret,
)
from app.core.errors import Aborted, CredentialError, TransportError
from app.core.types import AnswerSource

logger = logging.getLogger(__name__)


class ProviderClient(Protocol):
    source: AnswerSource

    @property
    def configured(self) -> bool: ...

    async def call(self, query: str, context: tuple[str, ...], cancellation: CancellationToken) -> str: ...


def build_prompt(query: str, context: tuple[str, ...] | list[str] = ()) -> str:
    """Prompt for a provider. Non-empty context is background the model should prefer."""
    passages = [c.strip() for c in context if c and c.strip()]
    if not passages:
        return (
            "You are growGPT, a helpful assistant. Answer the user's question clearly and concisely.\n\n"
            f"Question: {query}\n\nAnswer:"
        )
    background = "\n\n".join(f"[{i}] {p}" for i, p in enumerate(passages, 1))
    return (
        "You are growGPT, a helpful assistant.\n"
        "Use the background material below as your primary source. Prefer it over your own "
        "general knowledge whenever it is relevant; use general knowledge only to fill gaps.\n\n"
        f"Background:\n{background}\n\n"
        f"Question: {query}\n\nAnswer:"
    )


def _missing_key_hint(env_name: str) -> str:
    return f"{env_name} is not configured. Set {env_name} in your environment or .env file."


class _BaseProvider(ABC):
    source: AnswerSource
    key_env: str

    def __init__(self, api_key: str | None = None) -> None:
        # Explicit key for tests/CLI; otherwise the env var is read on every call
        self._api_key = api_key

    @property
    def label(self) -> str:
        return self.source.label

    def api_key(self) -> str:
        return self._api_key.strip() if self._api_key is not None else get_secret(self.key_env)

    @property
    def configured(self) -> bool:
        return bool(self.api_key())

    async def call(self, query: str, context: tuple[str, ...], cancellation: CancellationToken) -> str:
        logger.info("[llm:%s] IN  query=%r context=%d", self.source.value, query, len(context))
        key = self.api_key()
        if not key:
            logger.warning("[llm:%s] no %s", self.source.value, self.key_env)
            raise CredentialError(self.label, _missing_key_hint(self.key_env))
        if cancellation.cancelled:
            raise Aborted(cancellation.reason or "cancelled by caller")

        prompt = build_prompt(query, context)
        logger.debug("[llm:%s] prompt_len=%d", self.source.value, len(prompt))
        out = await race_with_cancellation(self._complete(key, prompt), cancellation)
        logger.info("[llm:%s] OUT response_len=%d", self.source.value, len(out))
        return out

    @abstractmethod
    async def _complete(self, api_key: str, prompt: str) -> str:
        """Send one request and return the answer text."""


class GeminiProvider(_BaseProvider):
    """Google Gemini via the generateContent REST endpoint."""

    source = AnswerSource.GEMINI
    key_env = GEMINI_API_KEY_ENV

    def __init__(
        self,
        api_key: str | None = None,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_API_BASE,
        timeout: float = LLM_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(api_key)
        self.model = model
        self.url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self.timeout = timeout
        self._transport = transport

    async def _complete(self, api_key: str, prompt: str) -> str:
        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": LLM_MAX_OUTPUT_TOKENS,
                "temperature": LLM_TEMPERATURE,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("[llm:gemini] request failed: %s", e)
            raise TransportError(self.label, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            message = _gemini_error_message(response)
            logger.warning("[llm:gemini] error %s: %s", response.status_code, message[:200])
            raise TransportError(self.label, message)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(self.label, "response was not valid JSON") from e
        text = _gemini_text(data)
        if text is None:
            raise TransportError(self.label, "response contained no text")
        return text


def _gemini_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    return response.text[:500] or f"HTTP {response.status_code}"


def _gemini_text(data: Any) -> str | None:
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not candidates or not isinstance(candidates[0], dict):
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p.get("text") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    return "".join(texts) if texts else None


class OpenAIProvider(_BaseProvider):
    """ChatGPT via the OpenAI Responses API: body {model, input, max_output_tokens}."""

    source = AnswerSource.CHATGPT
    key_env = OPENAI_API_KEY_ENV

    def __init__(
        self,
        api_key: str | None = None,
        model: str = OPENAI_LLM_MODEL,
        timeout: float = LLM_API_TIMEOUT,
        client_factory: Callable[..., Any] = AsyncOpenAI,
    ) -> None:
        super().__init__(api_key)
        self.model = model
        self.timeout = timeout
        self._client_factory = client_factory

    async def _complete(self, api_key: str, prompt: str) -> str:
        # One request per call; retrying is the caller's decision
        client = self._client_factory(api_key=api_key, timeout=self.timeout, max_retries=0)
        try:
            response = await client.responses.create(
                model=self.model,
                input=prompt,
                max_output_tokens=LLM_MAX_OUTPUT_TOKENS,
            )
        except openai.APIStatusError as e:
            message = _openai_error_message(e)
            logger.warning("[llm:chatgpt] error %s: %s", e.status_code, message[:200])
            raise TransportError(self.label, message) from e
        except openai.APIError as e:
            logger.warning("[llm:chatgpt] request failed: %s", e)
            raise TransportError(self.label, e.message or str(e)) from e
        finally:
            await client.close()
        if not response.output_text:
            raise TransportError(self.label, "response contained no text")
        return response.output_text


def _openai_error_message(e: openai.APIStatusError) -> str:
    body = e.body
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return e.message or f"HTTP {e.status_code}"


def default_providers() -> dict[AnswerSource, ProviderClient]:
    """One client per remote source, reading keys from the environment at call time."""
    return {
        AnswerSource.GEMINI: GeminiProvider(),
        AnswerSource.CHATGPT: OpenAIProvider(),
    }
