"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
Provider secrets are read at call time via get_secret() so a key added to the
environment is picked up without a restart and local mode works with none.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def get_secret(name: str) -> str:
    """Return the stripped value of a secret env var, or "" when unset."""
    return (os.getenv(name) or "").strip()


def _optional_float(name: str) -> float | None:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else None


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Context retrieval budget (3000 ms) and ranking
RETRIEVAL_TIMEOUT_SECONDS: float = float(os.getenv("RETRIEVAL_TIMEOUT_SECONDS", "3.0"))
RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "3"))
# Unset keeps "top candidate wins"; set to e.g. 0.35 to ignore weak matches
RETRIEVAL_MIN_SCORE: float | None = _optional_float("RETRIEVAL_MIN_SCORE")

# Hugging Face (embeddings for the retrieval index)
HF_API_KEY_ENV: str = "HF_API_KEY"
HF_EMBED_MODEL: str = (
    os.getenv("HF_EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2").strip()
    or "sentence-transformers/all-MiniLM-L6-v2"
)
EMBED_API_TIMEOUT: float = 30.0
EMBED_BATCH_SIZE: int = 32

# Provider calls
LLM_API_TIMEOUT: float = float(os.getenv("LLM_API_TIMEOUT", "60.0"))
LLM_MAX_OUTPUT_TOKENS: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "512"))
LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))

# Gemini (providerA)
GEMINI_API_KEY_ENV: str = "GEMINI_API_KEY"
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash").strip() or "gemini-2.0-flash"
GEMINI_API_BASE: str = (
    os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta").strip().rstrip("/")
    or "https://generativelanguage.googleapis.com/v1beta"
)

# OpenAI / ChatGPT (providerB)
OPENAI_API_KEY_ENV: str = "OPENAI_API_KEY"
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
