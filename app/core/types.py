"""
Domain types: answer sources and dispatch outcomes.
"""

from dataclasses import dataclass
from enum import Enum


class AnswerSource(str, Enum):
    """Where an answer comes from. Selected by the caller per query."""

    LOCAL = "local"
    GEMINI = "gemini"
    CHATGPT = "chatgpt"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def is_remote(self) -> bool:
        return self is not AnswerSource.LOCAL


_LABELS = {
    AnswerSource.LOCAL: "Local",
    AnswerSource.GEMINI: "Gemini",
    AnswerSource.CHATGPT: "ChatGPT",
}

_ICONS = {
    AnswerSource.LOCAL: "💻",
    AnswerSource.GEMINI: "✨",
    AnswerSource.CHATGPT: "🧠",
}


@dataclass(frozen=True)
class Answer:
    text: str
    source: AnswerSource


@dataclass(frozen=True)
class Cancelled:
    pass


@dataclass(frozen=True)
class Failed:
    reason: str


DispatchOutcome = Answer | Cancelled | Failed
