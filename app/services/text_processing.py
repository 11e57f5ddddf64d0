"""
Text processing for matching and retrieval: cleaning and query normalization.

Cleaning reduces noise and encoding inconsistencies so keyword matching and
embeddings see the same text regardless of how the user typed it.
"""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """
    Normalize and clean raw text (queries or knowledge-base documents).

    NFKC folds compatibility characters (fullwidth letters, ligatures), lines are
    stripped, consecutive duplicate lines collapse to one and runs of blank lines
    collapse to a single blank line.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    lines = [line.strip() for line in text.splitlines()]
    deduped: list[str] = []
    for line in lines:
        if deduped and deduped[-1] == line:
            continue
        deduped.append(line)
    result: list[str] = []
    for line in deduped:
        if line == "":
            if result and result[-1] != "":
                result.append("")
        else:
            result.append(line)
    return "\n".join(result).strip()


def normalize_query(query: str) -> str:
    """Clean, lower-case and collapse all whitespace to single spaces."""
    return _WHITESPACE.sub(" ", clean_text(query)).lower()
