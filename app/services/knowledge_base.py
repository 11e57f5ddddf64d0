"""
Local knowledge base (Java & Spring Boot) and the keyword matcher over it.

Entries are checked in definition order and the first entry with a keyword
contained in the lower-cased query wins (first match, not best match). The
table is immutable for the life of the process.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeEntry:
    keywords: tuple[str, ...]  # lower-case
    answer: str


def _entry(keywords: tuple[str, ...], answer: str) -> KnowledgeEntry:
    return KnowledgeEntry(keywords=tuple(k.lower() for k in keywords), answer=answer)


KNOWLEDGE_BASE: tuple[KnowledgeEntry, ...] = (
    _entry(
        ("java", "what is java"),
        "Java is a high-level, class-based, object-oriented programming language that is designed "
        "to have as few implementation dependencies as possible. It is widely used for building "
        "enterprise-scale applications.",
    ),
    _entry(
        ("spring", "spring boot", "what is spring"),
        "Spring Boot is an open source Java-based framework used to create a micro Service. It "
        "provides a good platform for Java developers to develop a stand-alone and production-grade "
        "spring application that you can just run.",
    ),
    _entry(
        ("dependency injection", "di"),
        "Dependency Injection (DI) is a design pattern used to implement IoC. It allows the creation "
        "of dependent objects outside of a class and provides those objects to a class through "
        "different ways (constructor, setter, or field).",
    ),
    _entry(
        ("jvm", "machine"),
        "JVM (Java Virtual Machine) is an abstract machine that enables your computer to run a Java "
        "program. When you run the Java program, Java compiler first compiles your Java code to "
        "bytecode. Then, the JVM translates bytecode into native machine code.",
    ),
    _entry(
        ("rest", "api", "restful"),
        "REST (Representational State Transfer) is an architectural style that defines a set of "
        "constraints to be used for creating web services. Spring Boot makes it very easy to build "
        "RESTful services using annotations like @RestController.",
    ),
    _entry(
        ("hello", "hi", "hey"),
        "Hello! I am your Java & Spring Boot assistant. Ask me anything about those topics.",
    ),
)

FALLBACK_ANSWER = (
    "I'm sorry, I only have access to data about Java and Spring Boot. "
    "Please ask me something related to those topics."
)

GREETING = "Hello! I am growGPT. Select a provider and ask me anything!"


def match_keywords(
    query: str, entries: tuple[KnowledgeEntry, ...] = KNOWLEDGE_BASE
) -> KnowledgeEntry | None:
    """Return the first entry (definition order) with a keyword contained in the
    lower-cased query, or None. No other normalization is applied."""
    q = query.lower()
    for i, entry in enumerate(entries):
        for keyword in entry.keywords:
            if keyword in q:
                logger.info("[knowledge_base:match_keywords] OUT entry=%d keyword=%r", i, keyword)
                return entry
    logger.info("[knowledge_base:match_keywords] OUT no match query=%r", q)
    return None


def answer_locally(query: str) -> str:
    """Keyword match answer, or FALLBACK_ANSWER when nothing matches."""
    entry = match_keywords(query)
    return entry.answer if entry is not None else FALLBACK_ANSWER
