#!/usr/bin/env python3
"""
Ask one question from the terminal and print the dispatch outcome.

Builds the same dispatcher the API uses (retrieval index only when HF_API_KEY is
set). Ctrl-C stops the in-flight query through its cancellation handle.

Run from project root:

    python scripts/ask.py "what is java"
    python scripts/ask.py "explain dependency injection" --provider gemini
    python scripts/ask.py "what is spring boot" --provider chatgpt --no-retrieval
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.agent.graph import QueryDispatcher
from app.core.cancellation import CancellationToken
from app.core.types import Answer, AnswerSource, Cancelled
from app.services.agent_service import build_dispatcher, warm_up


async def run(question: str, provider: AnswerSource, retrieval: bool) -> int:
    dispatcher = build_dispatcher()
    if retrieval:
        await warm_up(dispatcher)
    else:
        dispatcher = QueryDispatcher(retriever=None, providers=dispatcher.providers)

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        pass  # Windows: Ctrl-C falls back to KeyboardInterrupt

    outcome = await dispatcher.dispatch(question, provider, token)
    if isinstance(outcome, Answer):
        print(f"[{outcome.source.label}] {outcome.text}")
        return 0
    if isinstance(outcome, Cancelled):
        print("(stopped)")
        return 130
    print(f"Error: {outcome.reason}", file=sys.stderr)
    return 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Ask the growGPT dispatcher a question.")
    parser.add_argument("question", help="Free-text question")
    parser.add_argument(
        "--provider",
        choices=[s.value for s in AnswerSource],
        default=AnswerSource.LOCAL.value,
        help="Answer source (default: local)",
    )
    parser.add_argument("--no-retrieval", action="store_true", help="Skip the semantic retrieval layer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log dispatch steps")
    args = parser.parse_args()

    if not args.question.strip():
        parser.error("question must not be empty")

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    sys.exit(asyncio.run(run(args.question, AnswerSource(args.provider), not args.no_retrieval)))


if __name__ == "__main__":
    main()
