"""
Application errors for dispatch, retrieval and provider calls.

Provider errors (CredentialError, TransportError) are turned into visible answer
text by the dispatcher; Aborted always wins and becomes a Cancelled outcome;
retrieval errors never leave the retriever. ServiceUnavailableError is kept for
the HTTP layer when a dependency is misconfigured.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. the dispatcher) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DispatchError(Exception):
    """Base class for errors raised inside a dispatch."""


class Aborted(DispatchError):
    """The cancellation handle fired before the work settled."""

    def __init__(self, message: str = "cancelled by caller") -> None:
        self.message = message
        super().__init__(message)


class TimedOut(DispatchError):
    """A raced piece of work did not settle within its budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:.3f}s")


class RetrievalError(DispatchError):
    """The retrieval index could not be built or searched."""


class ProviderError(DispatchError):
    """A provider call failed. `provider` is the display label (e.g. "Gemini")."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class CredentialError(ProviderError):
    """The provider's API key is absent or empty."""


class TransportError(ProviderError):
    """The provider returned a non-success response or the request failed in transit."""
