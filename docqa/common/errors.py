"""
Error taxonomy for the document QA pipeline.

Client-correctable errors (NotReady, ValidationError) carry a message that can
be shown to the user as-is. Transient upstream errors (RateLimited) are retried
before they surface. Vector shape errors (DimensionMismatch) are internal.
"""

from typing import Optional


class DocQAError(Exception):
    """Base class for all pipeline errors."""

    client_error = False
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotReady(DocQAError):
    """No document has been ingested yet."""

    client_error = True

    def __init__(self, message: str = "No document indexed. Please upload a document first."):
        super().__init__(message)


class ValidationError(DocQAError):
    """Caller supplied unusable input."""

    client_error = True


class DimensionMismatch(DocQAError):
    """Vector or collection lengths disagree.

    Raised when chunk and embedding counts differ, or a query vector does not
    match the dimensionality of the indexed vectors. Indicates an embedder
    contract breach.
    """


class RateLimited(DocQAError):
    """Upstream asked us to slow down (HTTP 429 or equivalent)."""

    retryable = True

    def __init__(self, message: str = "Rate limited by upstream provider", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamFailure(DocQAError):
    """Non-retryable error from the embedding or generation provider.

    The provider's own message is kept verbatim.
    """

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class GeneratorUnavailable(DocQAError):
    """The configured language model provider has no usable client."""


class PersistenceWarning(DocQAError):
    """The index snapshot could not be saved or loaded.

    Never raised to request callers. Returned by the index and reported as a
    warning next to the (still valid) in-memory result.
    """


_RATE_LIMIT_CLASS_NAMES = {"RateLimitError", "ResourceExhausted", "TooManyRequests"}


def _retry_after(exc: Exception) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    try:
        value = headers.get("retry-after")
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def from_provider_exception(exc: Exception, provider: str) -> DocQAError:
    """Translate an SDK exception into RateLimited or UpstreamFailure.

    Provider SDKs (openai, anthropic, google) expose rate limiting either as an
    HTTP 429 status_code or as a dedicated exception class.
    """
    if isinstance(exc, DocQAError):
        return exc

    status_code = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status_code == 429 or type(exc).__name__ in _RATE_LIMIT_CLASS_NAMES:
        return RateLimited(str(exc), retry_after=_retry_after(exc))

    return UpstreamFailure(str(exc), provider=provider)
