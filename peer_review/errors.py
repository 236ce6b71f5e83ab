"""Error taxonomy for a review run. Every failure surfaced by run_review is one of these."""


class ReviewError(Exception):
    """Base class for all review run failures."""

    kind = "review_error"


class InvalidInput(ReviewError):
    """Manuscript text failed validation. Raised before any model call."""

    kind = "invalid_input"


class QuotaExceeded(ReviewError):
    """The next model call would push the run past its token ceiling."""

    kind = "quota_exceeded"

    def __init__(self, used: int, requested: int, ceiling: int) -> None:
        self.used = used
        self.requested = requested
        self.ceiling = ceiling
        super().__init__(
            f"Token budget exceeded: {used} used + {requested} requested > {ceiling} ceiling"
        )


class MalformedResponse(ReviewError):
    """A model response could not be decoded into the expected record."""

    kind = "malformed_response"


class ProviderError(ReviewError):
    """Raised when a provider call fails."""

    kind = "provider_error"

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class TransientServiceError(ProviderError):
    """Rate limiting, timeouts, connection drops and 5xx responses. Retried by the gateway."""

    kind = "transient_service_error"


class ServiceUnavailable(ProviderError):
    """Missing or rejected credentials, or a request the service refuses outright."""

    kind = "service_unavailable"
