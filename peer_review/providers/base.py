"""Abstract base for all model providers."""

from abc import ABC, abstractmethod

from peer_review.models import ModelResponse

# A fixed user turn; the role instructions travel as the system prompt.
USER_TURN = "Please provide your assessment in the specified JSON format."


class AIProvider(ABC):
    """Abstract base for all model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'claude', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    def max_tokens(self) -> int:
        """Return the per-call output token limit."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, temperature: float) -> ModelResponse:
        """Generate a response for the given role instructions.

        Args:
            prompt: The full role instruction payload.
            temperature: Sampling temperature.

        Returns:
            ModelResponse dataclass with content and token usage.

        Raises:
            TransientServiceError: Rate limit, timeout, connection or 5xx failure.
            ServiceUnavailable: Credentials rejected or request refused.
            MalformedResponse: The service answered without any text.
        """
        ...
