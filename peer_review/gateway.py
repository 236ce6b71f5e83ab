"""Model Gateway: one entry point for every LLM call in a review run.

Each run owns a TokenLedger. A call reserves its estimated cost before it is
dispatched, so the two concurrent reviewer calls of a round cannot both slip
under the ceiling. Reservations are settled with the usage the provider
reports, or released if the call fails. A settled call that lands the run above
its ceiling still raises QuotaExceeded, so no report is built past it.
"""

import logging
import math
import time

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.config_loader import GatewayConfig
from peer_review.errors import QuotaExceeded, TransientServiceError
from peer_review.providers.base import USER_TURN, AIProvider

logger = logging.getLogger(__name__)


class TokenLedger:
    """Running token total for one review run."""

    def __init__(self, ceiling: int) -> None:
        self.ceiling = ceiling
        self.used = 0
        self.reserved = 0

    @property
    def committed(self) -> int:
        return self.used + self.reserved

    def reserve(self, amount: int) -> int:
        if self.committed + amount > self.ceiling:
            raise QuotaExceeded(self.committed, amount, self.ceiling)
        self.reserved += amount
        return amount

    def settle(self, reservation: int, actual: int) -> None:
        """Replace a reservation with actual usage.

        Raises:
            QuotaExceeded: the recorded usage is above the ceiling.
        """
        self.reserved -= reservation
        self.used += actual
        if actual > reservation:
            logger.warning(
                "Call used %d tokens, above its %d token reservation", actual, reservation
            )
        if self.used > self.ceiling:
            raise QuotaExceeded(self.used - actual, actual, self.ceiling)

    def release(self, reservation: int) -> None:
        self.reserved -= reservation


def estimate_tokens(text: str, chars_per_token: int) -> int:
    return math.ceil(len(text) / chars_per_token)


def reservation_for(prompt: str, max_output_tokens: int, config: GatewayConfig) -> int:
    """Worst-case cost of one call: full input, full output allowance."""
    input_estimate = estimate_tokens(prompt + USER_TURN, config.chars_per_token)
    return input_estimate + config.call_overhead_tokens + max_output_tokens


class ModelGateway:
    """Budgeted, retrying access to a single provider."""

    def __init__(self, provider: AIProvider, config: GatewayConfig, ledger: TokenLedger) -> None:
        self._provider = provider
        self._config = config
        self.ledger = ledger

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(
                multiplier=self._config.backoff_multiplier,
                min=self._config.backoff_min,
                max=self._config.backoff_max,
            ),
            retry=retry_if_exception_type(TransientServiceError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def invoke(self, prompt: str, temperature: float, label: str) -> str:
        """Send one prompt and return the raw text of the reply.

        Raises:
            QuotaExceeded: the call would push the run past its ceiling
                (the provider is not contacted), or its reported usage did.
            TransientServiceError: still failing after the last attempt.
            ServiceUnavailable, MalformedResponse: on the first occurrence.
        """
        async for attempt in self._retrying():
            with attempt:
                return await self._dispatch(
                    prompt, temperature, label, attempt.retry_state.attempt_number
                )
        raise AssertionError("unreachable")  # reraise=True always raises on exhaustion

    async def _dispatch(self, prompt: str, temperature: float, label: str, attempt: int) -> str:
        reservation = self.ledger.reserve(
            reservation_for(prompt, self._provider.max_tokens(), self._config)
        )

        start = time.monotonic()
        try:
            response = await self._provider.generate(prompt, temperature)
        except BaseException:
            self.ledger.release(reservation)
            raise

        self.ledger.settle(reservation, response.total_tokens)
        logger.info(
            "%s (attempt %d): %.2fs, %d tokens, run total %d/%d",
            label,
            attempt,
            time.monotonic() - start,
            response.total_tokens,
            self.ledger.used,
            self.ledger.ceiling,
        )
        return response.content
