"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from peer_review.errors import MalformedResponse, ServiceUnavailable, TransientServiceError
from peer_review.models import ModelResponse
from peer_review.providers.base import USER_TURN, AIProvider

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ServiceUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        # Retries belong to the gateway.
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, max_retries=0)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def max_tokens(self) -> int:
        return self._config.max_tokens

    async def generate(self, prompt: str, temperature: float) -> ModelResponse:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    system=prompt,
                    messages=[{"role": "user", "content": USER_TURN}],
                    # create() no longer takes temperature as a keyword.
                    extra_body={"temperature": temperature},
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransientServiceError(
                self._config.name, f"Request timed out after {self._config.timeout_sec}s"
            ) from exc
        except (anthropic_sdk.RateLimitError, anthropic_sdk.APIConnectionError) as exc:
            raise TransientServiceError(self._config.name, f"API call failed: {exc}") from exc
        except (anthropic_sdk.AuthenticationError, anthropic_sdk.PermissionDeniedError) as exc:
            raise ServiceUnavailable(self._config.name, f"Credentials rejected: {exc}") from exc
        except anthropic_sdk.APIStatusError as exc:
            if exc.status_code >= 500:
                raise TransientServiceError(self._config.name, f"Server error {exc.status_code}: {exc}") from exc
            raise ServiceUnavailable(self._config.name, f"Request rejected ({exc.status_code}): {exc}") from exc
        except anthropic_sdk.APIError as exc:
            raise ServiceUnavailable(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise MalformedResponse(f"[{self._config.name}] No text content in response")

        content = "\n".join(text_blocks)
        input_tokens = response.usage.input_tokens if response.usage else 0
        output_tokens = response.usage.output_tokens if response.usage else 0

        logger.debug(
            "Anthropic call: %.2fs, %d in / %d out tokens",
            latency,
            input_tokens,
            output_tokens,
        )

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
