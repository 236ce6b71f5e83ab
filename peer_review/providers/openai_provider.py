"""OpenAI provider using openai SDK with native async.

Also serves OpenAI-compatible endpoints (xAI, DeepSeek, local servers) when
the model config carries a base_url.
"""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from peer_review.errors import MalformedResponse, ServiceUnavailable, TransientServiceError
from peer_review.models import ModelResponse
from peer_review.providers.base import USER_TURN, AIProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ServiceUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, max_retries=0)

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
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[
                        {"role": "system", "content": prompt},
                        {"role": "user", "content": USER_TURN},
                    ],
                    max_tokens=self._config.max_tokens,
                    temperature=temperature,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransientServiceError(
                self._config.name, f"Request timed out after {self._config.timeout_sec}s"
            ) from exc
        except (openai.RateLimitError, openai.APIConnectionError) as exc:
            raise TransientServiceError(self._config.name, f"API call failed: {exc}") from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise ServiceUnavailable(self._config.name, f"Credentials rejected: {exc}") from exc
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise TransientServiceError(self._config.name, f"Server error {exc.status_code}: {exc}") from exc
            raise ServiceUnavailable(self._config.name, f"Request rejected ({exc.status_code}): {exc}") from exc
        except openai.APIError as exc:
            raise ServiceUnavailable(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise MalformedResponse(f"[{self._config.name}] Empty response content")

        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        logger.debug(
            "OpenAI call: %.2fs, %d in / %d out tokens",
            latency,
            input_tokens,
            output_tokens,
        )

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=choice.message.content,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
