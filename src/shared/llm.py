"""
Shared language-model gateway.

Wraps the OpenAI chat completions API as a JSON-in/JSON-out call and
owns the retry policy: rate-limit responses are retried with
exponential backoff up to a fixed number of attempts, quota exhaustion
is terminal, and everything else surfaces as ProviderError.
"""

import asyncio
import json
from typing import Any, Optional

import openai
from loguru import logger
from openai import AsyncOpenAI

from .config import Settings, get_settings
from .errors import ProviderError, QuotaExceeded, RateLimited

QUOTA_ERROR_CODES = {"insufficient_quota", "billing_hard_limit_reached"}


class LLMGateway:
    """JSON completion client with bounded retry on rate limits."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        max_attempts: Optional[int] = None,
        initial_retry_delay: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.settings = settings or get_settings()
        self.max_attempts = max_attempts or self.settings.llm_max_attempts
        self.initial_retry_delay = (
            initial_retry_delay
            if initial_retry_delay is not None
            else self.settings.llm_initial_retry_delay
        )
        self.timeout_seconds = timeout_seconds or self.settings.llm_timeout_seconds
        self.call_count = 0
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key.get_secret_value(),
                base_url=self.settings.openai_base_url,
                timeout=self.timeout_seconds,
                max_retries=0,  # retries are handled in complete_json
            )
        return self._client

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based): 1s, 2s, 4s, ..."""
        return self.initial_retry_delay * (2 ** (attempt - 1))

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        context: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Run one chat completion and return the decoded JSON object.

        Raises:
            RateLimited: throttled on every attempt
            QuotaExceeded: provider reports exhausted credits
            ProviderError: any other failure, including non-JSON output
        """
        context = context or {}
        log = logger.bind(**context)

        for attempt in range(1, self.max_attempts + 1):
            self.call_count += 1
            try:
                response = await self.client.chat.completions.create(
                    model=model or self.settings.openai_model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    response_format={"type": "json_object"},
                )
            except openai.RateLimitError as e:
                if getattr(e, "code", None) in QUOTA_ERROR_CODES:
                    log.error(f"LLM quota exhausted: {e}")
                    raise QuotaExceeded(context=context) from e
                if attempt >= self.max_attempts:
                    log.error(f"Rate limited after {attempt} attempts")
                    raise RateLimited(attempts=attempt, context=context) from e
                delay = self.backoff_delay(attempt)
                log.warning(
                    f"Rate limited (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue
            except openai.APIStatusError as e:
                if e.status_code == 402:
                    log.error(f"LLM payment required: {e}")
                    raise QuotaExceeded(context=context) from e
                log.error(f"LLM provider error {e.status_code}: {e}")
                raise ProviderError(
                    f"AI provider error ({e.status_code})", context=context
                ) from e
            except openai.APIError as e:
                # connection errors and timeouts
                log.error(f"LLM request failed: {e}")
                raise ProviderError(f"AI provider unavailable: {e}", context=context) from e

            return self._decode(response, log, context)

        raise RateLimited(attempts=self.max_attempts, context=context)

    @staticmethod
    def _decode(response: Any, log: Any, context: dict[str, Any]) -> dict[str, Any]:
        if not response.choices:
            raise ProviderError("Empty response from LLM", context=context)

        content = response.choices[0].message.content
        if not content:
            raise ProviderError("Empty response from LLM", context=context)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            log.error(f"Failed to parse LLM response: {e}")
            raise ProviderError(f"JSON parse error: {e}", context=context) from e

        if not isinstance(data, dict):
            raise ProviderError("LLM response is not a JSON object", context=context)
        return data
