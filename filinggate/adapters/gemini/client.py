"""
Gemini Client - Google Gemini API client for the analysis stage.

Authentication:
- Uses OAuth/ADC (Application Default Credentials) - NO API KEY REQUIRED
- Run `gcloud auth application-default login` once to authenticate

Features:
- Async operations via worker threads
- Rate limiting (60 RPM default)
- Per-call temperature and output token overrides
- No automatic retries: failures surface as LLMError for the caller to retry
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import google.generativeai as genai

from filinggate.config.errors import ErrorCode, LLMError

from .models import GeminiConfig, GeminiResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("429", "rate limit", "quota")

__all__ = ["GeminiClient", "RateLimitError", "GeminiAPIError"]


class RateLimitError(LLMError):
    """Rate limit exceeded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.LLM_RATE_LIMITED)


class GeminiAPIError(LLMError):
    """Gemini API error."""

    pass


class GeminiClient:
    """
    Gemini API client using OAuth/ADC.

    Example:
        >>> client = GeminiClient(GeminiConfig(temperature=0.2))
        >>> response = await client.generate(user_prompt, system_instruction=system_prompt)
        >>> print(response.text)
    """

    def __init__(
        self,
        config: GeminiConfig | None = None,
    ) -> None:
        """
        Initialize Gemini client with OAuth/ADC.

        Args:
            config: Client configuration. Uses defaults if None.
        """
        self.config = config or GeminiConfig()

        # Rate limiting state
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

        # Model instance (lazy loaded)
        self._model: genai.GenerativeModel | None = None

        logger.info("GeminiClient initialized (OAuth/ADC mode): model=%s", self.config.model)

    def _get_model(self) -> genai.GenerativeModel:
        """Get or create model instance."""
        if self._model is None:
            self._model = genai.GenerativeModel(
                model_name=self.config.model,
                generation_config={
                    "temperature": self.config.temperature,
                    "max_output_tokens": self.config.max_output_tokens,
                },
            )
        return self._model

    async def _check_rate_limit(self) -> None:
        """Enforce rate limiting."""
        async with self._rate_lock:
            now = time.time()
            # Remove requests older than 1 minute
            self._request_times = [t for t in self._request_times if now - t < 60]

            if len(self._request_times) >= self.config.rate_limit_rpm:
                wait_time = 60 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.warning("Rate limit reached, waiting %.1fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(now)

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> GeminiResponse:
        """
        Generate text from prompt.

        Args:
            prompt: User prompt
            system_instruction: Optional system instruction
            temperature: Overrides the configured temperature
            max_output_tokens: Overrides the configured output token limit

        Returns:
            GeminiResponse with generated text

        Raises:
            GeminiAPIError: API call failed
            RateLimitError: Rate limit exceeded
        """
        await self._check_rate_limit()

        generation_config: dict[str, Any] = {
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_output_tokens": (
                self.config.max_output_tokens if max_output_tokens is None else max_output_tokens
            ),
        }

        try:
            model = self._get_model()

            # Build content
            contents = []
            if system_instruction:
                contents.append({"role": "user", "parts": [system_instruction]})
                contents.append({"role": "model", "parts": ["Understood."]})
            contents.append({"role": "user", "parts": [prompt]})

            response = await asyncio.to_thread(
                model.generate_content,
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.config.timeout_seconds},
            )

            text = response.text if hasattr(response, "text") else str(response)

            # Get usage stats
            usage = getattr(response, "usage_metadata", None)
            prompt_tokens = getattr(usage, "prompt_token_count", 0) if usage else 0
            completion_tokens = (
                getattr(usage, "candidates_token_count", 0) if usage else 0
            )

            return GeminiResponse(
                text=text,
                model=self.config.model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        except Exception as e:
            error_msg = str(e).lower()
            if any(marker in error_msg for marker in RATE_LIMIT_MARKERS):
                raise RateLimitError(f"Rate limit exceeded: {e}") from e
            raise GeminiAPIError(f"Gemini API error: {e}") from e
