"""
Gemini Adapter - Google Gemini API client.

This is the ONLY place that calls the Gemini API.
The analysis domain reaches it through the TextGenerator contract.
"""

from .client import GeminiAPIError, GeminiClient, RateLimitError
from .models import GeminiConfig, GeminiResponse

__all__ = [
    "GeminiClient",
    "GeminiConfig",
    "GeminiResponse",
    "GeminiAPIError",
    "RateLimitError",
]
