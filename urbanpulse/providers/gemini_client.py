"""Thin wrapper around the Gemini SDK for single-turn text generation."""

import time

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from urbanpulse.config import settings
from urbanpulse.providers.errors import ProviderError, ProviderHTTPError, ProviderNotConfigured, ProviderPayloadError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="gemini_client")


class GeminiClient:
    """Minimal client for single-turn Gemini text generation."""
    def __init__(self, api_key: str | None = None, model: str | None = None):
        """Initialize client configuration, defaulting to settings."""
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.timeout = settings.provider_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _generative_model(self):
        genai.configure(api_key=self.api_key)
        return genai.GenerativeModel(self.model)

    def generate(self, prompt: str) -> str:
        """Send a prompt and return the text of the first candidate."""
        if not self.api_key:
            raise ProviderNotConfigured("Gemini API key not configured", provider="gemini")

        logger.debug("Gemini generate_content", extra={"model": self.model, "prompt_chars": len(prompt)})
        started = time.perf_counter()
        try:
            response = self._generative_model().generate_content(
                prompt,
                request_options={"timeout": self.timeout},
            )
        except google_exceptions.GoogleAPICallError as exc:
            status = exc.code or 502
            raise ProviderHTTPError(
                int(status),
                f"Gemini request failed with status {status} (model={self.model})",
                provider="gemini",
                body=str(exc.message)[:200],
            ) from exc
        except google_exceptions.GoogleAPIError as exc:
            raise ProviderError(f"Gemini request failed: {type(exc).__name__}", provider="gemini") from exc
        logger.info("Gemini generate_content took %.2fs", time.perf_counter() - started)

        # .text raises ValueError when the candidate was blocked or has no text parts
        try:
            text = response.text
        except ValueError as exc:
            raise ProviderPayloadError(f"Gemini returned no usable text: {exc}", provider="gemini") from exc
        if not text:
            raise ProviderPayloadError("Gemini returned an empty response", provider="gemini")
        return text
