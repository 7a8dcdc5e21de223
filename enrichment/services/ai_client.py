"""
Gemini client for product enrichment.

Sends the enrichment prompt to the Gemini generateContent endpoint and
returns a structured EnrichmentProposal plus the raw model text.

Features:
- Retry with exponential backoff (2s, 4s, 8s, 16s) on any HTTP error
  status and on transport errors
- One repair pass for truncated JSON; parse failures are never retried
- Shared generation rate limit across all workers
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from django.conf import settings

from enrichment.discovery.barcode_lookup import BarcodeData
from enrichment.discovery.providers import SearchResult
from enrichment.services.json_repair import JSONRepairError, parse_json_with_repair
from enrichment.services.prompts import SYSTEM_PROMPT, build_user_prompt
from enrichment.services.proposal import EnrichmentProposal
from enrichment.services.rate_limiter import GenerationRateLimiter, get_generation_rate_limiter
from enrichment.shopify.types import CatalogItem

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when the model could not produce a proposal."""


class GenerationConfigError(GenerationError):
    """Raised when the client is not configured."""


class AIResponseParseError(GenerationError):
    """Raised when model output is not usable JSON, even after repair."""


GENERATION_CONFIG = {
    "temperature": 0.3,
    "topP": 0.8,
    "topK": 40,
    "maxOutputTokens": 8192,
    "responseMimeType": "application/json",
}

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class GeminiClient:
    """
    Synchronous Gemini client.

    Usage:
        client = GeminiClient()
        proposal, raw = client.generate(item, search_results)
    """

    API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
    RETRY_DELAYS = (2, 4, 8, 16)

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        rate_limiter: Optional[GenerationRateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key if api_key is not None else getattr(settings, "GEMINI_API_KEY", "")
        self.model = model or getattr(settings, "GEMINI_MODEL", "gemini-2.5-flash")
        self.timeout = timeout or getattr(settings, "GEMINI_TIMEOUT", 30)
        self._http = http_client or httpx.Client(timeout=self.timeout)
        self.rate_limiter = rate_limiter or get_generation_rate_limiter()
        self.sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.API_BASE}/{self.model}:generateContent"

    @property
    def max_attempts(self) -> int:
        return len(self.RETRY_DELAYS) + 1

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def _build_request(
        self,
        item: CatalogItem,
        search_results: List[SearchResult],
        barcode_data: Optional[BarcodeData],
    ) -> Dict[str, Any]:
        prompt = SYSTEM_PROMPT + "\n\n" + build_user_prompt(item, search_results, barcode_data)
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": GENERATION_CONFIG,
            "safetySettings": SAFETY_SETTINGS,
        }

    def generate(
        self,
        item: CatalogItem,
        search_results: List[SearchResult],
        barcode_data: Optional[BarcodeData] = None,
    ) -> Tuple[EnrichmentProposal, str]:
        """
        Generate an enrichment proposal for a product.

        Returns:
            (proposal, raw model text)

        Raises:
            GenerationConfigError: If no API key is configured
            AIResponseParseError: If the output is not usable JSON
            GenerationError: When every attempt failed
        """
        if not self.api_key:
            raise GenerationConfigError("GEMINI_API_KEY not configured")

        payload = self._build_request(item, search_results, barcode_data)
        response = self._send_request(payload)
        raw_text = self._extract_text(response)

        try:
            data = parse_json_with_repair(raw_text)
        except JSONRepairError as e:
            raise AIResponseParseError(f"Gemini returned invalid JSON: {e}") from e

        return EnrichmentProposal.from_dict(data), raw_text

    def _send_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send request with retry logic and exponential backoff.

        Returns:
            Parsed response envelope

        Raises:
            GenerationError: After the last attempt failed
        """
        last_error: Optional[GenerationError] = None

        for attempt in range(self.max_attempts):
            self.rate_limiter.acquire()

            try:
                response = self._http.post(
                    self.endpoint,
                    json=payload,
                    headers=self._get_headers(),
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                last_error = GenerationError(f"Gemini request failed: {e}")
                logger.warning(
                    "Transport error on attempt %d/%d: %s",
                    attempt + 1,
                    self.max_attempts,
                    e,
                )
            else:
                if response.status_code >= 400:
                    last_error = GenerationError(
                        f"Gemini HTTP {response.status_code}: {response.text[:200]}"
                    )
                    logger.warning(
                        "HTTP error on attempt %d/%d: %s",
                        attempt + 1,
                        self.max_attempts,
                        last_error,
                    )
                else:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise AIResponseParseError("Gemini returned a non-JSON envelope") from e

            if attempt < len(self.RETRY_DELAYS):
                delay = self.RETRY_DELAYS[attempt]
                logger.debug("Waiting %ds before retry %d", delay, attempt + 2)
                self.sleep(delay)

        raise last_error

    @staticmethod
    def _extract_text(envelope: Dict[str, Any]) -> str:
        candidates = envelope.get("candidates") or []
        if not candidates:
            block_reason = (envelope.get("promptFeedback") or {}).get("blockReason")
            raise AIResponseParseError(
                f"Gemini returned no candidates (block reason: {block_reason or 'none'})"
            )

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            finish_reason = candidates[0].get("finishReason")
            raise AIResponseParseError(f"Gemini returned empty text (finish reason: {finish_reason})")
        return text

    def close(self):
        self._http.close()
