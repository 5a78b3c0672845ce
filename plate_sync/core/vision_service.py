"""
Gemini Vision Service for Plate Sync.

Extracts the license plate text from a single repair photo using the
Gemini generateContent REST endpoint, with bounded retry on rate limiting
and transient failures.
"""

import re
import math
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ..config.settings import VisionConfig
from .errors import RateLimited, TransportFailure
from .multipart import strip_data_uri

logger = logging.getLogger(__name__)


PLATE_PROMPT = (
    "Extract the vehicle license plate number from this image. "
    "Return ONLY the alphanumeric text. Remove spaces or hyphens. "
    "Return 'UNKNOWN' if no plate is clearly visible."
)

UNKNOWN_SENTINEL = "UNKNOWN"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


# =============================================================================
# Recognition results
# =============================================================================

@dataclass(frozen=True)
class PlateText:
    """A plate was read; text is uppercase alphanumeric."""
    text: str
    kind = "plate"


@dataclass(frozen=True)
class Unknown:
    """The model saw no readable plate."""
    kind = "unknown"


@dataclass(frozen=True)
class MissingCredential:
    """No usable Gemini API key is configured; nothing was sent."""
    kind = "missing_credential"


@dataclass(frozen=True)
class Failure:
    """Every attempt failed."""
    reason: str
    kind = "failure"


RecognitionResult = Union[PlateText, Unknown, MissingCredential, Failure]


def normalize_plate_text(raw: Optional[str]) -> RecognitionResult:
    """Uppercase, strip separators, and map empty or sentinel answers to Unknown."""
    cleaned = _NON_ALNUM.sub("", (raw or "").strip().upper())
    if not cleaned or cleaned == UNKNOWN_SENTINEL:
        return Unknown()
    return PlateText(cleaned)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        delay = float(value)
    except ValueError:
        return None
    return delay if math.isfinite(delay) else None


# =============================================================================
# Service
# =============================================================================

class PlateRecognitionService:
    """
    License plate OCR using Gemini.

    One request per photo. Attempts are bounded by VisionConfig.max_attempts;
    HTTP 429 honours the Retry-After header, other failures back off by
    ``attempt * 2`` seconds.
    """

    def __init__(
        self,
        config: VisionConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize recognition service.

        Args:
            config: Gemini credential, model and retry settings
            http_client: Optional preconfigured client (tests pass a mock transport)
            sleep: Awaitable used for backoff waits
        """
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

    @property
    def url(self) -> str:
        return f"{self.config.endpoint.rstrip('/')}/models/{self.config.model_name}:generateContent"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.config.timeout_seconds
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client if this service created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_request_body(self, image_data: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inlineData": {
                                "mimeType": "image/jpeg",
                                "data": image_data,
                            }
                        },
                        {"text": PLATE_PROMPT},
                    ]
                }
            ]
        }

    async def recognize(self, image_payload: str) -> RecognitionResult:
        """
        Read the plate from one base64 JPEG.

        Args:
            image_payload: Base64 JPEG, with or without a data URI prefix

        Returns:
            PlateText, Unknown, MissingCredential or Failure. Never raises for
            remote errors.
        """
        if not self.config.has_credential:
            logger.error("Gemini API key missing or invalid")
            return MissingCredential()

        body = self.build_request_body(strip_data_uri(image_payload))
        max_attempts = max(1, self.config.max_attempts)
        reason = "Gemini OCR failed after retries"

        for attempt in range(1, max_attempts + 1):
            try:
                text = await self._generate(body)
                return normalize_plate_text(text)

            except RateLimited as e:
                reason = f"Gemini API rate limited after {attempt} attempts"
                if attempt >= max_attempts:
                    break
                if e.retry_after and e.retry_after > 0:
                    delay = e.retry_after
                else:
                    delay = attempt * 2
                logger.warning(
                    f"Gemini API 429 (attempt {attempt}/{max_attempts}). Retrying in {delay}s..."
                )
                await self._sleep(delay)

            except TransportFailure as e:
                reason = str(e)
                if attempt >= max_attempts:
                    break
                logger.warning(f"Gemini OCR attempt {attempt} failed: {e}. Retrying...")
                await self._sleep(attempt * 2)

        logger.error(f"Gemini OCR error: {reason}")
        return Failure(reason)

    async def _generate(self, body: Dict[str, Any]) -> str:
        """Send one generateContent request and return the first candidate's text."""
        client = await self._get_client()

        try:
            response = await client.post(
                self.url,
                params={"key": self.config.api_key},
                json=body
            )
        except httpx.HTTPError as e:
            raise TransportFailure(f"Gemini request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimited(_parse_retry_after(response.headers.get("retry-after")))

        if response.status_code >= 400:
            message = None
            try:
                message = (response.json().get("error") or {}).get("message")
            except (ValueError, AttributeError):
                pass
            logger.error(f"Gemini API error: {response.status_code} {response.text[:200]}")
            raise TransportFailure(message or f"Gemini API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON from Gemini: {e}") from e

        try:
            return data["candidates"][0]["content"]["parts"][0].get("text") or ""
        except (KeyError, IndexError, TypeError, AttributeError):
            logger.debug(f"Gemini response had no text candidate: {data}")
            return ""
