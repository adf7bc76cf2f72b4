"""
Generation client for the Gemini ``generateContent`` endpoint.

  - httpx.AsyncClient, one POST per call
  - No retries; retry policy belongs to the caller
  - Raises GenerationServiceError on missing key, non-2xx, blocked prompt
    or a response without candidate text
  - Structured logging: model, latency, finish reason
"""

import time
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from .config import settings
from .errors import GenerationServiceError
from .utils.logger import get_logger

load_dotenv()
logger = get_logger(__name__)


class LLMClient:
    """
    HTTP client for the reasoning/generation service.

    ``generate(prompt)`` returns the raw text of the first candidate.
    The API key can be swapped at runtime with ``set_api_key``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.endpoint = (endpoint or settings.GEMINI_ENDPOINT).rstrip("/")
        self.timeout = int(timeout or settings.LLM_TIMEOUT)
        self.temperature = settings.LLM_TEMPERATURE
        self.max_tokens = settings.LLM_MAX_TOKENS
        self.top_p = settings.LLM_TOP_P
        self.top_k = settings.LLM_TOP_K
        self._transport = transport

        logger.info(
            f"[LLMClient] Ready | model={self.model} | "
            f"timeout={self.timeout}s | max_tokens={self.max_tokens} | "
            f"key={'set' if self.api_key else 'missing'}"
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key or None
        logger.info(f"[LLMClient] API key {'updated' if api_key else 'cleared'}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _url(self) -> str:
        return f"{self.endpoint}/{self.model}:generateContent"

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "topP": self.top_p,
                "topK": self.top_k,
            },
        }

    def _parse(self, data: Dict[str, Any]) -> str:
        if not isinstance(data, dict):
            logger.error(f"[LLMClient] Response body is {type(data).__name__}, not an object")
            raise GenerationServiceError("Invalid or empty response structure from Gemini API.")
        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            logger.error(f"[LLMClient] Prompt blocked: {feedback.get('blockReason')}")
            raise GenerationServiceError(
                f"Gemini API blocked the prompt. Reason: {feedback['blockReason']}"
            )
        try:
            candidate = data["candidates"][0]
            text = candidate["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationServiceError(
                "Invalid or empty response structure from Gemini API."
            ) from exc
        if not text:
            raise GenerationServiceError("Invalid or empty response structure from Gemini API.")
        if candidate.get("finishReason") == "MAX_TOKENS":
            logger.warning("[LLMClient] Response truncated by maxOutputTokens")
        return text.strip()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(self, prompt: str) -> str:
        """
        Single-prompt generation call.

        Raises:
            GenerationServiceError: on any transport, status or payload failure
        """
        if not self.api_key:
            raise GenerationServiceError(
                "AI API key not configured. Please set it in the extension options."
            )

        t0 = time.monotonic()
        logger.info(f"[LLMClient] POST {self._url} | prompt_chars={len(prompt)}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self._url,
                    params={"key": self.api_key},
                    json=self._payload(prompt),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            logger.warning(f"[LLMClient] TIMEOUT after {self.timeout}s")
            raise GenerationServiceError(f"AI communication failed: timeout after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.error(f"[LLMClient] Transport error: {type(exc).__name__}: {exc}")
            raise GenerationServiceError(f"AI communication failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(f"[LLMClient] HTTP {resp.status_code}: {resp.text[:500]}")
            raise GenerationServiceError(
                f"Gemini API request failed: {resp.status_code}. Details: {resp.text[:300]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationServiceError("Gemini API returned a non-JSON body.") from exc

        text = self._parse(data)
        logger.info(
            f"[LLMClient] OK | latency={time.monotonic() - t0:.2f}s | "
            f"chars={len(text)} | model={self.model}"
        )
        return text
