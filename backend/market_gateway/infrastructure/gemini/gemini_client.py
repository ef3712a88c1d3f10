"""Gemini generateContent client (async, httpx)."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.config import GeminiConfig
from market_gateway.models.errors import ConfigurationError, UpstreamError

JsonDict = Dict[str, Any]


class GeminiError(UpstreamError):
    pass


def _extract_text(body: Any) -> str:
    """candidates[0].content.parts[0].text, or GeminiError."""
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise GeminiError("Invalid response structure from AI API.", details=body)
    if not isinstance(text, str):
        raise GeminiError("Invalid response structure from AI API.", details=body)
    return text


class GeminiClient:
    def __init__(self, config: GeminiConfig, *, http: Optional[httpx.AsyncClient] = None) -> None:
        self._logger = get_logger("gemini")
        self._config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _generate(self, payload: JsonDict) -> str:
        if not self._config.api_key:
            raise ConfigurationError("AI API key is not configured on the server.")

        url = f"{self._config.base_url.rstrip('/')}/models/{self._config.model}:generateContent"
        try:
            response = await self._http.post(
                url,
                params={"key": self._config.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )
        except httpx.HTTPError as e:
            self._logger.error("gemini_transport_error", error=str(e))
            raise GeminiError(f"AI API request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = response.text[:500] or None

        if response.status_code >= 400:
            self._logger.error("gemini_http_error", status=response.status_code, model=self._config.model)
            raise GeminiError(
                f"AI API returned HTTP {response.status_code}",
                details=body,
                upstream_status=response.status_code,
            )

        return _extract_text(body)

    async def generate_text(self, prompt: str) -> str:
        text = await self._generate({"contents": [{"role": "user", "parts": [{"text": prompt}]}]})
        self._logger.debug("gemini_text_ok", chars=len(text))
        return text

    async def generate_json(self, prompt: str, response_schema: JsonDict) -> Any:
        """Schema-constrained call; the model answers with JSON text that we parse."""
        text = await self._generate(
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": response_schema,
                },
            }
        )
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise GeminiError("AI API returned malformed JSON.", details=text[:500]) from e
