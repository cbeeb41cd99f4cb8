"""
Shared client for the OpenAI-compatible AI gateway.
Analysis, search and Q&A all go through `GatewayClient.complete` instead of
building their own HTTP requests. Calls are never retried; a failed call
fails the request that made it.
"""
import logging

import httpx

from lumina.core.config import Settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The gateway answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"AI gateway error: {status_code}")
        self.status_code = status_code
        self.detail = detail

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_payment_required(self) -> bool:
        return self.status_code == 402


class GatewayUnavailableError(Exception):
    """The gateway could not be reached at all."""


class GatewayClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat completion request and return the reply text.

        Returns an empty string when the reply carries no message content.
        """
        api_key = self.settings.require_gateway_key()
        payload = {
            "model": self.settings.AI_MODEL,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.AI_GATEWAY_TIMEOUT, transport=self._transport
            ) as client:
                response = await client.post(self.settings.AI_GATEWAY_URL, json=payload, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"AI gateway unreachable: {e}")
            raise GatewayUnavailableError(str(e)) from e

        if response.status_code >= 400:
            logger.error(f"AI API error: {response.status_code} {response.text}")
            raise GatewayError(response.status_code, response.text)

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""
