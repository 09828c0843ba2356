"""
Vonage (Nexmo) SMS Provider Adapter
===================================
Adapter for the Vonage SMS API.
"""

import httpx
import structlog

from .base import BaseProviderAdapter, ProviderName, SendResult

logger = structlog.get_logger(__name__)


class VonageAdapter(BaseProviderAdapter):
    """
    Vonage SMS provider adapter.

    HTTP 200 does not mean the message was accepted: the per-message
    ``status`` in the body must be "0".

    Config:
        {
            "apiKey": "xxx",
            "apiSecret": "xxx",
            "brandName": "RequestApp",  # optional sender
        }
    """

    name = ProviderName.VONAGE.value
    cost_estimate = 0.005

    async def send(self, to: str, body: str) -> SendResult:
        """Send SMS via Vonage."""
        self._require("apiKey", "apiSecret")

        base_url = self.config.get("baseUrl", "https://rest.nexmo.com").rstrip("/")
        payload = {
            "api_key": self.config["apiKey"],
            "api_secret": self.config["apiSecret"],
            "to": to.lstrip("+"),
            "from": self.config.get("brandName", "RequestApp"),
            "text": body,
            "type": "unicode" if any(ord(c) > 127 for c in body) else "text",
        }

        client = await self._get_client()
        try:
            response = await client.post(f"{base_url}/sms/json", data=payload)
            data = response.json()
        except httpx.HTTPError as e:
            raise self._failure(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise self._failure(
                "unreadable response",
                details={"status_code": response.status_code, "body": response.text[:200]},
            ) from e

        messages = data.get("messages") or []
        first = messages[0] if messages else {}

        if first.get("status") == "0":
            cost = float(first.get("message-price") or self.cost_estimate)
            logger.info("Vonage SMS accepted", message_id=first.get("message-id"))
            return SendResult(
                message_id=str(first.get("message-id", "")),
                cost=cost,
                provider=self.name,
                raw_response=data,
            )

        raise self._failure(
            first.get("error-text", "Unknown error"),
            details={"status": first.get("status", "unknown")},
        )
