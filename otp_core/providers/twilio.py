"""
Twilio SMS Provider Adapter
===========================
Adapter for the Twilio Messages API.
"""

from base64 import b64encode
from typing import Dict

import httpx
import structlog

from .base import BaseProviderAdapter, ProviderName, SendResult

logger = structlog.get_logger(__name__)


class TwilioAdapter(BaseProviderAdapter):
    """
    Twilio SMS provider adapter.

    Single synchronous POST with static account credentials.

    Config:
        {
            "accountSid": "ACxxx",
            "authToken": "xxx",
            "fromNumber": "+15550001111",
            "messagingServiceSid": "MGxxx",  # optional, replaces fromNumber
        }
    """

    name = ProviderName.TWILIO.value
    cost_estimate = 0.0075

    @property
    def base_url(self) -> str:
        base = self.config.get("baseUrl", "https://api.twilio.com/2010-04-01")
        return f"{base.rstrip('/')}/Accounts/{self.config.get('accountSid')}"

    def _default_headers(self) -> Dict[str, str]:
        auth = b64encode(
            f"{self.config.get('accountSid')}:{self.config.get('authToken')}".encode()
        ).decode()
        return {"Authorization": f"Basic {auth}"}

    async def send(self, to: str, body: str) -> SendResult:
        """Send SMS via Twilio."""
        self._require("accountSid", "authToken")

        payload = {
            "To": to,
            "Body": body,
        }
        if self.config.get("messagingServiceSid"):
            payload["MessagingServiceSid"] = self.config["messagingServiceSid"]
        else:
            self._require("fromNumber")
            payload["From"] = self.config["fromNumber"]

        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}/Messages.json", data=payload)
        except httpx.HTTPError as e:
            raise self._failure(str(e) or type(e).__name__) from e

        try:
            data = response.json()
        except ValueError:
            data = {"body": response.text[:200]}

        if response.status_code == 201 and data.get("sid"):
            logger.info("Twilio SMS accepted", sid=data["sid"], status=data.get("status"))
            return SendResult(
                message_id=data["sid"],
                cost=self.cost_estimate,
                provider=self.name,
                raw_response=data,
            )

        raise self._failure(
            data.get("message", f"HTTP {response.status_code}"),
            details={"status_code": response.status_code, "code": data.get("code")},
        )
