"""
Local SMS Provider Adapter
==========================
Development log-only mode, or a generic HTTP gateway for white-label and
local carriers without a dedicated adapter.
"""

import time
from typing import Any, Dict

import httpx
import structlog

from otp_core.phone.normalizer import mask_phone
from .base import BaseProviderAdapter, ProviderName, SendResult

logger = structlog.get_logger(__name__)

DEFAULT_PARAM_NAMES = {
    "to": "to",
    "message": "message",
    "sender": "from",
}


class LocalAdapter(BaseProviderAdapter):
    """
    Configurable local gateway.

    Config:
        {
            "logOnly": true,                  # never deliver, always succeed
            "endpoint": "https://sms.local/send",
            "apiKey": "xxx",                  # sent as a bearer token
            "method": "POST",                 # POST (JSON body) or GET (query string)
            "senderId": "RequestApp",
            "paramNames": {"to": "msisdn", "message": "text", "sender": "from"},
            "extraParams": {"route": "otp"},
            "messageIdField": "messageId",
        }
    """

    name = ProviderName.LOCAL.value
    cost_estimate = 0.003

    @property
    def log_only(self) -> bool:
        return bool(self.config.get("logOnly", False))

    def _default_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.get("apiKey"):
            headers["Authorization"] = f"Bearer {self.config['apiKey']}"
        return headers

    def _build_params(self, to: str, body: str) -> Dict[str, Any]:
        names = {**DEFAULT_PARAM_NAMES, **(self.config.get("paramNames") or {})}
        params = {
            names["to"]: to,
            names["message"]: body,
            names["sender"]: self.config.get("senderId", "RequestApp"),
        }
        params.update(self.config.get("extraParams") or {})
        return params

    async def send(self, to: str, body: str) -> SendResult:
        """Send (or just log) an SMS."""
        if self.log_only:
            logger.info(
                "Local SMS provider (log only)",
                to=mask_phone(to),
                length=len(body),
            )
            return SendResult(
                message_id=f"local_log_{int(time.time() * 1000)}",
                cost=self.cost_estimate,
                provider=self.name,
                raw_response={"mode": "log_only"},
            )

        self._require("endpoint")
        method = str(self.config.get("method", "POST")).upper()
        params = self._build_params(to, body)

        client = await self._get_client()
        try:
            if method == "GET":
                response = await client.get(self.config["endpoint"], params=params)
            else:
                response = await client.request(method, self.config["endpoint"], json=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._failure(
                f"HTTP {e.response.status_code}",
                details={"body": e.response.text[:200]},
            ) from e
        except httpx.HTTPError as e:
            raise self._failure(str(e) or type(e).__name__) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        id_field = self.config.get("messageIdField", "messageId")
        message_id = (data.get(id_field) if isinstance(data, dict) else None) or str(int(time.time() * 1000))

        logger.info("Local SMS accepted", message_id=message_id)
        return SendResult(
            message_id=str(message_id),
            cost=self.cost_estimate,
            provider=self.name,
            raw_response=data if isinstance(data, dict) else {"body": data},
        )
