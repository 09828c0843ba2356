"""
Hutch Mobile SMS Provider Adapter
=================================
Sri Lankan gateway with two operating modes:

- ``oauth``: bulk SMS API behind username/password login with access and
  refresh tokens.
- ``webb``: legacy query-string GET endpoint whose free-text responses are
  sniffed for success, trying several phone formats in turn.

The success heuristics of the legacy endpoint are brittle by nature; every
piece of them (indicator list, regex, parameter names, base URL) comes from
config because deployments of the same gateway answer differently.
"""

import base64
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog

from otp_core.errors import InvalidPhoneFormat
from otp_core.phone.normalizer import local_variants, mask_phone
from .base import BaseProviderAdapter, ProviderName, SendResult

logger = structlog.get_logger(__name__)

DEFAULT_OAUTH_BASE = "https://bsms.hutch.lk"
DEFAULT_WEBB_URL = "https://webbsms.hutch.lk/"
DEFAULT_FORMAT_PREFERENCE = ["94", "0", "local"]
DEFAULT_SUCCESS_INDICATORS = ["success", "submitted", "ok", "message sent", "successful"]
DEFAULT_SUCCESS_PATTERN = r"(status|result|code)\s*[-:=]?\s*(0|200|ok|success)"
DEFAULT_PARAM_NAMES = {
    "username": "username",
    "password": "password",
    "to": "to",
    "message": "text",
    "senderId": "from",
    "messageType": "",  # sent only when named
}

TOKEN_REFRESH_MARGIN = 30  # seconds


def decode_token_expiry(token: Optional[str]) -> int:
    """
    Read the ``exp`` claim from a JWT without verifying it.

    Used only to schedule refreshes; never for trust decisions.

    Returns:
        Expiry as epoch seconds, 0 when unknown
    """
    if not token:
        return 0
    parts = token.split(".")
    if len(parts) < 2:
        return 0
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment).decode("utf-8"))
        return int(payload.get("exp") or 0)
    except (ValueError, TypeError, AttributeError):
        return 0


@dataclass
class TokenState:
    """OAuth session owned by one adapter instance."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: int = 0  # epoch seconds, 0 = unknown

    def needs_refresh(self, now: Optional[float] = None) -> bool:
        if not self.access_token:
            return True
        if not self.expires_at:
            return False
        return (now or time.time()) >= self.expires_at - TOKEN_REFRESH_MARGIN


class HutchMobileAdapter(BaseProviderAdapter):
    """
    Hutch Mobile provider adapter.

    Config:
        {
            "mode": "oauth",            # or "webb"
            "username": "xxx",
            "password": "xxx",
            "senderId": "ALPHABET",     # alias: "mask"
            "oauthBase": "https://bsms.hutch.lk",
            "campaignName": "Request OTP",
            "apiUrl": "https://webbsms.hutch.lk/",
            "messageType": "text",
            "toFormatPreference": ["94", "0", "local"],
            "successIndicators": ["success", "submitted", "ok"],
            "successPattern": "(status|result|code)\\s*[-:=]?\\s*(0|200|ok|success)",
            "paramNames": {"message": "text", "senderId": "from"},
            "extraParams": {},
        }
    """

    name = ProviderName.HUTCH_MOBILE.value
    cost_estimate = 0.50

    def __init__(self, config: Dict[str, Any], **kwargs):
        super().__init__(config, **kwargs)
        self.mode = str(self.config.get("mode", "oauth")).lower()
        self.sender_id = self.config.get("senderId") or self.config.get("mask") or "ALPHABET"
        self.oauth_base = str(self.config.get("oauthBase", DEFAULT_OAUTH_BASE)).rstrip("/")
        self.tokens = TokenState()

        self.api_url = self.config.get("apiUrl", DEFAULT_WEBB_URL)
        self.format_preference: List[str] = list(
            self.config.get("toFormatPreference") or DEFAULT_FORMAT_PREFERENCE
        )
        self.success_indicators = [
            s.lower() for s in (self.config.get("successIndicators") or DEFAULT_SUCCESS_INDICATORS)
        ]
        self.success_pattern = re.compile(
            self.config.get("successPattern") or DEFAULT_SUCCESS_PATTERN,
            re.IGNORECASE,
        )
        self.param_names = {**DEFAULT_PARAM_NAMES, **(self.config.get("paramNames") or {})}
        self.extra_params = dict(self.config.get("extraParams") or {})

    def _oauth_headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "*/*",
            "X-API-VERSION": "v1",
        }
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    # ---- OAuth session ----

    async def login(self) -> None:
        """Log in with username/password and store both tokens."""
        client = await self._get_client()
        response = await client.post(
            f"{self.oauth_base}/api/login",
            json={"username": self.config["username"], "password": self.config["password"]},
            headers=self._oauth_headers(),
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise self._failure(
                "OAuth login returned an unexpected body",
                details={"body": response.text[:200]},
            )

        access_token = data.get("accessToken")
        if not access_token:
            raise self._failure("OAuth login returned no accessToken")

        self.tokens = TokenState(
            access_token=access_token,
            refresh_token=data.get("refreshToken"),
            expires_at=decode_token_expiry(access_token),
        )
        logger.info("Hutch OAuth login succeeded", expires_at=self.tokens.expires_at)

    async def refresh(self) -> None:
        """Refresh the access token, logging in again when no refresh token is held."""
        if not self.tokens.refresh_token:
            await self.login()
            return

        client = await self._get_client()
        response = await client.get(
            f"{self.oauth_base}/api/token/accessToken",
            headers=self._oauth_headers(self.tokens.refresh_token),
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise self._failure(
                "OAuth refresh returned an unexpected body",
                details={"body": response.text[:200]},
            )

        access_token = data.get("accessToken")
        if not access_token:
            raise self._failure("OAuth refresh returned no accessToken")

        self.tokens.access_token = access_token
        self.tokens.expires_at = decode_token_expiry(access_token)
        logger.info("Hutch OAuth token refreshed", expires_at=self.tokens.expires_at)

    async def ensure_access_token(self) -> None:
        if self.tokens.needs_refresh():
            await self.refresh()

    async def _post_sms(self, payload: Dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        return await client.post(
            f"{self.oauth_base}/api/sendsms",
            json=payload,
            headers=self._oauth_headers(self.tokens.access_token),
        )

    async def _send_oauth(self, to: str, body: str) -> SendResult:
        await self.ensure_access_token()
        number = local_variants(to).with_country_code
        payload = {
            "campaignName": self.config.get("campaignName", "Request OTP"),
            "mask": self.sender_id,
            "numbers": number,
            "content": body,
        }

        response = await self._post_sms(payload)
        if response.status_code == 401:
            logger.info("Hutch OAuth send unauthorized, refreshing token once")
            await self.refresh()
            response = await self._post_sms(payload)
        response.raise_for_status()

        data = response.json()
        server_ref = data.get("serverRef") if isinstance(data, dict) else None
        if not server_ref:
            raise self._failure(
                "OAuth send returned no serverRef",
                details={"body": json.dumps(data)[:200]},
            )

        logger.info("Hutch OAuth SMS accepted", server_ref=server_ref, to=mask_phone(to))
        return SendResult(
            message_id=str(server_ref),
            cost=self.cost_estimate,
            provider=self.name,
            raw_response={"serverRef": server_ref, "phone": number},
        )

    # ---- Legacy GET ----

    def is_success_response(self, status_code: int, body: str) -> bool:
        """Success only on HTTP 200 with a known indicator or status pattern."""
        if status_code != 200:
            return False
        lowered = body.lower()
        if any(indicator in lowered for indicator in self.success_indicators):
            return True
        return bool(self.success_pattern.search(body))

    def _webb_params(self, to_param: str, body: str) -> Dict[str, str]:
        names = self.param_names
        params = {
            names["username"]: self.config["username"],
            names["password"]: self.config["password"],
            names["to"]: to_param,
            names["message"]: body,
            names["senderId"]: self.sender_id,
        }
        params.update(self.extra_params)
        if names.get("messageType"):
            params[names["messageType"]] = self.config.get("messageType", "text")
        return params

    async def _send_webb(self, to: str, body: str) -> SendResult:
        variants = local_variants(to)
        client = await self._get_client()
        last_snippet = ""

        for fmt in self.format_preference:
            to_param = variants.by_format(fmt)
            logger.info("Hutch legacy send attempt", format=fmt, to=mask_phone(to_param))

            response = await client.get(
                self.api_url,
                params=self._webb_params(to_param, body),
                headers={"User-Agent": "Request-Marketplace-SMS/1.0"},
            )
            response.raise_for_status()

            text = response.text
            snippet = " ".join(text[:200].split())
            if self.is_success_response(response.status_code, text):
                return SendResult(
                    message_id=f"hutch_{int(time.time() * 1000)}_{to_param}",
                    cost=self.cost_estimate,
                    provider=self.name,
                    raw_response={"status": "sent", "phone": to_param, "snippet": snippet},
                )

            last_snippet = snippet
            logger.warning("Hutch legacy send not confirmed", format=fmt, snippet=snippet)

        raise self._failure(
            "gateway did not confirm success",
            details={"last_response": last_snippet},
        )

    async def send(self, to: str, body: str) -> SendResult:
        """Send SMS via the configured Hutch mode."""
        self._require("username", "password")
        try:
            if self.mode == "oauth":
                return await self._send_oauth(to, body)
            return await self._send_webb(to, body)
        except InvalidPhoneFormat as e:
            raise self._failure(e.message) from e
        except httpx.HTTPStatusError as e:
            raise self._failure(
                f"HTTP {e.response.status_code}",
                details={"body": e.response.text[:200]},
            ) from e
        except httpx.HTTPError as e:
            raise self._failure(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise self._failure("unreadable gateway response") from e
