"""
Provider Adapter Base
=====================
Uniform "send text message" capability for SMS gateways.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx
import structlog

from otp_core.errors import ProviderUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


class ProviderName(str, Enum):
    """Closed set of supported gateways."""
    TWILIO = "twilio"
    AWS = "aws"
    VONAGE = "vonage"
    LOCAL = "local"
    HUTCH_MOBILE = "hutch_mobile"


SUPPORTED_PROVIDERS = frozenset(p.value for p in ProviderName)


@dataclass
class SendResult:
    """Result of an accepted send."""
    message_id: str
    cost: float
    provider: str
    raw_response: Dict[str, Any] = field(default_factory=dict)


class BaseProviderAdapter(ABC):
    """
    Abstract base class for SMS gateway adapters.

    Adapters either return a SendResult or raise ProviderUnavailable; they
    never retry beyond their own gateway-specific protocol. Fallback across
    providers belongs to the dispatcher.
    """

    name: str = "base"
    cost_estimate: float = 0.0

    def __init__(
        self,
        config: Dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Provider-specific settings blob
            timeout: Per-call timeout in seconds
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.config = config or {}
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers=self._default_headers(),
                follow_redirects=True,
            )
            logger.debug("Provider HTTP client created", provider=self.name)
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {}

    def _require(self, *keys: str) -> None:
        missing = [k for k in keys if not self.config.get(k)]
        if missing:
            raise ProviderUnavailable(
                self.name,
                f"{self.name} configuration is incomplete",
                details={"missing": missing},
            )

    def _failure(self, reason: str, details: Any = None) -> ProviderUnavailable:
        # Gateway text stays in details; the message is safe to render
        logger.error("SMS send failed", provider=self.name, reason=reason, details=details)
        return ProviderUnavailable(
            self.name,
            details={"reason": reason, **(details or {})},
        )

    @abstractmethod
    async def send(self, to: str, body: str) -> SendResult:
        """
        Send an SMS message.

        Args:
            to: Recipient phone number (E.164 format)
            body: Message content

        Returns:
            SendResult with the gateway's message id and a cost estimate

        Raises:
            ProviderUnavailable: If the gateway did not accept the message
        """

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
