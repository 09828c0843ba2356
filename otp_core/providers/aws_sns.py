"""
AWS SNS SMS Provider Adapter
============================
Adapter publishing SMS through Amazon SNS.
"""

import asyncio
from typing import Any, Optional

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import DEFAULT_TIMEOUT, BaseProviderAdapter, ProviderName, SendResult

logger = structlog.get_logger(__name__)


class AWSSNSAdapter(BaseProviderAdapter):
    """
    Amazon SNS provider adapter.

    A single ``publish`` call per message. boto3 is blocking, so the call
    runs in a worker thread; botocore's own retries are disabled.

    Config:
        {
            "region": "us-east-1",
            "accessKeyId": "...",       # optional, default credential chain otherwise
            "secretAccessKey": "...",   # optional
            "senderId": "RequestApp",   # optional
            "smsType": "Transactional", # optional
        }
    """

    name = ProviderName.AWS.value
    cost_estimate = 0.0075

    def __init__(
        self,
        config: dict,
        timeout: float = DEFAULT_TIMEOUT,
        transport=None,
        client: Optional[Any] = None,
    ):
        super().__init__(config, timeout=timeout, transport=transport)
        self._sns = client

    def _get_sns(self):
        if self._sns is None:
            credentials = {}
            if self.config.get("accessKeyId") and self.config.get("secretAccessKey"):
                credentials = {
                    "aws_access_key_id": self.config["accessKeyId"],
                    "aws_secret_access_key": self.config["secretAccessKey"],
                }
            self._sns = boto3.client(
                "sns",
                region_name=self.config.get("region", "us-east-1"),
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"total_max_attempts": 1},
                ),
                **credentials,
            )
        return self._sns

    async def send(self, to: str, body: str) -> SendResult:
        """Publish SMS via SNS."""
        attributes = {
            "AWS.SNS.SMS.SMSType": {
                "DataType": "String",
                "StringValue": self.config.get("smsType", "Transactional"),
            },
        }
        if self.config.get("senderId"):
            attributes["AWS.SNS.SMS.SenderID"] = {
                "DataType": "String",
                "StringValue": self.config["senderId"],
            }

        sns = self._get_sns()
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    sns.publish,
                    PhoneNumber=to,
                    Message=body,
                    MessageAttributes=attributes,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise self._failure("publish timed out") from e
        except (BotoCoreError, ClientError) as e:
            raise self._failure(str(e)) from e

        message_id = result.get("MessageId")
        if not message_id:
            raise self._failure("publish returned no MessageId")

        logger.info("SNS SMS published", message_id=message_id)
        return SendResult(
            message_id=message_id,
            cost=self.cost_estimate,
            provider=self.name,
            raw_response={"MessageId": message_id},
        )
