"""
HTTP Delivery
=============
Hands the rendered login email to an internal notification service.
"""

import logging
from typing import Dict, Optional
import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import DeliveryConfig
from ..errors import DeliveryError
from .base import DeliveryChannel, DeliveryResult
from .templates import render_login_email

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)


class TransientDeliveryError(DeliveryError):
    """Network failure or 5xx from the notification service; worth retrying."""
    pass


class EmailPayload(BaseModel):
    """Request body accepted by the notification service."""
    to: str
    sender: str
    subject: str
    html: str
    text: str
    tags: Dict[str, str] = Field(default_factory=dict)


class HttpDelivery(DeliveryChannel):
    """
    Email delivery through the notification service.

    Features:
    - Connection pooling via httpx.AsyncClient
    - Retries on network errors and 5xx responses
    - Internal secret header for service-to-service auth
    """

    name = "http"

    def __init__(
        self,
        config: Optional[DeliveryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: float = 1.0,
    ):
        self.config = config or DeliveryConfig()
        self.retry_wait = retry_wait
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        headers = {"Accept": "application/json"}
        if self.config.internal_secret:
            headers["X-Internal-Secret"] = self.config.internal_secret
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            timeout=self.config.timeout,
            headers=headers,
            transport=self._transport,
        )
        await super().initialize()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send_code(
        self,
        identity: str,
        code: str,
        aux: Dict[str, str],
        ttl_seconds: int,
    ) -> DeliveryResult:
        if not self._client:
            raise RuntimeError("Delivery channel not initialized")

        email = render_login_email(code, aux, ttl_seconds)
        payload = EmailPayload(
            to=identity,
            sender=self.config.sender,
            subject=email.subject,
            html=email.html,
            text=email.text,
            tags={"purpose": "login_otp"},
        )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientDeliveryError),
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait, max=10),
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post(payload)

    async def _post(self, payload: EmailPayload) -> DeliveryResult:
        try:
            response = await self._client.post(self.config.send_path, json=payload.model_dump())
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"Notification service timed out: {e}", channel=self.name)
        except httpx.TransportError as e:
            raise TransientDeliveryError(f"Failed to connect: {e}", channel=self.name)

        if response.status_code >= 500:
            raise TransientDeliveryError(
                "Notification service error",
                channel=self.name,
                status_code=response.status_code,
            )

        if response.status_code in (200, 201, 202):
            message_id = None
            if response.headers.get("content-type", "").startswith("application/json"):
                message_id = response.json().get("id")
            logger.info("OTP email handed off", channel=self.name, message_id=message_id)
            return DeliveryResult(
                success=True, channel=self.name, provider_message_id=message_id,
            )

        logger.warning(
            "OTP email rejected",
            channel=self.name,
            status_code=response.status_code,
        )
        return DeliveryResult(
            success=False,
            channel=self.name,
            error_message=f"HTTP {response.status_code}",
        )
