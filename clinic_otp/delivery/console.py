"""
Console Delivery
================
Development channel that writes the code to the log.
"""

from typing import Dict
import structlog

from .base import DeliveryChannel, DeliveryResult

logger = structlog.get_logger(__name__)


class ConsoleDelivery(DeliveryChannel):
    """
    Logs codes so they can be read off the console while developing.

    Refuses to print anything in production.
    """

    name = "console"

    def __init__(self, environment: str = "development"):
        self.environment = environment

    async def send_code(
        self,
        identity: str,
        code: str,
        aux: Dict[str, str],
        ttl_seconds: int,
    ) -> DeliveryResult:
        if self.environment.lower() == "production":
            logger.error("Console delivery disabled in production", identity=identity)
            return DeliveryResult(
                success=False,
                channel=self.name,
                error_message="Console delivery is disabled in production",
            )

        logger.info(
            "DEVELOPMENT OTP",
            identity=identity,
            code=code,
            expires_in=ttl_seconds,
        )
        return DeliveryResult(success=True, channel=self.name)
