"""
Delivery Channels
=================
Base class for handing an issued code to its recipient.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of a delivery attempt."""
    success: bool
    channel: str
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None


class DeliveryChannel(ABC):
    """
    Abstract delivery channel (email, SMS, ...).

    Delivery is best effort: a challenge counts as issued once stored,
    whatever the channel reports.
    """

    name: str = "base"

    async def initialize(self) -> None:
        """Acquire resources (e.g. HTTP clients)."""
        logger.info("Delivery channel initialized", channel=self.name)

    async def close(self) -> None:
        """Release resources."""
        logger.info("Delivery channel closed", channel=self.name)

    @abstractmethod
    async def send_code(
        self,
        identity: str,
        code: str,
        aux: Dict[str, str],
        ttl_seconds: int,
    ) -> DeliveryResult:
        """
        Deliver a code.

        Args:
            identity: Recipient email
            code: The plain code
            aux: Display attributes such as ``mobile_number`` or ``name``
            ttl_seconds: Validity window to mention to the recipient

        Returns:
            DeliveryResult; implementations may also raise DeliveryError
        """
        pass


class NullDelivery(DeliveryChannel):
    """Channel used when no transport is configured."""

    name = "none"

    async def send_code(self, identity, code, aux, ttl_seconds) -> DeliveryResult:
        return DeliveryResult(
            success=False, channel=self.name, error_message="Delivery not configured",
        )
