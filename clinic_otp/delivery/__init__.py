"""
OTP Delivery
============
Channels that hand issued codes to their recipients.
"""

from .base import DeliveryChannel, DeliveryResult, NullDelivery
from .console import ConsoleDelivery
from .http import EmailPayload, HttpDelivery, TransientDeliveryError
from .templates import RenderedEmail, render_login_email

__all__ = [
    "DeliveryChannel",
    "DeliveryResult",
    "NullDelivery",
    "ConsoleDelivery",
    "HttpDelivery",
    "EmailPayload",
    "TransientDeliveryError",
    "RenderedEmail",
    "render_login_email",
]
