"""
OTP Core Exceptions
===================
Exceptional conditions only. Verification outcomes are result values and
never appear here.
"""

from typing import Optional


class OTPCoreError(Exception):
    """Base class for errors raised by the OTP core."""
    pass


class StoreCorruptionError(OTPCoreError):
    """The challenge store holds a record that breaks its own invariants."""

    def __init__(self, message: str, handle: Optional[str] = None):
        super().__init__(message)
        self.handle = handle


class DeliveryError(OTPCoreError):
    """Raised by a delivery channel when a code could not be handed off."""

    def __init__(self, message: str, channel: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code


class AuditLogError(OTPCoreError):
    """Raised by a durable OTP log when a read or write fails."""

    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception
