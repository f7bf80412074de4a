"""
OTP Storage
===========
Durable, best-effort persistence of issued challenges.
"""

from .database import Base, create_async_engine, create_session_factory, create_tables, close_engine
from .otp_log import DurableOTPLog, OTPLogEntry, OTPLogRecord, SQLAlchemyOTPLog

__all__ = [
    "Base",
    "create_async_engine",
    "create_session_factory",
    "create_tables",
    "close_engine",
    "DurableOTPLog",
    "OTPLogEntry",
    "OTPLogRecord",
    "SQLAlchemyOTPLog",
]
