"""
Clinic OTP Core
===============
One-time-passcode issuance and verification for the practitioner and
credential-based login flows.
"""

__version__ = "1.0.0"

# Configuration
from clinic_otp.config import OTPConfig, DeliveryConfig
from clinic_otp.clock import Clock, SystemClock

# Errors
from clinic_otp.errors import (
    OTPCoreError,
    StoreCorruptionError,
    DeliveryError,
    AuditLogError,
)

# OTP
from clinic_otp.otp import (
    OTPService,
    Challenge,
    ChallengeStatus,
    IssueResult,
    VerificationReason,
    VerificationResult,
    ChallengeStore,
    AttemptLimiter,
    OTPGenerator,
    VerificationEngine,
    LoginTicketBook,
    ChallengeSweeper,
)

# Delivery
from clinic_otp.delivery import (
    DeliveryChannel,
    DeliveryResult,
    NullDelivery,
    ConsoleDelivery,
    HttpDelivery,
)

# Durable log
from clinic_otp.storage import (
    DurableOTPLog,
    OTPLogEntry,
    SQLAlchemyOTPLog,
    create_async_engine,
    create_session_factory,
    create_tables,
)

# Logging
from clinic_otp.log_config import configure_logging, configure_logging_from

__all__ = [
    # Configuration
    "OTPConfig",
    "DeliveryConfig",
    "Clock",
    "SystemClock",
    # Errors
    "OTPCoreError",
    "StoreCorruptionError",
    "DeliveryError",
    "AuditLogError",
    # OTP
    "OTPService",
    "Challenge",
    "ChallengeStatus",
    "IssueResult",
    "VerificationReason",
    "VerificationResult",
    "ChallengeStore",
    "AttemptLimiter",
    "OTPGenerator",
    "VerificationEngine",
    "LoginTicketBook",
    "ChallengeSweeper",
    # Delivery
    "DeliveryChannel",
    "DeliveryResult",
    "NullDelivery",
    "ConsoleDelivery",
    "HttpDelivery",
    # Durable log
    "DurableOTPLog",
    "OTPLogEntry",
    "SQLAlchemyOTPLog",
    "create_async_engine",
    "create_session_factory",
    "create_tables",
    # Logging
    "configure_logging",
    "configure_logging_from",
]
