"""
OTP Configuration
=================
Tunables for challenge issuance, verification and ticket redemption.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OTPConfig:
    """Configuration for the OTP core."""
    code_length: int = 6
    handle_bytes: int = 16
    ttl_seconds: int = 300  # 5 minutes
    max_attempts: int = 3
    sweep_interval_seconds: float = 120.0  # 2 minutes
    login_ttl_seconds: float = 300.0
    fallback_timeout_seconds: float = 2.0
    side_call_timeout_seconds: float = 10.0
    durable_fallback: bool = True
    environment: str = "development"
    service_name: str = "clinic-otp"

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    @property
    def login_ttl_ms(self) -> int:
        return int(self.login_ttl_seconds * 1000)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "OTPConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        login_ttl_ms = os.getenv("OTP_LOGIN_TTL_MS")
        return cls(
            code_length=int(os.getenv("OTP_CODE_LENGTH", defaults.code_length)),
            ttl_seconds=int(os.getenv("OTP_TTL_SECONDS", defaults.ttl_seconds)),
            max_attempts=int(os.getenv("OTP_MAX_ATTEMPTS", defaults.max_attempts)),
            sweep_interval_seconds=float(
                os.getenv("OTP_SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds)
            ),
            login_ttl_seconds=(
                int(login_ttl_ms) / 1000 if login_ttl_ms else defaults.login_ttl_seconds
            ),
            fallback_timeout_seconds=float(
                os.getenv("OTP_FALLBACK_TIMEOUT_SECONDS", defaults.fallback_timeout_seconds)
            ),
            durable_fallback=_env_bool("OTP_DURABLE_FALLBACK", defaults.durable_fallback),
            environment=os.getenv("ENVIRONMENT", defaults.environment),
            service_name=os.getenv("SERVICE_NAME", defaults.service_name),
        )


@dataclass
class DeliveryConfig:
    """Connection settings for the notification service used by HttpDelivery."""
    base_url: str = os.environ.get(
        "OTP_DELIVERY_URL", "http://localhost:8000"
    )
    send_path: str = "/api/notifications/email"
    internal_secret: Optional[str] = os.environ.get("INTERNAL_API_SECRET") or None
    sender: str = os.environ.get("SMTP_FROM", "no-reply@clinic.local")
    timeout: float = 10.0
    max_retries: int = 3
