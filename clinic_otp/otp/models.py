"""
OTP Models
==========
Data models and enums for challenge issuance and verification.
"""

from datetime import datetime
from typing import Dict, Optional
from dataclasses import dataclass, field
from enum import Enum

from .codes import verify_code


class VerificationReason(str, Enum):
    """Outcome of a verification attempt."""
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    CODE_MISMATCH = "code_mismatch"


class VerificationPath(str, Enum):
    """Which lookup located the challenge."""
    HANDLE = "handle"
    IDENTITY = "identity"
    DURABLE = "durable"


@dataclass
class Challenge:
    """
    One issued OTP held in memory until consumed, exhausted or expired.

    Only a salted hash of the code is kept; the plain code leaves the
    generator once, for delivery.
    """
    handle: str
    code_hash: str
    salt: str
    identity: str
    created_at: datetime
    aux: Dict[str, str] = field(default_factory=dict)
    attempts: int = 0

    def matches(self, submitted: str) -> bool:
        return verify_code(self.handle, submitted, self.salt, self.code_hash)

    def __repr__(self) -> str:
        return (
            f"Challenge(handle={self.handle[:8]}..., identity={self.identity!r}, "
            f"created_at={self.created_at.isoformat()}, attempts={self.attempts})"
        )


@dataclass
class VerificationResult:
    """Result of verifying a submitted code."""
    ok: bool
    reason: VerificationReason
    message: str
    identity: Optional[str] = None
    aux: Optional[Dict[str, str]] = None
    remaining_attempts: Optional[int] = None
    handle: Optional[str] = None  # set on success only; not part of to_dict

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "ok": self.ok,
            "reason": self.reason.value,
            "message": self.message,
        }
        if self.identity is not None:
            data["identity"] = self.identity
        if self.aux is not None:
            data["aux"] = dict(self.aux)
        if self.remaining_attempts is not None:
            data["remaining_attempts"] = self.remaining_attempts
        return data


@dataclass
class IssueResult:
    """What the issuance caller gets back. Never carries the code."""
    handle: str
    ttl_ms: int
    expires_at: datetime
    delivered: bool
    audited: bool

    @property
    def message(self) -> str:
        if self.delivered:
            return "OTP sent"
        return "OTP generated (delivery not confirmed)"


@dataclass
class ChallengeStatus:
    """Non-destructive view of a challenge addressed by handle."""
    exists: bool
    is_expired: bool = False
    remaining_ms: int = 0
    attempts: int = 0
    max_attempts: int = 0


@dataclass
class LoginTicket:
    """Single-use assertion that an identity just passed an OTP check."""
    identity: str
    verified_at: datetime
