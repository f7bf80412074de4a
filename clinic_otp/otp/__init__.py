"""
OTP Issuance and Verification
=============================
Short-lived login codes with attempt limiting and single-use login tickets.
"""

from .models import (
    Challenge,
    ChallengeStatus,
    IssueResult,
    LoginTicket,
    VerificationPath,
    VerificationReason,
    VerificationResult,
)
from .codes import generate_code, generate_handle, generate_salt, hash_code, verify_code
from .store import ChallengeStore
from .limiter import AttemptLimiter
from .generator import OTPGenerator
from .engine import VerificationEngine
from .tickets import LoginTicketBook
from .sweeper import ChallengeSweeper
from .service import OTPService

__all__ = [
    # Models
    "Challenge",
    "ChallengeStatus",
    "IssueResult",
    "LoginTicket",
    "VerificationPath",
    "VerificationReason",
    "VerificationResult",
    # Codes
    "generate_code",
    "generate_handle",
    "generate_salt",
    "hash_code",
    "verify_code",
    # Components
    "ChallengeStore",
    "AttemptLimiter",
    "OTPGenerator",
    "VerificationEngine",
    "LoginTicketBook",
    "ChallengeSweeper",
    # Facade
    "OTPService",
]
