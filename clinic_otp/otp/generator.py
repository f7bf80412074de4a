"""
OTP Generator
=============
Creates challenges and places them in the challenge store.
"""

from typing import Dict, Optional, Tuple
import structlog

from ..clock import Clock, SystemClock
from ..config import OTPConfig
from .codes import generate_code, generate_handle, generate_salt, hash_code
from .models import Challenge
from .store import ChallengeStore

logger = structlog.get_logger(__name__)


class OTPGenerator:
    """Issues challenges bound to an identity."""

    def __init__(
        self,
        store: ChallengeStore,
        config: Optional[OTPConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.config = config or OTPConfig()
        self.clock = clock or SystemClock()

    def generate(self, handle: str) -> Tuple[str, str, str]:
        """
        Generate a code for handle with its salt and digest.

        Returns:
            Tuple of (code, salt, hash)
        """
        code = generate_code(self.config.code_length)
        salt = generate_salt()
        return code, salt, hash_code(handle, code, salt)

    def issue(self, identity: str, aux: Optional[Dict[str, str]] = None) -> Tuple[str, Challenge]:
        """
        Create a new challenge and store it.

        Any earlier challenge for the same identity is evicted so the
        identity path never has to choose between two live codes.

        Args:
            identity: Email the code is bound to
            aux: Display/delivery attributes (e.g. mobile number)

        Returns:
            Tuple of (plain_code, challenge)
        """
        if not identity:
            raise ValueError("identity is required")

        handle = generate_handle(self.config.handle_bytes)
        code, salt, code_hash = self.generate(handle)
        challenge = Challenge(
            handle=handle,
            code_hash=code_hash,
            salt=salt,
            identity=identity,
            created_at=self.clock.now(),
            aux=dict(aux or {}),
        )
        self.store.put(challenge)

        logger.info(
            "OTP challenge created",
            handle=challenge.handle[:8],
            identity=identity,
            expires_in=self.config.ttl_seconds,
        )
        return code, challenge
