"""
OTP Code Utilities
==================
Random code and handle generation plus salted hashing and constant-time
verification.
"""

import secrets
import hashlib
import hmac


def generate_code(length: int = 6) -> str:
    """
    Generate a uniformly random numeric code.

    Draws from the full range 0 .. 10**length - 1 so codes with leading
    zeros are as likely as any other.

    Args:
        length: Number of digits

    Returns:
        Zero-padded numeric string
    """
    if length < 1:
        raise ValueError("length must be positive")
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_handle(nbytes: int = 16) -> str:
    """Generate an opaque challenge handle (hex, 2 * nbytes characters)."""
    if nbytes < 16:
        raise ValueError("handles need at least 16 random bytes")
    return secrets.token_hex(nbytes)


def generate_salt() -> str:
    """Generate a random per-challenge salt."""
    return secrets.token_hex(16)


def hash_code(handle: str, code: str, salt: str) -> str:
    """
    Digest a code for storage.

    HMAC-SHA256 keyed by the salt over ``handle:code``, so a stored digest
    only ever verifies against the challenge it was issued for.
    """
    message = f"{handle}:{code}".encode()
    return hmac.new(salt.encode(), message, hashlib.sha256).hexdigest()


def verify_code(handle: str, submitted: str, salt: str, stored_hash: str) -> bool:
    """
    Compare a submitted code with the stored digest in constant time.

    The submitted value is used exactly as given; trimming or other input
    clean-up belongs to the caller.
    """
    if not isinstance(submitted, str):
        return False
    return hmac.compare_digest(hash_code(handle, submitted, salt), stored_hash)
