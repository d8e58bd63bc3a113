"""
Utility functions for the site CMS API.
"""

import logging
from datetime import datetime, timezone

import bcrypt

logger = logging.getLogger(__name__)

# Hash checked against when the username is unknown, so that both login
# failure paths spend the same bcrypt work.
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt()).decode("utf-8")


def utc_timestamp() -> str:
    """Current server time as ISO-8601 UTC with microseconds, e.g. 2025-01-15T10:00:00.123456Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def hash_password(password: str) -> str:
    """
    Hash a password with a fresh bcrypt salt.

    Args:
        password: Plaintext password

    Returns:
        bcrypt hash as a UTF-8 string (salt embedded)
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored bcrypt hash.

    Args:
        password: Plaintext password from the login request
        hashed: Stored hash

    Returns:
        True if the password matches, False otherwise (including when the
        stored value is not a bcrypt hash)
    """
    try:
        is_valid = bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password is not a valid bcrypt hash")
        return False

    logger.debug(f"Password verification: {'valid' if is_valid else 'invalid'}")
    return is_valid


def burn_password_check(password: str) -> None:
    """Run a verification against a dummy hash and discard the result."""
    verify_password(password, _DUMMY_HASH)
