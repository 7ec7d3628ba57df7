"""
One-way password hashing with bcrypt.

Each hash embeds a fresh random salt, so hashing the same password twice gives
different strings. Compare passwords only through ``verify_password``.
"""

import bcrypt

from implementation.misc.errors import HashingFailure


def hash_password(password: str) -> str:
    """
    Hash a plain-text password with bcrypt at the library's default cost.

    Raises:
        HashingFailure: if bcrypt rejects the input (e.g. longer than 72 bytes).
    """
    try:
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    except (ValueError, TypeError) as e:
        raise HashingFailure(f"Failed to hash password: {e}")
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Check a plain-text password against a stored bcrypt hash.

    Returns False on any mismatch, including a malformed stored hash.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Invalid salt / not a bcrypt hash, or an over-long candidate password
        return False
    except TypeError as e:
        raise HashingFailure(f"Failed to verify password: {e}")
