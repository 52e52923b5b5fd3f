"""
Authentication utility functions.
"""

import bcrypt

from ..settings import settings

# bcrypt only looks at the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    A password bcrypt cannot hash can never match, so it is rejected here
    instead of raising.
    """
    if password_too_long(plain_password):
        return False
    result: bool = bcrypt.checkpw(
        password=plain_password.encode("utf-8"),
        hashed_password=hashed_password.encode("utf-8"),
    )
    return result


def get_password_hash(password: str, rounds: int | None = None) -> str:
    """Generate a password hash."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    hashed: bytes = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode()
