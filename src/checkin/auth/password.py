"""Password hashing utilities.

Learn: Uses bcrypt for password hashing. bcrypt salts automatically;
rounds=12 takes ~100ms per hash on modern hardware. Passwords are
truncated to 72 bytes (bcrypt's limit).
"""

from typing import Optional

import bcrypt


def hash_password(password: str) -> str:
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Compare a password with its hash.

    Users created from static demo tokens have no password at all and
    can never log in with one.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:72], password_hash.encode("utf-8")
        )
    except (ValueError, TypeError):
        return False
