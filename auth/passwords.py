"""
auth/passwords.py -- Salted one-way password hashing.

bcrypt is used directly (no passlib wrapper). Every hash embeds its own random
salt and cost factor, so two users with the same password get different
hashes and precomputed tables are useless. bcrypt.checkpw() compares in
constant time; raw string equality is never used on secrets.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import bcrypt

# bcrypt silently ignores input beyond 72 bytes. Request models cap passwords
# at 128 characters; the explicit slice keeps bcrypt 4.x from raising on
# multi-byte input that crosses the limit.
_BCRYPT_MAX_BYTES = 72

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    pw_bytes = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch rather than an error.
    """
    pw_bytes = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False
