"""
auth/passwords.py -- One-way password hashing and verification.

Uses bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The work factor is fixed at 10. Every hash embeds its own random salt and
cost, so raising the factor later only affects newly created digests.
"""

from __future__ import annotations

import bcrypt

_ROUNDS = 10
_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes; longer input is cut there before
    hashing (recent bcrypt releases raise instead of truncating silently).
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Malformed digests raise
    ValueError inside bcrypt; those are reported as a mismatch.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False
