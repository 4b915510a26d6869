"""
auth/passwords.py -- bcrypt password hashing (direct usage, no passlib wrapper).

The hash string self-describes its parameters ($2b$<cost>$<salt><digest>), so
verification needs nothing but the string itself. A fresh salt is drawn from
bcrypt.gensalt() on every call.

Length policy (minimum 12 characters) is enforced by AuthManager before these
functions are called, not here.

bcrypt only reads the first 72 bytes of its input, and bcrypt 5.x raises on
longer input instead of truncating. Both functions truncate explicitly so a
long passphrase hashes and verifies the same way on every bcrypt release.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("registry.auth.passwords")

DEFAULT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash is a verification failure, not an exception.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        logger.error("Password verification failed: %s", exc)
        return False
