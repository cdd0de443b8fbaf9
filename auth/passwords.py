"""
auth/passwords.py -- bcrypt password hashing and verification.

bcrypt is used directly (no passlib wrapper). The work factor comes from
Settings.bcrypt_rounds, which the config layer refuses to set below 12.

dummy_hash() backs timing equalization in VaultStore.authenticate(): an
unknown email still costs one bcrypt comparison, so response time does not
reveal whether an account exists.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from core.config import get_settings

BCRYPT_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises ValueError for input over 72 UTF-8 bytes: bcrypt ignores
    everything past that point, so two different passwords would share
    one hash. RegisterRequest rejects such input before it gets here.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password exceeds {BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is a failed match, not an error. Input over 72
    bytes never matches (no stored hash can come from it) but still costs one
    bcrypt comparison.
    """
    encoded = plain.encode("utf-8")
    try:
        matched = bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except ValueError:
        return False
    return matched and len(encoded) <= BCRYPT_MAX_BYTES


@lru_cache
def dummy_hash() -> str:
    """Hash compared against when the email is unknown. Computed once; VaultStore() warms it."""
    return hash_password("orgvault_timing_dummy")
