"""
Password hashing for the local identity provider (Argon2id).
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# 64 MiB, 3 passes, 4 lanes
_hasher = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Argon2id hash of ``password`` (parameters and salt embedded)."""
    return _hasher.hash(password)


def verify_password(password: str, hash_str: str) -> bool:
    """True if ``password`` matches ``hash_str``; malformed hashes never match."""
    try:
        return _hasher.verify(hash_str, password)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(hash_str: str) -> bool:
    return _hasher.check_needs_rehash(hash_str)
