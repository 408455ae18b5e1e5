"""
Identifier hashing.

Raw identifiers (``"email:<address>"``) never reach the store; rate-limit
records are keyed by a deterministic one-way digest instead.
"""

import hashlib

KEY_PREFIX = "lim_"
DIGEST_LENGTH = 32


def hash_identifier(identifier: str) -> str:
    """Map an identifier to its storage key (same input, same key)."""
    digest = hashlib.sha256(identifier.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{digest[:DIGEST_LENGTH]}"


def email_identifier(email: str) -> str:
    """Canonical rate-limit identifier for an email address."""
    return f"email:{email.strip().lower()}"
