"""
Cryptographic helpers — hashing for pixel payloads and privacy.

Uses SHA-256 throughout. Conversion APIs (Meta CAPI, TikTok Events API)
require the normalised email to be hashed before it leaves the service.
"""

from __future__ import annotations

import hashlib


def normalize_email(email: str) -> str:
    """Lower-case and strip *email* the way ad platforms expect before hashing."""
    return email.strip().lower()


def hash_email(email: str) -> str:
    """Return the hex SHA-256 digest of the normalised *email*.

    Args:
        email: Raw email address as submitted.

    Returns:
        64-character lowercase hex string.
    """
    return hash_token(normalize_email(email))


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
