"""
Random token generators — pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets
import uuid

STATE_TOKEN_BYTES = 32
DOWNLOAD_TOKEN_BYTES = 32


def generate_id() -> str:
    """Generate a UUID4 string used as a document ``_id``."""
    return str(uuid.uuid4())


def generate_state_token() -> str:
    """Generate the opaque OAuth ``state`` value (64 hex characters)."""
    return secrets.token_hex(STATE_TOKEN_BYTES)


def generate_download_token() -> str:
    """Generate a single-use download token.

    Returns:
        64 lowercase hex characters (32 random bytes).
    """
    return secrets.token_hex(DOWNLOAD_TOKEN_BYTES)
