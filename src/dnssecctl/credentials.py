"""Secret generation and basic-auth hashing."""
from __future__ import annotations

import base64
import secrets

import bcrypt

MIN_ENTROPY_BYTES = 16


def generate_secret(entropy_bytes: int = MIN_ENTROPY_BYTES) -> str:
    """Return base64-encoded random bytes (``openssl rand -base64 N`` equivalent)."""
    if entropy_bytes < MIN_ENTROPY_BYTES:
        raise ValueError(f"Secrets need at least {MIN_ENTROPY_BYTES} bytes of entropy.")
    return base64.b64encode(secrets.token_bytes(entropy_bytes)).decode("ascii")


def hash_basic_auth(password: str, *, rounds: int = 12) -> str:
    """Return a bcrypt hash of *password* suitable for Traefik basic auth."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def escape_compose_value(value: str) -> str:
    """Double every ``$`` so compose does not interpolate the value."""
    return value.replace("$", "$$")


__all__ = [
    "MIN_ENTROPY_BYTES",
    "escape_compose_value",
    "generate_secret",
    "hash_basic_auth",
]
