"""Identifier helpers."""

from __future__ import annotations

import secrets
import time
import uuid


def generate_id() -> str:
    """Generate a short client-side record id (base36 time + random suffix)."""
    millis = int(time.time() * 1000)
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    encoded = ""
    while millis:
        millis, rem = divmod(millis, 36)
        encoded = alphabet[rem] + encoded
    suffix = "".join(secrets.choice(alphabet) for _ in range(5))
    return encoded + suffix


def generate_device_id() -> str:
    """Generate an opaque per-installation device token."""
    return uuid.uuid4().hex
