"""Request signing helpers."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
import uuid


def generate_timestamp() -> str:
    """Milliseconds since the epoch, as sent in the ``timestamp`` header."""
    return str(int(time.time() * 1000))


def generate_signature(secret: str, timestamp: str, body: str = "") -> str:
    """HMAC-SHA256 over timestamp + body, base64 encoded."""
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}{body}".encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_device_id() -> str:
    return str(uuid.uuid4())
