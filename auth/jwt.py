"""
JWT-style login token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256.
Secret key is loaded from ``config.jwt_secret`` (env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Any, Dict, Optional

from config.settings import config

_TOKEN_SECRET = config.jwt_secret
_TOKEN_EXPIRY_SECONDS = config.jwt_expiry_seconds


class InvalidToken(ValueError):
    """Token is malformed, tampered with, or expired."""


def create_token(
    user_id: str,
    email: str,
    product_id: str = "",
    workspace: Optional[str] = None,
) -> str:
    """Create a signed token for an account, optionally scoped to a workspace."""
    payload: Dict[str, Any] = {
        "user_id": user_id,
        "email": email,
        "product_id": product_id,
        "exp": int(time.time()) + _TOKEN_EXPIRY_SECONDS,
    }
    if workspace is not None:
        payload["workspace"] = workspace
    raw = json.dumps(payload).encode()
    sig = hmac.new(_TOKEN_SECRET.encode(), raw, hashlib.sha256).hexdigest()
    return b64encode(raw).decode() + "." + sig


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify a token and return its payload.

    Raises ``InvalidToken`` on invalid or expired tokens.
    """
    try:
        parts = token.split(".", 1)
        if len(parts) != 2:
            raise ValueError("bad format")
        raw = b64decode(parts[0])
        expected_sig = hmac.new(
            _TOKEN_SECRET.encode(), raw, hashlib.sha256
        ).hexdigest()
        if not hmac.compare_digest(parts[1], expected_sig):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        return payload
    except (ValueError, TypeError) as exc:
        raise InvalidToken(f"Invalid or expired token: {exc}") from exc
