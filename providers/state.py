"""
Auth state carried through the provider redirect.

The state is URL-encoded JSON.  It is not signed: it only carries hints
(invite, branding) and losing or forging it must never block a login,
so decoding falls back to an empty state instead of raising.
"""

from __future__ import annotations

import json
import logging
from typing import Optional
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class AuthState(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    invite_id: Optional[str] = Field(default=None, alias="inviteId")
    branding: Optional[str] = None


def encode_auth_state(state: AuthState) -> str:
    # same bytes as encodeURIComponent(JSON.stringify(state))
    return quote(
        json.dumps(state.model_dump(by_alias=True, exclude_none=True), separators=(",", ":")),
        safe="!~*'()",
    )


def safe_parse_auth_state(raw: Optional[str]) -> AuthState:
    """Decode a state string; anything unreadable yields an empty ``AuthState``."""
    if not raw:
        return AuthState()
    try:
        return AuthState.model_validate(json.loads(unquote(raw)))
    except Exception:
        logger.warning("Unreadable auth state, continuing without it: %r", raw[:200])
        return AuthState()
