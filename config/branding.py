"""
Brandings — per-host front-end customisation.

A branding file is a JSON object mapping a host name to its branding::

    {
        "app.example.com": {"key": "example", "front": "https://app.example.com"}
    }

The ``key`` travels through the OAuth state so the callback can send the
user back to the front-end they started from.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter

logger = logging.getLogger(__name__)


class Branding(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    key: Optional[str] = None
    front: Optional[str] = None
    title: Optional[str] = None
    protocol: Optional[str] = None
    language: Optional[str] = None


BrandingMap = Dict[str, Branding]

_branding_map_adapter = TypeAdapter(BrandingMap)


def load_brandings(path: str | None) -> BrandingMap:
    """Read the branding file at ``path``; an unset path means no brandings."""
    if not path:
        return {}
    raw = Path(path).read_bytes()
    brandings = _branding_map_adapter.validate_json(raw)
    logger.info("Loaded %d brandings from %s", len(brandings), path)
    return brandings


def get_branding(brandings: BrandingMap, key: Optional[str]) -> Optional[Branding]:
    """Return the first branding whose ``key`` matches, or ``None``."""
    if key is None:
        return None
    return next((b for b in brandings.values() if b.key == key), None)
