"""
URL helpers shared by the provider routes.
"""

from __future__ import annotations

from typing import Mapping, Optional
from urllib.parse import urlsplit


def concat_link(base: str, path: str) -> str:
    """Join ``base`` and ``path`` with exactly one slash between them."""
    if not base:
        return path
    return base.rstrip("/") + "/" + path.lstrip("/")


def get_host(headers: Mapping[str, str]) -> Optional[str]:
    """
    Host the browser came from, taken from ``Origin`` (or ``Referer``).

    Returns ``None`` when neither header is present or parseable.
    """
    origin = headers.get("origin") or headers.get("referer")
    if not origin:
        return None
    try:
        host = urlsplit(origin).netloc
    except ValueError:
        return None
    return host or None
