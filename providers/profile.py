"""
Profile fetcher — who does this access token belong to?
"""

from __future__ import annotations

from typing import Optional

import httpx

from providers.base import OAuth2Error, Profile


class ProfileFetchError(OAuth2Error):
    """The profile endpoint could not be read. ``cause`` holds the original error."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


async def fetch_profile(
    profile_url: str,
    access_token: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Profile:
    """GET ``profile_url`` with the bearer token and return the decoded JSON body."""
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            resp = await client.get(
                profile_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            return resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise ProfileFetchError(f"Failed to fetch user profile: {exc}", cause=exc) from exc
