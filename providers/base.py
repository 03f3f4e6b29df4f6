"""
OAuth2Strategy — the authorization-code flow shared by all providers.

A strategy knows the provider's endpoints and client credentials.  It
builds the authorization redirect, exchanges the returned code for an
access token, and asks ``user_profile`` who the token belongs to.
Subclasses override ``user_profile``; everything that can go wrong
during ``authenticate`` is raised as an ``OAuth2Error`` so route
handlers have a single failure path.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from fastapi import Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

Profile = Mapping[str, Any]
VerifyFunction = Callable[[Profile], Profile]


class OAuth2Error(Exception):
    """Base class for failures of the authorization-code flow."""


class AuthorizationDenied(OAuth2Error):
    """The provider redirected back with an error, or without a code."""


class TokenExchangeError(OAuth2Error):
    """The token endpoint refused the code or returned no access token."""


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None


def _pass_through(profile: Profile) -> Profile:
    return profile


class OAuth2Strategy:
    """Generic OAuth2 authorization-code strategy."""

    name = "oauth2"

    def __init__(
        self,
        *,
        authorization_url: str,
        token_url: str,
        client_id: str,
        client_secret: str,
        callback_url: str,
        verify: Optional[VerifyFunction] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.authorization_url = authorization_url
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.verify = verify or _pass_through
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    # ── Authorization redirect ──────────────────────────────────────────

    def authorization_url_for(self, scope: str = "", state: str = "") -> str:
        """Provider URL the browser is sent to; keeps any query already on it."""
        params: Dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
        }
        if scope:
            params["scope"] = scope
        if state:
            params["state"] = state

        parts = urlsplit(self.authorization_url)
        query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
        return urlunsplit(parts._replace(query=urlencode(query)))

    def authorize(self, scope: str = "", state: str = "") -> RedirectResponse:
        return RedirectResponse(self.authorization_url_for(scope, state), status_code=302)

    # ── Code exchange ───────────────────────────────────────────────────

    async def exchange_code(self, code: str) -> TokenResponse:
        """Trade an authorization code for an access token."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.token_url,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self.callback_url,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                    headers={"Accept": "application/json"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Failed to obtain access token: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            # some providers still answer application/x-www-form-urlencoded
            data = dict(parse_qsl(resp.text))

        if not isinstance(data, dict):
            raise TokenExchangeError("Token endpoint returned an unexpected payload")
        if "error" in data:
            raise TokenExchangeError(
                f"OAuth error: {data.get('error_description', data['error'])}"
            )
        if not data.get("access_token"):
            raise TokenExchangeError("Token endpoint returned no access_token")
        return TokenResponse.model_validate(data)

    async def user_profile(self, access_token: str) -> Profile:
        """Fetch the profile of the token owner. Subclasses must implement."""
        raise NotImplementedError

    # ── Callback ────────────────────────────────────────────────────────

    async def authenticate(self, request: Request) -> Profile:
        """
        Complete the flow for a provider callback request.

        Returns whatever ``verify`` makes of the raw profile.  Raises an
        ``OAuth2Error`` subclass on any failure.
        """
        error = request.query_params.get("error")
        if error:
            description = request.query_params.get("error_description", error)
            raise AuthorizationDenied(f"Provider returned error: {description}")

        code = request.query_params.get("code")
        if not code:
            raise AuthorizationDenied("Callback is missing the authorization code")

        token = await self.exchange_code(code)
        profile = await self.user_profile(token.access_token)
        logger.debug("%s: profile fetched for callback", self.name)
        return self.verify(profile)
