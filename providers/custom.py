"""
Custom OAuth2 provider — any authorization-code provider configured
entirely from ``OAUTH2_*`` environment variables.

Routes:
  GET /auth/custom            start the flow (optional ``inviteId``)
  GET /auth/custom/callback   provider redirect target
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth.accounts import join_with_provider, login_with_provider
from auth.dependencies import db_session
from config.branding import BrandingMap, get_branding
from config.settings import OAuth2ProviderSettings
from providers.base import OAuth2Error, OAuth2Strategy, Profile, VerifyFunction
from providers.profile import fetch_profile
from providers.registry import ProviderRegistry
from providers.state import AuthState, encode_auth_state, safe_parse_auth_state
from utils.urls import concat_link, get_host

logger = logging.getLogger(__name__)

PROVIDER_NAME = "custom"
_LOGIN_PATH = "/auth/custom"
_CALLBACK_PATH = "/auth/custom/callback"


class Identity(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class IdentityExtractor:
    """Reads e-mail and display name out of a raw profile by configured key."""

    def __init__(self, email_key: str = "email", name_key: str = "name") -> None:
        self.email_key = email_key
        self.name_key = name_key

    @staticmethod
    def _lookup(profile: Profile, key: str) -> Optional[str]:
        value = profile.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def extract_identity(self, raw_profile: Any) -> Identity:
        if not isinstance(raw_profile, Mapping):
            return Identity()
        return Identity(
            email=self._lookup(raw_profile, self.email_key),
            name=self._lookup(raw_profile, self.name_key),
        )


class CustomStrategy(OAuth2Strategy):
    """OAuth2 strategy whose profile comes from a single user-info URL."""

    name = PROVIDER_NAME

    def __init__(
        self,
        profile_url: str,
        *,
        verify: Optional[VerifyFunction] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **options: Any,
    ) -> None:
        super().__init__(verify=verify, transport=transport, **options)
        self.profile_url = profile_url

    async def user_profile(self, access_token: str) -> Profile:
        return await fetch_profile(self.profile_url, access_token, transport=self._transport)


def register_custom(
    passport: ProviderRegistry,
    router: APIRouter,
    provider: OAuth2ProviderSettings,
    accounts_url: str,
    product_id: str,
    front_url: str,
    brandings: BrandingMap,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Install the custom strategy and its two routes.

    Returns ``"custom"``, or ``None`` (installing nothing) when the
    provider settings are incomplete.
    """
    if not provider.is_complete():
        return None

    passport.use(
        PROVIDER_NAME,
        CustomStrategy(
            provider.user_info_url,
            authorization_url=provider.authorization_url,
            token_url=provider.token_url,
            client_id=provider.client_id,
            client_secret=provider.client_secret,
            callback_url=concat_link(accounts_url, _CALLBACK_PATH),
            transport=transport,
        ),
    )
    extractor = IdentityExtractor(provider.email_key, provider.name_key)

    def _front_for(state: AuthState) -> str:
        branding = get_branding(brandings, state.branding)
        if branding is not None and branding.front:
            return branding.front
        return front_url

    @router.get(_LOGIN_PATH)
    async def custom_login(request: Request) -> RedirectResponse:
        logger.info("Try auth via %s", PROVIDER_NAME)
        host = get_host(request.headers)
        branding = brandings.get(host) if host is not None else None
        state = AuthState(
            invite_id=request.query_params.get("inviteId"),
            branding=branding.key if branding is not None else None,
        )
        strategy = passport.get(PROVIDER_NAME)
        return strategy.authorize(scope=provider.scope, state=encode_auth_state(state))

    @router.get(_CALLBACK_PATH)
    async def custom_callback(
        request: Request,
        db: AsyncSession = Depends(db_session),
    ) -> Response:
        state = safe_parse_auth_state(request.query_params.get("state"))
        logger.debug("Auth state: %s", state)
        failure_redirect = concat_link(_front_for(state), "/login")

        try:
            user = await passport.get(PROVIDER_NAME).authenticate(request)
        except OAuth2Error as exc:
            logger.warning(
                "Provider auth failed (%s): %s; redirecting to %s",
                PROVIDER_NAME, exc, failure_redirect,
            )
            return RedirectResponse(failure_redirect, status_code=302)

        logger.info("Provider auth success: type=%s", PROVIDER_NAME)
        identity = extractor.extract_identity(user)
        logger.info("Provider auth handler: email=%s type=%s", identity.email, PROVIDER_NAME)
        if identity.email is None:
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        try:
            state = safe_parse_auth_state(request.query_params.get("state"))
            if state.invite_id:
                login_info = await join_with_provider(
                    db, product_id, None, identity.email, identity.name, "", state.invite_id
                )
            else:
                login_info = await login_with_provider(
                    db, product_id, None, identity.email, identity.name, ""
                )
            if "session" in request.scope:
                request.session["loginInfo"] = login_info.to_session()

            logger.info("Success auth, redirect: email=%s type=%s", identity.email, PROVIDER_NAME)
            return RedirectResponse(concat_link(_front_for(state), "/login/auth"), status_code=302)
        except Exception:
            logger.exception("Failed to auth: type=%s user=%s", PROVIDER_NAME, user)
            # nothing from a failed link may reach the commit in get_db_session
            await db.rollback()
            return Response(status_code=status.HTTP_204_NO_CONTENT)

    logger.info("Provider registered: %s", PROVIDER_NAME)
    return PROVIDER_NAME
