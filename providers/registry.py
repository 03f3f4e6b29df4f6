"""
ProviderRegistry — the strategies registered at startup, plus the routes
shared by every provider.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request, status

from auth.jwt import InvalidToken, verify_token
from config.branding import BrandingMap
from config.settings import OAuth2ProviderSettings, Settings
from providers.base import OAuth2Strategy

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Singleton registry of OAuth strategies, keyed by provider name."""

    _instance: Optional["ProviderRegistry"] = None

    def __new__(cls) -> "ProviderRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._strategies = {}
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def use(self, name: str, strategy: OAuth2Strategy) -> None:
        self._strategies[name] = strategy

    def get(self, name: str) -> Optional[OAuth2Strategy]:
        return self._strategies.get(name)

    def names(self) -> List[str]:
        return list(self._strategies.keys())


def register_providers(
    registry: ProviderRegistry,
    router: APIRouter,
    settings: Settings,
    oauth2: OAuth2ProviderSettings,
    brandings: BrandingMap,
    **options: Any,
) -> List[str]:
    """
    Register every provider whose configuration is complete and install
    the shared ``/providers`` and ``/auth`` routes.

    Returns the names of the providers that registered.
    """
    from providers.custom import register_custom

    candidates = [
        register_custom(
            registry,
            router,
            oauth2,
            settings.accounts_url,
            settings.product_id,
            settings.front_url,
            brandings,
            **options,
        ),
    ]
    registered = [name for name in candidates if name is not None]
    if registered:
        logger.info("Auth providers enabled: %s", ", ".join(registered))
    else:
        logger.warning("No auth providers configured")

    @router.get("/providers")
    async def list_providers() -> List[str]:
        """Names of the providers the front-end may offer."""
        return registry.names()

    @router.get("/auth")
    async def session_login_info(request: Request) -> Dict[str, Any]:
        """Login info stored by the last successful provider callback."""
        login_info = request.session.get("loginInfo") if "session" in request.scope else None
        if login_info:
            try:
                verify_token(login_info.get("token", ""))
                return login_info
            except InvalidToken:
                logger.info("Dropping expired login info from session")
                request.session.pop("loginInfo", None)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No login info in session",
        )

    return registered
