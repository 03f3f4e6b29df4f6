"""
Shared fixtures: a fake identity provider and a gateway app wired to it.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi import APIRouter, FastAPI
from unittest.mock import AsyncMock, MagicMock

from api.middleware import register_middleware
from auth.dependencies import db_session
from config.branding import Branding
from config.settings import OAuth2ProviderSettings, Settings
from providers.registry import ProviderRegistry, register_providers

IDP = "https://idp.example.com"
FRONT_URL = "https://front.example.com"
ACCOUNTS_URL = "https://accounts.example.com"


class FakeProvider:
    """Token + user-info endpoints served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.profile: Any = {"email": "a@b.com", "name": "A"}
        self.token_status = 200
        self.token_body: Dict[str, Any] = {"access_token": "tok-123", "token_type": "Bearer"}
        self.profile_status = 200
        self.calls: List[str] = []
        self.token_requests: List[Dict[str, List[str]]] = []
        self.profile_auth: List[Optional[str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if path == "/oauth/token":
            self.token_requests.append(parse_qs(request.content.decode()))
            return httpx.Response(self.token_status, json=self.token_body)
        if path == "/userinfo":
            self.profile_auth.append(request.headers.get("Authorization"))
            return httpx.Response(self.profile_status, content=json.dumps(self.profile))
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_oauth2_settings(**overrides: Any) -> OAuth2ProviderSettings:
    values: Dict[str, Any] = {
        "authorization_url": f"{IDP}/oauth/authorize",
        "token_url": f"{IDP}/oauth/token",
        "client_id": "client-1",
        "client_secret": "secret-1",
        "scope": "openid email",
        "user_info_url": f"{IDP}/userinfo",
        "email_key": "email",
        "name_key": "name",
    }
    values.update(overrides)
    return OAuth2ProviderSettings(**values)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        accounts_url=ACCOUNTS_URL,
        front_url=FRONT_URL,
        product_id="prod",
        branding_path="",
        session_secret="test-session-secret",
    )


@pytest.fixture()
def brandings() -> Dict[str, Branding]:
    return {
        "acme.example.com": Branding(key="acme", front="https://acme.example.com"),
        "bare.example.com": Branding(key="bare"),
    }


@pytest.fixture()
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def fake_db() -> MagicMock:
    """Request DB session handed to the callback route."""
    db = MagicMock()
    db.rollback = AsyncMock()
    db.commit = AsyncMock()
    return db


@pytest.fixture()
def build_app(settings, brandings, fake_provider, fake_db):
    """Return a factory building a gateway app against the fake provider."""

    def _build(oauth2: Optional[OAuth2ProviderSettings] = None) -> FastAPI:
        ProviderRegistry.reset()
        app = FastAPI()
        register_middleware(app, settings)
        router = APIRouter()
        app.state.registered = register_providers(
            ProviderRegistry(),
            router,
            settings,
            oauth2 or make_oauth2_settings(),
            brandings,
            transport=fake_provider.transport,
        )
        app.include_router(router)

        async def _fake_db():
            yield fake_db

        app.dependency_overrides[db_session] = _fake_db
        return app

    yield _build
    ProviderRegistry.reset()
