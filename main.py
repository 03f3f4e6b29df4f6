"""
Login gateway with external OAuth2 providers — application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from config.branding import BrandingMap, load_brandings
from config.settings import OAuth2ProviderSettings, Settings, config
from providers.registry import ProviderRegistry, register_providers

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = config,
    oauth2: Optional[OAuth2ProviderSettings] = None,
    brandings: Optional[BrandingMap] = None,
) -> FastAPI:
    app = FastAPI(
        title="Login Gateway",
        version="1.0.0",
        description="Sign-in through external OAuth2 identity providers.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app, settings)

    if oauth2 is None:
        oauth2 = OAuth2ProviderSettings()
    if brandings is None:
        brandings = load_brandings(settings.branding_path)

    # Routes
    router = APIRouter(tags=["auth-providers"])
    register_providers(ProviderRegistry(), router, settings, oauth2, brandings)
    app.include_router(router)

    logger.info("Application ready to accept requests.")
    return app


if __name__ == "__main__":
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
