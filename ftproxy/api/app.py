"""
Application factory that builds the FastAPI app with all wiring
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import ProxySettings
from ..core.http_client import HTTPClient
from ..core.version import get_version
from ..services.journey.journey_service import JourneyService
from ..services.offers.offer_service import OfferService
from .errors import request_validation_handler
from .routers import health, journey, offers


def create_app(settings: Optional[ProxySettings] = None,
               journey_service: Optional[JourneyService] = None,
               offer_service: Optional[OfferService] = None) -> FastAPI:
    """Build the proxy app; services default to ones wired from `settings`"""
    settings = settings or ProxySettings.from_env()
    http_client = HTTPClient(timeout=settings.http_timeout)

    app = FastAPI(
        title="FintechOS Journey Proxy",
        description="Journey navigation and offer lookup in front of FintechOS",
        version=get_version(),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.state.settings = settings
    app.state.journey_service = journey_service or JourneyService(settings, http_client)
    app.state.offer_service = offer_service or OfferService(settings, http_client)

    app.include_router(health.router)
    app.include_router(journey.router)
    app.include_router(offers.router)
    return app
