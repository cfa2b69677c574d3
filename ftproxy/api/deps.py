"""
Request-scoped access to the services held on the application state
"""

from fastapi import Request

from ..services.journey.journey_service import JourneyService
from ..services.offers.offer_service import OfferService


def get_journey_service(request: Request) -> JourneyService:
    return request.app.state.journey_service


def get_offer_service(request: Request) -> OfferService:
    return request.app.state.offer_service
