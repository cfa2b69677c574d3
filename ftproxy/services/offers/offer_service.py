"""
Offer Service - available offers flattened into display cards
"""

import asyncio
from typing import Any, Dict, Optional
from loguru import logger

from ...core.config import ProxySettings
from ...core.http_client import HTTPClient
from ...core.offers.offer_api import ProductOfferAPI
from ...core.offers.offer_models import Offer, OffersRequest
from ..token.token_service import TokenService


class OfferService:
    """Independent of any journey instance; uses the offer API's own credentials"""

    def __init__(self,
                 settings: ProxySettings,
                 http_client: Optional[HTTPClient] = None,
                 token_service: Optional[TokenService] = None,
                 offer_api: Optional[ProductOfferAPI] = None):
        self.settings = settings
        self.logger = logger

        http_client = http_client or HTTPClient(timeout=settings.http_timeout)
        self.token_service = token_service or TokenService(settings, http_client)
        self.offer_api = offer_api or ProductOfferAPI(settings, http_client)

    async def available_offers(self, request: Optional[OffersRequest] = None) -> Dict[str, Any]:
        """
        Search offers, fetch every offer's details concurrently and flatten them

        Details are joined back by the offer's position in the search result,
        never by arrival order.
        """
        self.settings.require_offers()
        request = request or OffersRequest()

        token_result = await self.token_service.get_offer_token()
        found = await self.offer_api.fetch_offers(
            token_result.token,
            product_dependency=request.product_dependency or self.settings.default_product_dependency,
            product=request.product or self.settings.default_journey_product,
            class_name=request.class_name or self.settings.default_journey_class,
        )

        offers = [offer for offer in found if isinstance(offer, dict)] if isinstance(found, list) else []
        details = await asyncio.gather(*(
            self.offer_api.fetch_offer_details(token_result.token, offer.get("offerId"))
            for offer in offers
        ))

        self.logger.debug(f"Available offers: count={len(offers)}")
        return {
            "offers": [
                Offer.from_remote(offer, detail).to_payload()
                for offer, detail in zip(offers, details)
            ]
        }
