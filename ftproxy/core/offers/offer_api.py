"""
Product-offer API (PFAPI) REST operations
"""

from typing import Any, Optional
from urllib.parse import quote
from loguru import logger

from ..config import ProxySettings
from ..http_client import HTTPClient, bearer_headers

LOG_LABEL = "PFAPI"


class ProductOfferAPI:
    """
    Thin client over the product-offer endpoints
    Only accessible by services/offers/ (domain boundary rule)
    """

    def __init__(self, settings: ProxySettings, http_client: Optional[HTTPClient] = None):
        self.settings = settings
        self.http_client = http_client or HTTPClient(timeout=settings.http_timeout)
        self.logger = logger

    def absolute_url(self, endpoint: str) -> str:
        return f"{(self.settings.pfapi_base_url or '').rstrip('/')}{endpoint}"

    async def fetch_offers(self, token: str, product_dependency: str, product: str, class_name: str) -> Any:
        """Search offers available for a product/class"""
        url = f"{self.absolute_url(self.settings.available_offers_endpoint)}/available"
        payload = {
            "Input": {
                "ProductDependency": product_dependency,
            },
            "Class": class_name,
            "Product": product,
            "IncludeFailedAudienceOffers": False,
        }
        return await self.http_client.send(
            LOG_LABEL, "POST", url,
            headers=bearer_headers(token, accept="text/plain", has_body=True),
            json=payload,
        )

    async def fetch_offer_details(self, token: str, offer_id: Any) -> Any:
        """Detail document (offer code, cards, benefits) of one offer"""
        url = f"{self.absolute_url(self.settings.offer_details_endpoint)}/{quote(str(offer_id), safe='')}/details"
        return await self.http_client.send(
            LOG_LABEL, "GET", url,
            headers=bearer_headers(token, accept="text/plain"),
        )
