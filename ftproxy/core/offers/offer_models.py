"""
Offer models - Core layer
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class OffersRequest(BaseModel):
    """Body of POST /api/offers/available (all optional, defaults from settings)"""
    product_dependency: Optional[str] = Field(default=None, alias="productDependency")
    product: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="className")


class OfferCard(BaseModel):
    """Display card of an offer"""
    card_id: Any = Field(default=None, alias="cardId")
    card_title: str = Field(alias="cardTitle")
    description: str = ""
    benefits: List[Any] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class Offer(BaseModel):
    """Offer flattened from the search result plus its details"""
    offer_id: Any = Field(default=None, alias="offerId")
    offer_name: Optional[str] = Field(default=None, alias="offerName")
    offer_code: Optional[str] = Field(default=None, alias="offerCode")
    cards: List[OfferCard] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_remote(cls, offer: Dict[str, Any], detail: Optional[Dict[str, Any]]) -> "Offer":
        """Combine a search hit with its detail document"""
        detail = detail if isinstance(detail, dict) else {}
        offer_cards = detail.get("offerCards") if isinstance(detail.get("offerCards"), list) else []
        cards = [
            OfferCard(
                card_id=card.get("cardId"),
                card_title=card.get("cardTitle") or offer.get("offerName") or "Offer",
                description=card.get("cardDescription") or "",
                benefits=[benefit.get("benefitName") for benefit in (card.get("offerCardBenefits") or [])
                          if isinstance(benefit, dict)],
            )
            for card in offer_cards
            if isinstance(card, dict)
        ]
        return cls(
            offer_id=offer.get("offerId"),
            offer_name=offer.get("offerName"),
            offer_code=detail.get("offerCode") or None,
            cards=cards,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
