"""Offers router: available offers flattened into cards."""

from typing import Optional

from fastapi import APIRouter, Depends

from ...core.offers.offer_models import OffersRequest
from ...services.offers.offer_service import OfferService
from ..deps import get_offer_service
from ..errors import run_operation

router = APIRouter(prefix="/api/offers", tags=["offers"])


@router.post("/available")
async def available_offers(
    body: Optional[OffersRequest] = None,
    service: OfferService = Depends(get_offer_service),
):
    return await run_operation("Load available offers failed", service.available_offers(body))
