"""Journey navigation router for init, load-step, next, previous and view-item."""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from loguru import logger

from ...core.journey.journey_models import Direction, LoadStepRequest, NavigateRequest, ViewItemRequest
from ...services.journey.journey_service import JourneyService
from ..deps import get_journey_service
from ..errors import bad_request, run_operation

router = APIRouter(prefix="/api/journey", tags=["journey"])


@router.post("/init")
async def init_journey(
    authorization: Optional[str] = Header(default=None),
    service: JourneyService = Depends(get_journey_service),
):
    return await run_operation("Init journey failed", service.init(authorization))


@router.post("/load-step")
async def load_step(
    body: Optional[LoadStepRequest] = None,
    authorization: Optional[str] = Header(default=None),
    service: JourneyService = Depends(get_journey_service),
):
    if body is None or not body.external_id:
        return bad_request("externalId is required")
    return await run_operation("Load step failed", service.load_step(body.external_id, authorization))


async def _navigate(direction: Direction, body: Optional[NavigateRequest],
                    authorization: Optional[str], service: JourneyService):
    if body is None or not body.external_id:
        return bad_request("externalId is required")

    values = [value.model_dump() for value in body.values or []]
    logger.debug(f"API /journey/{direction.value} input: externalId={body.external_id} values={values}")
    failure = "Next step failed" if direction == Direction.NEXT else "Previous step failed"
    return await run_operation(failure, service.advance(body.external_id, values, direction, authorization))


@router.post("/next")
async def next_step(
    body: Optional[NavigateRequest] = None,
    authorization: Optional[str] = Header(default=None),
    service: JourneyService = Depends(get_journey_service),
):
    return await _navigate(Direction.NEXT, body, authorization, service)


@router.post("/previous")
async def previous_step(
    body: Optional[NavigateRequest] = None,
    authorization: Optional[str] = Header(default=None),
    service: JourneyService = Depends(get_journey_service),
):
    return await _navigate(Direction.PREVIOUS, body, authorization, service)


@router.post("/view-item")
async def view_item(
    body: Optional[ViewItemRequest] = None,
    authorization: Optional[str] = Header(default=None),
    service: JourneyService = Depends(get_journey_service),
):
    if body is None or not body.external_id:
        return bad_request("externalId is required")
    if not body.journey_step:
        return bad_request("journeyStep is required")
    return await run_operation(
        "View item failed",
        service.view_item(body.external_id, body.journey_step, authorization),
    )
