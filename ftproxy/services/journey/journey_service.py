"""
Journey Service - Internal API for journey navigation
Stateless: every call authenticates, talks to the engine and returns plain dicts
"""

from typing import Any, Dict, List, Optional
from loguru import logger

from ...core.config import ProxySettings
from ...core.http_client import HTTPClient
from ...core.journey.gateway_api import FintechOSGateway
from ...core.journey.journey_models import Direction, step_instance_id
from ...core.exceptions import JourneyError
from ..token.token_service import TokenService
from ..overrides.override_service import StepOverrideService
from .processor_service import CustomProcessorService
from .resolution_service import StepResolutionService


class JourneyService:
    """
    Navigation facade over the resolution pipeline

    Service Layer Rules (from three-layer architecture):
    - Business logic, workflows, cross-service coordination
    - Communication: JSON/dict for cross-service calls (clean contracts)
    """

    def __init__(self,
                 settings: ProxySettings,
                 http_client: Optional[HTTPClient] = None,
                 token_service: Optional[TokenService] = None,
                 gateway: Optional[FintechOSGateway] = None,
                 resolver: Optional[StepResolutionService] = None):
        self.settings = settings
        self.logger = logger

        http_client = http_client or HTTPClient(timeout=settings.http_timeout)
        self.token_service = token_service or TokenService(settings, http_client)
        self.gateway = gateway or FintechOSGateway(settings, http_client)
        self.resolver = resolver or StepResolutionService(
            self.gateway,
            StepOverrideService(settings.step_overrides_path),
            CustomProcessorService(self.gateway),
        )

    async def init(self, authorization: Optional[str] = None) -> Dict[str, Any]:
        """Start a brand-new instance and resolve its first step"""
        self.settings.require_journey()

        token = await self.token_service.resolve_engine_token(authorization)
        metadata = await self.gateway.fetch_metadata(token)
        start = await self.gateway.start_instance(token)

        external_id = start.get("externalId") if isinstance(start, dict) else None
        if not external_id:
            raise JourneyError("Start Journey did not return externalId")

        self.logger.info(f"Journey started: externalId={external_id}")
        step = await self.resolver.resolve_step(token, external_id)

        return {
            "externalId": external_id,
            "metadata": metadata,
            "start": start,
            "step": step,
        }

    async def load_step(self, external_id: str, authorization: Optional[str] = None) -> Dict[str, Any]:
        """Resolve the current step of a caller-supplied instance (no retry)"""
        self.settings.require_journey()

        token = await self.token_service.resolve_engine_token(authorization)
        return await self.resolver.resolve_step(token, external_id)

    async def advance(self,
                      external_id: str,
                      values: Optional[List[Dict[str, Any]]],
                      direction: Direction,
                      authorization: Optional[str] = None) -> Dict[str, Any]:
        """
        Move the instance forward or backward, then resolve the resulting step

        The step is loaded for the id returned by the navigation call (falling back
        to the caller's id) through the retrying resolver.
        """
        self.settings.require_journey()
        self.logger.debug(f"Journey {direction.value}: externalId={external_id} values={len(values or [])}")

        token = await self.token_service.resolve_engine_token(authorization)
        navigation = await self.gateway.advance(token, external_id, values, direction)

        external_id_for_load = step_instance_id(navigation) or external_id
        step = await self.resolver.resolve_step_with_retry(token, external_id_for_load)

        response = dict(navigation) if isinstance(navigation, dict) else {}
        response["externalId"] = external_id_for_load
        response["step"] = step
        return response

    async def view_item(self, external_id: str, journey_step: str,
                        authorization: Optional[str] = None) -> Any:
        """Read-only snapshot of a named step's data"""
        self.settings.require_journey()
        self.settings.require_view_item()

        token = await self.token_service.resolve_engine_token(authorization)
        return await self.gateway.fetch_view_item(token, external_id, journey_step)
