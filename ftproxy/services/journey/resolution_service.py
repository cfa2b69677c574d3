"""
Step Resolution Service - load -> override merge -> custom processors, with the post-navigation retry
"""

import asyncio
from typing import Any, Dict
from loguru import logger

from ...core.journey.gateway_api import FintechOSGateway
from ...core.exceptions import UpstreamError
from ..overrides.override_service import StepOverrideService
from .processor_service import CustomProcessorService

DEFAULT_RETRY_ATTEMPTS = 4
DEFAULT_RETRY_DELAY = 0.25


def is_transient_not_found(error: Exception) -> bool:
    """404 carrying a message: the new instance is not yet visible to the query side"""
    return isinstance(error, UpstreamError) and error.is_not_found() and bool(error.message)


class StepResolutionService:
    """
    Composes the gateway, the override service and the custom-processor service
    into the single "resolve step" operation used by every navigation endpoint
    """

    def __init__(self,
                 gateway: FintechOSGateway,
                 overrides: StepOverrideService,
                 processors: CustomProcessorService,
                 retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
                 retry_delay: float = DEFAULT_RETRY_DELAY):
        self.gateway = gateway
        self.overrides = overrides
        self.processors = processors
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.logger = logger

    async def resolve_step(self, token: str, external_id: str) -> Dict[str, Any]:
        """Load a step, merge overrides and fold custom-processor results into it"""
        step = await self.gateway.load_step(token, external_id)
        step = await self.overrides.apply(step)
        enrichment = await self.processors.run_actions(token, step)

        resolved = dict(step) if isinstance(step, dict) else {}
        resolved.update(enrichment.to_payload())
        return resolved

    async def resolve_step_with_retry(self, token: str, external_id: str) -> Dict[str, Any]:
        """
        resolve_step() retried on transient not-found only

        Each attempt is a full new resolution pass: the step is reloaded and its
        custom processors run again, including ones that already ran when a
        later stage of the failed pass raised. Any other error, or the last
        failed attempt, propagates unchanged.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self.resolve_step(token, external_id)
            except UpstreamError as e:
                if not is_transient_not_found(e) or attempt == self.retry_attempts:
                    raise
                self.logger.debug(
                    f"Load step retry: externalId={external_id} attempt={attempt} delay={self.retry_delay}s"
                )
                await asyncio.sleep(self.retry_delay)
