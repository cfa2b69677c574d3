"""
Custom-Processor Service - invokes server-side step actions and folds their responses
"""

from typing import Any, Dict, List
from loguru import logger

from ...core.journey.gateway_api import FintechOSGateway
from ...core.journey.journey_models import StepAction, StepEnrichment, step_instance_id
from ...core.exceptions import CorrelationError


def custom_processor_actions(step: Any) -> List[StepAction]:
    """Declared actions of the custom-processor type that carry an id, in declaration order"""
    if not isinstance(step, dict) or not isinstance(step.get("stepActions"), list):
        return []

    actions = []
    for raw in step["stepActions"]:
        if not isinstance(raw, dict):
            continue
        action = StepAction.model_validate(raw)
        if action.is_custom_processor():
            actions.append(action)
    return actions


def fold_action_response(enrichment: StepEnrichment, action_result: Any) -> None:
    """
    Merge one action response into the accumulator

    Offers concatenate across actions. The e-sign URL, identity session and
    payment session each address a single widget, so the last well-formed one wins.
    """
    if not isinstance(action_result, dict):
        return
    response = action_result.get("actionResponse")
    if not isinstance(response, dict):
        return

    offers = response.get("availableOffers")
    if isinstance(offers, list):
        enrichment.available_offers.extend(offers)

    esign_url = response.get("esignUrl")
    if isinstance(esign_url, str) and esign_url.strip():
        enrichment.esign_url = esign_url

    persona = response.get("personaResponse")
    if isinstance(persona, dict):
        enrichment.persona_response = persona

    payment = response.get("stripePaymentDetails")
    if isinstance(payment, dict):
        enrichment.stripe_payment_details = payment


class CustomProcessorService:
    """Runs every custom-processor action of a step once, in order"""

    def __init__(self, gateway: FintechOSGateway):
        self.gateway = gateway
        self.logger = logger

    async def run_actions(self, token: str, step: Any) -> StepEnrichment:
        """
        Invoke the step's custom-processor actions and merge their responses

        Returns:
            StepEnrichment (all empty when the step declares no qualifying action;
            no network call is made in that case)

        Raises:
            CorrelationError: Actions exist but the step carries no instance id
        """
        enrichment = StepEnrichment()
        actions = custom_processor_actions(step)
        if not actions:
            return enrichment

        external_id = step_instance_id(step)
        if not external_id:
            raise CorrelationError(
                "Cannot call custom processors: missing externalId/instanceId in step payload"
            )

        for action in actions:
            self.logger.debug(f"Calling custom processor: action={action.id} externalId={external_id}")
            result = await self.gateway.invoke_step_action(token, action.id, external_id)
            fold_action_response(enrichment, result)

        return enrichment
