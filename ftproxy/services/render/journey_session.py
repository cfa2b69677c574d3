"""
Journey Session - per-session renderer state driving a journey through the proxy

Holds what a single browser tab would: the instance id, the current step, edited
form values and widget bookkeeping. Navigation is serialized by an in-flight flag;
a request issued while another is outstanding is a no-op.
"""

import json
from typing import Any, Dict, List, Optional
from loguru import logger

from ...core.exceptions import ClientValidationError, ProxyError
from ...core.journey.journey_models import Direction
from ...core.render.render_models import (
    EIDV_PASSED_ATTRIBUTE,
    EXTERNAL_ID_STORAGE_KEY,
    OFFER_VIEW_STEP_STORAGE_KEY,
    SELECTED_OFFER_STORAGE_KEY,
    SELECTED_OFFERS_ATTRIBUTE,
    OfferCardView,
    StepKind,
    WidgetEvent,
    WidgetKind,
    WidgetOutcome,
)
from .journey_client import JourneyApiClient
from . import step_renderer

OFFER_VIEW_STEP_PREFIX = "Offer-"
SELECT_OFFER_MESSAGE = "Please select an offer before continuing."
MISSING_VIEW_STEP_MESSAGE = "Could not find selected offer details for this summary step."


class SessionStore:
    """Dict-backed stand-in for browser session storage"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str:
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._data)


class JourneySession:
    """
    Renderer state for one journey instance

    Step effects (form defaults, offer selection, summary lookup, action-step
    auto-advance) run after each step change and outside the in-flight guard.
    """

    def __init__(self, client: JourneyApiClient, store: Optional[SessionStore] = None):
        self.client = client
        self.store = store or SessionStore()
        self.logger = logger
        self.in_flight = False
        self._reset_state()
        self.selected_offer_id = self.store.get(SELECTED_OFFER_STORAGE_KEY)

    def _reset_state(self) -> None:
        self.external_id = ""
        self.metadata: Any = None
        self.step: Optional[Dict[str, Any]] = None
        self.form_values: Dict[str, Any] = {}
        self.phone_country_by_field: Dict[str, str] = {}
        self.selected_offer_id = ""
        self.offer_cards: List[OfferCardView] = []
        self.summary_selected_offers: List[Dict[str, Any]] = []
        self.summary_error = ""
        self.summary_loading = False
        self.error = ""
        self.loading = False
        self._action_advance_key = ""
        self._widget_decisions: set = set()

    # ==============================================================================
    # DERIVED VIEW
    # ==============================================================================

    @property
    def kind(self) -> StepKind:
        return step_renderer.classify_step(self.step)

    @property
    def step_key(self) -> str:
        return step_renderer.step_key(self.step, self.external_id)

    @property
    def title(self) -> str:
        return step_renderer.step_title(self.step)

    @property
    def show_next(self) -> bool:
        return step_renderer.show_next(self.step)

    @property
    def show_previous(self) -> bool:
        return step_renderer.show_previous(self.step)

    def field_views(self) -> list:
        fields = (self.step or {}).get("fields") or []
        return [
            step_renderer.describe_field(field, self.form_values, self.phone_country_by_field)
            for field in fields
            if isinstance(field, dict)
        ]

    def _find_field(self, name: str) -> Optional[Dict[str, Any]]:
        for field in (self.step or {}).get("fields") or []:
            if isinstance(field, dict) and field.get("name") == name:
                return field
        return None

    # ==============================================================================
    # LIFECYCLE
    # ==============================================================================

    async def start(self) -> None:
        """Resume the stored instance when it still loads, otherwise start a new one"""
        self.loading = True
        self.error = ""
        try:
            stored_external_id = self.store.get(EXTERNAL_ID_STORAGE_KEY)
            resumed = False
            if stored_external_id:
                try:
                    step = await self.client.load_step(stored_external_id)
                except ProxyError as e:
                    self.logger.debug(f"Stored journey could not be resumed: externalId={stored_external_id} error={e}")
                    self.store.remove(EXTERNAL_ID_STORAGE_KEY)
                else:
                    self.external_id = stored_external_id
                    self._apply_step(step)
                    resumed = True

            if not resumed:
                await self.start_new_journey()
        except ProxyError as e:
            self.error = str(e)
        finally:
            self.loading = False

        await self._run_step_effects()

    async def start_new_journey(self) -> None:
        """Clear all session state and storage, then init a fresh instance"""
        self._reset_state()
        self.loading = True
        for key in (EXTERNAL_ID_STORAGE_KEY, SELECTED_OFFER_STORAGE_KEY, OFFER_VIEW_STEP_STORAGE_KEY):
            self.store.remove(key)

        payload = await self.client.init()
        self.external_id = payload.get("externalId") or ""
        self.metadata = payload.get("metadata")
        self.store.set(EXTERNAL_ID_STORAGE_KEY, self.external_id)
        self._apply_step(payload.get("step"))
        self.logger.info(f"New journey: externalId={self.external_id}")

    async def restart(self) -> bool:
        if self.in_flight:
            return False

        self.in_flight = True
        try:
            await self.start_new_journey()
        except ProxyError as e:
            self.error = str(e)
        finally:
            self.in_flight = False
            self.loading = False

        await self._run_step_effects()
        return True

    # ==============================================================================
    # NAVIGATION
    # ==============================================================================

    def _build_values(self, direction: Direction, force_empty_values: bool,
                      skip_offer_validation: bool,
                      override_values: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        values = [] if force_empty_values else step_renderer.build_values_from_step(self.step, self.form_values)
        is_offer_selection = bool(self.offer_cards) and direction == Direction.NEXT

        if is_offer_selection and not self.selected_offer_id and not skip_offer_validation:
            raise ClientValidationError(SELECT_OFFER_MESSAGE)

        if is_offer_selection and not force_empty_values:
            payload = step_renderer.build_selected_offers_payload(
                step_renderer.step_available_offers(self.step or {}), self.selected_offer_id
            )
            values = [item for item in values if item.get("attribute") != SELECTED_OFFERS_ATTRIBUTE]
            values.append({
                "attribute": SELECTED_OFFERS_ATTRIBUTE,
                "value": json.dumps(payload, separators=(",", ":")),
            })

        if override_values is not None:
            values = list(override_values)

        return values

    async def go(self,
                 direction: Direction | str,
                 force_empty_values: bool = False,
                 skip_offer_validation: bool = False,
                 override_values: Optional[List[Dict[str, Any]]] = None) -> bool:
        """
        Navigate one step; False when another navigation is already in flight

        Errors (local validation included) end up in `self.error`, never raised.
        """
        if self.in_flight:
            self.logger.debug(f"Navigation ignored while in flight: {direction}")
            return False

        direction = Direction(direction)
        self.in_flight = True
        self.loading = True
        self.error = ""
        try:
            values = self._build_values(direction, force_empty_values, skip_offer_validation, override_values)
            payload = await self.client.navigate(direction.value, self.external_id, values)

            payload = payload if isinstance(payload, dict) else {}
            self.external_id = payload.get("externalId") or self.external_id
            self.store.set(EXTERNAL_ID_STORAGE_KEY, self.external_id)

            step = payload.get("step")
            if not step:
                step = await self.client.load_step(self.external_id)
            self._apply_step(step)
        except ProxyError as e:
            self.logger.debug(f"Navigation {direction.value} failed: {e}")
            self.error = str(e)
        finally:
            self.in_flight = False
            self.loading = False

        await self._run_step_effects()
        return True

    # ==============================================================================
    # STEP EFFECTS
    # ==============================================================================

    def _apply_step(self, step: Optional[Dict[str, Any]]) -> None:
        self.step = step if isinstance(step, dict) else None
        step = self.step or {}
        fields = [f for f in step.get("fields") or [] if isinstance(f, dict)]

        for field in fields:
            if field.get("name") not in self.form_values:
                self.form_values[field.get("name")] = step_renderer.coerce_initial_value(field)

        for field in fields:
            if not step_renderer.field_ui(field).get("phoneCountrySelect"):
                continue
            countries = step_renderer.resolve_phone_countries(field)
            fallback = step_renderer.resolve_default_country_code(field, countries)
            code, _ = step_renderer.split_phone_value(self.form_values.get(field.get("name")), countries, fallback)
            self.phone_country_by_field[field.get("name")] = code

        journey_step = str(step.get("journeyStep") or "")
        if journey_step.startswith(OFFER_VIEW_STEP_PREFIX):
            self.store.set(OFFER_VIEW_STEP_STORAGE_KEY, journey_step)

        available_offers = step_renderer.step_available_offers(step)
        if available_offers:
            self.offer_cards = step_renderer.map_available_offers_to_cards(available_offers)
            stored_offer_id = self.store.get(SELECTED_OFFER_STORAGE_KEY)
            if any(card.offer_id == stored_offer_id for card in self.offer_cards):
                self.selected_offer_id = stored_offer_id
            else:
                self._clear_selected_offer()
        else:
            self.offer_cards = []
            self._clear_selected_offer()

    def _clear_selected_offer(self) -> None:
        self.selected_offer_id = ""
        self.store.remove(SELECTED_OFFER_STORAGE_KEY)

    async def _run_step_effects(self) -> None:
        if "summary" in str((self.step or {}).get("journeyStep") or "").lower() and self.external_id:
            await self.load_summary()
        else:
            self.summary_selected_offers = []
            self.summary_loading = False
            self.summary_error = ""

        if self.kind != StepKind.ACTION:
            self._action_advance_key = ""
            return

        key = self.step_key
        if self._action_advance_key == key:
            return
        self._action_advance_key = key
        self.logger.debug(f"Auto-advancing action step: {key}")
        await self.go(Direction.NEXT, force_empty_values=True, skip_offer_validation=True)

    async def load_summary(self) -> None:
        """Selected offers of the summary, read back from the stored offer step"""
        view_step = self.store.get(OFFER_VIEW_STEP_STORAGE_KEY)
        if not view_step:
            self.summary_selected_offers = []
            self.summary_loading = False
            self.summary_error = MISSING_VIEW_STEP_MESSAGE
            return

        self.summary_loading = True
        self.summary_error = ""
        try:
            payload = await self.client.view_item(self.external_id, view_step)
            self.summary_selected_offers = step_renderer.extract_summary_selected_offers(payload)
        except ProxyError as e:
            self.summary_selected_offers = []
            self.summary_error = str(e) or "Load summary offer failed"
        finally:
            self.summary_loading = False

    # ==============================================================================
    # USER INPUT
    # ==============================================================================

    def select_offer(self, offer_id: str) -> None:
        self.selected_offer_id = offer_id
        self.store.set(SELECTED_OFFER_STORAGE_KEY, offer_id)

    def change_field(self, name: str, value: Any) -> Any:
        """Record an edit; masked fields are re-formatted, numbers and flags coerced"""
        field = self._find_field(name) or {"name": name}
        mask = step_renderer.field_ui(field).get("mask")
        if mask:
            value = step_renderer.apply_named_mask(value, mask)
        self.form_values[name] = step_renderer.coerce_changed_value(field, value)
        return self.form_values[name]

    def change_phone_number(self, name: str, local_number: str) -> str:
        code = self.phone_country_by_field.get(name, "")
        self.form_values[name] = step_renderer.build_phone_value(code, local_number)
        return self.form_values[name]

    def change_phone_country(self, name: str, country_code: str) -> str:
        """Switch the dialling code, keeping the local part of the number"""
        field = self._find_field(name) or {"name": name}
        countries = step_renderer.resolve_phone_countries(field)
        current = self.phone_country_by_field.get(name) or step_renderer.resolve_default_country_code(field, countries)
        _, local = step_renderer.split_phone_value(self.form_values.get(name), countries, current)

        self.phone_country_by_field[name] = country_code
        self.form_values[name] = step_renderer.build_phone_value(country_code, local)
        return self.form_values[name]

    # ==============================================================================
    # WIDGETS
    # ==============================================================================

    async def handle_widget_event(self, event: WidgetEvent) -> bool:
        """
        Advance the journey on a widget completion message

        Events for another step, or repeated for an already handled step and
        decision, are ignored. Returns whether a navigation was issued.
        """
        if event.step_key != self.step_key:
            self.logger.debug(f"Stale widget event ignored: {event}")
            return False

        if event.widget == WidgetKind.IDENTITY:
            passed = event.outcome == WidgetOutcome.COMPLETED
            decision = f"{event.widget.value}|{event.step_key}|{'pass' if passed else 'fail'}"
            if decision in self._widget_decisions:
                return False
            self._widget_decisions.add(decision)
            return await self.go(
                Direction.NEXT,
                force_empty_values=True,
                skip_offer_validation=True,
                override_values=[{"attribute": EIDV_PASSED_ATTRIBUTE, "value": passed}],
            )

        if event.outcome != WidgetOutcome.COMPLETED:
            if event.widget == WidgetKind.PAYMENT:
                self.error = "Payment did not complete."
            return False

        decision = f"{event.widget.value}|{event.step_key}"
        if decision in self._widget_decisions:
            return False
        self._widget_decisions.add(decision)

        if event.widget == WidgetKind.ESIGN:
            return await self.go(Direction.NEXT, force_empty_values=True, skip_offer_validation=True)
        return await self.go(Direction.NEXT)
