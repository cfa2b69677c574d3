"""
Tests for the per-session renderer state: resume/restart, navigation guard, offers and widget events
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ftproxy.api.app import create_app
from ftproxy.core.exceptions import JourneyError
from ftproxy.core.http_client import HTTPClient
from ftproxy.core.render.render_models import StepKind, WidgetEvent, WidgetKind, WidgetOutcome
from ftproxy.services.journey.journey_service import JourneyService
from ftproxy.services.offers.offer_service import OfferService
from ftproxy.services.render.journey_client import JourneyApiClient
from ftproxy.services.render.journey_session import JourneySession, SessionStore

OFFERS = [
    {"offerId": "o1", "offerName": "Everyday", "productsCategory": ["current"], "offerProducts": [],
     "offerCard": {"cardId": "c1", "cardTitle": "Everyday"}},
    {"offerId": "o2", "offerName": "Saver", "productsCategory": ["savings"], "offerProducts": [{"productId": "p2"}],
     "offerCard": {"cardId": "c2", "cardTitle": "Saver"}},
]
OFFERS_STEP = {"journeyStep": "Offers-1", "externalId": "ABC123", "availableOffers": OFFERS,
               "fields": [{"name": "selectedOfferIds", "value": None}]}
FORM_STEP = {"journeyStep": "Personal-Details", "externalId": "ABC123", "fields": [
    {"name": "firstName", "type": "text", "value": "Ada"},
    {"name": "mobile", "value": "+40722000111", "ui": {"phoneCountrySelect": True}},
    {"name": "ssn", "ui": {"mask": "ssn"}},
]}


def _client(**steps):
    client = MagicMock(spec=JourneyApiClient)
    client.init = AsyncMock(return_value={"externalId": "ABC123", "metadata": {"m": 1}, "step": FORM_STEP})
    client.load_step = AsyncMock(return_value=FORM_STEP)
    client.navigate = AsyncMock(return_value={"externalId": "ABC123", "step": FORM_STEP})
    client.view_item = AsyncMock(return_value={"fields": []})
    for name, value in steps.items():
        setattr(client, name, value)
    return client


def _session(client, **stored):
    return JourneySession(client, SessionStore(stored))


def test_start_without_stored_instance_inits():
    client = _client()
    session = _session(client)

    asyncio.run(session.start())

    client.init.assert_awaited_once()
    client.load_step.assert_not_awaited()
    assert session.external_id == "ABC123"
    assert session.metadata == {"m": 1}
    assert session.store.get("journeyExternalId") == "ABC123"
    assert session.form_values == {"firstName": "Ada", "mobile": "+40722000111", "ssn": ""}
    assert session.phone_country_by_field == {"mobile": "+40"}
    assert session.kind == StepKind.FORM


def test_start_resumes_stored_instance():
    client = _client()
    session = _session(client, journeyExternalId="STORED")

    asyncio.run(session.start())

    client.load_step.assert_awaited_once_with("STORED")
    client.init.assert_not_awaited()
    assert session.external_id == "STORED"


def test_start_falls_back_to_new_instance_when_resume_fails():
    client = _client(load_step=AsyncMock(side_effect=JourneyError("Load step failed")))
    session = _session(client, journeyExternalId="GONE", selectedOfferId="o1", offerViewStep="Offer-1")

    asyncio.run(session.start())

    client.init.assert_awaited_once()
    assert session.external_id == "ABC123"
    assert session.store.as_dict() == {"journeyExternalId": "ABC123"}
    assert session.error == ""


def test_start_failure_is_recorded():
    client = _client(init=AsyncMock(side_effect=JourneyError("Restart journey failed")))
    session = _session(client)

    asyncio.run(session.start())

    assert session.error == "Restart journey failed"
    assert not session.loading


def test_next_submits_formatted_form_values():
    client = _client()
    session = _session(client)
    asyncio.run(session.start())

    session.change_field("ssn", "123456789")
    session.change_phone_country("mobile", "+1")
    assert session.form_values["ssn"] == "123-45-6789"
    assert session.form_values["mobile"] == "+1722000111"

    assert asyncio.run(session.go("next"))
    client.navigate.assert_awaited_once_with("next", "ABC123", [
        {"attribute": "firstName", "value": "Ada"},
        {"attribute": "mobile", "value": "+1722000111"},
        {"attribute": "ssn", "value": "123456789"},
    ])


def test_offers_selection_is_submitted_as_json_string():
    client = _client(
        load_step=AsyncMock(return_value=OFFERS_STEP),
        navigate=AsyncMock(return_value={"externalId": "ABC123", "step": {"journeyStep": "Summary-1"}}),
    )
    session = _session(client, journeyExternalId="ABC123")
    asyncio.run(session.start())

    assert session.kind == StepKind.OFFERS
    assert [card.offer_id for card in session.offer_cards] == ["o1", "o2"]
    assert session.store.get("offerViewStep") == ""

    session.select_offer(session.offer_cards[1].offer_id)
    asyncio.run(session.go("next"))

    _, _, values = client.navigate.await_args.args
    assert [v["attribute"] for v in values] == ["selectedOfferIds"]
    assert json.loads(values[0]["value"]) == [
        {"offerId": "o2", "productsCategory": ["savings"], "offerName": "Saver", "offerProducts": [{"productId": "p2"}]},
    ]
    assert session.selected_offer_id == ""
    assert session.store.get("selectedOfferId") == ""


def test_next_on_offers_step_requires_a_selection():
    client = _client(load_step=AsyncMock(return_value=OFFERS_STEP))
    session = _session(client, journeyExternalId="ABC123")
    asyncio.run(session.start())

    asyncio.run(session.go("next"))

    assert session.error == "Please select an offer before continuing."
    client.navigate.assert_not_awaited()
    assert not session.in_flight


def test_previous_on_offers_step_needs_no_selection():
    client = _client(load_step=AsyncMock(return_value=OFFERS_STEP))
    session = _session(client, journeyExternalId="ABC123")
    asyncio.run(session.start())

    asyncio.run(session.go("previous"))

    client.navigate.assert_awaited_once()
    assert session.error == ""


def test_stored_selection_survives_only_when_still_offered():
    kept = _session(_client(load_step=AsyncMock(return_value=OFFERS_STEP)), journeyExternalId="ABC123",
                    selectedOfferId="o1")
    asyncio.run(kept.start())
    assert kept.selected_offer_id == "o1"

    dropped = _session(_client(load_step=AsyncMock(return_value=OFFERS_STEP)), journeyExternalId="ABC123",
                       selectedOfferId="gone")
    asyncio.run(dropped.start())
    assert dropped.selected_offer_id == ""
    assert dropped.store.get("selectedOfferId") == ""


def test_navigation_while_in_flight_is_a_no_op():
    async def scenario():
        release = asyncio.Event()

        async def slow_navigate(*args):
            await release.wait()
            return {"externalId": "ABC123", "step": FORM_STEP}

        client = _client(navigate=AsyncMock(side_effect=slow_navigate))
        session = _session(client)
        await session.start()

        first = asyncio.create_task(session.go("next"))
        await asyncio.sleep(0)
        assert session.in_flight
        assert await session.go("next") is False
        assert await session.restart() is False

        release.set()
        assert await first is True
        return client

    client = asyncio.run(scenario())
    assert client.navigate.await_count == 1
    assert client.init.await_count == 1


def test_missing_step_in_navigation_response_reloads():
    client = _client(navigate=AsyncMock(return_value={"externalId": "NEW"}))
    session = _session(client)
    asyncio.run(session.start())

    asyncio.run(session.go("next"))

    client.load_step.assert_awaited_once_with("NEW")
    assert session.external_id == "NEW"
    assert session.store.get("journeyExternalId") == "NEW"


def test_navigation_error_is_recorded():
    client = _client(navigate=AsyncMock(side_effect=JourneyError("Journey instance not found")))
    session = _session(client)
    asyncio.run(session.start())

    asyncio.run(session.go("next"))

    assert session.error == "Journey instance not found"
    assert session.step == FORM_STEP
    assert not session.loading


def test_action_step_auto_advances_exactly_once():
    action_step = {"journeyStep": "Check-Credit", "journeyStepType": "action", "externalId": "ABC123"}
    client = _client(
        init=AsyncMock(return_value={"externalId": "ABC123", "step": action_step}),
        navigate=AsyncMock(side_effect=[
            {"externalId": "ABC123", "step": action_step},
            {"externalId": "ABC123", "step": FORM_STEP},
        ]),
    )
    session = _session(client)

    asyncio.run(session.start())

    client.navigate.assert_awaited_once_with("next", "ABC123", [])
    assert session.kind == StepKind.ACTION

    # an explicit next from the action step still navigates
    asyncio.run(session.go("next"))
    assert session.kind == StepKind.FORM


def test_summary_loads_selected_offers_from_offer_step():
    selected = [{"offerId": "o2", "offerName": "Saver"}]
    client = _client(
        load_step=AsyncMock(return_value={"journeyStep": "Offer-Selection", "externalId": "ABC123", "fields": [{"name": "x"}]}),
        navigate=AsyncMock(return_value={"externalId": "ABC123", "step": {"journeyStep": "Application-Summary"}}),
        view_item=AsyncMock(return_value={"fields": [{"name": "selectedOfferIds", "value": json.dumps(selected)}]}),
    )
    session = _session(client, journeyExternalId="ABC123")
    asyncio.run(session.start())
    assert session.store.get("offerViewStep") == "Offer-Selection"

    asyncio.run(session.go("next"))

    client.view_item.assert_awaited_once_with("ABC123", "Offer-Selection")
    assert session.summary_selected_offers == selected
    assert session.summary_error == ""


def test_summary_without_offer_step_reports_error():
    client = _client(init=AsyncMock(return_value={"externalId": "ABC123", "step": {"journeyStep": "Summary"}}))
    session = _session(client)

    asyncio.run(session.start())

    client.view_item.assert_not_awaited()
    assert session.summary_error == "Could not find selected offer details for this summary step."


def test_esign_completion_advances_once_per_step():
    esign_step = {"journeyStep": "Sign-Documents", "externalId": "ABC123", "esignUrl": "https://sign"}
    client = _client(init=AsyncMock(return_value={"externalId": "ABC123", "step": esign_step}),
                     navigate=AsyncMock(return_value={"externalId": "ABC123", "step": esign_step}))
    session = _session(client)
    asyncio.run(session.start())
    event = WidgetEvent(WidgetKind.ESIGN, WidgetOutcome.COMPLETED, session.step_key)

    assert asyncio.run(session.handle_widget_event(event)) is True
    assert asyncio.run(session.handle_widget_event(event)) is False
    assert asyncio.run(session.handle_widget_event(
        WidgetEvent(WidgetKind.ESIGN, WidgetOutcome.COMPLETED, "Other|ABC123"))) is False

    client.navigate.assert_awaited_once_with("next", "ABC123", [])


def test_identity_outcome_submits_eidv_flag():
    persona_step = {"journeyStep": "Verify-Identity", "externalId": "ABC123", "personaResponse": {"id": "inq_1"}}
    client = _client(init=AsyncMock(return_value={"externalId": "ABC123", "step": persona_step}),
                     navigate=AsyncMock(return_value={"externalId": "ABC123", "step": persona_step}))
    session = _session(client)
    asyncio.run(session.start())
    key = session.step_key

    asyncio.run(session.handle_widget_event(WidgetEvent(WidgetKind.IDENTITY, WidgetOutcome.CANCELLED, key)))
    asyncio.run(session.handle_widget_event(WidgetEvent(WidgetKind.IDENTITY, WidgetOutcome.FAILED, key)))
    asyncio.run(session.handle_widget_event(WidgetEvent(WidgetKind.IDENTITY, WidgetOutcome.COMPLETED, key)))

    submitted = [call.args[2] for call in client.navigate.await_args_list]
    assert submitted == [
        [{"attribute": "eidvPassed", "value": False}],
        [{"attribute": "eidvPassed", "value": True}],
    ]


def test_payment_completion_submits_form_values_and_failure_sets_error():
    payment_step = {"journeyStep": "Payment", "externalId": "ABC123", "stripePaymentDetails": {"stripeToken": "pk"},
                    "fields": [{"name": "amount", "type": "money", "value": "10.5"}]}
    client = _client(init=AsyncMock(return_value={"externalId": "ABC123", "step": payment_step}))
    session = _session(client)
    asyncio.run(session.start())
    key = session.step_key

    assert asyncio.run(session.handle_widget_event(WidgetEvent(WidgetKind.PAYMENT, WidgetOutcome.FAILED, key))) is False
    assert session.error == "Payment did not complete."

    asyncio.run(session.handle_widget_event(WidgetEvent(WidgetKind.PAYMENT, WidgetOutcome.COMPLETED, key)))
    client.navigate.assert_awaited_once_with("next", "ABC123", [{"attribute": "amount", "value": 10.5}])


def test_restart_clears_session_state():
    client = _client(load_step=AsyncMock(return_value=OFFERS_STEP))
    session = _session(client, journeyExternalId="OLD", offerViewStep="Offer-1")
    asyncio.run(session.start())
    session.select_offer("o1")
    session.error = "stale"

    assert asyncio.run(session.restart()) is True

    assert session.external_id == "ABC123"
    assert session.selected_offer_id == ""
    assert session.offer_cards == []
    assert session.error == ""
    assert session.store.as_dict() == {"journeyExternalId": "ABC123"}


@pytest.fixture
def proxy_app(settings):
    journey_service = MagicMock(spec=JourneyService)
    journey_service.init = AsyncMock(return_value={"externalId": "ABC123", "metadata": {}, "start": {},
                                                   "step": {"journeyStep": "Welcome", "externalId": "ABC123"}})
    journey_service.load_step = AsyncMock(return_value=OFFERS_STEP)
    journey_service.advance = AsyncMock(return_value={"externalId": "ABC123", "step": {"journeyStep": "Done"}})
    return create_app(settings, journey_service=journey_service, offer_service=MagicMock(spec=OfferService))


def test_session_against_proxy_app(proxy_app):
    transport = httpx.ASGITransport(app=proxy_app)
    client = JourneyApiClient("http://proxy.test", HTTPClient(transport=transport))
    session = _session(client, journeyExternalId="ABC123")

    asyncio.run(session.start())
    assert session.step["journeyStep"] == "Offers-1"

    session.select_offer("o2")
    asyncio.run(session.go("next"))

    service = proxy_app.state.journey_service
    external_id, values, direction, _ = service.advance.await_args.args
    assert (external_id, direction.value) == ("ABC123", "next")
    assert values[-1]["attribute"] == "selectedOfferIds"
    assert json.loads(values[-1]["value"])[0]["offerId"] == "o2"
    assert session.step["journeyStep"] == "Done"


def test_proxy_errors_surface_as_session_error(proxy_app):
    proxy_app.state.journey_service.advance.side_effect = JourneyError("upstream exploded")
    client = JourneyApiClient("http://proxy.test", HTTPClient(transport=httpx.ASGITransport(app=proxy_app)))
    session = _session(client)

    asyncio.run(session.start())
    asyncio.run(session.go("previous"))

    assert session.error == "upstream exploded"
