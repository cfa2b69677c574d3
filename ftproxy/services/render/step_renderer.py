"""
Step Renderer - display-mode classification and field value bookkeeping for resolved steps

All rules that infer a step's kind from the shape of its payload live in
classify_step(); the remaining helpers map field types to controls and convert
values between their edited form and the wire format the engine expects.
"""

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse

from ...core.journey.journey_models import FieldDescriptor, FieldType, LONG_TEXT_TYPES
from ...core.render.render_models import (
    DEFAULT_PHONE_COUNTRIES,
    ESIGN_CALLBACK_PATH,
    SELECTED_OFFERS_ATTRIBUTE,
    FieldControl,
    FieldView,
    OfferCardView,
    PhoneCountry,
    StepKind,
)

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
SIGNING_COMPLETE_MARKERS = ("signing_complete", "signing-complete", "event=complete", "status=completed")


# ==============================================================================
# STEP CLASSIFICATION
# ==============================================================================

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _step_name(step: Mapping[str, Any]) -> str:
    return str(step.get("journeyStep") or "").lower()


def step_available_offers(step: Mapping[str, Any]) -> List[Any]:
    offers = step.get("availableOffers")
    return offers if isinstance(offers, list) else []


def step_esign_url(step: Mapping[str, Any]) -> str:
    url = step.get("esignUrl")
    return url.strip() if isinstance(url, str) else ""


def step_persona_response(step: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    persona = step.get("personaResponse")
    return persona if isinstance(persona, dict) else None


def step_payment_details(step: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    details = step.get("stripePaymentDetails")
    return details if isinstance(details, dict) else None


def classify_step(step: Optional[Mapping[str, Any]]) -> StepKind:
    """
    Display mode of a resolved step

    Precedence: offers, e-sign, identity, payment, action, summary; steps
    without fields then fall to documents-signed, verification-success or empty,
    everything else is a plain form.
    """
    if not step:
        return StepKind.EMPTY

    if step_available_offers(step):
        return StepKind.OFFERS
    if step_esign_url(step):
        return StepKind.ESIGN
    persona = step_persona_response(step)
    if persona and persona.get("id"):
        return StepKind.IDENTITY
    payment = step_payment_details(step)
    if payment and payment.get("stripeToken"):
        return StepKind.PAYMENT
    if str(step.get("journeyStepType") or "").lower() == "action":
        return StepKind.ACTION

    name = _step_name(step)
    if "summary" in name:
        return StepKind.SUMMARY

    if not step.get("fields"):
        if "documents" in name and "signed" in name:
            return StepKind.DOCUMENTS_SIGNED
        if "verification" in name and "success" in name:
            return StepKind.VERIFICATION_SUCCESS
        return StepKind.EMPTY

    return StepKind.FORM


def step_title(step: Optional[Mapping[str, Any]]) -> str:
    """Display title: the step name up to its first '-'"""
    if not step or not step.get("journeyStep"):
        return "Step"
    return str(step["journeyStep"]).split("-")[0]


def step_key(step: Optional[Mapping[str, Any]], external_id: Optional[str]) -> str:
    """Identity of a step within an instance, used to de-duplicate auto-advances"""
    journey_step = (step or {}).get("journeyStep") or ""
    return f"{journey_step}|{external_id or ''}"


def show_next(step: Optional[Mapping[str, Any]]) -> bool:
    if not step:
        return False
    visible = bool(_as_dict(_as_dict(step.get("properties")).get("nextButton")).get("show"))
    return visible and classify_step(step) not in (StepKind.ACTION, StepKind.ESIGN)


def show_previous(step: Optional[Mapping[str, Any]]) -> bool:
    if not step:
        return False
    visible = bool(_as_dict(_as_dict(step.get("properties")).get("previousButton")).get("show"))
    return visible or step.get("isFirstStep") is False


# ==============================================================================
# FIELD VALUES
# ==============================================================================

def normalize_field_type(field_type: Any) -> str:
    """'Whole Number' -> 'wholenumber'; missing types are text"""
    return re.sub(r"[^a-z0-9]", "", str(field_type or "text").lower())


def normalize_required_level(required_level: Any) -> int:
    if isinstance(required_level, bool):
        return int(required_level)
    try:
        level = float(required_level)
    except (TypeError, ValueError):
        return 0
    return int(level) if math.isfinite(level) else 0


def field_ui(field: Mapping[str, Any]) -> Dict[str, Any]:
    return _as_dict(field.get("ui"))


def default_field_value(field: Mapping[str, Any]) -> Any:
    return False if normalize_field_type(field.get("type")) == FieldType.BOOL.value else ""


def _parse_int(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else ""
    match = LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else ""


def _parse_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else ""
    text = str(value).strip()
    if not text:
        return ""
    try:
        number = float(text)
    except ValueError:
        return ""
    if not math.isfinite(number):
        return ""
    return int(number) if number.is_integer() and re.fullmatch(r"[+-]?\d+", text) else number


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed
    return None


def format_date_value(value: Any) -> str:
    """YYYY-MM-DD, or empty when the value is not a date"""
    if value is None or value == "":
        return ""
    if isinstance(value, str) and DATE_RE.match(value):
        return value
    parsed = _parse_datetime(value)
    return parsed.strftime("%Y-%m-%d") if parsed else ""


def format_datetime_value(value: Any) -> str:
    """YYYY-MM-DDTHH:MM, or empty when the value is not a date-time"""
    if value is None or value == "":
        return ""
    if isinstance(value, str) and DATETIME_PREFIX_RE.match(value):
        return value[:16]
    parsed = _parse_datetime(value)
    return parsed.strftime("%Y-%m-%dT%H:%M") if parsed else ""


def coerce_initial_value(field: Mapping[str, Any]) -> Any:
    """Edit-state value for a field's initial engine value"""
    raw = field.get("value")
    field_type = normalize_field_type(field.get("type"))

    if raw is None:
        return default_field_value(field)

    if field_type == FieldType.BOOL.value:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str):
            return raw.lower() in ("true", "1")
        return bool(raw)

    if field_type == FieldType.WHOLE_NUMBER.value:
        return _parse_int(raw)

    if field_type in (FieldType.NUMERIC.value, FieldType.MONEY.value):
        return _parse_number(raw)

    if field_type in (FieldType.DATE.value, FieldType.INVARIANT_DATE.value):
        return format_date_value(raw)

    if field_type == FieldType.DATETIME.value:
        return format_datetime_value(raw)

    return raw


def coerce_changed_value(field: Mapping[str, Any], value: Any) -> Any:
    """Edit-state value after user input"""
    field_type = normalize_field_type(field.get("type"))

    if field_type == FieldType.BOOL.value:
        return bool(value)

    if field_type == FieldType.WHOLE_NUMBER.value:
        return "" if value == "" else _parse_int(value)

    if field_type in (FieldType.NUMERIC.value, FieldType.MONEY.value):
        return "" if value == "" else _parse_number(value)

    return value


def apply_named_mask(value: Any, mask_name: Any) -> Any:
    """Progressive display mask; only 'ssn' (ddd-dd-dddd) is known"""
    if not isinstance(value, str):
        return value
    if str(mask_name or "").strip().lower() != "ssn":
        return value

    digits = re.sub(r"\D", "", value)[:9]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 5:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


# ==============================================================================
# PHONE FIELDS
# ==============================================================================

def normalize_phone_country(country: Any) -> Optional[PhoneCountry]:
    if not country:
        return None
    if isinstance(country, str):
        return PhoneCountry(code=country, label=country)
    if isinstance(country, dict) and isinstance(country.get("code"), str):
        return PhoneCountry(
            code=country["code"],
            label=country.get("label") or country["code"],
            flag=country.get("flag") or "",
        )
    return None


def resolve_phone_countries(field: Mapping[str, Any]) -> List[PhoneCountry]:
    source = field_ui(field).get("phoneCountries")
    if not isinstance(source, list):
        return list(DEFAULT_PHONE_COUNTRIES)
    countries = [c for c in (normalize_phone_country(item) for item in source) if c]
    return countries or list(DEFAULT_PHONE_COUNTRIES)


def resolve_default_country_code(field: Mapping[str, Any], countries: List[PhoneCountry]) -> str:
    default_code = str(field_ui(field).get("defaultCountryCode") or "").strip()
    if default_code and any(country.code == default_code for country in countries):
        return default_code
    return countries[0].code if countries else "+1"


def split_phone_value(full_value: Any, countries: List[PhoneCountry], fallback_code: str) -> Tuple[str, str]:
    """(country code, local number); longest matching prefix wins"""
    value = str(full_value or "").strip()
    if not value:
        return fallback_code, ""

    for country in sorted(countries, key=lambda c: len(c.code), reverse=True):
        if value.startswith(country.code):
            return country.code, value[len(country.code):].strip()

    return fallback_code, value


def build_phone_value(country_code: Any, local_number: Any) -> str:
    code = re.sub(r"[^\d+]", "", str(country_code or "")).strip()
    local = re.sub(r"\D", "", str(local_number or ""))
    if not code:
        return local
    if not local:
        return code
    return f"{code}{local}"


# ==============================================================================
# SUBMISSION
# ==============================================================================

def format_value_for_submit(field: Mapping[str, Any], raw_value: Any) -> Any:
    """Wire value for a field: phones as +digits, masked national ids as digits"""
    ui = field_ui(field)
    value = raw_value if raw_value is not None else default_field_value(field)

    if ui.get("phoneCountrySelect"):
        raw = str(value) if value else ""
        has_plus = raw.strip().startswith("+")
        digits = re.sub(r"\D", "", raw)
        if not digits:
            return ""
        return f"{'+' if has_plus else ''}{digits}"

    if str(ui.get("mask") or "").lower() == "ssn":
        return re.sub(r"\D", "", str(value) if value else "")

    return value


def build_values_from_step(step: Optional[Mapping[str, Any]], form_values: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """One {attribute, value} pair per field on the step"""
    fields = (step or {}).get("fields") or []
    return [
        {"attribute": field.get("name"), "value": format_value_for_submit(field, form_values.get(field.get("name")))}
        for field in fields
        if isinstance(field, dict)
    ]


# ==============================================================================
# FIELD CONTROLS
# ==============================================================================

def field_control(field: Mapping[str, Any]) -> FieldControl:
    field_type = normalize_field_type(field.get("type"))

    if field_type == FieldType.OPTION_SET.value and isinstance(field.get("optionSetValues"), list):
        return FieldControl.SELECT
    if field_type == FieldType.BOOL.value:
        return FieldControl.CHECKBOX
    if field_type in (FieldType.DATE.value, FieldType.INVARIANT_DATE.value):
        return FieldControl.DATE
    if field_type == FieldType.DATETIME.value:
        return FieldControl.DATETIME
    if field_type == FieldType.WHOLE_NUMBER.value:
        return FieldControl.INTEGER
    if field_type in (FieldType.NUMERIC.value, FieldType.MONEY.value):
        return FieldControl.DECIMAL
    if field_type in {t.value for t in LONG_TEXT_TYPES}:
        return FieldControl.TEXTAREA
    if field_ui(field).get("phoneCountrySelect"):
        return FieldControl.PHONE
    return FieldControl.TEXT


def describe_field(field: Mapping[str, Any],
                   form_values: Mapping[str, Any],
                   phone_country_by_field: Optional[Mapping[str, str]] = None) -> FieldView:
    """Control, label, hints and current value of one field"""
    descriptor = FieldDescriptor.model_validate({**field, "name": str(field.get("name") or "")})
    ui = field_ui(field)
    control = field_control(field)
    level = normalize_required_level(descriptor.required_level)

    view = FieldView(
        name=descriptor.name,
        label=descriptor.display_name or descriptor.name,
        control=control,
        value=form_values.get(descriptor.name),
        input_type=ui["inputType"] if isinstance(ui.get("inputType"), str) else "text",
        placeholder=ui["placeholder"] if isinstance(ui.get("placeholder"), str) else "",
        required_badge="Required" if level == 2 else "Recommended" if level == 1 else None,
        read_only=bool(descriptor.is_read_only),
    )

    if control == FieldControl.SELECT:
        view.options = [option.model_dump(by_alias=True) for option in descriptor.option_set_values or []]

    if control == FieldControl.PHONE:
        countries = resolve_phone_countries(field)
        fallback = resolve_default_country_code(field, countries)
        selected = (phone_country_by_field or {}).get(descriptor.name) or fallback
        code, local = split_phone_value(view.value, countries, selected)
        view.phone_countries = countries
        view.phone_country_code = selected
        view.phone_local_number = local
        view.placeholder = view.placeholder or "555 123 4567"

    return view


# ==============================================================================
# OFFERS AND SUMMARY
# ==============================================================================

def map_available_offers_to_cards(available_offers: Any) -> List[OfferCardView]:
    """Cards of an offers step (each step-level offer carries a single offerCard)"""
    offers = available_offers if isinstance(available_offers, list) else []
    cards = []
    for offer in offers:
        offer = _as_dict(offer)
        card = _as_dict(offer.get("offerCard"))
        benefits = card.get("offerCardBenefits") if isinstance(card.get("offerCardBenefits"), list) else []
        cards.append(OfferCardView(
            offer_id=offer.get("offerId") or "",
            offer_code=offer.get("offerCode") or "",
            card_id=card.get("cardId") or offer.get("offerId") or "",
            card_title=card.get("cardTitle") or offer.get("offerName") or "Offer",
            description=card.get("cardDescription") or "",
            benefits=[b.get("benefitName") for b in benefits if isinstance(b, dict) and b.get("benefitName")],
        ))
    return cards


def build_selected_offers_payload(available_offers: Any, selected_offer_id: Optional[str]) -> List[Dict[str, Any]]:
    """Structured payload of the selected offer, empty when it is not on offer"""
    offers = available_offers if isinstance(available_offers, list) else []
    selected = next((o for o in offers if isinstance(o, dict) and o.get("offerId") == selected_offer_id), None)
    if not selected:
        return []

    return [{
        "offerId": selected.get("offerId") or "",
        "productsCategory": selected["productsCategory"] if isinstance(selected.get("productsCategory"), list) else [],
        "offerName": selected.get("offerName") or "",
        "offerProducts": selected["offerProducts"] if isinstance(selected.get("offerProducts"), list) else [],
    }]


def parse_selected_offers_value(raw_value: Any) -> List[Any]:
    if isinstance(raw_value, list):
        return raw_value
    if isinstance(raw_value, str):
        try:
            parsed = json.loads(raw_value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def extract_summary_selected_offers(view_item_payload: Any) -> List[Dict[str, Any]]:
    """Offers recorded in the selectedOfferIds field of a view-item snapshot"""
    fields = _as_dict(view_item_payload).get("fields")
    fields = fields if isinstance(fields, list) else []
    selected_field = next(
        (f for f in fields if isinstance(f, dict) and f.get("name") == SELECTED_OFFERS_ATTRIBUTE), None
    )
    if not selected_field:
        return []
    return [offer for offer in parse_selected_offers_value(selected_field.get("value")) if isinstance(offer, dict)]


# ==============================================================================
# WIDGETS
# ==============================================================================

def is_completed_signing_url(url: str, origin: str) -> bool:
    """Whether the signing frame has landed on a completion page"""
    if not url:
        return False
    if urlparse(urljoin(origin, url)).path == ESIGN_CALLBACK_PATH:
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in SIGNING_COMPLETE_MARKERS)


def payment_client_secret(details: Optional[Mapping[str, Any]]) -> Optional[str]:
    details = details or {}
    intent = _as_dict(details.get("paymentIntentResponse"))
    config = _as_dict(details.get("stripeConfigData"))
    return (intent.get("client_secret") or intent.get("clientSecret")
            or config.get("client_secret") or config.get("clientSecret") or None)


def identity_flow_config(persona: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Inline identity-verification widget settings for a persona session"""
    persona = persona or {}
    config: Dict[str, Any] = {"inquiryId": persona.get("id")}
    if persona.get("sessionToken"):
        config["sessionToken"] = persona["sessionToken"]
    config["fields"] = {
        "nameFirst": persona.get("firstName") or "",
        "nameLast": persona.get("lastName") or "",
    }
    return config


def extract_api_error_message(payload: Any, fallback_message: str) -> str:
    """Best human-readable message from a {message, details} error body"""
    payload = _as_dict(payload)
    details = payload.get("details")

    if isinstance(details, str) and details.strip():
        return details

    if isinstance(details, dict):
        for key in ("message", "title"):
            if isinstance(details.get(key), str) and details[key].strip():
                return details[key]
        try:
            return json.dumps(details)
        except (TypeError, ValueError):
            return fallback_message

    if isinstance(payload.get("message"), str) and payload["message"].strip():
        return payload["message"]

    return fallback_message
