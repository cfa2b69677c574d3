"""
Render models - Core layer
Display modes, input controls and widget completion messages of the step renderer
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ESIGN_CALLBACK_PATH = "/esign/callback"
SELECTED_OFFERS_ATTRIBUTE = "selectedOfferIds"
EIDV_PASSED_ATTRIBUTE = "eidvPassed"

# Browser-session storage keys
EXTERNAL_ID_STORAGE_KEY = "journeyExternalId"
SELECTED_OFFER_STORAGE_KEY = "selectedOfferId"
OFFER_VIEW_STEP_STORAGE_KEY = "offerViewStep"


class StepKind(str, Enum):
    """Display mode of a resolved step"""
    OFFERS = "offers"
    ESIGN = "esign"
    IDENTITY = "identity"
    PAYMENT = "payment"
    ACTION = "action"
    SUMMARY = "summary"
    DOCUMENTS_SIGNED = "documents-signed"
    VERIFICATION_SUCCESS = "verification-success"
    EMPTY = "empty"
    FORM = "form"


class FieldControl(str, Enum):
    """Input control a field is rendered with"""
    SELECT = "select"
    CHECKBOX = "checkbox"
    DATE = "date"
    DATETIME = "datetime-local"
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXTAREA = "textarea"
    PHONE = "phone"
    TEXT = "text"


class WidgetKind(str, Enum):
    """Embedded third-party widgets"""
    ESIGN = "esign"
    IDENTITY = "identity"
    PAYMENT = "payment"


class WidgetOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class WidgetEvent:
    """Completion message emitted by an embedded widget for one step+instance"""
    widget: WidgetKind
    outcome: WidgetOutcome
    step_key: str


@dataclass(frozen=True)
class PhoneCountry:
    code: str
    label: str
    flag: str = ""


DEFAULT_PHONE_COUNTRIES = (
    PhoneCountry(code="+1", label="US", flag="\U0001F1FA\U0001F1F8"),
    PhoneCountry(code="+40", label="RO", flag="\U0001F1F7\U0001F1F4"),
    PhoneCountry(code="+44", label="UK", flag="\U0001F1EC\U0001F1E7"),
)


@dataclass
class FieldView:
    """Everything needed to draw one field"""
    name: str
    label: str
    control: FieldControl
    value: Any = None
    input_type: str = "text"
    placeholder: str = ""
    required_badge: Optional[str] = None
    read_only: bool = False
    options: List[Dict[str, Any]] = field(default_factory=list)
    phone_countries: List[PhoneCountry] = field(default_factory=list)
    phone_country_code: Optional[str] = None
    phone_local_number: Optional[str] = None


@dataclass
class OfferCardView:
    """Offer card of an offers step"""
    offer_id: str
    offer_code: str
    card_id: str
    card_title: str
    description: str = ""
    benefits: List[str] = field(default_factory=list)
