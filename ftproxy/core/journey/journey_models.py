"""
Journey models and types - Core layer
Typed views over the engine's step payload; the pipeline itself passes plain dicts
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

CUSTOM_PROCESSOR_ACTION = "callCustomProcessor"

# Fixed payload sent with every custom-processor invocation
PLACEHOLDER_ACTION_VALUES = [{"attribute": "string", "value": "string"}]


class Direction(str, Enum):
    """Navigation direction for advance()"""
    NEXT = "next"
    PREVIOUS = "previous"


class FieldType(str, Enum):
    """Normalized field type names (lower-case, alphanumerics only)"""
    TEXT = "text"
    BOOL = "bool"
    DATE = "date"
    INVARIANT_DATE = "invariantdate"
    DATETIME = "datetime"
    WHOLE_NUMBER = "wholenumber"
    NUMERIC = "numeric"
    MONEY = "money"
    OPTION_SET = "optionset"
    TEXTAREA = "textarea"
    RAW_TEXT = "rawtext"
    HTML = "html"
    HTML_RAW = "htmlraw"
    XML = "xml"
    JSON = "json"
    CSS = "css"
    JS = "js"


LONG_TEXT_TYPES = {
    FieldType.TEXTAREA, FieldType.RAW_TEXT, FieldType.HTML, FieldType.HTML_RAW,
    FieldType.XML, FieldType.JSON, FieldType.CSS, FieldType.JS,
}


class OptionSetValue(BaseModel):
    """Single option of an option-set field"""
    model_config = ConfigDict(extra="allow")

    id: Any = None
    display_name: Optional[str] = Field(default=None, alias="displayName")


class FieldDescriptor(BaseModel):
    """Field on a step as sent by the engine"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    type: Optional[str] = None
    value: Any = None
    is_read_only: Optional[bool] = Field(default=False, alias="isReadOnly")
    is_visible: Optional[bool] = Field(default=None, alias="isVisible")
    required_level: Optional[Any] = Field(default=None, alias="requiredLevel")
    option_set_values: Optional[List[OptionSetValue]] = Field(default=None, alias="optionSetValues")
    ui: Optional[Dict[str, Any]] = None


class StepAction(BaseModel):
    """Server action declared on a step"""
    model_config = ConfigDict(extra="allow")

    # ids arrive as strings or numbers; the gateway stringifies path segments
    id: Any = None
    type: Any = None

    def is_custom_processor(self) -> bool:
        return self.type == CUSTOM_PROCESSOR_ACTION and bool(self.id)


class StepEnrichment(BaseModel):
    """Data folded into a step from custom-processor action responses"""
    available_offers: List[Dict[str, Any]] = Field(default_factory=list, alias="availableOffers")
    esign_url: Optional[str] = Field(default=None, alias="esignUrl")
    persona_response: Optional[Dict[str, Any]] = Field(default=None, alias="personaResponse")
    stripe_payment_details: Optional[Dict[str, Any]] = Field(default=None, alias="stripePaymentDetails")

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys, always all four present)"""
        return self.model_dump(by_alias=True)


def _scalar_to_text(value: Any) -> Any:
    """Numbers and booleans become strings; everything else is left to validation"""
    if isinstance(value, (bool, int, float)):
        return str(value).lower() if isinstance(value, bool) else str(value)
    return value


class NavigationValue(BaseModel):
    """One attribute/value pair submitted with next/previous (forwarded as given)"""
    attribute: Any = None
    value: Any = None


class LoadStepRequest(BaseModel):
    external_id: Optional[str] = Field(default=None, alias="externalId")

    @field_validator("external_id", mode="before")
    @classmethod
    def coerce_external_id(cls, value: Any) -> Any:
        return _scalar_to_text(value)


class NavigateRequest(BaseModel):
    external_id: Optional[str] = Field(default=None, alias="externalId")
    values: Optional[List[NavigationValue]] = None

    @field_validator("external_id", mode="before")
    @classmethod
    def coerce_external_id(cls, value: Any) -> Any:
        return _scalar_to_text(value)


class ViewItemRequest(BaseModel):
    external_id: Optional[str] = Field(default=None, alias="externalId")
    journey_step: Optional[str] = Field(default=None, alias="journeyStep")

    @field_validator("external_id", "journey_step", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _scalar_to_text(value)


def step_instance_id(step: Any) -> Optional[str]:
    """Instance identifier carried by a step or navigation payload"""
    if not isinstance(step, dict):
        return None
    return step.get("externalId") or step.get("instanceId") or None
