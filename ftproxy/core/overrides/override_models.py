"""
Step override document models - Core layer
Used to validate override documents; the resolver reads the raw mapping tolerantly
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

UI_HINT_STRING_KEYS = ("placeholder", "inputType", "mask", "defaultCountryCode")
UI_HINT_BOOL_KEYS = ("phoneCountrySelect",)
UI_HINT_LIST_KEYS = ("phoneCountries",)


class PhoneCountry(BaseModel):
    """Country prefix offered by a phone field"""
    code: str
    label: Optional[str] = None
    flag: Optional[str] = None


class FieldOverride(BaseModel):
    """Override directive for one field of a step"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    order_idx: Optional[float] = Field(default=None, alias="orderIdx")
    order_index: Optional[float] = Field(default=None, alias="orderIndex")
    is_visible: Optional[bool] = Field(default=None, alias="isVisible")
    placeholder: Optional[str] = None
    input_type: Optional[str] = Field(default=None, alias="inputType")
    mask: Optional[str] = None
    phone_country_select: Optional[bool] = Field(default=None, alias="phoneCountrySelect")
    default_country_code: Optional[str] = Field(default=None, alias="defaultCountryCode")
    phone_countries: Optional[List[Union[str, PhoneCountry]]] = Field(default=None, alias="phoneCountries")


class StepOverride(BaseModel):
    """Overrides for a single named step"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    journey_step: str = Field(alias="journeyStep")
    fields: List[FieldOverride] = Field(default_factory=list)


class FlowOverrides(BaseModel):
    """Named grouping of step overrides"""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    steps: List[StepOverride] = Field(default_factory=list)


class StepOverrideDocument(BaseModel):
    """Whole override document"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    journey_name: Optional[str] = Field(default=None, alias="journeyName")
    form_driven_flows: List[FlowOverrides] = Field(default_factory=list, alias="formDrivenFlows")

    def step_names(self) -> List[str]:
        return [step.journey_step for flow in self.form_driven_flows for step in flow.steps]


def validate_document(data: Dict[str, Any]) -> StepOverrideDocument:
    """Strictly validate a loaded override mapping (raises pydantic.ValidationError)"""
    return StepOverrideDocument.model_validate(data)
