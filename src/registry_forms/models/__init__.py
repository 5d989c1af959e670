"""Public model re-exports for registry_forms.

Consumers should import from ``registry_forms.models`` rather than
reaching into sub-modules directly.
"""

# --- Conditions ---
from registry_forms.models.conditions import Condition, Equals, HasAnswer, IsFalsy

# --- Schema ---
from registry_forms.models.schema import Component, EnableWhen, Page, SurveySchema

# --- Form / response views ---
from registry_forms.models.form import (
    FormInfo,
    FormResponseInfo,
    FormWithResponse,
    ModuleListing,
    ResponsePlaceholder,
)

# --- Survey state ---
from registry_forms.models.survey import (
    ComponentState,
    PageState,
    SurveySnapshot,
    VisibilityMap,
)

__all__ = [
    # Conditions
    "Condition",
    "Equals",
    "HasAnswer",
    "IsFalsy",
    # Schema
    "Component",
    "EnableWhen",
    "Page",
    "SurveySchema",
    # Views
    "FormInfo",
    "FormResponseInfo",
    "FormWithResponse",
    "ModuleListing",
    "ResponsePlaceholder",
    # Survey
    "ComponentState",
    "PageState",
    "SurveySnapshot",
    "VisibilityMap",
]
