"""registry_forms — dynamic survey/form workflow SDK.

Public API:
    FormVersionResolver  — creates version 1 and revises forms to max+1
    ModuleGatingResolver — decides consent-then-modules gating per participant
    FormResponseService  — create-or-patch of a participant's answers
    SurveyStateMachine   — in-process visibility, resets, and page navigation
    VisibilityEvaluator  — interpreter for grouped enableWhen conditions
    FormCatalogStore     — loads form definitions from forms/ on disk
    sync_catalog         — pushes the on-disk catalog into the database

Pure helpers:
    compute_visibility   — (schema, responses) -> VisibilityMap
    apply_hidden_resets  — (responses, VisibilityMap) -> responses
    evaluate_visibility  — visibility of a single page or component

Errors (all ``ValueError`` subclasses with ``kind`` / ``status_code``):
    FormsError, ValidationError, NotFoundError, BadRequestError,
    ForbiddenError, ConflictError
"""

from registry_forms.catalog import FormCatalogStore, SyncResult, sync_catalog
from registry_forms.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    FormsError,
    NotFoundError,
    ValidationError,
)
from registry_forms.evaluator import VisibilityEvaluator, evaluate_visibility
from registry_forms.gating import GatingState, ModuleGatingResolver, gating_state
from registry_forms.models import (
    FormInfo,
    FormResponseInfo,
    FormWithResponse,
    ModuleListing,
    SurveySchema,
    SurveySnapshot,
    VisibilityMap,
)
from registry_forms.responses import FormResponseService
from registry_forms.survey import (
    SurveyStateMachine,
    apply_hidden_resets,
    compute_visibility,
    recompute_survey,
)
from registry_forms.versioning import FormVersionResolver

__all__ = [
    # Services
    "FormCatalogStore",
    "FormResponseService",
    "FormVersionResolver",
    "ModuleGatingResolver",
    "SyncResult",
    "sync_catalog",
    # Survey
    "SurveyStateMachine",
    "VisibilityEvaluator",
    "apply_hidden_resets",
    "compute_visibility",
    "evaluate_visibility",
    "recompute_survey",
    # Gating
    "GatingState",
    "gating_state",
    # Models
    "FormInfo",
    "FormResponseInfo",
    "FormWithResponse",
    "ModuleListing",
    "SurveySchema",
    "SurveySnapshot",
    "VisibilityMap",
    # Errors
    "BadRequestError",
    "ConflictError",
    "ForbiddenError",
    "FormsError",
    "NotFoundError",
    "ValidationError",
]
