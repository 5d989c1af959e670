"""Form authoring endpoints — create, revise, look up, and preview forms.

Forms are immutable: ``POST /forms`` creates version 1 and ``PATCH /forms``
inserts the next version.  Authoring is limited to admins and
coordinators; reading and previewing is open to any authenticated caller.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_forms.models.form import FormInfo
from registry_forms.models.survey import SurveySnapshot
from registry_forms.survey import SurveyStateMachine
from registry_forms.versioning import FormVersionResolver

from registry_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from registry_server.dependencies import (
    Caller,
    CallerRole,
    get_caller,
    get_db,
    get_versions,
)

router = APIRouter(tags=["forms"])

_AUTHOR_ROLES = (CallerRole.ADMIN, CallerRole.COORDINATOR)


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CreateFormRequest(BaseModel):
    """Body for POST /forms."""

    model_config = ConfigDict(populate_by_name=True)

    study_id: uuid.UUID
    name: str = Field(min_length=1)
    type: FormType = FormType.MODULE
    form_schema: dict[str, Any] = Field(alias="schema")


class ReviseFormRequest(BaseModel):
    """Body for PATCH /forms — ``type`` defaults to the current version's."""

    model_config = ConfigDict(populate_by_name=True)

    study_id: uuid.UUID
    name: str = Field(min_length=1)
    type: FormType | None = None
    form_schema: dict[str, Any] = Field(alias="schema")


class PreviewRequest(BaseModel):
    """Body for POST /forms/{form_id}/preview."""

    responses: dict[str, Any] = {}
    furthest_page: int = Field(0, ge=0)
    is_complete: bool = False


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/forms", status_code=201)
async def create_form(
    body: CreateFormRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> FormInfo:
    """Create version 1 of a form.

    Returns 422 if the form already exists or the schema is invalid.
    """
    caller.require_role(*_AUTHOR_ROLES)
    return await versions.create_form(
        db,
        study_id=body.study_id,
        name=body.name,
        form_type=body.type,
        schema=body.form_schema,
        created_by=caller.user_id,
    )


@router.patch("/forms")
async def revise_form(
    body: ReviseFormRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> FormInfo:
    """Insert the next version of an existing form.

    Returns 404 if the form has no prior version and 409 if concurrent
    revisions kept winning the version race.
    """
    caller.require_role(*_AUTHOR_ROLES)
    return await versions.revise_form(
        db,
        study_id=body.study_id,
        name=body.name,
        schema=body.form_schema,
        created_by=caller.user_id,
        form_type=body.type,
    )


@router.get("/forms/{form_id}")
async def get_form(
    form_id: uuid.UUID,
    _caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> FormInfo:
    return await versions.get_form(db, form_id)


@router.get("/studies/{study_id}/forms")
async def list_current_forms(
    study_id: uuid.UUID,
    type: FormType | None = Query(None),
    _caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> list[FormInfo]:
    """Current version of every form in the study, consent first then by name."""
    return await versions.list_current(db, study_id, form_type=type)


@router.get("/studies/{study_id}/forms/{name}")
async def get_current_form(
    study_id: uuid.UUID,
    name: str,
    _caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> FormInfo:
    """The highest version of ``name`` in the study."""
    return await versions.get_current(db, study_id, name)


@router.get("/studies/{study_id}/forms/{name}/versions")
async def list_form_versions(
    study_id: uuid.UUID,
    name: str,
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    _caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> list[FormInfo]:
    """Every version of ``name``, newest first."""
    rows = await versions.list_versions(db, study_id, name)
    return rows[offset: offset + limit]


@router.post("/forms/{form_id}/preview")
async def preview_form(
    form_id: uuid.UUID,
    body: PreviewRequest,
    _caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    versions: FormVersionResolver = Depends(get_versions),
) -> SurveySnapshot:
    """Run the survey state machine over the supplied answers.

    Returns the derived state (visible pages, page numbers, reset answers,
    resume page) without persisting anything.
    """
    form = await versions.get_form(db, form_id)
    machine = SurveyStateMachine(
        form.form_schema,
        body.responses,
        furthest_page=body.furthest_page,
        is_complete=body.is_complete,
    )
    return machine.snapshot()
