"""Completed module responses — forms the participant has already finished."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_forms.gating import ModuleGatingResolver
from registry_forms.models.form import FormWithResponse

from registry_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from registry_server.dependencies import Caller, get_caller, get_db, get_gating

router = APIRouter(tags=["module-responses"])


@router.get("/module-responses")
async def list_module_responses(
    participant_id: str | None = Query(None),
    type: FormType | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    gating: ModuleGatingResolver = Depends(get_gating),
) -> list[FormWithResponse]:
    """List completed registry forms joined with their completed responses.

    Ordered consent first, then by name; ``type`` narrows to consent or
    module forms.  Returns 400 if an admin omits ``participant_id``.
    """
    pid = caller.participant_scope(participant_id)
    completed = await gating.completed_responses(db, pid, form_type=type)
    return completed[offset: offset + limit]
