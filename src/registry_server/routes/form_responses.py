"""Form response endpoints — save and read a participant's answers.

A participant saves answers for their own ``X-Participant-ID``; an admin
acting on a participant's behalf names them in the body.  The same
endpoint creates the response on first save and patches it afterwards.
"""

import uuid
from typing import Any, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from registry_forms.models.form import FormResponseInfo, ResponsePlaceholder
from registry_forms.responses import FormResponseService

from registry_server.dependencies import (
    Caller,
    CallerRole,
    get_caller,
    get_db,
    get_response_service,
)

router = APIRouter(tags=["form-responses"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class SubmitResponseRequest(BaseModel):
    """Body for POST /form-responses."""

    form_id: uuid.UUID
    # Only honoured for admins; participants always submit as themselves
    participant_id: uuid.UUID | None = None
    responses: dict[str, Any]
    furthest_page: int = Field(0, ge=0)
    is_complete: bool = False


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/form-responses")
async def submit_response(
    body: SubmitResponseRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    service: FormResponseService = Depends(get_response_service),
) -> FormResponseInfo:
    """Create or update the caller's response to one form version.

    Returns 403 if the participant is not enrolled in the form's study,
    404 if the form does not exist, 422 for non string/boolean answers.
    """
    pid = caller.participant_scope(body.participant_id)
    return await service.submit(
        db,
        form_id=body.form_id,
        participant_id=pid,
        responses=body.responses,
        furthest_page=body.furthest_page,
        is_complete=body.is_complete,
    )


@router.get("/form-responses/{response_id}")
async def get_response(
    response_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    service: FormResponseService = Depends(get_response_service),
) -> FormResponseInfo:
    """Fetch one response.  Participants may only read their own."""
    owner = None
    if caller.role != CallerRole.ADMIN:
        owner = caller.participant_scope(None)
    return await service.get_response(db, response_id, participant_id=owner)


@router.get("/forms/{form_id}/response")
async def get_response_for_form(
    form_id: uuid.UUID,
    participant_id: uuid.UUID | None = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    service: FormResponseService = Depends(get_response_service),
) -> Union[FormResponseInfo, ResponsePlaceholder]:
    """The participant's response to a form, or null placeholders if not started."""
    pid = caller.participant_scope(participant_id)
    info = await service.get_for_form(db, form_id, pid)
    return info if info is not None else ResponsePlaceholder()
