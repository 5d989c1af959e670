"""Module gating endpoint — which registry forms a participant must fill next.

Participants always see their own modules (the path id is ignored in
favour of ``X-Participant-ID``); admins may query any participant;
coordinators are refused.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from registry_forms.gating import ModuleGatingResolver
from registry_forms.models.form import ModuleListing

from registry_server.dependencies import Caller, get_caller, get_db, get_gating

router = APIRouter(tags=["modules"])


@router.get("/modules/{participant_id}")
async def get_modules(
    participant_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    gating: ModuleGatingResolver = Depends(get_gating),
) -> ModuleListing:
    """Return ``{type, total, data}`` for the participant's next forms.

    ``type`` is ``consent`` while the registry consent is outstanding,
    otherwise ``module`` (with an empty ``data`` once everything is done).
    Participants not enrolled in the registry study get an empty listing.
    """
    pid = caller.participant_scope(participant_id)
    return await gating.resolve(db, pid)
