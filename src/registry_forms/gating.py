"""ModuleGatingResolver — decides which registry forms a participant sees next.

Gating works on the current (highest) version of every form in the
registry study, identified by ``REGISTRY_EXTERNAL_ID``:

  - NEEDS_CONSENT:  the consent form has no complete response; only the
                    consent form is returned, type CONSENT
  - NEEDS_MODULES:  consent is complete; every module without a complete
                    response is returned, type MODULE, sorted by name
  - ALL_COMPLETE:   nothing left; an empty MODULE listing

"Complete" is checked against the exact ``form_id`` of the current
version, so revising a form re-opens it for everyone who completed an
older version.

Participants not enrolled in the registry study get an empty MODULE
listing rather than an error.
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_db.repository import (
    DirectoryRepository,
    FormRepository,
    ResponseRepository,
)

from registry_forms.constants import REGISTRY_EXTERNAL_ID
from registry_forms.errors import BadRequestError
from registry_forms.models.form import (
    FormInfo,
    FormResponseInfo,
    FormWithResponse,
    ModuleListing,
    ResponsePlaceholder,
)

logger = logging.getLogger(__name__)


class GatingState(str, enum.Enum):
    NEEDS_CONSENT = "needs_consent"
    NEEDS_MODULES = "needs_modules"
    ALL_COMPLETE = "all_complete"


def gating_state(listing: ModuleListing) -> GatingState:
    """Classify a listing returned by :meth:`ModuleGatingResolver.resolve`."""
    if listing.type == FormType.CONSENT:
        return GatingState.NEEDS_CONSENT
    if listing.data:
        return GatingState.NEEDS_MODULES
    return GatingState.ALL_COMPLETE


def select_outstanding(
    forms: list[Any], responses_by_form: dict[Any, Any]
) -> tuple[FormType, list[Any]]:
    """Pure gating rule over current forms and the participant's responses.

    ``forms`` must already be ordered consent first, then by name.  Returns
    the listing type and the forms to show.
    """
    outstanding = [
        form
        for form in forms
        if not (
            form.id in responses_by_form and responses_by_form[form.id].is_complete
        )
    ]
    if outstanding and FormType(outstanding[0].type) == FormType.CONSENT:
        return FormType.CONSENT, [outstanding[0]]
    return FormType.MODULE, [
        f for f in outstanding if FormType(f.type) == FormType.MODULE
    ]


def parse_participant_id(participant_id: Any) -> uuid.UUID:
    """Coerce a query value to a UUID, raising ``BadRequestError`` if absent or malformed."""
    if participant_id is None or participant_id == "":
        raise BadRequestError("participant_id is required")
    if isinstance(participant_id, uuid.UUID):
        return participant_id
    try:
        return uuid.UUID(str(participant_id))
    except ValueError as exc:
        raise BadRequestError(f"Invalid participant_id: {participant_id}") from exc


class ModuleGatingResolver:
    """Stateless gating over the registry study's current forms."""

    def __init__(
        self,
        *,
        registry_external_id: str = REGISTRY_EXTERNAL_ID,
        forms: FormRepository | None = None,
        responses: ResponseRepository | None = None,
        directory: DirectoryRepository | None = None,
    ) -> None:
        self.registry_external_id = registry_external_id
        self._forms = forms or FormRepository()
        self._responses = responses or ResponseRepository()
        self._directory = directory or DirectoryRepository()

    async def resolve(self, db: AsyncSession, participant_id: Any) -> ModuleListing:
        """Return the forms the participant should complete next."""
        pid = parse_participant_id(participant_id)

        study_id = await self._registry_study_for(db, pid)
        if study_id is None:
            return ModuleListing.of(FormType.MODULE, [])

        forms = await self._forms.list_current_forms(db, study_id)
        rows = await self._responses.list_for_participant(
            db, pid, form_ids=[f.id for f in forms]
        )
        by_form = {r.form_id: r for r in rows}

        listing_type, selected = select_outstanding(forms, by_form)
        data = [self._join(form, by_form.get(form.id)) for form in selected]
        listing = ModuleListing.of(listing_type, data)
        logger.debug(
            "Gating participant %s: %s (%d form(s))",
            pid, gating_state(listing).value, listing.total,
        )
        return listing

    async def completed_responses(
        self,
        db: AsyncSession,
        participant_id: Any,
        *,
        form_type: FormType | None = None,
    ) -> list[FormWithResponse]:
        """Completed registry forms (any version) joined with their responses.

        Ordered consent first, then by name.
        """
        pid = parse_participant_id(participant_id)
        study_id = await self._registry_study_for(db, pid)
        if study_id is None:
            return []
        pairs = await self._responses.list_completed_with_forms(
            db, study_id=study_id, participant_id=pid, form_type=form_type
        )
        return [self._join(form, response) for form, response in pairs]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _registry_study_for(
        self, db: AsyncSession, participant_id: uuid.UUID
    ) -> uuid.UUID | None:
        """Registry study id if the participant is enrolled in it, else None."""
        study = await self._directory.get_study_by_external_id(
            db, self.registry_external_id
        )
        if study is None:
            logger.warning(
                "Registry study '%s' does not exist", self.registry_external_id
            )
            return None
        if not await self._directory.is_enrolled(db, study.id, participant_id):
            logger.debug(
                "Participant %s not enrolled in registry study %s",
                participant_id, self.registry_external_id,
            )
            return None
        return study.id

    @staticmethod
    def _join(form: Any, response: Any | None) -> FormWithResponse:
        info = FormInfo.from_row(form)
        return FormWithResponse(
            **info.model_dump(),
            form_responses=(
                FormResponseInfo.from_row(response)
                if response is not None
                else ResponsePlaceholder()
            ),
        )
