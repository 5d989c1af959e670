"""FormResponseService — persists a participant's answers to one form version.

There is at most one response row per ``(form_id, participant_id)``;
``submit`` creates it on the first save and patches it afterwards.  When a
submission marks the response complete, two side effects run in the same
transaction:

  - completing the registry study's consent form stamps
    ``participant.contact_permission_confirmed``
  - ``first-name`` / ``last-name`` / ``birthdate`` answers are copied onto
    the participant record
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_db.repository import (
    DirectoryRepository,
    FormRepository,
    ResponseRepository,
)

from registry_forms.constants import PROFILE_FIELD_KEYS, REGISTRY_EXTERNAL_ID
from registry_forms.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from registry_forms.models.form import FormResponseInfo

logger = logging.getLogger(__name__)


def validate_responses(responses: dict[str, Any]) -> dict[str, Any]:
    """Check the flat answer map: string keys, string or boolean values."""
    if not isinstance(responses, dict):
        raise ValidationError("responses must be an object keyed by question id")
    for key, value in responses.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Invalid question id: {key!r}")
        if not isinstance(value, (str, bool)):
            raise ValidationError(
                f"Answer for '{key}' must be a string or boolean, "
                f"got {type(value).__name__}"
            )
    return dict(responses)


class FormResponseService:
    """Stateless create-or-patch of form responses."""

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

    async def submit(
        self,
        db: AsyncSession,
        *,
        form_id: uuid.UUID,
        participant_id: uuid.UUID,
        responses: dict[str, Any],
        furthest_page: int = 0,
        is_complete: bool = False,
    ) -> FormResponseInfo:
        """Save answers for ``(form_id, participant_id)``.

        Raises:
            ValidationError: malformed answers or a negative furthest_page
            NotFoundError: the form does not exist
            ForbiddenError: the participant is not enrolled in the form's study
            ConflictError: a concurrent first save created the row first
        """
        answers = validate_responses(responses)
        if furthest_page < 0:
            raise ValidationError("furthest_page must be >= 0")

        form = await self._forms.get_by_id(db, form_id)
        if form is None:
            raise NotFoundError(f"Form not found: {form_id}")
        if not await self._directory.is_enrolled(db, form.study_id, participant_id):
            raise ForbiddenError(
                f"Participant {participant_id} is not enrolled in the form's study"
            )

        row = await self._responses.get_for_form_and_participant(
            db, form_id, participant_id
        )
        if row is None:
            try:
                row = await self._responses.create_response(
                    db,
                    form_id=form_id,
                    participant_id=participant_id,
                    responses=answers,
                    furthest_page=furthest_page,
                    is_complete=is_complete,
                )
            except IntegrityError as exc:
                raise ConflictError(
                    f"Response for form {form_id} was created concurrently; retry"
                ) from exc
            logger.info("Created response %s for form %s", row.id, form_id)
        else:
            row = await self._responses.patch_response(
                db,
                row,
                responses=answers,
                furthest_page=furthest_page,
                is_complete=is_complete,
            )

        if is_complete:
            await self._after_complete(db, form, participant_id, answers)

        return FormResponseInfo.from_row(row)

    async def get_response(
        self,
        db: AsyncSession,
        response_id: uuid.UUID,
        *,
        participant_id: uuid.UUID | None = None,
    ) -> FormResponseInfo:
        """Fetch a response; when ``participant_id`` is given it must own the row."""
        row = await self._responses.get_by_id(db, response_id)
        if row is None:
            raise NotFoundError(f"Response not found: {response_id}")
        if participant_id is not None and row.participant_id != participant_id:
            raise ForbiddenError("Response belongs to another participant")
        return FormResponseInfo.from_row(row)

    async def get_for_form(
        self, db: AsyncSession, form_id: uuid.UUID, participant_id: uuid.UUID
    ) -> FormResponseInfo | None:
        """The participant's response to one form version, if started."""
        if await self._forms.get_by_id(db, form_id) is None:
            raise NotFoundError(f"Form not found: {form_id}")
        row = await self._responses.get_for_form_and_participant(
            db, form_id, participant_id
        )
        return FormResponseInfo.from_row(row) if row is not None else None

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _after_complete(
        self,
        db: AsyncSession,
        form: Any,
        participant_id: uuid.UUID,
        answers: dict[str, Any],
    ) -> None:
        participant = await self._directory.get_participant(db, participant_id)
        if participant is None:
            logger.warning("Participant %s vanished during submit", participant_id)
            return

        fields: dict[str, Any] = {}
        if FormType(form.type) == FormType.CONSENT and await self._is_registry_study(
            db, form.study_id
        ):
            fields["contact_permission_confirmed"] = datetime.now(timezone.utc)

        fields.update(self._profile_fields(answers))
        if fields:
            await self._directory.update_participant(db, participant, **fields)
            logger.info(
                "Updated participant %s from form %s: %s",
                participant_id, form.name, sorted(fields),
            )

    async def _is_registry_study(self, db: AsyncSession, study_id: uuid.UUID) -> bool:
        study = await self._directory.get_study(db, study_id)
        return study is not None and study.external_study_id == self.registry_external_id

    @staticmethod
    def _profile_fields(answers: dict[str, Any]) -> dict[str, Any]:
        """Participant columns to update from profile answers.

        Names are copied only as a pair.  Unparseable birthdates are logged
        and skipped.
        """
        fields: dict[str, Any] = {}
        first = answers.get("first-name")
        last = answers.get("last-name")
        if isinstance(first, str) and isinstance(last, str) and first and last:
            fields[PROFILE_FIELD_KEYS["first-name"]] = first
            fields[PROFILE_FIELD_KEYS["last-name"]] = last

        birthdate = answers.get("birthdate")
        if isinstance(birthdate, str) and birthdate:
            try:
                fields[PROFILE_FIELD_KEYS["birthdate"]] = date.fromisoformat(birthdate)
            except ValueError:
                logger.warning("Ignoring unparseable birthdate %r", birthdate)
        return fields
