"""FormVersionResolver — creates and revises immutable form versions.

Forms are never edited in place.  ``create_form`` inserts version 1 and
``revise_form`` inserts ``max(version) + 1`` for the same
``(study_id, name)``; prior rows, and the responses attached to them, are
left untouched.  Responses do not carry over to the new version.

Concurrent revisions race on the ``uq_form_version`` constraint.  The
storage layer performs the read-max-then-insert inside a SAVEPOINT, so the
loser sees ``IntegrityError`` with its outer transaction intact; the
resolver retries a bounded number of times and then raises
``ConflictError``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import pydantic
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_db.repository import DirectoryRepository, FormRepository

from registry_forms.constants import VERSION_CONFLICT_RETRIES
from registry_forms.errors import ConflictError, NotFoundError, ValidationError
from registry_forms.models.form import FormInfo
from registry_forms.models.schema import SurveySchema

logger = logging.getLogger(__name__)


def validate_schema(schema: dict[str, Any]) -> SurveySchema:
    """Parse a raw schema document, mapping pydantic errors to ``ValidationError``."""
    try:
        return SurveySchema.model_validate(schema)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid form schema: {exc.error_count()} error(s)") from exc


class FormVersionResolver:
    """Stateless create/revise/lookup over the form catalog."""

    def __init__(
        self,
        *,
        forms: FormRepository | None = None,
        directory: DirectoryRepository | None = None,
        retries: int = VERSION_CONFLICT_RETRIES,
    ) -> None:
        self._forms = forms or FormRepository()
        self._directory = directory or DirectoryRepository()
        self._retries = max(retries, 1)

    @property
    def forms(self) -> FormRepository:
        return self._forms

    @property
    def directory(self) -> DirectoryRepository:
        return self._directory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_form(
        self,
        db: AsyncSession,
        *,
        study_id: uuid.UUID,
        name: str,
        form_type: FormType,
        schema: dict[str, Any],
        created_by: str | None = None,
    ) -> FormInfo:
        """Insert version 1 of a new form.

        Raises:
            ValidationError: the schema is invalid or the form already exists
            NotFoundError: the study does not exist
        """
        validate_schema(schema)
        if await self._directory.get_study(db, study_id) is None:
            raise NotFoundError(f"Study not found: {study_id}")

        existing = await self._forms.get_latest(db, study_id, name)
        if existing is not None:
            raise ValidationError(
                f"Form already exists: study_id={study_id}, name={name} "
                f"(current version {existing.version}); revise it instead"
            )

        try:
            row = await self._forms.create_form(
                db,
                study_id=study_id,
                name=name,
                form_type=form_type,
                schema=schema,
                created_by=created_by,
                version=1,
            )
        except IntegrityError as exc:
            raise ValidationError(
                f"Form already exists: study_id={study_id}, name={name}, version=1"
            ) from exc

        logger.info("Created form %s v1 in study %s (%s)", name, study_id, row.id)
        return FormInfo.from_row(row)

    async def revise_form(
        self,
        db: AsyncSession,
        *,
        study_id: uuid.UUID,
        name: str,
        schema: dict[str, Any],
        created_by: str | None = None,
        form_type: FormType | None = None,
    ) -> FormInfo:
        """Insert the next version of an existing form.

        The form type is carried over from the current version unless
        ``form_type`` is given.

        Raises:
            ValidationError: the schema is invalid
            NotFoundError: no prior version exists
            ConflictError: every retry lost the version race
        """
        validate_schema(schema)
        latest = await self._forms.get_latest(db, study_id, name)
        if latest is None:
            raise NotFoundError(f"Form not found: study_id={study_id}, name={name}")

        new_type = form_type or FormType(latest.type)
        for attempt in range(1, self._retries + 1):
            try:
                row = await self._forms.insert_next_version(
                    db,
                    study_id=study_id,
                    name=name,
                    form_type=new_type,
                    schema=schema,
                    created_by=created_by,
                )
            except IntegrityError:
                logger.warning(
                    "Version conflict revising %s in study %s (attempt %d/%d)",
                    name, study_id, attempt, self._retries,
                )
                continue
            logger.info(
                "Revised form %s in study %s: v%d -> v%d",
                name, study_id, latest.version, row.version,
            )
            return FormInfo.from_row(row)

        raise ConflictError(
            f"Concurrent revision of form {name} in study {study_id}; retry the request"
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_form(self, db: AsyncSession, form_id: uuid.UUID) -> FormInfo:
        row = await self._forms.get_by_id(db, form_id)
        if row is None:
            raise NotFoundError(f"Form not found: {form_id}")
        return FormInfo.from_row(row)

    async def get_current(
        self, db: AsyncSession, study_id: uuid.UUID, name: str
    ) -> FormInfo:
        """The highest version of ``(study_id, name)``."""
        row = await self._forms.get_latest(db, study_id, name)
        if row is None:
            raise NotFoundError(f"Form not found: study_id={study_id}, name={name}")
        return FormInfo.from_row(row)

    async def list_versions(
        self, db: AsyncSession, study_id: uuid.UUID, name: str
    ) -> list[FormInfo]:
        rows = await self._forms.list_versions(db, study_id, name)
        if not rows:
            raise NotFoundError(f"Form not found: study_id={study_id}, name={name}")
        return [FormInfo.from_row(r) for r in rows]

    async def list_current(
        self,
        db: AsyncSession,
        study_id: uuid.UUID,
        *,
        form_type: FormType | None = None,
    ) -> list[FormInfo]:
        """Current version of every form in a study, consent first then by name."""
        rows = await self._forms.list_current_forms(db, study_id, form_type=form_type)
        return [FormInfo.from_row(r) for r in rows]
