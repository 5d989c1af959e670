"""Async repositories for forms, form responses, and the study directory.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods call ``flush()`` but never ``commit()``.

The repositories deliberately avoid business-logic validation — that
belongs in the SDK layer.  They *do* rely on DB constraints for structural
invariants: ``uq_form_version`` guards the version sequence and
``uq_form_participant`` guards the one-response-per-form rule.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_db.models.form import Form
from registry_db.models.form_response import FormResponse
from registry_db.models.study import Participant, Study, StudyParticipant


def _consent_first_order():
    """ORDER BY clauses putting consent forms first, then by name."""
    return (
        case((Form.type == FormType.CONSENT.value, 0), else_=1),
        Form.name.asc(),
    )


class FormRepository:
    """Async read/write operations on the ``forms`` table."""

    # ------------------------------------------------------------------
    # Create
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
        version: int = 1,
    ) -> Form:
        """Insert a form row at an explicit version.

        Runs inside a SAVEPOINT so a unique-constraint violation rolls back
        only this insert and surfaces as ``IntegrityError`` to the caller.
        """
        async with db.begin_nested():
            form = Form(
                study_id=study_id,
                name=name,
                type=form_type,
                version=version,
                schema=schema,
                created_by=created_by,
            )
            db.add(form)
            await db.flush()
        return form

    async def insert_next_version(
        self,
        db: AsyncSession,
        *,
        study_id: uuid.UUID,
        name: str,
        form_type: FormType,
        schema: dict[str, Any],
        created_by: str | None = None,
    ) -> Form:
        """Insert ``max(version) + 1`` for ``(study_id, name)`` atomically.

        The read and the insert share one SAVEPOINT.  Two writers that read
        the same maximum collide on ``uq_form_version``; the loser gets an
        ``IntegrityError`` and the outer transaction stays usable.
        """
        async with db.begin_nested():
            stmt = select(func.max(Form.version)).where(
                Form.study_id == study_id,
                Form.name == name,
            )
            current = (await db.execute(stmt)).scalar_one_or_none()
            form = Form(
                study_id=study_id,
                name=name,
                type=form_type,
                version=(current or 0) + 1,
                schema=schema,
                created_by=created_by,
            )
            db.add(form)
            await db.flush()
        return form

    # ------------------------------------------------------------------
    # Read: single row
    # ------------------------------------------------------------------

    async def get_by_id(self, db: AsyncSession, form_id: uuid.UUID) -> Form | None:
        """Fetch a form by its primary-key UUID."""
        return await db.get(Form, form_id)

    async def get_latest(
        self, db: AsyncSession, study_id: uuid.UUID, name: str
    ) -> Form | None:
        """Return the highest version of ``(study_id, name)``, if any."""
        stmt = (
            select(Form)
            .where(Form.study_id == study_id, Form.name == name)
            .order_by(Form.version.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Read: multiple rows
    # ------------------------------------------------------------------

    async def list_versions(
        self, db: AsyncSession, study_id: uuid.UUID, name: str
    ) -> list[Form]:
        """List every version of a form, newest first."""
        stmt = (
            select(Form)
            .where(Form.study_id == study_id, Form.name == name)
            .order_by(Form.version.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_current_forms(
        self,
        db: AsyncSession,
        study_id: uuid.UUID,
        *,
        form_type: FormType | None = None,
    ) -> list[Form]:
        """Return the highest version of every form name in a study.

        Ordered consent first, then alphabetically by name.
        """
        latest = (
            select(Form.name, func.max(Form.version).label("version"))
            .where(Form.study_id == study_id)
            .group_by(Form.name)
            .subquery()
        )
        stmt = (
            select(Form)
            .join(
                latest,
                (Form.name == latest.c.name) & (Form.version == latest.c.version),
            )
            .where(Form.study_id == study_id)
            .order_by(*_consent_first_order())
        )
        if form_type is not None:
            stmt = stmt.where(Form.type == form_type.value)
        result = await db.execute(stmt)
        return list(result.scalars().all())


class ResponseRepository:
    """Async read/write operations on the ``form_responses`` table."""

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create_response(
        self,
        db: AsyncSession,
        *,
        form_id: uuid.UUID,
        participant_id: uuid.UUID,
        responses: dict[str, Any],
        furthest_page: int = 0,
        is_complete: bool = False,
    ) -> FormResponse:
        """Insert the response row for a (form, participant) pair."""
        now = datetime.now(timezone.utc)
        row = FormResponse(
            form_id=form_id,
            participant_id=participant_id,
            responses=responses,
            furthest_page=furthest_page,
            is_complete=is_complete,
            last_updated_at=now,
            created_at=now,
        )
        db.add(row)
        await db.flush()
        return row

    async def patch_response(
        self,
        db: AsyncSession,
        row: FormResponse,
        *,
        responses: dict[str, Any],
        furthest_page: int,
        is_complete: bool,
    ) -> FormResponse:
        """Replace the answers and progress markers of an existing row."""
        # New dict so SQLAlchemy detects the JSONB mutation
        row.responses = dict(responses)
        row.furthest_page = furthest_page
        row.is_complete = is_complete
        row.last_updated_at = datetime.now(timezone.utc)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(
        self, db: AsyncSession, response_id: uuid.UUID
    ) -> FormResponse | None:
        """Fetch a response by its primary-key UUID."""
        return await db.get(FormResponse, response_id)

    async def get_for_form_and_participant(
        self, db: AsyncSession, form_id: uuid.UUID, participant_id: uuid.UUID
    ) -> FormResponse | None:
        """Fetch the unique response for ``(form_id, participant_id)``."""
        stmt = select(FormResponse).where(
            FormResponse.form_id == form_id,
            FormResponse.participant_id == participant_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_participant(
        self,
        db: AsyncSession,
        participant_id: uuid.UUID,
        *,
        form_ids: list[uuid.UUID] | None = None,
        is_complete: bool | None = None,
    ) -> list[FormResponse]:
        """List a participant's responses, optionally narrowed to some forms."""
        stmt = select(FormResponse).where(FormResponse.participant_id == participant_id)
        if form_ids is not None:
            if not form_ids:
                return []
            stmt = stmt.where(FormResponse.form_id.in_(form_ids))
        if is_complete is not None:
            stmt = stmt.where(FormResponse.is_complete.is_(is_complete))
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_completed_with_forms(
        self,
        db: AsyncSession,
        *,
        study_id: uuid.UUID,
        participant_id: uuid.UUID,
        form_type: FormType | None = None,
    ) -> list[tuple[Form, FormResponse]]:
        """Return (form, response) pairs for every completed form in a study.

        Any version counts, not only the current one.  Ordered consent
        first, then by name.
        """
        stmt = (
            select(Form, FormResponse)
            .join(FormResponse, FormResponse.form_id == Form.id)
            .where(
                Form.study_id == study_id,
                FormResponse.participant_id == participant_id,
                FormResponse.is_complete.is_(True),
            )
            .order_by(*_consent_first_order(), Form.version.desc())
        )
        if form_type is not None:
            stmt = stmt.where(Form.type == form_type.value)
        result = await db.execute(stmt)
        return [(form, response) for form, response in result.all()]


class DirectoryRepository:
    """Read-mostly lookups on studies, participants, and enrollments."""

    async def get_study(self, db: AsyncSession, study_id: uuid.UUID) -> Study | None:
        """Fetch a study by its primary-key UUID."""
        return await db.get(Study, study_id)

    async def get_study_by_external_id(
        self, db: AsyncSession, external_study_id: str
    ) -> Study | None:
        """Fetch a study by its configured external identifier."""
        stmt = select(Study).where(Study.external_study_id == external_study_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_participant(
        self, db: AsyncSession, participant_id: uuid.UUID
    ) -> Participant | None:
        """Fetch a participant by its primary-key UUID."""
        return await db.get(Participant, participant_id)

    async def is_enrolled(
        self, db: AsyncSession, study_id: uuid.UUID, participant_id: uuid.UUID
    ) -> bool:
        """True if the participant has an enrollment row for the study."""
        stmt = (
            select(StudyParticipant.id)
            .where(
                StudyParticipant.study_id == study_id,
                StudyParticipant.participant_id == participant_id,
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def update_participant(
        self, db: AsyncSession, participant: Participant, **fields: Any
    ) -> Participant:
        """Assign the given columns on a participant row."""
        for key, value in fields.items():
            setattr(participant, key, value)
        await db.flush()
        return participant
