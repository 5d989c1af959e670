"""Study and participant directory models.

The registry portal owns richer study/participant records; these tables
carry only the columns the form engine reads (enrollment, the registry
study's external id) or writes back after a completed response (consent
confirmation and profile fields).
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from registry_db.models.base import Base


class Study(Base):
    """A research study; the registry study is found by ``external_study_id``."""

    __tablename__ = "studies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    external_study_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Study(id={self.id!s}, external_study_id={self.external_study_id!r})>"


class Participant(Base):
    """A participant profile linked to an authenticated user account."""

    __tablename__ = "participants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    # Account id issued by the authentication layer
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # Copied from completed form responses (first-name / last-name / birthdate)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    birthdate: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Set when the registry consent form is completed
    contact_permission_confirmed: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Participant(id={self.id!s}, user_id={self.user_id!r})>"


class StudyParticipant(Base):
    """Enrollment of a participant in a study."""

    __tablename__ = "study_participants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    study_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("studies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("study_id", "participant_id", name="uq_study_participant"),
    )
