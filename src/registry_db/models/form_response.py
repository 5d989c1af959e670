"""FormResponse ORM model — one row per (form version, participant).

``responses`` is a flat JSONB object keyed by component id: checkbox
components store booleans, everything else stores strings.  The row is
created on the first submission for that exact form version and patched
afterwards; it is never deleted.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from registry_db.models.base import Base


class FormResponse(Base):
    """A participant's in-progress or completed answers to one form version."""

    __tablename__ = "form_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
    )
    participant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    responses: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    is_complete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false"),
    )
    # Highest page index reached; used to resume multi-page forms
    furthest_page: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )

    last_updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("form_id", "participant_id", name="uq_form_participant"),
        CheckConstraint("furthest_page >= 0", name="ck_furthest_page_non_negative"),
        # Gating joins on (participant, completion) for every fetch
        Index(
            "ix_complete_responses",
            "participant_id",
            "form_id",
            postgresql_where=text("is_complete"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<FormResponse(id={self.id!s}, form={self.form_id!s}, "
            f"participant={self.participant_id!s}, complete={self.is_complete})>"
        )
