"""Form ORM model — one immutable row per (study, name, version).

Forms are never edited in place.  A revision inserts a new row with the
next version number, so responses always point at the exact schema the
participant answered.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from registry_db.models.base import Base
from registry_db.models.enums import FormType


class Form(Base):
    """A named, versioned form definition scoped to a study."""

    __tablename__ = "forms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    study_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("studies.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[FormType] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=FormType.MODULE,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # --- Definition ---
    # {title, showWithdrawIfComplete, pages: [{enableWhen?, components: [...]}]}
    schema: Mapped[dict] = mapped_column(JSONB, nullable=False)

    # --- Audit ---
    created_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # Concurrent revisions racing to max(version) + 1 collide here
        UniqueConstraint("study_id", "name", "version", name="uq_form_version"),
        CheckConstraint("version >= 1", name="ck_form_version_positive"),
        CheckConstraint(
            "type IN ('consent', 'module')",
            name="ck_form_type",
        ),
        Index("ix_forms_study_name", "study_id", "name"),
    )

    def __repr__(self) -> str:
        return (
            f"<Form(id={self.id!s}, study={self.study_id!s}, "
            f"name={self.name!r}, version={self.version})>"
        )
