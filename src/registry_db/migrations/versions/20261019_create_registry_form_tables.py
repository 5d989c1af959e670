"""Create study directory, form catalog, and form response tables.

``forms`` carries the ``uq_form_version`` constraint that serializes
concurrent revisions of the same (study, name); ``form_responses`` carries
``uq_form_participant`` so each participant has at most one row per form
version.

Revision ID: 20261019_registry_forms
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261019_registry_forms"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Directory ---
    op.create_table(
        "studies",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("external_study_id", sa.Text(), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_table(
        "participants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False, unique=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("birthdate", sa.Date(), nullable=True),
        sa.Column("contact_permission_confirmed", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_table(
        "study_participants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "study_id",
            UUID(as_uuid=True),
            sa.ForeignKey("studies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            UUID(as_uuid=True),
            sa.ForeignKey("participants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("study_id", "participant_id", name="uq_study_participant"),
    )
    op.create_index("ix_study_participants_study_id", "study_participants", ["study_id"])
    op.create_index(
        "ix_study_participants_participant_id", "study_participants", ["participant_id"]
    )

    # --- Form catalog ---
    op.create_table(
        "forms",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "study_id",
            UUID(as_uuid=True),
            sa.ForeignKey("studies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("schema", JSONB(), nullable=False),
        sa.Column("created_by", sa.Text(), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("study_id", "name", "version", name="uq_form_version"),
        sa.CheckConstraint("version >= 1", name="ck_form_version_positive"),
        sa.CheckConstraint("type IN ('consent', 'module')", name="ck_form_type"),
    )
    op.create_index("ix_forms_study_name", "forms", ["study_id", "name"])

    # --- Responses ---
    op.create_table(
        "form_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "form_id",
            UUID(as_uuid=True),
            sa.ForeignKey("forms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            UUID(as_uuid=True),
            sa.ForeignKey("participants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "responses", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "is_complete", sa.Boolean(), nullable=False, server_default=sa.text("false"),
        ),
        sa.Column(
            "furthest_page", sa.Integer(), nullable=False, server_default=sa.text("0"),
        ),
        sa.Column("last_updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("form_id", "participant_id", name="uq_form_participant"),
        sa.CheckConstraint("furthest_page >= 0", name="ck_furthest_page_non_negative"),
    )
    op.create_index(
        "ix_form_responses_participant_id", "form_responses", ["participant_id"]
    )
    op.create_index(
        "ix_complete_responses",
        "form_responses",
        ["participant_id", "form_id"],
        postgresql_where=sa.text("is_complete"),
    )


def downgrade() -> None:
    op.drop_index("ix_complete_responses", table_name="form_responses")
    op.drop_index("ix_form_responses_participant_id", table_name="form_responses")
    op.drop_table("form_responses")
    op.drop_index("ix_forms_study_name", table_name="forms")
    op.drop_table("forms")
    op.drop_index("ix_study_participants_participant_id", table_name="study_participants")
    op.drop_index("ix_study_participants_study_id", table_name="study_participants")
    op.drop_table("study_participants")
    op.drop_table("participants")
    op.drop_table("studies")
