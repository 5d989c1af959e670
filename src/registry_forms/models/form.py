"""Form and response views: the contract between the SDK and API callers.

These models are intentionally decoupled from the ORM models in
``registry_db`` so that API consumers never see database internals.

Views:
  - FormInfo:            one immutable (study, name, version) form row
  - FormResponseInfo:    a participant's saved answers for one form
  - ResponsePlaceholder: the all-null stand-in for "no response yet"
  - FormWithResponse:    a form joined with its response (or placeholder)
  - ModuleListing:       the gating result ``{type, total, data}``
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from registry_db.models.enums import FormType


class FormInfo(BaseModel):
    """Public view of a form version.

    ``form_schema`` serializes as ``schema`` so the wire shape matches the
    stored column while avoiding a clash with ``BaseModel.schema``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    study_id: str
    name: str
    type: FormType
    version: int
    form_schema: dict = Field(alias="schema")
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "FormInfo":
        return cls(
            id=str(row.id),
            study_id=str(row.study_id),
            name=row.name,
            type=FormType(row.type),
            version=row.version,
            form_schema=row.schema,
            created_by=row.created_by,
            created_at=row.created_at,
        )


class FormResponseInfo(BaseModel):
    """Public view of a form response row."""

    id: str
    form_id: str
    participant_id: str
    responses: dict[str, Any]
    is_complete: bool
    furthest_page: int
    last_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "FormResponseInfo":
        return cls(
            id=str(row.id),
            form_id=str(row.form_id),
            participant_id=str(row.participant_id),
            responses=dict(row.responses or {}),
            is_complete=bool(row.is_complete),
            furthest_page=row.furthest_page or 0,
            last_updated_at=row.last_updated_at,
            created_at=row.created_at,
        )


class ResponsePlaceholder(BaseModel):
    """Response-shaped object with every field null.

    Returned in place of a response when the participant has not started
    the form yet, so the client can always read ``form_responses.<field>``.
    """

    id: None = None
    form_id: None = None
    participant_id: None = None
    responses: None = None
    is_complete: None = None
    furthest_page: None = None
    last_updated_at: None = None
    created_at: None = None


class FormWithResponse(FormInfo):
    """A form joined with the participant's response to it."""

    form_responses: Union[FormResponseInfo, ResponsePlaceholder] = Field(
        default_factory=ResponsePlaceholder
    )


class ModuleListing(BaseModel):
    """Result of module gating: which forms the participant should see next.

    ``type`` is CONSENT when the registry consent is outstanding (and then
    ``data`` holds exactly that one form); otherwise MODULE with the
    incomplete modules, which may be empty once everything is done.
    """

    type: FormType
    total: int
    data: list[FormWithResponse]

    @classmethod
    def of(cls, form_type: FormType, data: list[FormWithResponse]) -> "ModuleListing":
        return cls(type=form_type, total=len(data), data=data)

