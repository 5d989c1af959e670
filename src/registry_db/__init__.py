"""registry_db — PostgreSQL persistence layer for registry forms.

This package provides the ORM models, async engine factory, and
repositories for the form catalog, participant responses, and the
study/participant directory the gating rules read from.  It is consumed
by the ``registry_forms`` SDK and the FastAPI server.
"""

from registry_db.engine import get_engine, get_session_factory, session_scope
from registry_db.models.enums import FormType
from registry_db.models.form import Form
from registry_db.models.form_response import FormResponse
from registry_db.models.study import Participant, Study, StudyParticipant
from registry_db.repository import (
    DirectoryRepository,
    FormRepository,
    ResponseRepository,
)

__all__ = [
    "Form",
    "FormResponse",
    "FormType",
    "Participant",
    "Study",
    "StudyParticipant",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "DirectoryRepository",
    "FormRepository",
    "ResponseRepository",
]
