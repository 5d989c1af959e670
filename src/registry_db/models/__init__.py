"""ORM models for registry_db."""

from registry_db.models.base import Base
from registry_db.models.enums import FormType
from registry_db.models.form import Form
from registry_db.models.form_response import FormResponse
from registry_db.models.study import Participant, Study, StudyParticipant

__all__ = [
    "Base",
    "FormType",
    "Form",
    "FormResponse",
    "Participant",
    "Study",
    "StudyParticipant",
]
