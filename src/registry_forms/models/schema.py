"""Pydantic models for form schema JSON.

Form definitions are authored as JSON/YAML documents shaped like::

    {
      "title": "...",
      "showWithdrawIfComplete": false,
      "pages": [
        {
          "enableWhen": [{"question": "q1", "answer": "yes"}],
          "components": [
            {"id": "q2", "type": "radio", "isRequired": true,
             "enableWhen": [{"question": "q1", "hasAnswer": true}]},
            {"type": "text"}
          ]
        }
      ]
    }

Field names keep the camelCase spelling of the stored JSON through aliases.
Unknown keys (labels, options, help text, ...) are preserved because the
engine only interprets visibility, ids, types, and requiredness.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from registry_forms.constants import CHECKBOX_TYPE
from registry_forms.models.conditions import (
    Condition,
    Equals,
    HasAnswer,
    IsFalsy,
)


class EnableWhen(BaseModel):
    """One raw ``enableWhen`` entry as stored in the schema.

    Exactly one interpretation applies, checked in this order:
    ``hasAnswer`` → ``answer: false`` → any other ``answer``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    question: str
    answer: Any = None
    has_answer: Optional[bool] = Field(None, alias="hasAnswer")

    def to_condition(self) -> Condition | None:
        """Translate into a tagged condition, or None if the entry is malformed."""
        if self.has_answer is not None:
            return HasAnswer(question=self.question, expected=self.has_answer)
        if "answer" not in self.model_fields_set:
            return None
        if self.answer is False:
            return IsFalsy(question=self.question)
        return Equals(question=self.question, value=self.answer)


class Component(BaseModel):
    """A page component; only components with an ``id`` are questions."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    type: str
    is_required: bool = Field(False, alias="isRequired")
    enable_when: Optional[list[EnableWhen]] = Field(None, alias="enableWhen")

    @property
    def is_question(self) -> bool:
        return bool(self.id)

    @property
    def is_checkbox(self) -> bool:
        return self.type == CHECKBOX_TYPE

    def empty_value(self) -> bool | str:
        """Value a hidden question is reset to."""
        return False if self.is_checkbox else ""


class Page(BaseModel):
    """An ordered group of components shown together."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: Optional[str] = None
    enable_when: Optional[list[EnableWhen]] = Field(None, alias="enableWhen")
    components: list[Component] = []


class SurveySchema(BaseModel):
    """A complete form definition (``Form.schema``)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str = ""
    show_withdraw_if_complete: bool = Field(False, alias="showWithdrawIfComplete")
    pages: list[Page] = []

    @model_validator(mode="after")
    def _unique_question_ids(self):
        seen: set[str] = set()
        for page in self.pages:
            for component in page.components:
                if not component.is_question:
                    continue
                if component.id in seen:
                    raise ValueError(f"duplicate question id '{component.id}'")
                seen.add(component.id)
        return self

    def questions(self) -> list[Component]:
        """All question components in document order."""
        return [
            c for page in self.pages for c in page.components if c.is_question
        ]

    def question_ids(self) -> set[str]:
        return {c.id for c in self.questions()}

    def get_question(self, question_id: str) -> Component | None:
        for component in self.questions():
            if component.id == question_id:
                return component
        return None
