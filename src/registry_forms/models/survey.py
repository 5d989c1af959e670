"""Derived survey state: per-page visibility, numbering, and progress.

Everything here is recomputed from ``(schema, responses)``; nothing is
persisted except the answers and the furthest page reached.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ComponentState(BaseModel):
    """Visibility of one component after evaluating its page and its own rule."""

    index: int
    id: Optional[str] = None
    type: str
    is_question: bool
    is_required: bool = False
    is_visible: bool = True


class PageState(BaseModel):
    """Visibility and 1-based display number of one page.

    ``number`` is None for hidden pages; visible pages are numbered
    consecutively starting at 1.
    """

    index: int
    title: Optional[str] = None
    is_visible: bool = True
    number: Optional[int] = None
    components: list[ComponentState] = []

    def questions(self) -> list[ComponentState]:
        return [c for c in self.components if c.is_question]


class VisibilityMap(BaseModel):
    """Visibility of every page and component for one set of answers."""

    pages: list[PageState]
    # Number of visible pages
    total_pages: int
    # Every id-bearing component, visible or not
    question_count: int

    def hidden_questions(self) -> list[ComponentState]:
        return [
            c
            for page in self.pages
            for c in page.components
            if c.is_question and not c.is_visible
        ]

    def visible_page_indexes(self) -> list[int]:
        return [p.index for p in self.pages if p.is_visible]


class SurveySnapshot(BaseModel):
    """Public view of a survey in progress, returned by the preview endpoint."""

    title: str
    pages: list[PageState]
    responses: dict[str, Any]
    total_pages: int
    question_count: int
    current_page: int
    current_page_number: Optional[int] = None
    furthest_page: int
    is_last_page: bool
    is_complete: bool
    show_withdraw: bool = False
