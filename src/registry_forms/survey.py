"""SurveyStateMachine — in-process navigation over a multi-page form.

The state machine owns the participant's working copy of one form
response.  Every mutation recomputes the derived state synchronously:

  1. ``compute_visibility(schema, responses)`` evaluates page and
     component rules and numbers the visible pages (pure)
  2. ``apply_hidden_resets(responses, visibility)`` blanks the answers of
     hidden questions (pure; returns a new dict)

The two steps repeat until the answers stop changing, so a reset that
hides a further question is itself reset in the same recomputation.

Navigation follows the persisted-progress contract:
  - advancing is blocked while a required visible question on the
    current page is unanswered
  - ``advance``/``retreat`` skip hidden pages
  - ``furthest_page`` never decreases
  - a survey with fewer than two visible pages is always on its last page
  - on load, complete responses restart at page 0; incomplete ones resume
    at their stored ``furthest_page``, or the nearest visible page before
    it when the stored answers now hide that page
"""

from __future__ import annotations

import logging
from typing import Any

from registry_forms.constants import CHECKBOX_TYPE
from registry_forms.errors import ValidationError
from registry_forms.evaluator import VisibilityEvaluator
from registry_forms.models.schema import SurveySchema
from registry_forms.models.survey import (
    ComponentState,
    PageState,
    SurveySnapshot,
    VisibilityMap,
)

logger = logging.getLogger(__name__)

_CHECKBOX_STRINGS = {"true": True, "false": False}


# ----------------------------------------------------------------------
# Pure recomputation steps
# ----------------------------------------------------------------------


def compute_visibility(
    schema: SurveySchema,
    responses: dict[str, Any],
    evaluator: VisibilityEvaluator | None = None,
) -> VisibilityMap:
    """Evaluate every page and component rule against ``responses``.

    A page with its own ``enableWhen`` is governed by that rule; a page
    without one is visible when at least one of its components is.  A
    component is visible only if its page rule and its own rule both hold.
    """
    evaluator = evaluator or VisibilityEvaluator()
    known = schema.question_ids()

    pages: list[PageState] = []
    number = 0
    question_count = 0
    for page_index, page in enumerate(schema.pages):
        page_rule = evaluator.is_enabled(page.enable_when, responses, known)

        components: list[ComponentState] = []
        for comp_index, component in enumerate(page.components):
            if component.is_question:
                question_count += 1
            own_rule = evaluator.is_enabled(component.enable_when, responses, known)
            components.append(
                ComponentState(
                    index=comp_index,
                    id=component.id,
                    type=component.type,
                    is_question=component.is_question,
                    is_required=component.is_required,
                    is_visible=page_rule and own_rule,
                )
            )

        if page.enable_when:
            is_visible = page_rule
        else:
            is_visible = any(c.is_visible for c in components)

        if is_visible:
            number += 1
        pages.append(
            PageState(
                index=page_index,
                title=page.title,
                is_visible=is_visible,
                number=number if is_visible else None,
                components=components,
            )
        )

    return VisibilityMap(pages=pages, total_pages=number, question_count=question_count)


def apply_hidden_resets(
    responses: dict[str, Any], visibility: VisibilityMap
) -> dict[str, Any]:
    """Return a copy of ``responses`` with hidden questions blanked.

    Checkbox questions reset to ``False``; everything else to ``''``.
    Answers of visible questions are never touched.
    """
    updated = dict(responses)
    for component in visibility.hidden_questions():
        updated[component.id] = False if component.type == CHECKBOX_TYPE else ""
    return updated


def recompute_survey(
    schema: SurveySchema,
    responses: dict[str, Any],
    evaluator: VisibilityEvaluator | None = None,
) -> tuple[VisibilityMap, dict[str, Any]]:
    """Run visibility and resets until the answers stop changing.

    Bounded by the number of questions plus one pass.
    """
    evaluator = evaluator or VisibilityEvaluator()
    current = dict(responses)
    for _ in range(len(schema.questions()) + 1):
        visibility = compute_visibility(schema, current, evaluator)
        updated = apply_hidden_resets(current, visibility)
        if updated == current:
            return visibility, current
        current = updated
    return compute_visibility(schema, current, evaluator), current


# ----------------------------------------------------------------------
# State machine
# ----------------------------------------------------------------------


class SurveyStateMachine:
    """Single-owner, synchronous survey session for one form response."""

    def __init__(
        self,
        schema: SurveySchema | dict,
        responses: dict[str, Any] | None = None,
        *,
        furthest_page: int | None = 0,
        is_complete: bool = False,
        evaluator: VisibilityEvaluator | None = None,
    ) -> None:
        if not isinstance(schema, SurveySchema):
            schema = SurveySchema.model_validate(schema)
        self.schema = schema
        self._evaluator = evaluator or VisibilityEvaluator()
        self._loaded = (dict(responses or {}), furthest_page or 0, is_complete)
        self._load(*self._loaded)

    @classmethod
    def from_response(
        cls,
        schema: SurveySchema | dict,
        response: Any | None = None,
        evaluator: VisibilityEvaluator | None = None,
    ) -> "SurveyStateMachine":
        """Resume from a stored response row (or start fresh if None)."""
        if response is None:
            return cls(schema, evaluator=evaluator)
        return cls(
            schema,
            response.responses or {},
            furthest_page=response.furthest_page,
            is_complete=bool(response.is_complete),
            evaluator=evaluator,
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def responses(self) -> dict[str, Any]:
        return dict(self._responses)

    @property
    def visibility(self) -> VisibilityMap:
        return self._visibility

    @property
    def total_pages(self) -> int:
        return self._visibility.total_pages

    @property
    def question_count(self) -> int:
        return self._visibility.question_count

    def current_page(self) -> PageState | None:
        """State of the page the participant is on (None for an empty schema)."""
        if not self._visibility.pages:
            return None
        return self._visibility.pages[self.current_page_num]

    @property
    def current_page_number(self) -> int | None:
        """1-based display number of the current page, None if it is hidden."""
        page = self.current_page()
        return page.number if page is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def answer(self, question_id: str, value: Any) -> None:
        """Record an answer and recompute visibility.

        Checkbox answers must be a ``bool`` or the strings ``"true"`` /
        ``"false"``; anything else raises ``ValidationError``.  All other
        answers are stored as ``str`` (``None`` becomes ``''``).
        """
        component = self.schema.get_question(question_id)
        if component is None:
            raise ValidationError(f"Unknown question id: {question_id}")

        if component.is_checkbox:
            if isinstance(value, str):
                value = _CHECKBOX_STRINGS.get(value.strip().lower(), value)
            if not isinstance(value, bool):
                raise ValidationError(
                    f"Checkbox {question_id} expects true or false, got {value!r}"
                )
        else:
            value = "" if value is None else str(value)

        responses = dict(self._responses)
        responses[question_id] = value
        self._recompute(responses)
        self.furthest_page = max(self.furthest_page, self.current_page_num)
        self.is_last_page = self._compute_last_page()

    def advance(self) -> bool:
        """Move to the next visible page.

        Returns False (and stays put) when a required question on the
        current page is unanswered or no visible page lies ahead.
        """
        if self.has_unanswered(self.current_page_num, just_required=True):
            logger.debug("Advance blocked on page %d", self.current_page_num)
            return False
        target = self.find_visible_page(1, self.current_page_num + 1)
        if target is None:
            self.is_last_page = True
            return False
        self._move_to(target)
        return True

    def retreat(self) -> bool:
        """Move to the previous visible page; False if there is none."""
        target = self.find_visible_page(-1, self.current_page_num - 1)
        if target is None:
            return False
        self._move_to(target)
        return True

    def reset(self) -> None:
        """Discard local changes and return to the state the survey was loaded with."""
        self._load(*self._loaded)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_visible_page(self, direction: int, start: int) -> int | None:
        """Index of the first visible page from ``start`` stepping ``direction``."""
        pages = self._visibility.pages
        index = start
        while 0 <= index < len(pages):
            if pages[index].is_visible:
                return index
            index += direction
        return None

    def has_unanswered(self, page_num: int, just_required: bool = False) -> bool:
        """True if a visible question on the page lacks an answer.

        With ``just_required`` only required questions count.  A required
        checkbox is unanswered while unchecked.
        """
        pages = self._visibility.pages
        if not 0 <= page_num < len(pages):
            return False
        for component in pages[page_num].questions():
            if not component.is_visible:
                continue
            if just_required and not component.is_required:
                continue
            value = self._responses.get(component.id)
            if value is None or value == "":
                return True
            if component.type == CHECKBOX_TYPE and component.is_required and not value:
                return True
        return False

    def to_submission(self, is_complete: bool = False) -> dict[str, Any]:
        """Payload persisted through the response service."""
        return {
            "responses": dict(self._responses),
            "furthest_page": self.furthest_page,
            "is_complete": is_complete,
        }

    def snapshot(self) -> SurveySnapshot:
        return SurveySnapshot(
            title=self.schema.title,
            pages=self._visibility.pages,
            responses=dict(self._responses),
            total_pages=self.total_pages,
            question_count=self.question_count,
            current_page=self.current_page_num,
            current_page_number=self.current_page_number,
            furthest_page=self.furthest_page,
            is_last_page=self.is_last_page,
            is_complete=self.is_complete,
            show_withdraw=self.schema.show_withdraw_if_complete and self.is_complete,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, responses: dict[str, Any], furthest_page: int, is_complete: bool) -> None:
        self.is_complete = is_complete
        self._recompute(responses)

        start = 0 if is_complete or not furthest_page else furthest_page
        last_index = max(len(self.schema.pages) - 1, 0)
        if start > last_index:
            logger.warning(
                "Stored furthest_page %d beyond schema (%d pages); clamping",
                start,
                len(self.schema.pages),
            )
            start = last_index
        pages = self._visibility.pages
        if pages and not pages[start].is_visible:
            # later answers hid the stored page; resume on the nearest visible one
            visible = self.find_visible_page(-1, start)
            if visible is None:
                visible = self.find_visible_page(1, start)
            start = visible if visible is not None else 0
        self.current_page_num = start
        self.furthest_page = start
        self.is_last_page = self._compute_last_page()

    def _recompute(self, responses: dict[str, Any]) -> None:
        self._visibility, self._responses = recompute_survey(
            self.schema, responses, self._evaluator
        )

    def _move_to(self, target: int) -> None:
        self.current_page_num = target
        self.furthest_page = max(self.furthest_page, target)
        self.is_last_page = self._compute_last_page()

    def _compute_last_page(self) -> bool:
        if self.total_pages < 2:
            return True
        return self.find_visible_page(1, self.current_page_num + 1) is None
