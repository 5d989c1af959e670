"""VisibilityEvaluator — decides whether a page or component is shown.

An item's ``enableWhen`` list is interpreted as follows:

  - conditions are grouped by the question they reference
  - a group is satisfied if ANY of its conditions holds (OR)
  - the item is visible only if EVERY group is satisfied (AND)
  - an item without ``enableWhen`` (or with an empty list) is always visible

Each raw entry is translated into a tagged condition first
(see ``registry_forms.models.conditions``).  Entries that cannot be
translated, or that reference a question absent from the schema, evaluate
to False and are logged at WARNING.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from registry_forms.models.conditions import Condition, Equals, HasAnswer, IsFalsy
from registry_forms.models.schema import EnableWhen

logger = logging.getLogger(__name__)


class VisibilityEvaluator:
    """Evaluates ``enableWhen`` rules against the current answers."""

    def is_enabled(
        self,
        rules: list[EnableWhen] | None,
        responses: dict[str, Any],
        known_questions: set[str] | None = None,
    ) -> bool:
        """Return True if the item guarded by ``rules`` should be shown.

        Args:
            rules: the item's ``enableWhen`` entries (None/empty means shown)
            responses: current answers keyed by question id
            known_questions: question ids declared by the schema; when given,
                             conditions on any other id evaluate to False
        """
        if not rules:
            return True
        groups = self.group_conditions(rules)
        return all(
            any(self.evaluate(cond, responses, known_questions) for cond in conds)
            for conds in groups.values()
        )

    @staticmethod
    def group_conditions(
        rules: Iterable[EnableWhen],
    ) -> dict[str, list[Condition | None]]:
        """Group translated conditions by the question they reference.

        Malformed entries stay in their group as None so the group still
        has to be satisfied by one of its well-formed siblings.
        """
        groups: dict[str, list[Condition | None]] = {}
        for rule in rules:
            groups.setdefault(rule.question, []).append(rule.to_condition())
        return groups

    def evaluate(
        self,
        condition: Condition | None,
        responses: dict[str, Any],
        known_questions: set[str] | None = None,
    ) -> bool:
        """Evaluate a single tagged condition."""
        if condition is None:
            logger.warning("Malformed enableWhen entry: needs 'answer' or 'hasAnswer'")
            return False
        if known_questions is not None and condition.question not in known_questions:
            logger.warning(
                "enableWhen references unknown question '%s'", condition.question
            )
            return False

        value = responses.get(condition.question)
        if isinstance(condition, HasAnswer):
            return self._is_empty(value) != condition.expected
        if isinstance(condition, IsFalsy):
            return not value
        if isinstance(condition, Equals):
            return self._equals(value, condition.value)

        logger.warning("Unknown condition kind: %r", condition)
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_empty(value: Any) -> bool:
        """Missing and blank answers both count as empty."""
        return value is None or value == ""

    @staticmethod
    def _equals(actual: Any, expected: Any) -> bool:
        # bool is an int subclass; keep True from matching 1
        if isinstance(actual, bool) != isinstance(expected, bool):
            return False
        return actual == expected


_default_evaluator = VisibilityEvaluator()


def evaluate_visibility(
    responses: dict[str, Any],
    item: Any,
    known_questions: set[str] | None = None,
) -> bool:
    """Visibility of a page or component (anything with ``enable_when``)."""
    return _default_evaluator.is_enabled(
        getattr(item, "enable_when", None), responses, known_questions
    )
