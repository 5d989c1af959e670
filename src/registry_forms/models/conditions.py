"""Tagged visibility conditions.

Raw ``enableWhen`` entries are translated into one of three explicit
condition types before evaluation:

  - Equals:    the answer to ``question`` equals ``value``
  - HasAnswer: the answer to ``question`` is non-empty (``expected=True``)
               or empty (``expected=False``)
  - IsFalsy:   the answer to ``question`` is falsy (unchecked, blank, unset)

The discriminated ``Condition`` union uses ``kind`` as its discriminator.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class Equals(BaseModel):
    """Answer must equal ``value`` (no cross-type matches such as True == 1)."""

    kind: Literal["equals"] = "equals"
    question: str
    value: Any


class HasAnswer(BaseModel):
    """Answer must be non-empty (or empty when ``expected`` is False)."""

    kind: Literal["has_answer"] = "has_answer"
    question: str
    expected: bool = True


class IsFalsy(BaseModel):
    """Answer must be falsy: missing, ``None``, ``''``, or ``False``."""

    kind: Literal["is_falsy"] = "is_falsy"
    question: str


Condition = Annotated[Union[Equals, HasAnswer, IsFalsy], Field(discriminator="kind")]
