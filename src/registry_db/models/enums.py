"""Database-level enumerations for registry forms."""

import enum


class FormType(str, enum.Enum):
    """Kind of form stored in the catalog.

    A study's registry flow shows its ``consent`` form first; ``module``
    forms only become visible once the consent response is complete.
    """

    CONSENT = "consent"
    MODULE = "module"
