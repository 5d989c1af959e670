"""Error taxonomy for the form engine.

Every error carries a stable ``kind`` string and the HTTP status the
server maps it to.  They subclass ``ValueError`` so callers that only care
about "bad input" can keep catching that.
"""


class FormsError(ValueError):
    """Base class for all form-engine errors."""

    kind: str = "error"
    status_code: int = 400


class ValidationError(FormsError):
    """Duplicate form version or a schema / payload constraint violation."""

    kind = "validation"
    status_code = 422


class NotFoundError(FormsError):
    """Revising a form with no prior version, or an unknown form/response."""

    kind = "not_found"
    status_code = 404


class BadRequestError(FormsError):
    """A required query parameter (e.g. participant id) is missing."""

    kind = "bad_request"
    status_code = 400


class ForbiddenError(FormsError):
    """The caller's role or enrollment does not permit the operation."""

    kind = "forbidden"
    status_code = 403


class ConflictError(FormsError):
    """A concurrent version bump won the race; the caller may retry."""

    kind = "conflict"
    status_code = 409
