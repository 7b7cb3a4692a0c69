"""
Domain errors raised by the evaluation services.

Each error carries the HTTP status the API layer answers with, so routers
never collapse distinct failure kinds into one generic response.
"""


class EvaluationError(Exception):
    """Base class for caller-visible service errors."""

    status_code = 400


class NotFoundError(EvaluationError):
    """Unknown key or id at a required lookup step."""

    status_code = 404


class ConflictError(EvaluationError):
    """Derived key or scoped key already exists."""

    status_code = 409


class ValidationError(EvaluationError):
    """Malformed administrative input (protocol names, template values, manual scores)."""

    status_code = 400


class InvalidInputError(EvaluationError):
    """Malformed scoring payload; nothing is written."""

    status_code = 400


class InvalidPathError(EvaluationError):
    """Selection path rejected by the taxonomy foreign keys."""

    status_code = 400


class PermissionDeniedError(EvaluationError):
    """Caller does not own the record it tried to change."""

    status_code = 403
