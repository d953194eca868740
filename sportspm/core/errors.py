"""
Domain Errors Module

Exceptions raised by the service layer. Each carries the HTTP status code the
API reports it with; the mapping to responses lives in ``sportspm.api.errors``.
"""


class DomainError(Exception):
    """Base class for all errors the service layer reports to callers."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """A required field is missing or has an invalid value."""
    status_code = 422


class NotFound(DomainError):
    """A referenced project, expense, allocation, task or user does not exist."""
    status_code = 404


class Conflict(DomainError):
    """The operation would duplicate an existing record."""
    status_code = 409


class CapacityExceeded(DomainError):
    """A user's total allocation across all projects would exceed 100%."""
    status_code = 409


class PermissionDenied(DomainError):
    status_code = 403
