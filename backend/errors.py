"""Error taxonomy shared by the ledgers and translated to JSON by the app."""


class DomainError(Exception):
    """Base class for errors that map to a caller-facing response."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    kind = "validation"
    status_code = 400


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403


class ConflictError(DomainError):
    kind = "conflict"
    status_code = 409


class UnauthenticatedError(DomainError):
    kind = "unauthenticated"
    status_code = 401
