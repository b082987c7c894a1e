class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DomainError(CustomBaseError):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)


class ForbiddenError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class NotFoundError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class ConflictError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class VersionConflictError(ConflictError):
    """Optimistic concurrency collision; re-read and retry."""

    def __init__(self, message: str, *, expected_version: int | None = None) -> None:
        self.expected_version = expected_version
        super().__init__(message)


class InvariantViolationError(DomainError):
    """Mutation would break sold + held <= total or go negative. Never partially applied."""

    def __init__(self, message: str, *, available_quantity: int | None = None) -> None:
        self.available_quantity = available_quantity
        super().__init__(message, 409)


class HoldNotActiveError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class TransientError(CustomBaseError):
    """Persistence or contention failure where retrying the same request is safe."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 503)
