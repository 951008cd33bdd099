"""
Domain exceptions raised by the service layer.

Services raise these instead of returning ``None``; ``app.main`` maps each
class to an HTTP status code in a single exception handler. None of them
is retried: every condition is terminal for the current request.
"""


class ConduitError(Exception):
    """Base class for every expected, user-facing failure."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ConduitError):
    status_code = 404


class PermissionDeniedError(ConduitError):
    status_code = 403


class ConflictError(ConduitError):
    status_code = 409


class InvalidOperationError(ConduitError):
    status_code = 400


class InvalidCredentialsError(ConduitError):
    """
    Login or token failure.

    Login raises it with the same message whether the account is missing
    or the password is wrong.
    """

    status_code = 401

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class ValidationError(ConduitError):
    status_code = 422
