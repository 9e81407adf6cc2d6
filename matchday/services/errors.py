"""
Domain exceptions raised by the service layer.

Each carries a machine-readable ``kind`` and the HTTP status the API maps it to.
"""


class MatchdayError(ValueError):
    """Base class for errors that are reported to API callers."""

    kind = "Error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class ValidationError(MatchdayError):
    """Missing or malformed input."""

    kind = "ValidationError"
    status_code = 400


class WeakPassword(MatchdayError):
    """Password shorter than the minimum length."""

    kind = "WeakPassword"
    status_code = 400


class Unauthenticated(MatchdayError):
    """No session token was supplied."""

    kind = "Unauthenticated"
    status_code = 401


class InvalidToken(MatchdayError):
    """Session token has a bad signature, bad format, or has expired."""

    kind = "InvalidToken"
    status_code = 401


class InvalidCredentials(MatchdayError):
    """Unknown username or wrong password (deliberately indistinguishable)."""

    kind = "InvalidCredentials"
    status_code = 401


class Forbidden(MatchdayError):
    """Valid identity without the required privilege."""

    kind = "Forbidden"
    status_code = 403


class NotFound(MatchdayError):
    """Referenced entity does not exist."""

    kind = "NotFound"
    status_code = 404


class DuplicateUsername(MatchdayError):
    kind = "DuplicateUsername"
    status_code = 409


class DuplicateJersey(MatchdayError):
    kind = "DuplicateJersey"
    status_code = 409


class AdminExists(MatchdayError):
    """An admin account already exists, so self-provisioning is closed."""

    kind = "AdminExists"
    status_code = 409


class StoreError(MatchdayError):
    """Persistence failure. The message shown to callers is always generic."""

    kind = "StoreError"
    status_code = 500
