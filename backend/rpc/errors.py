from __future__ import annotations


class KentraError(Exception):
    """
    Base class for errors raised by this service.

    `status_code` is the HTTP status the API layer answers with.
    """

    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(KentraError):
    """
    Missing or malformed input. Raised before any remote call is made.
    """

    status_code = 400


class InvalidBoundsError(ValidationError, ValueError):
    pass


class RemoteCallError(KentraError):
    """
    Transport failure or an error reported by the hosted backend.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        function: str | None = None,
        status: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.function = function
        self.status = status


class AuthorizationError(RemoteCallError):
    # Row-level security / JWT rejections, propagated as-is.
    status_code = 401
