"""Error taxonomy shared by services and routers.

Validation errors are detected before anything is sent to the backing store.
Store errors carry the raw message returned by the backend. An expired
session is a store error with a specific code and forces a sign-out.
"""

JWT_EXPIRED_CODE = "PGRST301"


class TraumaOneError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FormValidationError(TraumaOneError):
    """A draft failed a client-side rule. Carries a single blocking message."""


class RecordNotFoundError(TraumaOneError):
    pass


class AuthError(TraumaOneError):
    """Bad credentials or a token the auth service does not recognise."""


class StoreError(TraumaOneError):
    """Network, auth or constraint failure reported by the backing store."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class SessionExpiredError(StoreError):
    pass


def is_session_expired(code: str | None, message: str | None) -> bool:
    """True when a backend error means the caller's JWT has expired."""
    if code == JWT_EXPIRED_CODE:
        return True
    return bool(message) and "jwt expired" in message.lower()
