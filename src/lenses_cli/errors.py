"""Error types raised by the Lenses client and CLI helpers."""

from __future__ import annotations


class LensesError(RuntimeError):
    """Base lenses-cli error."""


class LensesUnavailableError(LensesError):
    """Lenses could not be reached."""


class LensesRequestError(LensesUnavailableError):
    """Lenses returned an HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: object | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.body = body


class ResourceNotFoundError(LensesRequestError):
    """The requested resource does not exist (HTTP 404)."""


class CredentialsError(LensesRequestError):
    """Credentials missing, rejected or expired (HTTP 401/403)."""


class ValidationError(LensesError):
    """Client-side payload validation failed."""


class EncryptionError(LensesError):
    """A stored secret could not be encrypted or decrypted."""
