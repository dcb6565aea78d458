"""Exceptions raised while orchestrating WebAuthn ceremonies."""
from __future__ import annotations

__all__ = [
    "CeremonyError",
    "ClientInputError",
    "EncodingError",
    "InviteRejected",
    "NotFoundError",
    "SessionNotFound",
    "StorageError",
    "VerificationError",
]


class CeremonyError(Exception):
    """Base exception for errors that terminate a ceremony request.

    ``status_code`` is the HTTP status the error maps to and ``message`` is
    the text that is safe to hand back to the client.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class ClientInputError(CeremonyError):
    """A request parameter or body is missing or malformed."""

    status_code = 400
    default_message = "Bad request"


class InviteRejected(ClientInputError):
    """The registration invite token does not match the configured secret."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(CeremonyError):
    """The user named by the request does not exist."""

    status_code = 400
    default_message = "User not found"


class SessionNotFound(NotFoundError):
    """No pending ceremony exists for the requested key."""

    default_message = "Session not found"


class VerificationError(CeremonyError):
    """The ceremony engine rejected the client response."""

    status_code = 400
    default_message = "Verification failed"


class StorageError(CeremonyError):
    """The credential repository failed."""

    default_message = "Database error"


class EncodingError(CeremonyError):
    """Credential material could not be serialized or parsed."""

    default_message = "Failed to encode credential"
