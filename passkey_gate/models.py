"""Users, credentials and audit records handled by the ceremony orchestrator."""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from fido2.webauthn import AttestedCredentialData

__all__ = [
    "Credential",
    "Identity",
    "LoginAttempt",
    "User",
    "new_user_id",
]


@runtime_checkable
class Identity(Protocol):
    """Anything the ceremony engine can bind a challenge to.

    An identity has a stable opaque id, a human handle, a display label and a
    retrievable sequence of registered credentials.
    """

    @property
    def id(self) -> bytes: ...

    @property
    def name(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    def webauthn_credentials(self) -> Sequence[AttestedCredentialData]: ...


def new_user_id() -> bytes:
    """Return a fresh opaque user handle."""

    return uuid.uuid4().bytes


@dataclass
class Credential:
    """A registered public-key credential owned by exactly one user."""

    credential_id: bytes
    user_id: bytes
    credential_data: AttestedCredentialData
    sign_count: int = 0
    created_at: float = field(default_factory=time.time)


@dataclass
class User:
    id: bytes
    name: str
    display_name: str
    # Loaded per request from the repository, never persisted with the user row.
    credentials: List[Credential] = field(default_factory=list)

    @classmethod
    def create(cls, name: str) -> "User":
        return cls(id=new_user_id(), name=name, display_name=name)

    def webauthn_credentials(self) -> List[AttestedCredentialData]:
        return [credential.credential_data for credential in self.credentials]

    def add_credential(self, credential: Credential) -> None:
        self.credentials.append(credential)


@dataclass(frozen=True)
class LoginAttempt:
    """Append-only audit fact written by every authentication finish."""

    user_id: bytes
    success: bool
    remote_address: Optional[str]
    timestamp: Optional[str] = None
