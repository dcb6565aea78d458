"""Adapter between the orchestrator and the python-fido2 relying party server."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from fido2.server import Fido2Server
from fido2.webauthn import (
    AttestedCredentialData,
    PublicKeyCredentialUserEntity,
    UserVerificationRequirement,
)

from .codec import make_json_safe
from .errors import VerificationError
from .models import Credential, Identity

__all__ = ["CeremonyEngine", "Fido2CeremonyEngine"]

# Exceptions python-fido2 raises for rejected or malformed client responses.
_REJECTIONS = (ValueError, KeyError, TypeError)


class CeremonyEngine(Protocol):
    """Cryptographic side of the registration and authentication ceremonies."""

    def begin_registration(self, identity: Identity) -> Tuple[Dict[str, Any], Any]: ...

    def finish_registration(
        self, identity: Identity, state: Any, response: Mapping[str, Any]
    ) -> Credential: ...

    def begin_authentication(self, identity: Identity) -> Tuple[Dict[str, Any], Any]: ...

    def finish_authentication(
        self, identity: Identity, state: Any, response: Mapping[str, Any]
    ) -> AttestedCredentialData: ...


def _user_entity(identity: Identity) -> PublicKeyCredentialUserEntity:
    return PublicKeyCredentialUserEntity(
        name=identity.name,
        id=identity.id,
        display_name=identity.display_name,
    )


class Fido2CeremonyEngine:
    """:class:`CeremonyEngine` backed by :class:`fido2.server.Fido2Server`.

    Begin operations return the JSON-ready ``{"publicKey": ...}`` options and
    the server state dict; finish operations raise
    :class:`VerificationError` carrying the library's diagnostic.
    """

    def __init__(
        self,
        server: Fido2Server,
        user_verification: Optional[UserVerificationRequirement] = None,
    ) -> None:
        self.server = server
        self.user_verification = user_verification

    @property
    def rp_id(self) -> Optional[str]:
        return self.server.rp.id

    def begin_registration(self, identity: Identity) -> Tuple[Dict[str, Any], Any]:
        options, state = self.server.register_begin(
            _user_entity(identity),
            list(identity.webauthn_credentials()),
            user_verification=self.user_verification,
        )
        return make_json_safe(dict(options)), state

    def finish_registration(
        self, identity: Identity, state: Any, response: Mapping[str, Any]
    ) -> Credential:
        try:
            auth_data = self.server.register_complete(state, response)
        except _REJECTIONS as exc:
            raise VerificationError(f"Registration finish error: {exc}") from exc

        credential_data = auth_data.credential_data
        if credential_data is None:
            raise VerificationError("Registration finish error: no attested credential data")

        return Credential(
            credential_id=bytes(credential_data.credential_id),
            user_id=identity.id,
            credential_data=credential_data,
            sign_count=auth_data.counter,
        )

    def begin_authentication(self, identity: Identity) -> Tuple[Dict[str, Any], Any]:
        options, state = self.server.authenticate_begin(
            list(identity.webauthn_credentials()),
            user_verification=self.user_verification,
        )
        return make_json_safe(dict(options)), state

    def finish_authentication(
        self, identity: Identity, state: Any, response: Mapping[str, Any]
    ) -> AttestedCredentialData:
        try:
            return self.server.authenticate_complete(
                state,
                list(identity.webauthn_credentials()),
                response,
            )
        except _REJECTIONS as exc:
            raise VerificationError(f"Login finish error: {exc}") from exc
