import hashlib
import os
from typing import Any, Dict, Mapping

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from fido2.cose import ES256
from fido2.utils import websafe_decode, websafe_encode
from fido2.webauthn import (
    Aaguid,
    AttestationObject,
    AttestedCredentialData,
    AuthenticatorData,
    CollectedClientData,
)

from passkey_gate.app import create_app
from passkey_gate.ceremonies import CeremonyOrchestrator
from passkey_gate.config import create_fido_server
from passkey_gate.engine import Fido2CeremonyEngine
from passkey_gate.sessions import CeremonySessionStore
from passkey_gate.storage import CredentialRepository

RP_ID = "example.com"
ORIGIN = "https://example.com"
INVITE = "secret-token"


class SoftAuthenticator:
    """Minimal ES256 authenticator producing WebAuthn JSON responses."""

    def __init__(self, rp_id: str = RP_ID, origin: str = ORIGIN) -> None:
        self.rp_id = rp_id
        self.origin = origin
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = os.urandom(32)
        self.counter = 0

    @property
    def rp_id_hash(self) -> bytes:
        return hashlib.sha256(self.rp_id.encode("utf-8")).digest()

    @staticmethod
    def _challenge(options: Mapping[str, Any]) -> bytes:
        return websafe_decode(options["publicKey"]["challenge"])

    def create(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        client_data = CollectedClientData.create(
            CollectedClientData.TYPE.CREATE,
            self._challenge(options),
            self.origin,
        )
        credential_data = AttestedCredentialData.create(
            Aaguid.NONE,
            self.credential_id,
            ES256.from_cryptography_key(self.private_key.public_key()),
        )
        self.counter += 1
        auth_data = AuthenticatorData.create(
            self.rp_id_hash,
            AuthenticatorData.FLAG.UP | AuthenticatorData.FLAG.AT,
            counter=self.counter,
            credential_data=credential_data,
        )
        attestation_object = AttestationObject.create("none", auth_data, {})
        encoded_id = websafe_encode(self.credential_id)
        return {
            "id": encoded_id,
            "rawId": encoded_id,
            "type": "public-key",
            "response": {
                "clientDataJSON": websafe_encode(bytes(client_data)),
                "attestationObject": websafe_encode(bytes(attestation_object)),
            },
            "clientExtensionResults": {},
        }

    def get(self, options: Mapping[str, Any], tamper: bool = False) -> Dict[str, Any]:
        client_data = CollectedClientData.create(
            CollectedClientData.TYPE.GET,
            self._challenge(options),
            self.origin,
        )
        self.counter += 1
        auth_data = AuthenticatorData.create(
            self.rp_id_hash,
            AuthenticatorData.FLAG.UP,
            counter=self.counter,
        )
        message = bytes(auth_data) + client_data.hash
        if tamper:
            message = b"tampered" + message
        signature = self.private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        encoded_id = websafe_encode(self.credential_id)
        return {
            "id": encoded_id,
            "rawId": encoded_id,
            "type": "public-key",
            "response": {
                "clientDataJSON": websafe_encode(bytes(client_data)),
                "authenticatorData": websafe_encode(bytes(auth_data)),
                "signature": websafe_encode(signature),
            },
            "clientExtensionResults": {},
        }


@pytest.fixture
def authenticator():
    return SoftAuthenticator()


@pytest.fixture
def repository(tmp_path):
    repo = CredentialRepository(str(tmp_path / "db" / "users.db"))
    yield repo
    repo.close()


@pytest.fixture
def engine():
    return Fido2CeremonyEngine(create_fido_server(rp_id=RP_ID, rp_name="Example RP", origins=[ORIGIN]))


@pytest.fixture
def sessions():
    return CeremonySessionStore()


@pytest.fixture
def orchestrator(repository, engine, sessions):
    return CeremonyOrchestrator(
        repository=repository,
        engine=engine,
        sessions=sessions,
        invite_token=INVITE,
    )


@pytest.fixture
def app(repository, engine, sessions):
    app = create_app(
        {
            "TESTING": True,
            "PASSKEY_REGISTRATION_ENABLED": True,
            "PASSKEY_INVITE_TOKEN": INVITE,
        },
        repository=repository,
        engine=engine,
        session_store=sessions,
    )
    return app


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client
