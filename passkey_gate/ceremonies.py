"""Registration and authentication ceremonies spanning two HTTP round trips.

Each ceremony is a begin/finish pair. Begin resolves the user, asks the
engine for a challenge and parks the engine state in the session store
under ``(purpose, name)``; finish consumes that state, delegates
verification to the engine and records the outcome in the repository.
"""
from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, Mapping, Optional

from .codec import encode_credential
from .engine import CeremonyEngine
from .errors import (
    ClientInputError,
    InviteRejected,
    NotFoundError,
    SessionNotFound,
    StorageError,
    VerificationError,
)
from .models import User
from .sessions import CeremonyKey, CeremonySessionStore
from .storage import CredentialRepository

__all__ = ["CeremonyOrchestrator"]

LOGGER = logging.getLogger(__name__)


class CeremonyOrchestrator:
    def __init__(
        self,
        repository: CredentialRepository,
        engine: CeremonyEngine,
        sessions: CeremonySessionStore,
        invite_token: str,
    ) -> None:
        self.repository = repository
        self.engine = engine
        self.sessions = sessions
        self.invite_token = invite_token

    def _check_invite(self, invite: Optional[str]) -> None:
        supplied = (invite or "").encode("utf-8")
        if not hmac.compare_digest(supplied, self.invite_token.encode("utf-8")):
            raise InviteRejected()

    def _require_user(self, name: Optional[str]) -> User:
        if not name:
            raise NotFoundError()
        user = self.repository.find_user_by_name(name)
        if user is None:
            raise NotFoundError()
        return user

    @staticmethod
    def _require_response(response: Any) -> Mapping[str, Any]:
        if not isinstance(response, Mapping) or not response:
            raise ClientInputError("Missing ceremony response")
        return response

    def _load_credentials(self, user: User) -> User:
        for credential in self.repository.list_credentials(user.id):
            user.add_credential(credential)
        return user

    def begin_registration(self, invite: Optional[str], name: Optional[str]) -> Dict[str, Any]:
        """Issue a registration challenge, creating the user on first sight."""

        try:
            self._check_invite(invite)
        except InviteRejected:
            LOGGER.warning("Rejected registration begin with an invalid invite token")
            raise
        if not name:
            raise ClientInputError("Missing user")

        user = self.repository.find_user_by_name(name)
        if user is None:
            user = User.create(name)
            self.repository.insert_user(user)
            LOGGER.info("Created user %r", name)

        options, state = self.engine.begin_registration(user)
        self.sessions.put(CeremonyKey.register(name), state)
        return options

    def finish_registration(self, name: Optional[str], response: Mapping[str, Any]) -> Dict[str, str]:
        response = self._require_response(response)
        user = self._require_user(name)

        state, found = self.sessions.take(CeremonyKey.register(user.name))
        if not found:
            LOGGER.warning("Registration finish for %r without a pending session", user.name)
            raise SessionNotFound()

        try:
            credential = self.engine.finish_registration(user, state, response)
        except VerificationError as exc:
            LOGGER.warning("Registration for %r rejected: %s", user.name, exc.message)
            raise

        blob = encode_credential(credential)
        try:
            self.repository.insert_credential(user.id, credential.credential_id, blob)
        except StorageError as exc:
            raise StorageError("Failed to store credential") from exc
        user.add_credential(credential)
        LOGGER.info(
            "Stored credential %s for %r", credential.credential_id.hex(), user.name
        )

        return {"status": "ok", "message": "Registration complete. You can now log in."}

    def begin_authentication(self, name: Optional[str]) -> Dict[str, Any]:
        """Issue an authentication challenge listing every stored credential."""

        if not name:
            raise ClientInputError("Missing user")
        user = self._load_credentials(self._require_user(name))

        options, state = self.engine.begin_authentication(user)
        self.sessions.put(CeremonyKey.login(name), state)
        return options

    def finish_authentication(
        self,
        name: Optional[str],
        response: Mapping[str, Any],
        remote_address: Optional[str] = None,
    ) -> Dict[str, str]:
        """Verify an assertion; every call for a known user is audited."""

        response = self._require_response(response)
        user = self._load_credentials(self._require_user(name))

        state, found = self.sessions.take(CeremonyKey.login(user.name))
        if not found:
            LOGGER.warning("Login finish for %r without a pending session", user.name)
            self._record_attempt(user, False, remote_address)
            raise SessionNotFound("Login session not found")

        try:
            self.engine.finish_authentication(user, state, response)
        except VerificationError as exc:
            LOGGER.warning("Login for %r from %s rejected: %s", user.name, remote_address, exc.message)
            self._record_attempt(user, False, remote_address)
            raise

        self._record_attempt(user, True, remote_address)
        LOGGER.info("User %r authenticated from %s", user.name, remote_address)
        return {"status": "ok", "message": "Authentication successful."}

    def _record_attempt(self, user: User, success: bool, remote_address: Optional[str]) -> None:
        try:
            self.repository.record_login_attempt(user.id, success, remote_address)
        except StorageError:
            LOGGER.exception("Failed to record login attempt for %r", user.name)
