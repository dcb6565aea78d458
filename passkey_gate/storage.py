"""SQLite-backed repository for users, credentials and login attempts."""
from __future__ import annotations

import logging
import os
import sqlite3
import threading
from typing import List, Optional

from .codec import decode_credential
from .errors import EncodingError, StorageError
from .models import Credential, LoginAttempt, User

__all__ = ["CredentialRepository", "SCHEMA"]

LOGGER = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id BLOB PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS credentials (
    id BLOB PRIMARY KEY,
    user_id BLOB NOT NULL,
    credential_data BLOB NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_credentials_user_id ON credentials(user_id);

CREATE TABLE IF NOT EXISTS logins (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id BLOB NOT NULL,
    success INTEGER NOT NULL,
    remote_ip TEXT,
    ts DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY(user_id) REFERENCES users(id)
);
"""


class CredentialRepository:
    """Durable store of users and their registered credentials.

    A single connection is shared by all request threads; statements are
    serialized with a lock. Every :mod:`sqlite3` failure is re-raised as
    :class:`StorageError` so callers never see driver details.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        if path != ":memory:":
            directory = os.path.dirname(os.path.abspath(path))
            os.makedirs(directory, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._connection = sqlite3.connect(path, check_same_thread=False)
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.executescript(SCHEMA)
            self._connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to initialise database at {path}") from exc

    def close(self) -> None:
        with self._lock:
            self._connection.close()

    def _execute(self, query: str, params: tuple = ()) -> None:
        with self._lock:
            try:
                with self._connection:
                    self._connection.execute(query, params)
            except sqlite3.Error as exc:
                raise StorageError() from exc

    def _fetch_all(self, query: str, params: tuple = ()) -> list:
        with self._lock:
            try:
                return self._connection.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError() from exc

    def find_user_by_name(self, name: str) -> Optional[User]:
        rows = self._fetch_all(
            "SELECT id, name, display_name FROM users WHERE name = ?", (name,)
        )
        if not rows:
            return None
        user_id, user_name, display_name = rows[0]
        return User(id=bytes(user_id), name=user_name, display_name=display_name)

    def insert_user(self, user: User) -> None:
        self._execute(
            "INSERT INTO users (id, name, display_name) VALUES (?, ?, ?)",
            (user.id, user.name, user.display_name),
        )

    def insert_credential(self, user_id: bytes, credential_id: bytes, data: bytes) -> None:
        self._execute(
            "INSERT INTO credentials (id, user_id, credential_data) VALUES (?, ?, ?)",
            (credential_id, user_id, data),
        )

    def list_credentials(self, user_id: bytes) -> List[Credential]:
        """Return every decodable credential owned by ``user_id``.

        Rows that cannot be decoded are logged and skipped.
        """

        rows = self._fetch_all(
            "SELECT id, credential_data FROM credentials WHERE user_id = ? ORDER BY rowid",
            (user_id,),
        )
        credentials: List[Credential] = []
        for credential_id, blob in rows:
            try:
                credentials.append(decode_credential(blob, bytes(user_id)))
            except EncodingError:
                LOGGER.warning(
                    "Skipping undecodable credential %s", bytes(credential_id).hex()
                )
        return credentials

    def record_login_attempt(
        self, user_id: bytes, success: bool, remote_address: Optional[str]
    ) -> None:
        self._execute(
            "INSERT INTO logins (user_id, success, remote_ip) VALUES (?, ?, ?)",
            (user_id, 1 if success else 0, remote_address),
        )

    def list_login_attempts(self, user_id: bytes) -> List[LoginAttempt]:
        rows = self._fetch_all(
            "SELECT user_id, success, remote_ip, ts FROM logins WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return [
            LoginAttempt(
                user_id=bytes(row_user_id),
                success=bool(success),
                remote_address=remote_ip,
                timestamp=ts,
            )
            for row_user_id, success, remote_ip, ts in rows
        ]

    def count_users(self) -> int:
        return self._fetch_all("SELECT COUNT(*) FROM users")[0][0]
