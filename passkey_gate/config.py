"""Configuration defaults and relying party setup for the passkey server."""
from __future__ import annotations

import os
import re
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional, Sequence, Tuple

from fido2.server import Fido2Server
from fido2.webauthn import PublicKeyCredentialRpEntity

__all__ = [
    "DEFAULTS",
    "build_rp_entity",
    "create_fido_server",
    "load_config",
    "parse_origins",
]

DEFAULTS: Dict[str, Any] = {
    "PASSKEY_RP_ID": "localhost",
    "PASSKEY_RP_NAME": "My App",
    "PASSKEY_ORIGINS": ("http://localhost:8080",),
    "PASSKEY_INVITE_TOKEN": "secret-token",
    "PASSKEY_DATABASE_PATH": os.path.join("db", "users.db"),
    "PASSKEY_REGISTRATION_ENABLED": False,
    "PASSKEY_SESSION_TTL": None,
}


def _env_flag(name: str) -> Optional[bool]:
    """Return ``True`` or ``False`` when the named env var is explicitly set."""

    raw_value = os.environ.get(name)
    if raw_value is None:
        return None

    normalised = raw_value.strip().lower()
    if normalised in {"", "0", "false", "off", "no"}:
        return False
    return True


def _env_float(name: str) -> Optional[float]:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return None
    try:
        return float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds, got {raw_value!r}") from exc


def parse_origins(raw_value: Optional[str]) -> Optional[Tuple[str, ...]]:
    """Normalise a comma, semicolon or newline separated list of origins."""

    if raw_value is None:
        return None

    components = re.split(r"[,;\n]+", raw_value)
    return tuple(component.strip().rstrip("/") for component in components if component.strip())


_ENV_READERS: Dict[str, Callable[[str], Any]] = {
    "PASSKEY_RP_ID": os.environ.get,
    "PASSKEY_RP_NAME": os.environ.get,
    "PASSKEY_ORIGINS": lambda name: parse_origins(os.environ.get(name)),
    "PASSKEY_INVITE_TOKEN": os.environ.get,
    "PASSKEY_DATABASE_PATH": os.environ.get,
    "PASSKEY_REGISTRATION_ENABLED": _env_flag,
    "PASSKEY_SESSION_TTL": _env_float,
}


def load_config(
    target: MutableMapping[str, Any], overrides: Optional[Mapping[str, Any]] = None
) -> MutableMapping[str, Any]:
    """Fill ``target`` from defaults, then the environment, then ``overrides``."""

    for key, default in DEFAULTS.items():
        target.setdefault(key, default)

    for key, reader in _ENV_READERS.items():
        value = reader(key)
        if value is not None:
            target[key] = value

    if overrides:
        target.update(overrides)

    return target


def build_rp_entity(rp_id: Optional[str] = None, rp_name: Optional[str] = None) -> PublicKeyCredentialRpEntity:
    """Create a ``PublicKeyCredentialRpEntity``, defaulting to ``localhost``."""

    rp_id_value = (rp_id or "").strip().lower() or "localhost"
    return PublicKeyCredentialRpEntity(name=rp_name or "My App", id=rp_id_value)


def create_fido_server(
    rp_id: Optional[str] = None,
    rp_name: Optional[str] = None,
    origins: Optional[Sequence[str]] = None,
) -> Fido2Server:
    """Instantiate a :class:`Fido2Server` for the configured relying party.

    When ``origins`` is given, client data must carry one of them exactly.
    Otherwise python-fido2's default RP ID based origin check applies.
    """

    entity = build_rp_entity(rp_id, rp_name)
    if not origins:
        return Fido2Server(entity)

    allowed = frozenset(origin.rstrip("/") for origin in origins)

    def verify_origin(origin: str) -> bool:
        return origin.rstrip("/") in allowed

    return Fido2Server(entity, verify_origin=verify_origin)
