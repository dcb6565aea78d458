"""Serialization helpers for credential material and engine output."""
from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from fido2 import cbor
from fido2.utils import websafe_encode
from fido2.webauthn import AttestedCredentialData

from .errors import EncodingError
from .models import Credential

__all__ = [
    "decode_credential",
    "encode_credential",
    "make_json_safe",
]

_CREDENTIAL_DATA = "credentialData"
_SIGN_COUNT = "signCount"
_CREATED_AT = "createdAt"


def make_json_safe(obj: Any) -> Any:
    """Recursively convert bytes-like values to unpadded base64url strings."""
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return websafe_encode(bytes(obj))
    if isinstance(obj, Mapping):
        return {k: make_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [make_json_safe(item) for item in obj]
    return obj


def encode_credential(credential: Credential) -> bytes:
    """Pack a credential into the opaque blob stored by the repository."""

    try:
        return cbor.encode(
            {
                _CREDENTIAL_DATA: bytes(credential.credential_data),
                _SIGN_COUNT: int(credential.sign_count),
                _CREATED_AT: int(credential.created_at),
            }
        )
    except (TypeError, ValueError) as exc:
        raise EncodingError() from exc


def decode_credential(blob: bytes, user_id: bytes) -> Credential:
    """Rebuild a :class:`Credential` from a stored blob."""

    try:
        payload = cbor.decode(bytes(blob))
        credential_data = AttestedCredentialData(payload[_CREDENTIAL_DATA])
    except (IndexError, KeyError, TypeError, ValueError) as exc:
        raise EncodingError("Stored credential is not decodable") from exc

    return Credential(
        credential_id=bytes(credential_data.credential_id),
        user_id=user_id,
        credential_data=credential_data,
        sign_count=payload.get(_SIGN_COUNT, 0),
        created_at=payload.get(_CREATED_AT, time.time()),
    )
