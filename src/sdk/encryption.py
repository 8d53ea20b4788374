"""AES-GCM envelopes keyed by curve scalars.

Used to store the service-provider share and share-refresh forwards
inside the metadata store.
"""

from __future__ import annotations

import hashlib
import json
import secrets
from typing import Any, Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.errors import ThresholdKeyError
from sdk.curve import scalar_to_bytes
from store.record_payload import canonical_json

_NONCE_BYTES = 12


def encrypt_json(key_scalar: int, payload: Any) -> dict[str, str]:
    """Encrypt a JSON payload under a scalar-derived key.

    Args:
        key_scalar: Scalar whose SHA-256 becomes the AES key.
        payload: JSON-serializable payload.

    Returns:
        Envelope with hex ``iv`` and ``ciphertext``.
    """
    iv = secrets.token_bytes(_NONCE_BYTES)
    ciphertext = AESGCM(_derive_key(key_scalar)).encrypt(
        iv, canonical_json(payload).encode("utf-8"), None
    )
    return {"iv": iv.hex(), "ciphertext": ciphertext.hex()}


def decrypt_json(key_scalar: int, envelope: Mapping[str, Any]) -> Any:
    """Decrypt an envelope produced by ``encrypt_json``.

    Raises:
        ThresholdKeyError: If the envelope is malformed or the key is wrong.
    """
    try:
        iv = bytes.fromhex(str(envelope["iv"]))
        ciphertext = bytes.fromhex(str(envelope["ciphertext"]))
    except (KeyError, TypeError, ValueError) as error:
        raise ThresholdKeyError(f"Malformed encrypted envelope: {error}.") from error
    try:
        plaintext = AESGCM(_derive_key(key_scalar)).decrypt(iv, ciphertext, None)
    except InvalidTag as error:
        raise ThresholdKeyError(
            "Failed to decrypt envelope: key does not match. "
            "The share may belong to a different key."
        ) from error
    return json.loads(plaintext.decode("utf-8"))


def _derive_key(key_scalar: int) -> bytes:
    return hashlib.sha256(scalar_to_bytes(key_scalar)).digest()
