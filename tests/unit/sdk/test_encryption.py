"""Unit tests for scalar-keyed AES-GCM envelopes."""

from __future__ import annotations

import pytest

from core.errors import ThresholdKeyError
from sdk.encryption import decrypt_json, encrypt_json


def test_decrypt_returns_encrypted_payload() -> None:
    """Envelope should decrypt back to the original payload."""
    envelope = encrypt_json(42, {"share": "ab", "shareIndex": "2"})

    assert decrypt_json(42, envelope) == {"share": "ab", "shareIndex": "2"}


def test_decrypt_rejects_wrong_key() -> None:
    """A different scalar should fail authentication."""
    envelope = encrypt_json(42, {"share": "ab"})

    with pytest.raises(ThresholdKeyError):
        decrypt_json(43, envelope)


def test_decrypt_rejects_malformed_envelope() -> None:
    """Envelopes without hex fields should be rejected."""
    with pytest.raises(ThresholdKeyError):
        decrypt_json(42, {"iv": "zz"})
