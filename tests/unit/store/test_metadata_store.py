"""Unit tests for the in-memory metadata store."""

from __future__ import annotations

import pytest

from core.errors import CompatConfigError, InvalidKeyMaterialError
from core.types import KeyNotFound, PublicPoint, ReleaseStatus, WriteAck
from sdk.curve import CURVE_ORDER
from store.key_codec import encode_coordinate, identifier_for
from store.metadata_store import MetadataStore


class _FakeServiceProvider:
    def __init__(self, x: int) -> None:
        self._point = PublicPoint(x=x, y=0)

    def retrieve_pub_key_point(self) -> PublicPoint:
        return self._point

    def to_json(self) -> dict[str, int]:
        return {"x": self._point.x}


def _store(provider_x: int | None = 0x51) -> MetadataStore:
    provider = _FakeServiceProvider(provider_x) if provider_x is not None else None
    return MetadataStore(tkey_hash="fingerprint", tkey_version="1.0.0", service_provider=provider)


def test_constructor_requires_fingerprint() -> None:
    """Store construction should fail without a fingerprint tag."""
    with pytest.raises(CompatConfigError):
        MetadataStore(tkey_hash="", tkey_version="1.0.0")


def test_file_prefix_joins_hash_and_version() -> None:
    """File prefix should be ``<hash>|<version>``."""
    assert _store().file_prefix == "fingerprint|1.0.0"


def test_get_metadata_returns_not_found_for_unwritten_key() -> None:
    """Unwritten identifiers should return the not-found sentinel."""
    result = _store().get_metadata(priv_key=7)

    assert result == KeyNotFound() and result.message == "KEY_NOT_FOUND"


def test_set_then_get_round_trips_payload() -> None:
    """Stored payload should read back logically equal."""
    store = _store()
    payload = {"b": [1, 2, {"z": None}], "a": "text"}
    store.set_metadata(payload, priv_key=7)

    assert store.get_metadata(priv_key=7) == payload


def test_set_metadata_canonicalizes_key_order() -> None:
    """Payloads differing only in key order should produce equal records."""
    first = _store()
    second = _store()
    first.set_metadata({"a": 1, "b": {"d": 2, "c": 3}})
    second.set_metadata({"b": {"c": 3, "d": 2}, "a": 1})

    assert first.data_map == second.data_map


def test_set_metadata_records_compact_sorted_json() -> None:
    """Records should use sorted keys and compact separators."""
    store = _store()
    store.set_metadata({"b": 1, "a": [1, 2]})

    assert store.data_map == {encode_coordinate(0x51): '{"a":[1,2],"b":1}'}


def test_set_metadata_last_write_wins() -> None:
    """Later writes should replace earlier ones for the same identifier."""
    store = _store()
    store.set_metadata({"nonce": 0})
    store.set_metadata({"nonce": 1})

    assert store.get_metadata() == {"nonce": 1}


def test_set_metadata_returns_success_ack() -> None:
    """Writes should acknowledge success."""
    ack = _store().set_metadata({"k": "v"})

    assert ack == WriteAck() and ack.message == "success"


def test_priv_key_takes_precedence_over_service_provider() -> None:
    """An explicit private scalar should address its own identifier."""
    store = _store()
    store.set_metadata({"k": "v"}, service_provider=_FakeServiceProvider(0x99), priv_key=7)

    assert store.identifiers() == [identifier_for(priv_key=7)]


def test_operations_raise_without_key_material() -> None:
    """Calls without any key material should raise InvalidKeyMaterialError."""
    store = _store(provider_x=None)

    with pytest.raises(InvalidKeyMaterialError):
        store.get_metadata()


def test_set_metadata_bulk_falls_back_for_missing_keys() -> None:
    """Items without a private key should land on the provider identifier."""
    store = _store()

    acks = store.set_metadata_bulk([{"i": 0}, {"i": 1}, {"i": 2}], priv_keys=[7, None])

    assert len(acks) == 3 and store.identifiers() == sorted(
        [identifier_for(priv_key=7), encode_coordinate(0x51)]
    )


def test_set_metadata_bulk_keeps_last_fallback_item() -> None:
    """Fallback items share one target, so the last one wins."""
    store = _store()
    store.set_metadata_bulk([{"i": 0}, {"i": 1}, {"i": 2}], priv_keys=[7, None])

    assert store.get_metadata() == {"i": 2}


def test_set_metadata_bulk_falls_back_for_invalid_keys() -> None:
    """Invalid scalars should land on the provider identifier, not abort the batch."""
    store = _store()

    acks = store.set_metadata_bulk([{"i": 0}, {"i": 1}, {"i": 2}], priv_keys=[7, 0, 9])

    assert len(acks) == 3
    assert store.get_metadata(priv_key=9) == {"i": 2}
    assert store.get_metadata() == {"i": 1}


def test_set_metadata_bulk_falls_back_for_out_of_range_and_non_int_keys() -> None:
    """Scalars at or above the curve order and non-integers should fall back."""
    store = _store()

    acks = store.set_metadata_bulk([{"i": 0}, {"i": 1}], priv_keys=[CURVE_ORDER, "7"])

    assert len(acks) == 2 and store.identifiers() == [encode_coordinate(0x51)]


def test_set_metadata_bulk_writes_nothing_when_fallback_is_unavailable() -> None:
    """A batch that cannot resolve every item should leave the store untouched."""
    store = _store(provider_x=None)

    with pytest.raises(InvalidKeyMaterialError):
        store.set_metadata_bulk([{"i": 0}, {"i": 1}], priv_keys=[7, 0])

    assert store.data_map == {}


def test_write_lock_round_trip_through_store() -> None:
    """Store lock calls should delegate to its lock manager."""
    store = _store()
    grant = store.acquire_write_lock()
    contended = store.acquire_write_lock()

    status = store.release_write_lock(grant.token or "")

    assert not contended.granted and status == ReleaseStatus.RELEASED


def test_locks_do_not_block_writes() -> None:
    """Locks are advisory, so writes still succeed while held."""
    store = _store()
    store.acquire_write_lock()

    store.set_metadata({"k": "v"})

    assert store.get_metadata() == {"k": "v"}


def test_to_json_splits_file_prefix() -> None:
    """Serialized store should expose hash, version, data, and provider."""
    store = _store()
    store.set_metadata({"k": "v"})

    serialized = store.to_json()

    assert (serialized["tkeyHash"], serialized["tkeyVersion"], serialized["serviceProvider"]) == (
        "fingerprint",
        "1.0.0",
        {"x": 0x51},
    )


def test_from_json_restores_records_and_prefers_given_provider() -> None:
    """Restored store should keep records and attach the passed provider."""
    original = _store()
    original.set_metadata({"k": "v"})
    replacement = _FakeServiceProvider(0x51)

    restored = MetadataStore.from_json(original.to_json(), service_provider=replacement)

    assert restored.service_provider is replacement and restored.get_metadata() == {"k": "v"}


def test_from_json_rebuilds_provider_with_factory() -> None:
    """Serialized provider should be rebuilt when a factory is supplied."""
    restored = MetadataStore.from_json(
        _store().to_json(),
        service_provider_factory=lambda value: _FakeServiceProvider(int(value["x"])),
    )

    assert restored.service_provider.retrieve_pub_key_point().x == 0x51
