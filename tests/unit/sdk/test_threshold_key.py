"""Unit tests for the threshold-key SDK."""

from __future__ import annotations

import pytest

from core.constants import DEFAULT_POSTBOX_KEY
from core.errors import ThresholdKeyError
from sdk.curve import scalar_to_hex
from sdk.service_provider import ServiceProvider
from sdk.threshold_key import SERVICE_PROVIDER_SHARE_INDEX, ThresholdKey
from store.metadata_store import MetadataStore


def _handles(count: int = 2) -> list[ThresholdKey]:
    service_provider = ServiceProvider(DEFAULT_POSTBOX_KEY)
    store = MetadataStore("fingerprint", "1.0.0", service_provider=service_provider)
    return [ThresholdKey(service_provider, store) for _ in range(count)]


def test_device_share_reconstructs_on_second_handle() -> None:
    """A second handle should rebuild the secret from the device share."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    tb2.initialize()
    tb2.input_share_store(key_details.device_share)

    assert tb2.reconstruct_key().priv_key == key_details.priv_key


def test_initialize_new_key_refuses_existing_metadata() -> None:
    """Creating a key twice for one provider should fail."""
    tb, tb2 = _handles()
    tb.initialize_new_key()

    with pytest.raises(ThresholdKeyError):
        tb2.initialize_new_key()


def test_initialize_raises_without_metadata() -> None:
    """Loading from an empty store should fail with guidance."""
    (tb,) = _handles(1)

    with pytest.raises(ThresholdKeyError):
        tb.initialize()


def test_reconstruct_requires_threshold_shares() -> None:
    """The provider share alone is below threshold."""
    tb, tb2 = _handles()
    tb.initialize_new_key()
    tb2.initialize()

    with pytest.raises(ThresholdKeyError):
        tb2.reconstruct_key()


def test_generate_new_share_lists_new_index() -> None:
    """Generated share index should appear in metadata."""
    (tb,) = _handles(1)
    tb.initialize_new_key()

    result = tb.generate_new_share()

    assert result.new_share_index in tb.current_share_indexes()


def test_generated_share_reconstructs_elsewhere() -> None:
    """A generated share store should work on another handle."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    result = tb.generate_new_share()
    tb2.initialize()
    tb2.input_share_store(result.new_share_stores[scalar_to_hex(result.new_share_index)])

    assert tb2.reconstruct_key().priv_key == key_details.priv_key


def test_delete_share_removes_index() -> None:
    """Deleted index should leave the live share set."""
    (tb,) = _handles(1)
    tb.initialize_new_key()
    result = tb.generate_new_share()

    deleted = tb.delete_share(result.new_share_index)

    assert result.new_share_index not in tb.current_share_indexes() and (
        scalar_to_hex(result.new_share_index) not in deleted.new_share_stores
    )


def test_deleted_share_cannot_be_input() -> None:
    """A deleted share's raw value should be rejected."""
    tb, tb2 = _handles()
    tb.initialize_new_key()
    result = tb.generate_new_share()
    deleted_share = result.new_share_stores[scalar_to_hex(result.new_share_index)].share
    tb.delete_share(result.new_share_index)
    tb2.initialize()

    with pytest.raises(ThresholdKeyError):
        tb2.input_share(format(deleted_share, "x"))


def test_outdated_device_share_follows_refresh() -> None:
    """A pre-refresh device share should still reconstruct the secret."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    result = tb.generate_new_share()
    tb.delete_share(result.new_share_index)
    tb2.initialize()
    tb2.input_share_store(key_details.device_share)

    assert tb2.reconstruct_key().priv_key == key_details.priv_key


def test_delete_share_refuses_provider_share() -> None:
    """Share 1 is owned by the service provider."""
    (tb,) = _handles(1)
    tb.initialize_new_key()
    tb.generate_new_share()

    with pytest.raises(ThresholdKeyError):
        tb.delete_share(SERVICE_PROVIDER_SHARE_INDEX)


def test_delete_share_refuses_dropping_below_threshold() -> None:
    """Deleting the only device share would make the key unrecoverable."""
    (tb,) = _handles(1)
    key_details = tb.initialize_new_key()

    with pytest.raises(ThresholdKeyError):
        tb.delete_share(key_details.device_share.share_index)


def test_stale_handle_cannot_write() -> None:
    """Writes from outdated metadata should fail the nonce check."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    tb2.initialize()
    tb2.input_share_store(key_details.device_share)
    tb2.reconstruct_key()
    tb.generate_new_share()

    with pytest.raises(ThresholdKeyError):
        tb2.generate_new_share()


def test_failed_write_releases_lock() -> None:
    """The write lock should be released even when the write fails."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    tb2.initialize()
    tb2.input_share_store(key_details.device_share)
    tb2.reconstruct_key()
    tb.generate_new_share()
    with pytest.raises(ThresholdKeyError):
        tb2.generate_new_share()

    assert tb2.storage_layer.lock_manager.lock_map() == {}


def test_write_fails_while_lock_is_held() -> None:
    """A concurrent writer holding the lock should block metadata writes."""
    (tb,) = _handles(1)
    tb.initialize_new_key()
    tb.storage_layer.acquire_write_lock()

    with pytest.raises(ThresholdKeyError):
        tb.generate_new_share()


def test_metadata_nonce_increments_per_write() -> None:
    """Each metadata write should bump the stored nonce."""
    (tb,) = _handles(1)
    tb.initialize_new_key()
    tb.generate_new_share()

    assert tb.storage_layer.get_metadata()["nonce"] == 1


def test_output_share_round_trips_through_input_share() -> None:
    """Serialized device share should be accepted by a fresh handle."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    serialized = tb.output_share(key_details.device_share.share_index, "hex")
    tb2.initialize()
    tb2.input_share(serialized, "hex")

    assert tb2.reconstruct_key().priv_key == key_details.priv_key


def test_output_share_mnemonic_round_trips_through_input_share() -> None:
    """A mnemonic-exported device share should be accepted by a fresh handle."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    serialized = tb.output_share(key_details.device_share.share_index, "mnemonic")
    tb2.initialize()
    tb2.input_share(serialized, "mnemonic")

    assert len(serialized.split()) == 24 and tb2.reconstruct_key().priv_key == key_details.priv_key


def test_output_share_rejects_unknown_format() -> None:
    """Only supported share formats should be produced."""
    (tb,) = _handles(1)
    key_details = tb.initialize_new_key()

    with pytest.raises(ThresholdKeyError):
        tb.output_share(key_details.device_share.share_index, "base58")


def test_from_json_restores_reconstructed_handle() -> None:
    """Serialized handle should reconstruct the same secret."""
    (tb,) = _handles(1)
    key_details = tb.initialize_new_key()

    restored = ThresholdKey.from_json(tb.to_json(), tb.service_provider, tb.storage_layer)

    assert restored.reconstruct_key().priv_key == key_details.priv_key


def test_input_share_raises_typed_error_for_metadata_missing_fields() -> None:
    """Metadata from an older layout should fail with ThresholdKeyError."""
    tb, tb2 = _handles()
    key_details = tb.initialize_new_key()
    tb.storage_layer.set_metadata(
        {"keyIdentifier": "00", "polynomialID": "p"},
        service_provider=tb.service_provider,
    )
    tb2.initialize()

    with pytest.raises(ThresholdKeyError, match="shareIdentifiers"):
        tb2.input_share_store(key_details.device_share)


def test_share_indexes_raise_typed_error_for_metadata_missing_fields() -> None:
    """Listing shares on metadata without an index list should name the field."""
    tb, tb2 = _handles()
    tb.initialize_new_key()
    tb.storage_layer.set_metadata({"keyIdentifier": "00"}, service_provider=tb.service_provider)
    tb2.initialize()

    with pytest.raises(ThresholdKeyError, match="shareIndexes"):
        tb2.current_share_indexes()
