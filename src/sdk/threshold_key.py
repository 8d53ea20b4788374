"""Threshold-key SDK core.

This module splits a secret into shares on a degree-1 polynomial,
persists the share metadata through the metadata store, and rebuilds
the secret from any two current shares.

Metadata for a key lives under the service provider's identifier:

    keyIdentifier         public X of the secret
    polynomialID          id of the polynomial that issued current shares
    shareIndexes          hex indexes of live shares
    shareIdentifiers      hex index -> public X of the current share
    serviceProviderShare  share 1, encrypted under the postbox key
    generalStore          per-module state
    nonce                 write counter checked under the write lock

Deleting a share refreshes the polynomial. Each surviving share gets a
forward record under its old identifier, encrypted with the old share,
so holders of outdated shares can walk to the current one.
"""

from __future__ import annotations

import copy
import secrets
from typing import Any, Mapping, Protocol, Sequence

from core.constants import SDK_VERSION
from core.errors import ThresholdKeyError
from core.logging_config import get_logger
from core.types import ReleaseStatus, is_key_not_found
from sdk.curve import hex_to_scalar, random_scalar, scalar_to_hex
from sdk.encryption import decrypt_json, encrypt_json
from sdk.key_types import DeleteShareResult, GenerateShareResult, KeyDetails, ReconstructedKey
from sdk.polynomial import evaluate, interpolate, random_polynomial
from sdk.service_provider import ServiceProvider
from sdk.share_store import ShareStore, deserialize_share, serialize_share
from store.key_codec import identifier_for
from store.metadata_store import MetadataStore

_LOGGER = get_logger(__name__)

THRESHOLD = 2
SERVICE_PROVIDER_SHARE_INDEX = 1
MAX_REFRESH_HOPS = 64


class ThresholdKeyModule(Protocol):
    """Pluggable module attached to a ThresholdKey instance."""

    module_name: str

    def set_module_reference(self, tkey: "ThresholdKey") -> None: ...


class ThresholdKey:
    """One SDK handle; several handles may share one metadata store."""

    def __init__(
        self,
        service_provider: ServiceProvider,
        storage_layer: MetadataStore,
        modules: Mapping[str, ThresholdKeyModule] | None = None,
    ) -> None:
        """Create an SDK handle.

        Args:
            service_provider: Identity whose postbox key holds share 1.
            storage_layer: Shared metadata store.
            modules: Optional modules keyed by name.
        """
        self.service_provider = service_provider
        self.storage_layer = storage_layer
        self.modules: dict[str, ThresholdKeyModule] = dict(modules or {})
        self._metadata: dict[str, Any] | None = None
        self._shares: dict[int, int] = {}
        self._priv_key: int | None = None
        for module in self.modules.values():
            module.set_module_reference(self)

    @property
    def metadata(self) -> dict[str, Any]:
        """Last metadata document this handle loaded or wrote.

        Raises:
            ThresholdKeyError: If the handle is not initialized.
        """
        if self._metadata is None:
            raise ThresholdKeyError(
                "ThresholdKey is not initialized. Call initialize() or initialize_new_key()."
            )
        return self._metadata

    @property
    def priv_key(self) -> int | None:
        return self._priv_key

    def initialize_new_key(self) -> KeyDetails:
        """Create a fresh secret with a service-provider and a device share.

        Returns:
            Secret and the device share store.

        Raises:
            ThresholdKeyError: If metadata already exists for this identity.
        """
        existing = self.storage_layer.get_metadata(service_provider=self.service_provider)
        if not is_key_not_found(existing):
            raise ThresholdKeyError(
                "Metadata already exists for this service provider. "
                "Call initialize() to load the existing key."
            )
        secret = random_scalar()
        coefficients = random_polynomial(secret, THRESHOLD - 1)
        device_index = _random_share_index(())
        shares = {
            index: evaluate(coefficients, index)
            for index in (SERVICE_PROVIDER_SHARE_INDEX, device_index)
        }
        polynomial_id = _new_polynomial_id()
        document = {
            "keyIdentifier": identifier_for(priv_key=secret),
            "polynomialID": polynomial_id,
            "shareIndexes": [],
            "shareIdentifiers": {},
            "serviceProviderShare": None,
            "generalStore": {},
            "sdkVersion": SDK_VERSION,
        }
        _apply_shares(document, shares, self.service_provider.postbox_key)
        self._sync_metadata(document)
        self._shares = shares
        self._priv_key = secret
        _LOGGER.info(
            "key_initialized",
            key_identifier=document["keyIdentifier"],
            share_indexes=document["shareIndexes"],
        )
        return KeyDetails(
            priv_key=secret,
            device_share=ShareStore(shares[device_index], device_index, polynomial_id),
            share_indexes=tuple(sorted(shares)),
        )

    def initialize(self) -> None:
        """Load existing metadata and the service-provider share.

        Raises:
            ThresholdKeyError: If no metadata exists or share 1 cannot be decrypted.
        """
        document = self.storage_layer.get_metadata(service_provider=self.service_provider)
        if is_key_not_found(document):
            raise ThresholdKeyError(
                "No metadata found for this service provider. "
                "Call initialize_new_key() to create a key first."
            )
        self._metadata = dict(document)
        self._shares = {}
        self._priv_key = None
        envelope = self._metadata.get("serviceProviderShare")
        if envelope:
            provider_share = ShareStore.from_json(
                decrypt_json(self.service_provider.postbox_key, envelope)
            )
            self.input_share_store(provider_share)

    def input_share_store(self, share_store: ShareStore | Mapping[str, Any]) -> int:
        """Add a share store, following refreshes when it is outdated.

        Returns:
            Index the share resolved to.
        """
        if not isinstance(share_store, ShareStore):
            share_store = ShareStore.from_json(share_store)
        return self._accept_share(share_store.share)

    def input_share(self, serialized_share: str, share_format: str = "hex") -> int:
        """Add a serialized raw share value.

        Raises:
            ThresholdKeyError: If the share is unknown, deleted, or malformed.
        """
        return self._accept_share(deserialize_share(serialized_share, share_format))

    def reconstruct_key(self) -> ReconstructedKey:
        """Rebuild the secret from collected shares.

        Raises:
            ThresholdKeyError: If shares are insufficient or inconsistent.
        """
        if len(self._shares) < THRESHOLD:
            raise ThresholdKeyError(
                f"Need {THRESHOLD} shares to reconstruct, have {len(self._shares)}. "
                "Input a device share or a security-question share first."
            )
        points = self._points()
        secret = interpolate(points, 0)
        if identifier_for(priv_key=secret) != self._metadata_field("keyIdentifier"):
            raise ThresholdKeyError(
                "Reconstructed secret does not match the stored key identifier."
            )
        self._priv_key = secret
        return ReconstructedKey(priv_key=secret, all_keys=(secret,))

    def generate_new_share(self) -> GenerateShareResult:
        """Issue a share at a fresh index of the current polynomial.

        Raises:
            ThresholdKeyError: If the key has not been reconstructed.
        """
        self._require_reconstructed()
        points = self._points()
        share_indexes = list(self._metadata_field("shareIndexes"))
        share_identifiers = dict(self._metadata_field("shareIdentifiers"))
        existing = [hex_to_scalar(index) for index in share_indexes]
        new_index = _random_share_index(existing)
        new_share = interpolate(points, new_index)
        index_hex = scalar_to_hex(new_index)
        share_identifiers[index_hex] = identifier_for(priv_key=new_share)
        document = copy.deepcopy(self.metadata)
        document["shareIndexes"] = sorted(share_indexes + [index_hex])
        document["shareIdentifiers"] = share_identifiers
        self._sync_metadata(document)
        self._shares[new_index] = new_share
        _LOGGER.info("share_generated", share_index=index_hex)
        return GenerateShareResult(
            new_share_stores=self._share_stores(points, existing + [new_index]),
            new_share_index=new_index,
        )

    def delete_share(self, share_index: int) -> DeleteShareResult:
        """Delete a share index and refresh all remaining shares.

        Raises:
            ThresholdKeyError: If the index is share 1, unknown, or the last spare.
        """
        secret = self._require_reconstructed()
        share_indexes = list(self._metadata_field("shareIndexes"))
        document = copy.deepcopy(self.metadata)
        index_hex = scalar_to_hex(share_index)
        if share_index == SERVICE_PROVIDER_SHARE_INDEX:
            raise ThresholdKeyError("The service-provider share cannot be deleted.")
        if index_hex not in share_indexes:
            raise ThresholdKeyError(f"Share index {index_hex} is not a live share.")
        remaining = [hex_to_scalar(index) for index in share_indexes if index != index_hex]
        if len(remaining) < THRESHOLD:
            raise ThresholdKeyError(
                f"Deleting share {index_hex} would leave fewer than {THRESHOLD} shares."
            )
        old_points = self._points()
        coefficients = random_polynomial(secret, THRESHOLD - 1)
        new_shares = {index: evaluate(coefficients, index) for index in remaining}
        document["polynomialID"] = _new_polynomial_id()
        document["shareIndexes"] = []
        document["shareIdentifiers"] = {}
        _apply_shares(document, new_shares, self.service_provider.postbox_key)
        forwards = []
        forward_keys = []
        for index, share in new_shares.items():
            if index == SERVICE_PROVIDER_SHARE_INDEX:
                continue
            old_share = interpolate(old_points, index)
            refreshed = ShareStore(share, index, document["polynomialID"]).to_json()
            forwards.append({"refreshedShare": encrypt_json(old_share, refreshed)})
            forward_keys.append(old_share)
        self._sync_metadata(document, forwards, forward_keys)
        self._shares = new_shares
        _LOGGER.info(
            "share_deleted",
            share_index=index_hex,
            remaining_indexes=document["shareIndexes"],
        )
        return DeleteShareResult(
            new_share_stores=self._share_stores(new_shares, remaining),
        )

    def output_share(self, share_index: int, share_format: str = "hex") -> str:
        """Serialize the current share at an index.

        Raises:
            ThresholdKeyError: If the share is not known to this handle.
        """
        return serialize_share(self.share_at(share_index), share_format)

    def share_at(self, share_index: int) -> int:
        """Return the current share value at an index."""
        if share_index in self._shares:
            return self._shares[share_index]
        if self._priv_key is None:
            raise ThresholdKeyError(
                f"Share {scalar_to_hex(share_index)} is unknown; reconstruct the key first."
            )
        return interpolate(self._points(), share_index)

    def current_share_indexes(self) -> list[int]:
        return [hex_to_scalar(index) for index in self._metadata_field("shareIndexes")]

    def get_general_store(self, module_name: str) -> Any:
        return self.metadata.get("generalStore", {}).get(module_name)

    def set_general_store(self, module_name: str, value: Any) -> None:
        """Persist module state into the metadata general store."""
        document = copy.deepcopy(self.metadata)
        document.setdefault("generalStore", {})[module_name] = value
        self._sync_metadata(document)

    def to_json(self) -> dict[str, Any]:
        """Serialize handle state, excluding the storage layer."""
        return {
            "metadata": self._metadata,
            "shares": {
                scalar_to_hex(index): scalar_to_hex(share)
                for index, share in self._shares.items()
            },
            "privKey": scalar_to_hex(self._priv_key) if self._priv_key is not None else None,
            "sdkVersion": SDK_VERSION,
        }

    @classmethod
    def from_json(
        cls,
        value: Mapping[str, Any],
        service_provider: ServiceProvider,
        storage_layer: MetadataStore,
        modules: Mapping[str, ThresholdKeyModule] | None = None,
    ) -> "ThresholdKey":
        """Restore a handle serialized with ``to_json``."""
        tkey = cls(service_provider, storage_layer, modules)
        metadata = value.get("metadata")
        tkey._metadata = dict(metadata) if metadata else None
        tkey._shares = {
            hex_to_scalar(index): hex_to_scalar(share)
            for index, share in dict(value.get("shares") or {}).items()
        }
        priv_key = value.get("privKey")
        tkey._priv_key = hex_to_scalar(priv_key) if priv_key else None
        return tkey

    def _accept_share(self, share: int) -> int:
        current = share
        for _ in range(MAX_REFRESH_HOPS):
            index = self._index_for_share(current)
            if index is not None:
                self._shares[index] = current
                return index
            forward = self.storage_layer.get_metadata(priv_key=current)
            if is_key_not_found(forward) or "refreshedShare" not in forward:
                raise ThresholdKeyError(
                    "Share is not part of the current polynomial; it may have been deleted."
                )
            current = ShareStore.from_json(decrypt_json(current, forward["refreshedShare"])).share
        raise ThresholdKeyError(
            f"Share refresh chain exceeded {MAX_REFRESH_HOPS} hops; metadata looks corrupt."
        )

    def _index_for_share(self, share: int) -> int | None:
        identifier = identifier_for(priv_key=share)
        for index_hex, share_identifier in self._metadata_field("shareIdentifiers").items():
            if share_identifier == identifier:
                return hex_to_scalar(index_hex)
        return None

    def _points(self) -> dict[int, int]:
        return dict(sorted(self._shares.items())[:THRESHOLD])

    def _share_stores(
        self, points: Mapping[int, int], indexes: Sequence[int]
    ) -> dict[str, ShareStore]:
        polynomial_id = self._metadata_field("polynomialID")
        return {
            scalar_to_hex(index): ShareStore(interpolate(points, index), index, polynomial_id)
            for index in indexes
        }

    def _metadata_field(self, name: str) -> Any:
        try:
            return self.metadata[name]
        except KeyError as error:
            raise ThresholdKeyError(
                f"Metadata lacks {name}; it was written by an incompatible SDK version. "
                "Recapture the snapshot or migrate the stored metadata."
            ) from error

    def _require_reconstructed(self) -> int:
        if self._priv_key is None:
            raise ThresholdKeyError("Reconstruct the key before modifying shares.")
        return self._priv_key

    def _sync_metadata(
        self,
        document: dict[str, Any],
        extra_payloads: Sequence[Any] = (),
        extra_keys: Sequence[int] = (),
    ) -> None:
        """Write metadata under the write lock after a nonce check.

        Raises:
            ThresholdKeyError: On lock contention or stale local metadata.
        """
        provider = self.service_provider
        grant = self.storage_layer.acquire_write_lock(service_provider=provider)
        if not grant.granted or grant.token is None:
            raise ThresholdKeyError(
                "Metadata is locked by a concurrent update. Retry after it completes."
            )
        try:
            stored = self.storage_layer.get_metadata(service_provider=provider)
            stored_nonce = None if is_key_not_found(stored) else stored.get("nonce")
            local_nonce = self._metadata.get("nonce") if self._metadata else None
            if stored_nonce != local_nonce:
                raise ThresholdKeyError(
                    f"Stale metadata: local nonce {local_nonce}, stored nonce {stored_nonce}. "
                    "Call initialize() to reload before writing."
                )
            updated = dict(document, nonce=0 if local_nonce is None else local_nonce + 1)
            if extra_payloads:
                self.storage_layer.set_metadata_bulk(
                    extra_payloads, service_provider=provider, priv_keys=extra_keys
                )
            self.storage_layer.set_metadata(updated, service_provider=provider)
        finally:
            status = self.storage_layer.release_write_lock(grant.token, service_provider=provider)
            if status != ReleaseStatus.RELEASED:
                _LOGGER.warning("write_lock_release_failed", status=status.name)
        self._metadata = updated


def _apply_shares(document: dict[str, Any], shares: Mapping[int, int], postbox_key: int) -> None:
    document["shareIndexes"] = sorted(scalar_to_hex(index) for index in shares)
    document["shareIdentifiers"] = {
        scalar_to_hex(index): identifier_for(priv_key=share) for index, share in shares.items()
    }
    provider_store = ShareStore(
        shares[SERVICE_PROVIDER_SHARE_INDEX],
        SERVICE_PROVIDER_SHARE_INDEX,
        document["polynomialID"],
    )
    document["serviceProviderShare"] = encrypt_json(postbox_key, provider_store.to_json())


def _random_share_index(existing: Sequence[int]) -> int:
    taken = {0, SERVICE_PROVIDER_SHARE_INDEX, *existing}
    while True:
        candidate = random_scalar()
        if candidate not in taken:
            return candidate


def _new_polynomial_id() -> str:
    return secrets.token_hex(16)
