"""In-memory metadata store keyed by public-key identifiers.

This module holds canonical JSON records per identifier and exposes
the advisory write-lock protocol used by the threshold-key SDK.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from core.constants import FILE_PREFIX_SEPARATOR
from core.errors import CompatConfigError, InvalidKeyMaterialError
from core.logging_config import get_logger
from core.types import (
    JsonPayload,
    KeyNotFound,
    LockGrant,
    ReleaseStatus,
    ServiceProviderLike,
    WriteAck,
)
from store.key_codec import resolve_identifier
from store.lock_manager import LockManager
from store.record_payload import canonical_json, parse_record

_LOGGER = get_logger(__name__)

ServiceProviderFactory = Callable[[Mapping[str, Any]], ServiceProviderLike]


class MetadataStore:
    """Single-process metadata store shared by many SDK handles.

    Records are last-write-wins per identifier. Writers serialize among
    themselves through ``acquire_write_lock``/``release_write_lock``.
    """

    def __init__(
        self,
        tkey_hash: str,
        tkey_version: str,
        service_provider: ServiceProviderLike | None = None,
        data_map: Mapping[str, str] | None = None,
        lock_map: Mapping[str, str | None] | None = None,
    ) -> None:
        """Create a store.

        Args:
            tkey_hash: Fingerprint of the owning key-management instance.
            tkey_version: Version tag of the owning instance.
            service_provider: Default identity used when calls pass none.
            data_map: Initial identifier to canonical record mapping.
            lock_map: Initial identifier to lock token mapping.

        Raises:
            CompatConfigError: If the fingerprint tag is missing.
        """
        if not tkey_hash:
            raise CompatConfigError(
                "MetadataStore requires a tkey_hash fingerprint. "
                "Pass the hash of the owning key-management instance."
            )
        self.file_prefix = FILE_PREFIX_SEPARATOR.join([tkey_hash, tkey_version or ""])
        self.service_provider = service_provider
        self._data: dict[str, str] = dict(data_map or {})
        self._locks = LockManager(lock_map)

    @property
    def data_map(self) -> dict[str, str]:
        """Copy of the identifier to canonical record mapping."""
        return dict(self._data)

    @property
    def lock_manager(self) -> LockManager:
        return self._locks

    def identifiers(self) -> list[str]:
        return sorted(self._data)

    def get_metadata(
        self,
        service_provider: ServiceProviderLike | None = None,
        priv_key: int | None = None,
    ) -> Any:
        """Read metadata for a key.

        Args:
            service_provider: Identity used when ``priv_key`` is absent.
            priv_key: Private scalar whose public X addresses the record.

        Returns:
            Decoded payload, or ``KeyNotFound`` when nothing was written yet.

        Raises:
            InvalidKeyMaterialError: If no key material is available.
        """
        identifier = self._identifier(service_provider, priv_key)
        record = self._data.get(identifier)
        if record is None:
            return KeyNotFound()
        return parse_record(record)

    def set_metadata(
        self,
        payload: JsonPayload,
        service_provider: ServiceProviderLike | None = None,
        priv_key: int | None = None,
    ) -> WriteAck:
        """Write metadata for a key in canonical form.

        Args:
            payload: JSON-serializable payload.
            service_provider: Identity used when ``priv_key`` is absent.
            priv_key: Private scalar whose public X addresses the record.

        Returns:
            Write acknowledgement.

        Raises:
            InvalidKeyMaterialError: If no key material is available.
        """
        identifier = self._identifier(service_provider, priv_key)
        self._data[identifier] = canonical_json(payload)
        _LOGGER.debug("metadata_set", identifier=identifier)
        return WriteAck()

    def set_metadata_bulk(
        self,
        payloads: Sequence[JsonPayload],
        service_provider: ServiceProviderLike | None = None,
        priv_keys: Sequence[int | None] | None = None,
    ) -> list[WriteAck]:
        """Write several payloads, best-effort per item.

        An item whose private key is missing or invalid is written under
        the service provider's identifier instead of failing the batch.
        Every target is resolved and every payload encoded before the
        first write, so a batch is applied either fully or not at all.

        Args:
            payloads: Payloads to write.
            service_provider: Fallback identity for items lacking a usable key.
            priv_keys: Optional per-item private scalars.

        Returns:
            One acknowledgement per payload.

        Raises:
            InvalidKeyMaterialError: If an item needs the fallback and no
                service provider is available.
        """
        keys = list(priv_keys or [])
        keys.extend([None] * (len(payloads) - len(keys)))
        targets = [
            self._bulk_identifier(index, keys[index], service_provider)
            for index in range(len(payloads))
        ]
        records = [canonical_json(payload) for payload in payloads]
        for identifier, record in zip(targets, records):
            self._data[identifier] = record
        _LOGGER.debug("metadata_bulk_set", count=len(records))
        return [WriteAck() for _ in records]

    def acquire_write_lock(
        self,
        service_provider: ServiceProviderLike | None = None,
        priv_key: int | None = None,
    ) -> LockGrant:
        """Acquire the advisory write lock for a key."""
        return self._locks.acquire(self._identifier(service_provider, priv_key))

    def release_write_lock(
        self,
        token: str,
        service_provider: ServiceProviderLike | None = None,
        priv_key: int | None = None,
    ) -> ReleaseStatus:
        """Release the advisory write lock for a key.

        Args:
            token: Token returned by ``acquire_write_lock``.
            service_provider: Identity used when ``priv_key`` is absent.
            priv_key: Private scalar whose public X addresses the lock.

        Returns:
            Three-way release status.
        """
        return self._locks.release(self._identifier(service_provider, priv_key), token)

    def to_json(self) -> dict[str, Any]:
        """Serialize store state for SDK-level persistence."""
        tkey_hash, _, tkey_version = self.file_prefix.partition(FILE_PREFIX_SEPARATOR)
        return {
            "dataMap": self.data_map,
            "serviceProvider": self.service_provider.to_json() if self.service_provider else None,
            "tkeyHash": tkey_hash,
            "tkeyVersion": tkey_version,
        }

    @classmethod
    def from_json(
        cls,
        value: Mapping[str, Any],
        service_provider: ServiceProviderLike | None = None,
        service_provider_factory: ServiceProviderFactory | None = None,
    ) -> "MetadataStore":
        """Rebuild a store from ``to_json`` output.

        Args:
            value: Serialized store.
            service_provider: Identity to attach; wins over the serialized one.
            service_provider_factory: Rebuilds the serialized identity when given.

        Returns:
            Restored store.
        """
        provider = service_provider
        serialized_provider = value.get("serviceProvider")
        if provider is None and serialized_provider and service_provider_factory:
            provider = service_provider_factory(serialized_provider)
        return cls(
            tkey_hash=str(value.get("tkeyHash") or ""),
            tkey_version=str(value.get("tkeyVersion") or ""),
            service_provider=provider,
            data_map=value.get("dataMap"),
            lock_map=value.get("lockMap"),
        )

    def _identifier(
        self,
        service_provider: ServiceProviderLike | None,
        priv_key: int | None,
    ) -> str:
        return resolve_identifier(priv_key, service_provider, self.service_provider)

    def _bulk_identifier(
        self,
        index: int,
        priv_key: int | None,
        service_provider: ServiceProviderLike | None,
    ) -> str:
        if priv_key is None:
            _LOGGER.debug("metadata_bulk_fallback", index=index, reason="missing_key")
        else:
            try:
                return resolve_identifier(priv_key, service_provider, self.service_provider)
            except InvalidKeyMaterialError as error:
                _LOGGER.warning("metadata_bulk_fallback", index=index, reason=str(error))
        return resolve_identifier(None, service_provider, self.service_provider)
