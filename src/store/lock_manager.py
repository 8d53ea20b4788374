"""Advisory per-identifier write locks.

The store never enforces these locks on reads or writes. Callers
acquire before mutating an identifier and release afterwards.
"""

from __future__ import annotations

import secrets
import threading
from typing import Mapping

from core.constants import LOCK_TOKEN_ALPHABET, LOCK_TOKEN_LENGTH
from core.logging_config import get_logger
from core.types import LockGrant, ReleaseStatus

_LOGGER = get_logger(__name__)


class LockManager:
    """Exclusive, non-expiring lease per identifier."""

    def __init__(self, lock_map: Mapping[str, str | None] | None = None) -> None:
        """Initialize from an optional existing lock map.

        Args:
            lock_map: Identifier to outstanding token; falsy tokens mean unlocked.
        """
        self._locks: dict[str, str] = {
            identifier: token for identifier, token in (lock_map or {}).items() if token
        }
        self._mutex = threading.Lock()

    def acquire(self, identifier: str) -> LockGrant:
        """Try to take the write lock for an identifier.

        Args:
            identifier: Store identifier.

        Returns:
            Granted lock with token, or an ungranted result when already held.
        """
        with self._mutex:
            if identifier in self._locks:
                _LOGGER.info("write_lock_contended", identifier=identifier)
                return LockGrant(granted=False)
            token = generate_token()
            self._locks[identifier] = token
        _LOGGER.debug("write_lock_acquired", identifier=identifier)
        return LockGrant(granted=True, token=token)

    def release(self, identifier: str, token: str) -> ReleaseStatus:
        """Release a write lock by presenting its token.

        Args:
            identifier: Store identifier.
            token: Token issued by ``acquire``.

        Returns:
            NO_LOCK_HELD, TOKEN_MISMATCH (lock kept), or RELEASED.
        """
        with self._mutex:
            held_token = self._locks.get(identifier)
            if held_token is None:
                return ReleaseStatus.NO_LOCK_HELD
            if held_token != token:
                _LOGGER.warning("write_lock_token_mismatch", identifier=identifier)
                return ReleaseStatus.TOKEN_MISMATCH
            del self._locks[identifier]
        _LOGGER.debug("write_lock_released", identifier=identifier)
        return ReleaseStatus.RELEASED

    def is_locked(self, identifier: str) -> bool:
        with self._mutex:
            return identifier in self._locks

    def lock_map(self) -> dict[str, str]:
        """Return a copy of outstanding locks."""
        with self._mutex:
            return dict(self._locks)


def generate_token() -> str:
    """Return a short random base-36 lock token."""
    return "".join(secrets.choice(LOCK_TOKEN_ALPHABET) for _ in range(LOCK_TOKEN_LENGTH))
