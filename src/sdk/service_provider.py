"""Service provider holding the postbox key of a key holder."""

from __future__ import annotations

from typing import Any, Mapping

from core.types import PublicPoint
from sdk.curve import get_pub_key_point, hex_to_scalar, scalar_to_hex


class ServiceProvider:
    """Owns the postbox key whose public X addresses the main metadata."""

    def __init__(self, postbox_key: int) -> None:
        """Create a service provider.

        Args:
            postbox_key: Private scalar of the key holder.

        Raises:
            InvalidKeyMaterialError: If the scalar is invalid.
        """
        self._pub_key_point = get_pub_key_point(postbox_key)
        self.postbox_key = postbox_key

    def retrieve_pub_key_point(self) -> PublicPoint:
        return self._pub_key_point

    def to_json(self) -> dict[str, Any]:
        return {"postboxKey": scalar_to_hex(self.postbox_key)}

    @classmethod
    def from_json(cls, value: Mapping[str, Any]) -> "ServiceProvider":
        return cls(hex_to_scalar(str(value["postboxKey"])))
