"""Identifier derivation for the metadata key space.

Identifiers are the fixed-width hex X-coordinate of a public point,
derived either from a private scalar or from a public identity.
"""

from __future__ import annotations

from core.constants import IDENTIFIER_HEX_WIDTH
from core.errors import InvalidKeyMaterialError
from core.types import PublicIdentity, ServiceProviderLike
from sdk.curve import get_pub_key_point


def identifier_for(
    priv_key: int | None = None,
    public_identity: PublicIdentity | None = None,
) -> str:
    """Derive the store identifier for key material.

    A private scalar takes precedence over a public identity.

    Args:
        priv_key: Optional private scalar.
        public_identity: Optional object exposing an ``x`` coordinate.

    Returns:
        Lowercase fixed-width hex X-coordinate.

    Raises:
        InvalidKeyMaterialError: If neither input is usable.
    """
    if priv_key is not None:
        return encode_coordinate(get_pub_key_point(priv_key).x)
    if public_identity is not None:
        return encode_coordinate(public_identity.x)
    raise InvalidKeyMaterialError(
        "No key material supplied: pass a private scalar or a public identity "
        "(for example a service provider's public key point)."
    )


def resolve_identifier(
    priv_key: int | None,
    service_provider: ServiceProviderLike | None,
    default_service_provider: ServiceProviderLike | None = None,
) -> str:
    """Resolve the identifier targeted by a store call.

    Args:
        priv_key: Explicit private scalar, preferred when present.
        service_provider: Per-call service provider.
        default_service_provider: Store-level fallback service provider.

    Returns:
        Store identifier.

    Raises:
        InvalidKeyMaterialError: If no key material can be found.
    """
    if priv_key is not None:
        return identifier_for(priv_key=priv_key)
    provider = service_provider or default_service_provider
    if provider is None:
        return identifier_for()
    return identifier_for(public_identity=provider.retrieve_pub_key_point())


def encode_coordinate(coordinate: int) -> str:
    """Encode a point coordinate as fixed-width lowercase hex."""
    if coordinate < 0:
        raise InvalidKeyMaterialError(
            f"Point coordinate must be non-negative, got {coordinate}."
        )
    return format(coordinate, f"0{IDENTIFIER_HEX_WIDTH}x")
