"""secp256k1 scalar and point helpers.

Point derivation is delegated to the cryptography backend; this module
only validates scalars and converts between integer and hex forms.
"""

from __future__ import annotations

import secrets

from cryptography.hazmat.primitives.asymmetric import ec

from core.errors import InvalidKeyMaterialError
from core.types import PublicPoint

CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SCALAR_BYTE_LENGTH = 32


def get_pub_key_point(priv_key: int) -> PublicPoint:
    """Derive the public point for a private scalar.

    Args:
        priv_key: Private scalar in [1, n).

    Returns:
        Affine public point.

    Raises:
        InvalidKeyMaterialError: If the scalar is outside the curve order.
    """
    if not isinstance(priv_key, int) or not 0 < priv_key < CURVE_ORDER:
        raise InvalidKeyMaterialError(
            "Private scalar must be an integer in [1, n) for secp256k1. "
            "Pass a valid key or a public identity instead."
        )
    private_key = ec.derive_private_key(priv_key, ec.SECP256K1())
    numbers = private_key.public_key().public_numbers()
    return PublicPoint(x=numbers.x, y=numbers.y)


def random_scalar() -> int:
    """Return a uniformly random non-zero scalar modulo the curve order."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1


def scalar_to_bytes(value: int) -> bytes:
    return value.to_bytes(SCALAR_BYTE_LENGTH, "big")


def scalar_to_hex(value: int) -> str:
    return format(value, "x")


def hex_to_scalar(value: str) -> int:
    """Parse a hex scalar, raising InvalidKeyMaterialError on bad input."""
    try:
        return int(value, 16)
    except (TypeError, ValueError) as error:
        raise InvalidKeyMaterialError(
            f"Invalid hex scalar '{value}'. Provide a hexadecimal string."
        ) from error
