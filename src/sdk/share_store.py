"""Share records and their serialized forms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from mnemonic import Mnemonic

from core.constants import IDENTIFIER_HEX_WIDTH
from core.errors import ThresholdKeyError
from sdk.curve import hex_to_scalar, scalar_to_bytes, scalar_to_hex

HEX_FORMAT = "hex"
MNEMONIC_FORMAT = "mnemonic"
SUPPORTED_SHARE_FORMATS = (HEX_FORMAT, MNEMONIC_FORMAT)

_WORDLIST = Mnemonic("english")


@dataclass(frozen=True)
class ShareStore:
    """One share of the threshold key.

    Attributes:
        share: Share value.
        share_index: Polynomial index the share was evaluated at.
        polynomial_id: Identifier of the polynomial that issued the share.
    """

    share: int
    share_index: int
    polynomial_id: str

    def to_json(self) -> dict[str, str]:
        return {
            "share": scalar_to_hex(self.share),
            "shareIndex": scalar_to_hex(self.share_index),
            "polynomialID": self.polynomial_id,
        }

    @classmethod
    def from_json(cls, value: Mapping[str, Any]) -> "ShareStore":
        """Parse a share store payload.

        Raises:
            ThresholdKeyError: If required fields are missing.
        """
        try:
            return cls(
                share=hex_to_scalar(str(value["share"])),
                share_index=hex_to_scalar(str(value["shareIndex"])),
                polynomial_id=str(value["polynomialID"]),
            )
        except (KeyError, TypeError) as error:
            raise ThresholdKeyError(f"Malformed share store payload: {error}.") from error


def serialize_share(share: int, share_format: str) -> str:
    """Serialize a raw share value.

    ``hex`` yields the zero-padded 64-digit value. ``mnemonic`` yields the
    24-word BIP-39 English phrase over the share's 32 big-endian bytes.

    Raises:
        ThresholdKeyError: If the format is unsupported.
    """
    _check_format(share_format)
    if share_format == MNEMONIC_FORMAT:
        return _WORDLIST.to_mnemonic(scalar_to_bytes(share))
    return format(share, f"0{IDENTIFIER_HEX_WIDTH}x")


def deserialize_share(serialized: str, share_format: str) -> int:
    """Parse a serialized share value.

    Raises:
        ThresholdKeyError: If the format is unsupported or the mnemonic
            has unknown words or a bad checksum.
    """
    _check_format(share_format)
    if share_format == MNEMONIC_FORMAT:
        phrase = " ".join(serialized.split())
        try:
            entropy = _WORDLIST.to_entropy(phrase)
        except (LookupError, ValueError) as error:
            raise ThresholdKeyError(
                f"Invalid share mnemonic: {error}. "
                "Pass the 24-word phrase exported with the mnemonic format."
            ) from error
        return int.from_bytes(bytes(entropy), "big")
    return hex_to_scalar(serialized.strip())


def _check_format(share_format: str) -> None:
    if share_format not in SUPPORTED_SHARE_FORMATS:
        raise ThresholdKeyError(
            f"Unsupported share format '{share_format}'. "
            f"Use one of: {', '.join(SUPPORTED_SHARE_FORMATS)}."
        )
