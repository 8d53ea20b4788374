"""Threshold-key SDK.

This package implements the key-management collaborator driven by
compatibility scenarios: shares, polynomials, and metadata sync.
"""

from core.constants import SDK_VERSION

__all__ = ["SDK_VERSION"]
