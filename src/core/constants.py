"""Core constants used across tkey-compat modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_MOCKS_ROOT = Path("mocks")
DEFAULT_VERSIONS_FILE = Path("versionsToTest.txt")
DEFAULT_METADATA_URL = "http://localhost:5051"
SNAPSHOT_FILE_SUFFIX = ".json"
SNAPSHOT_NAME_SEPARATOR = "|"
FILE_PREFIX_SEPARATOR = "|"
VERSIONS_FILE_SEPARATOR = ","
KEY_NOT_FOUND = "KEY_NOT_FOUND"
WRITE_SUCCESS_MESSAGE = "success"
IDENTIFIER_HEX_WIDTH = 64
LOCK_TOKEN_LENGTH = 9
LOCK_TOKEN_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
SNAPSHOT_DATA_MAP_FIELD = "dataMap"
SNAPSHOT_LOCAL_STORE_FIELD = "localStore"
LOCAL_STORE_DEVICE_SHARE = "deviceShare"
LOCAL_STORE_SERIALIZED_SHARE = "serializedShare"
LOCAL_STORE_PRIV_KEY = "privKey"
TRUTHY_ENV_VALUES = ("1", "true", "yes")
FALSY_ENV_VALUES = ("0", "false", "no", "")
DEFAULT_POSTBOX_KEY = 0xE70FB5F5970B363879BC36F54D4FC0AD77863BFD059881159251F50F48863ACF
STORE_FINGERPRINT_LENGTH = 16
SDK_VERSION = "1.0.0"
