"""
Input validation and normalization for the FHEVM SDK.

Every plaintext is checked against its declared type before it reaches the
engine. This module is pure: it never touches the network or the engine.
"""

import math
import re
from enum import Enum
from typing import Dict, Union

from .exceptions import ValidationError

PlainValue = Union[bool, int, float, str]


class InputType(str, Enum):
    """Plaintext types accepted for encryption."""

    BOOL = "bool"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    UINT128 = "uint128"
    UINT256 = "uint256"
    ADDRESS = "address"
    BYTES = "bytes"


class EncryptedType(str, Enum):
    """On-chain encrypted types."""

    EBOOL = "ebool"
    EUINT4 = "euint4"
    EUINT8 = "euint8"
    EUINT16 = "euint16"
    EUINT32 = "euint32"
    EUINT64 = "euint64"
    EUINT128 = "euint128"
    EUINT256 = "euint256"
    EADDRESS = "eaddress"
    EBYTES64 = "ebytes64"
    EBYTES128 = "ebytes128"
    EBYTES256 = "ebytes256"


INPUT_TO_ENCRYPTED_TYPE: Dict[InputType, EncryptedType] = {
    InputType.BOOL: EncryptedType.EBOOL,
    InputType.UINT8: EncryptedType.EUINT8,
    InputType.UINT16: EncryptedType.EUINT16,
    InputType.UINT32: EncryptedType.EUINT32,
    InputType.UINT64: EncryptedType.EUINT64,
    InputType.UINT128: EncryptedType.EUINT128,
    InputType.UINT256: EncryptedType.EUINT256,
    InputType.ADDRESS: EncryptedType.EADDRESS,
    InputType.BYTES: EncryptedType.EBYTES256,
}

MAX_VALUES: Dict[InputType, int] = {
    InputType.UINT8: 2**8 - 1,
    InputType.UINT16: 2**16 - 1,
    InputType.UINT32: 2**32 - 1,
    InputType.UINT64: 2**64 - 1,
    InputType.UINT128: 2**128 - 1,
    InputType.UINT256: 2**256 - 1,
}

_ADDRESS_RE = re.compile(r"(0x)?[0-9a-fA-F]{40}")
_HEX_RE = re.compile(r"(0x)?[0-9a-fA-F]*")
_HEX_DIGITS_RE = re.compile(r"[0-9a-fA-F]*")
_HANDLE_RE = re.compile(r"(0x)?[0-9a-fA-F]+")
_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")
_HEX_INT_RE = re.compile(r"0[xX][0-9a-fA-F]+")


def to_input_type(type_: Union[str, InputType]) -> InputType:
    """Coerce a type name to InputType."""
    try:
        return InputType(type_)
    except ValueError:
        raise ValidationError(f"Unknown input type: {type_}", details={"type": str(type_)})


def to_encrypted_type(type_: Union[str, EncryptedType]) -> EncryptedType:
    """Coerce a type name to EncryptedType."""
    try:
        return EncryptedType(type_)
    except ValueError:
        raise ValidationError(f"Unknown encrypted type: {type_}", details={"type": str(type_)})


def get_encrypted_type(input_type: Union[str, InputType]) -> EncryptedType:
    """Get the encrypted type tag for an input type."""
    return INPUT_TO_ENCRYPTED_TYPE[to_input_type(input_type)]


def to_int(value: PlainValue) -> int:
    """
    Convert a value to an arbitrary-precision integer.

    Accepts ints, integral floats, decimal strings and 0x-prefixed hex strings.

    Raises:
        ValidationError: For booleans, non-integral numbers and unparseable strings
    """
    if isinstance(value, bool):
        raise ValidationError("Cannot convert bool to integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError("Decimal numbers not supported")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if _DECIMAL_RE.fullmatch(text):
            return int(text)
        if _HEX_INT_RE.fullmatch(text):
            return int(text, 16)
        raise ValidationError(f"Failed to convert value to integer: {value!r}")
    raise ValidationError(f"Cannot convert {type(value).__name__} to integer")


def is_valid_address(address: str) -> bool:
    """Check for 40 hex digits with an optional 0x prefix."""
    return isinstance(address, str) and bool(_ADDRESS_RE.fullmatch(address))


def is_valid_hex(value: str) -> bool:
    """Check for a hex string with an optional 0x prefix."""
    return isinstance(value, str) and value != "" and bool(_HEX_RE.fullmatch(value))


def is_hex_digits(value: str) -> bool:
    """Check for hex digits only, no prefix (the empty string passes)."""
    return isinstance(value, str) and bool(_HEX_DIGITS_RE.fullmatch(value))


def validate_encryption_input(value: PlainValue, type_: Union[str, InputType]) -> None:
    """
    Validate a plaintext against its declared type.

    Raises:
        ValidationError: Naming the expected type and the offending value or type
    """
    input_type = to_input_type(type_)
    name = input_type.value

    if input_type is InputType.BOOL:
        if not isinstance(value, bool):
            raise ValidationError(f"Expected boolean for type 'bool', got {type(value).__name__}")
        return

    if input_type is InputType.ADDRESS:
        if not isinstance(value, str):
            raise ValidationError(f"Expected string for type 'address', got {type(value).__name__}")
        if not is_valid_address(value):
            raise ValidationError(f"Invalid Ethereum address: {value}")
        return

    if input_type is InputType.BYTES:
        if not isinstance(value, str):
            raise ValidationError(f"Expected string for type 'bytes', got {type(value).__name__}")
        if not is_valid_hex(value):
            raise ValidationError(f"Invalid hex string for bytes: {value}")
        return

    if isinstance(value, bool):
        raise ValidationError(f"Expected numeric value for type '{name}', got bool")

    numeric = to_int(value)
    max_value = MAX_VALUES[input_type]

    if numeric < 0:
        raise ValidationError(f"Value must be non-negative for type '{name}', got {numeric}")

    if numeric > max_value:
        raise ValidationError(f"Value {numeric} exceeds maximum for type '{name}' (max: {max_value})")


def _with_prefix(value: str) -> str:
    lowered = value.lower()
    return lowered if lowered.startswith("0x") else "0x" + lowered


def normalize_value(value: PlainValue, type_: Union[str, InputType]) -> Union[bool, int, str]:
    """Canonicalize an already validated plaintext for the engine."""
    input_type = to_input_type(type_)

    if input_type is InputType.BOOL:
        return bool(value)

    if input_type in (InputType.ADDRESS, InputType.BYTES):
        return _with_prefix(str(value))

    return to_int(value)


def validate_contract_address(address: str) -> None:
    """
    Validate a contract address.

    Raises:
        ValidationError: If the address is malformed
    """
    if not is_valid_address(address):
        raise ValidationError(f"Invalid contract address: {address}")


def validate_handle(handle: str) -> None:
    """
    Validate a ciphertext handle: a non-empty hex string.

    Raises:
        ValidationError: If the handle is empty or not hex
    """
    if not handle or not isinstance(handle, str):
        raise ValidationError("Handle must be a non-empty string")
    if not _HANDLE_RE.fullmatch(handle):
        raise ValidationError(f"Invalid handle format: {handle}")


def normalize_address(address: str) -> str:
    """Lower-case, 0x-prefixed form of a valid address."""
    if not is_valid_address(address):
        raise ValidationError(f"Invalid Ethereum address: {address}")
    return _with_prefix(address)
