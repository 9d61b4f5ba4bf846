"""
Encryption pipeline.

Turns validated plaintexts into typed ciphertexts using the instance's
engine, one value at a time or as an all-or-nothing batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from .engine import call_engine
from .exceptions import EncryptionError, FhevmError, ValidationError, wrap_error
from .instance import EngineInstance, ensure_ready
from .validation import (
    EncryptedType,
    InputType,
    PlainValue,
    get_encrypted_type,
    is_hex_digits,
    normalize_value,
    to_input_type,
    validate_encryption_input,
)

logger = logging.getLogger(__name__)

# Engine primitive used for each input type
_PRIMITIVES: Dict[InputType, str] = {
    InputType.BOOL: "encrypt_bool",
    InputType.UINT8: "encrypt_uint8",
    InputType.UINT16: "encrypt_uint16",
    InputType.UINT32: "encrypt_uint32",
    InputType.UINT64: "encrypt_uint64",
    InputType.UINT128: "encrypt_uint128",
    InputType.UINT256: "encrypt_uint256",
    InputType.ADDRESS: "encrypt_address",
    InputType.BYTES: "encrypt_bytes256",
}


@dataclass(frozen=True)
class EncryptedValue:
    """A ciphertext ready to be submitted to a contract."""

    data: bytes
    type: InputType
    encrypted_type: EncryptedType

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"EncryptedValue(type={self.type.value!r}, encrypted_type={self.encrypted_type.value!r}, size={len(self.data)})"


BatchItem = Union[Tuple[PlainValue, Union[str, InputType]], Dict[str, Any]]


def _prepare(value: PlainValue, type_: Union[str, InputType]) -> Tuple[InputType, Union[bool, int, str]]:
    input_type = to_input_type(type_)
    validate_encryption_input(value, input_type)
    return input_type, normalize_value(value, input_type)


async def _encrypt_normalized(
    instance: EngineInstance,
    input_type: InputType,
    normalized: Union[bool, int, str],
) -> EncryptedValue:
    primitive = getattr(instance.engine, _PRIMITIVES[input_type], None)
    try:
        if primitive is None:
            raise EncryptionError(f"Unsupported encryption type: {input_type.value}")
        data = await call_engine(primitive, normalized)
    except Exception as e:
        raise wrap_error(
            e,
            EncryptionError,
            f"Failed to encrypt {input_type.value}",
            details={"type": input_type.value},
        )

    logger.debug("Encrypted %s value (%d bytes)", input_type.value, len(data))
    return EncryptedValue(
        data=bytes(data),
        type=input_type,
        encrypted_type=get_encrypted_type(input_type),
    )


async def encrypt_value(
    instance: EngineInstance,
    value: PlainValue,
    type_: Union[str, InputType],
) -> EncryptedValue:
    """
    Encrypt a value using the FHEVM instance.

    Args:
        instance: Ready FHEVM instance
        value: Plaintext to encrypt
        type_: Declared type of the value (bool, uint8 ... uint256, address, bytes)

    Returns:
        EncryptedValue carrying the ciphertext and its type tags

    Raises:
        FhevmNotReadyError: If the instance is not ready
        ValidationError: If the value does not fit the declared type
        EncryptionError: If the engine fails

    Example:
        >>> encrypted = await encrypt_value(instance, 42, "uint32")
        >>> encrypted_flag = await encrypt_value(instance, True, "bool")
    """
    ensure_ready(instance)
    input_type, normalized = _prepare(value, type_)
    return await _encrypt_normalized(instance, input_type, normalized)


async def encrypt_bool(instance: EngineInstance, value: bool) -> EncryptedValue:
    """Encrypt a boolean."""
    return await encrypt_value(instance, value, InputType.BOOL)


async def encrypt_address(instance: EngineInstance, address: str) -> EncryptedValue:
    """Encrypt an Ethereum address."""
    return await encrypt_value(instance, address, InputType.ADDRESS)


def _unpack_item(item: BatchItem) -> Tuple[PlainValue, Union[str, InputType]]:
    if isinstance(item, dict):
        return item["value"], item["type"]
    value, type_ = item
    return value, type_


async def encrypt_batch(
    instance: EngineInstance,
    values: Sequence[BatchItem],
) -> List[EncryptedValue]:
    """
    Encrypt several values concurrently.

    Every item is validated before any engine call. If any item fails the
    whole batch fails and no partial results are returned.

    Args:
        instance: Ready FHEVM instance
        values: (value, type) pairs or {"value": ..., "type": ...} dicts

    Returns:
        Encrypted values in input order

    Raises:
        FhevmNotReadyError: If the instance is not ready
        EncryptionError: If any item is invalid or fails to encrypt

    Example:
        >>> encrypted = await encrypt_batch(instance, [(42, "uint32"), (True, "bool")])
    """
    ensure_ready(instance)

    try:
        prepared = [_prepare(*_unpack_item(item)) for item in values]
    except (ValidationError, KeyError, TypeError, ValueError) as e:
        raise wrap_error(e, EncryptionError, "Batch encryption failed", details={"size": len(values)})

    results = await asyncio.gather(
        *(_encrypt_normalized(instance, input_type, normalized) for input_type, normalized in prepared),
        return_exceptions=True,
    )

    for result in results:
        if isinstance(result, BaseException):
            if not isinstance(result, FhevmError):
                raise result
            raise wrap_error(result, EncryptionError, "Batch encryption failed", details={"size": len(values)})

    logger.debug("Encrypted batch of %d values", len(results))
    return list(results)


# ==============================================================================
# Ciphertext utilities
# ==============================================================================


def to_contract_input(encrypted: EncryptedValue) -> bytes:
    """Ciphertext bytes in the form passed to a contract call."""
    return encrypted.data


def bytes_to_hex(data: bytes) -> str:
    """0x-prefixed lower-case hex of a byte sequence."""
    return "0x" + bytes(data).hex()


def hex_to_bytes(value: str) -> bytes:
    """
    Parse a hex string (optional 0x prefix) into bytes.

    Raises:
        ValidationError: If the string is not even-length hex
    """
    digits = value[2:] if value.startswith("0x") else value
    if not is_hex_digits(digits) or len(digits) % 2:
        raise ValidationError(f"Invalid hex string: {value}")
    return bytes.fromhex(digits)


def to_hex(encrypted: EncryptedValue) -> str:
    """Hex representation of a ciphertext."""
    return bytes_to_hex(encrypted.data)


def get_encrypted_size(encrypted: EncryptedValue) -> int:
    """Size of a ciphertext in bytes."""
    return len(encrypted.data)


def are_encrypted_values_equal(a: EncryptedValue, b: EncryptedValue) -> bool:
    """Byte-wise equality of two ciphertexts; different lengths are never equal."""
    if len(a.data) != len(b.data):
        return False
    return all(x == y for x, y in zip(a.data, b.data))
