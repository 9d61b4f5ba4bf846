"""
Decryption lifecycle.

Requests plaintext recovery for contract-held ciphertext handles through
the engine's gateway capability: single, signature-authenticated, batched,
and poll-until-ready.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .config import FhevmSettings, get_settings
from .engine import call_engine, get_capability
from .exceptions import DecryptionError, ErrorKind, FhevmError, is_not_ready_error, wrap_error
from .instance import EngineInstance, ensure_ready
from .validation import EncryptedType, to_encrypted_type, validate_contract_address, validate_handle

logger = logging.getLogger(__name__)

TypeHint = Union[str, EncryptedType, None]

_SMALL_UINTS = (EncryptedType.EUINT4, EncryptedType.EUINT8, EncryptedType.EUINT16, EncryptedType.EUINT32)
_LARGE_UINTS = (EncryptedType.EUINT64, EncryptedType.EUINT128, EncryptedType.EUINT256)
_STRING_TYPES = (EncryptedType.EADDRESS, EncryptedType.EBYTES64, EncryptedType.EBYTES128, EncryptedType.EBYTES256)
_SMALL_UINT_BITS = {
    EncryptedType.EUINT4: 4,
    EncryptedType.EUINT8: 8,
    EncryptedType.EUINT16: 16,
    EncryptedType.EUINT32: 32,
}


class DecryptionRequest(BaseModel):
    """One entry of a batch decryption."""

    contract_address: str = Field(description="Contract holding the ciphertext")
    handle: str = Field(description="Ciphertext handle")
    expected_type: Optional[EncryptedType] = Field(default=None, description="Type to coerce the result to")


def parse_decryption_result(result: Any, expected_type: TypeHint = None) -> Any:
    """
    Coerce a raw gateway result to the expected type.

    ebool -> bool; euint4..euint32 -> bounded int; euint64..euint256 -> int;
    eaddress/ebytes* -> str. Without an expected type the result passes through.

    Raises:
        DecryptionError: If the result cannot be coerced
    """
    if expected_type is None:
        return result

    encrypted_type = to_encrypted_type(expected_type)
    try:
        if encrypted_type is EncryptedType.EBOOL:
            return bool(result)

        if encrypted_type in _SMALL_UINTS:
            value = int(result, 0) if isinstance(result, str) else int(result)
            if not 0 <= value < 2 ** _SMALL_UINT_BITS[encrypted_type]:
                raise ValueError(f"{value} out of range for {encrypted_type.value}")
            return value

        if encrypted_type in _LARGE_UINTS:
            return int(result, 0) if isinstance(result, str) else int(result)

        if encrypted_type in _STRING_TYPES:
            return str(result)
    except (TypeError, ValueError) as e:
        raise DecryptionError(
            f"Cannot interpret result as {encrypted_type.value}: {e}",
            details={"expected_type": encrypted_type.value},
        )

    return result


async def _decrypt(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    expected_type: TypeHint,
    signature: Optional[str],
    context: str,
) -> Any:
    ensure_ready(instance)
    validate_contract_address(contract_address)
    validate_handle(handle)
    if expected_type is not None:
        expected_type = to_encrypted_type(expected_type)

    decrypt = get_capability(instance.engine, "decrypt")
    if decrypt is None:
        raise DecryptionError("Decryption not supported by this instance")

    try:
        if signature is None:
            result = await call_engine(decrypt, contract_address, handle)
        else:
            result = await call_engine(decrypt, contract_address, handle, signature)
    except Exception as e:
        logger.debug("Decryption of %s on %s failed: %s", handle, contract_address, e)
        raise DecryptionError(f"{context}: {e.message if isinstance(e, FhevmError) else e}", details={"handle": handle})

    return parse_decryption_result(result, expected_type)


async def request_decryption(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    expected_type: TypeHint = None,
) -> Any:
    """
    Request decryption of a ciphertext handle via the gateway.

    Args:
        instance: Ready FHEVM instance
        contract_address: Contract holding the ciphertext
        handle: Ciphertext handle issued by the contract
        expected_type: Encrypted type to coerce the result to

    Returns:
        The decrypted value

    Raises:
        FhevmNotReadyError: If the instance is not ready
        ValidationError: If the address or handle is malformed
        DecryptionError: If the engine lacks decryption or the request fails

    Example:
        >>> value = await request_decryption(instance, "0x1234...", "0xabcd...", "euint32")
    """
    return await _decrypt(instance, contract_address, handle, expected_type, None, "Failed to decrypt value")


async def request_decryption_with_signature(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    signature: str,
    expected_type: TypeHint = None,
) -> Any:
    """
    Request decryption forwarding an explicit permission signature.

    Same contract as request_decryption; the signature (see
    generate_permission) is passed to the engine instead of being derived.
    """
    return await _decrypt(
        instance, contract_address, handle, expected_type, signature, "Failed to decrypt with signature"
    )


def _to_request(item: Union[DecryptionRequest, dict]) -> DecryptionRequest:
    if isinstance(item, DecryptionRequest):
        return item
    return DecryptionRequest.model_validate(item)


async def request_batch_decryption(
    instance: EngineInstance,
    requests: Sequence[Union[DecryptionRequest, dict]],
) -> List[Any]:
    """
    Decrypt several handles concurrently.

    Any single failure fails the whole batch.

    Args:
        instance: Ready FHEVM instance
        requests: DecryptionRequest objects or dicts with the same fields

    Returns:
        Decrypted values in request order

    Raises:
        FhevmNotReadyError: If the instance is not ready
        DecryptionError: If any request fails
    """
    ensure_ready(instance)

    try:
        parsed = [_to_request(item) for item in requests]
    except Exception as e:
        raise DecryptionError(f"Batch decryption failed: {e}")

    results = await asyncio.gather(
        *(request_decryption(instance, r.contract_address, r.handle, r.expected_type) for r in parsed),
        return_exceptions=True,
    )

    for result in results:
        if isinstance(result, BaseException):
            if not isinstance(result, FhevmError):
                raise result
            raise wrap_error(result, DecryptionError, "Batch decryption failed", details={"size": len(parsed)})

    return list(results)


# ==============================================================================
# Convenience wrappers
# ==============================================================================


def _as_int(result: Any, handle: str) -> int:
    try:
        return int(result, 0) if isinstance(result, str) else int(result)
    except (TypeError, ValueError) as e:
        raise DecryptionError(f"Cannot interpret result as integer: {e}", details={"handle": handle})


async def decrypt_to_int(instance: EngineInstance, contract_address: str, handle: str) -> int:
    """Decrypt a handle and return the result as an int (hex strings are parsed)."""
    result = await request_decryption(instance, contract_address, handle)
    return _as_int(result, handle)


async def decrypt_to_bool(instance: EngineInstance, contract_address: str, handle: str) -> bool:
    """Decrypt a handle and return True for any non-zero result."""
    result = await request_decryption(instance, contract_address, handle)
    if isinstance(result, bool):
        return result
    return _as_int(result, handle) != 0


async def decrypt_with_timeout(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    timeout: float = 30.0,
    expected_type: TypeHint = None,
) -> Any:
    """
    Single decryption request bounded by a timeout.

    Unlike wait_for_decryption this never retries; a slow gateway call is
    cancelled once ``timeout`` seconds have passed.

    Raises:
        DecryptionError: On timeout or if the request fails
    """
    try:
        return await asyncio.wait_for(
            request_decryption(instance, contract_address, handle, expected_type),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Decryption of %s cancelled after %ss", handle, timeout)
        raise DecryptionError(
            f"Decryption timeout after {timeout}s",
            details={"timeout": timeout, "handle": handle},
        )


# ==============================================================================
# Polling
# ==============================================================================


class PollingStrategy(ABC):
    """Decides how long to wait before the next decryption attempt."""

    @abstractmethod
    def next_interval(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        pass


class FixedIntervalPolling(PollingStrategy):
    """Constant interval, no backoff, no jitter."""

    def __init__(self, interval: float = 1.0):
        self.interval = interval

    def next_interval(self, attempt: int) -> float:
        return self.interval

    def __repr__(self) -> str:
        return f"FixedIntervalPolling(interval={self.interval})"


class ExponentialBackoffPolling(PollingStrategy):
    """interval = base * factor ** (attempt - 1), capped at max_interval."""

    def __init__(self, base: float = 1.0, factor: float = 2.0, max_interval: float = 30.0):
        self.base = base
        self.factor = factor
        self.max_interval = max_interval

    def next_interval(self, attempt: int) -> float:
        return min(self.base * (self.factor ** (attempt - 1)), self.max_interval)

    def __repr__(self) -> str:
        return f"ExponentialBackoffPolling(base={self.base}, factor={self.factor}, max_interval={self.max_interval})"


async def wait_for_decryption(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
    expected_type: TypeHint = None,
    strategy: Optional[PollingStrategy] = None,
    settings: Optional[FhevmSettings] = None,
) -> Any:
    """
    Poll request_decryption until it succeeds or the timeout elapses.

    A DecryptionError whose message reports a not-ready condition is retried
    after the strategy's interval; any other failure is raised immediately.

    Args:
        instance: Ready FHEVM instance
        contract_address: Contract holding the ciphertext
        handle: Ciphertext handle
        timeout: Maximum time to wait in seconds (default: settings.decryption_timeout)
        interval: Fixed poll interval in seconds (default: settings.poll_interval)
        expected_type: Encrypted type to coerce the result to
        strategy: Polling strategy; overrides ``interval``

    Returns:
        The decrypted value

    Raises:
        DecryptionError: On timeout or on a non-retryable decryption failure

    Example:
        >>> value = await wait_for_decryption(instance, contract, handle, timeout=30, interval=2)
    """
    if timeout is None or (interval is None and strategy is None):
        settings = settings or get_settings()
    timeout = settings.decryption_timeout if timeout is None else timeout
    if strategy is None:
        strategy = FixedIntervalPolling(settings.poll_interval if interval is None else interval)

    start_time = time.monotonic()
    attempt = 0

    while True:
        elapsed = time.monotonic() - start_time
        if elapsed >= timeout:
            break

        attempt += 1
        try:
            return await request_decryption(instance, contract_address, handle, expected_type)
        except FhevmError as e:
            if e.kind is not ErrorKind.DECRYPTION or not is_not_ready_error(e):
                raise
            logger.debug("Decryption of %s not ready (attempt %d)", handle, attempt)

        remaining = timeout - (time.monotonic() - start_time)
        if remaining <= 0:
            break
        await asyncio.sleep(min(strategy.next_interval(attempt), remaining))

    logger.warning("Decryption of %s timed out after %d attempts", handle, attempt)
    raise DecryptionError(
        f"Decryption timeout after {timeout}s",
        details={"timeout": timeout, "attempts": attempt, "handle": handle},
    )


async def is_decryption_ready(instance: EngineInstance, contract_address: str, handle: str) -> bool:
    """
    Probe whether a handle can be decrypted now.

    Any failure, whatever its cause, is reported as False.
    """
    try:
        await request_decryption(instance, contract_address, handle)
    except FhevmError as e:
        logger.debug("Decryption probe for %s failed: %s", handle, e)
        return False
    return True
