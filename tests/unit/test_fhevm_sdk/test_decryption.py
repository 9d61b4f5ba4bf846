"""
Unit tests for the decryption lifecycle.
"""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from fhevm_sdk.decryption import (
    DecryptionRequest,
    ExponentialBackoffPolling,
    FixedIntervalPolling,
    decrypt_to_bool,
    decrypt_to_int,
    decrypt_with_timeout,
    is_decryption_ready,
    parse_decryption_result,
    request_batch_decryption,
    request_decryption,
    request_decryption_with_signature,
    wait_for_decryption,
)
from fhevm_sdk.encryption import encrypt_value
from fhevm_sdk.exceptions import DecryptionError, FhevmNotReadyError, ValidationError
from fhevm_sdk.instance import EngineInstance
from fhevm_sdk.network import get_network_config
from fhevm_sdk.permissions import generate_permission

CONTRACT = "0x1234567890123456789012345678901234567890"
HANDLE = "0x" + "ab" * 32


def _mock_instance(engine):
    return EngineInstance(engine=engine, profile=get_network_config("localhost"))


async def _stored(instance, value, type_, ready_after=0):
    encrypted = await encrypt_value(instance, value, type_)
    return instance.engine.store(CONTRACT, encrypted, ready_after=ready_after)


class TestRequestDecryption:
    """Tests for request_decryption."""

    @pytest.mark.asyncio
    async def test_round_trip_uint(self, instance):
        handle = await _stored(instance, 1234, "uint32")

        assert await request_decryption(instance, CONTRACT, handle, "euint32") == 1234

    @pytest.mark.asyncio
    async def test_round_trip_bool(self, instance):
        handle = await _stored(instance, True, "bool")

        assert await request_decryption(instance, CONTRACT, handle, "ebool") is True

    @pytest.mark.asyncio
    async def test_round_trip_address(self, instance):
        address = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
        handle = await _stored(instance, address, "address")

        assert await request_decryption(instance, CONTRACT, handle, "eaddress") == address.lower()

    @pytest.mark.asyncio
    async def test_uint256(self, instance):
        handle = await _stored(instance, 2**255 + 1, "uint256")

        assert await request_decryption(instance, CONTRACT, handle, "euint256") == 2**255 + 1

    @pytest.mark.asyncio
    async def test_without_expected_type(self, instance):
        handle = await _stored(instance, 9, "uint8")

        assert await request_decryption(instance, CONTRACT, handle) == 9

    @pytest.mark.asyncio
    async def test_unknown_handle(self, instance):
        with pytest.raises(DecryptionError, match="Failed to decrypt value: Unknown handle"):
            await request_decryption(instance, CONTRACT, HANDLE)

    @pytest.mark.asyncio
    async def test_invalid_contract(self, instance):
        with pytest.raises(ValidationError, match="Invalid contract address"):
            await request_decryption(instance, "0x1234", HANDLE)

    @pytest.mark.asyncio
    async def test_empty_handle(self, instance):
        with pytest.raises(ValidationError, match="Handle must be a non-empty string"):
            await request_decryption(instance, CONTRACT, "")

    @pytest.mark.asyncio
    async def test_not_ready_checked_first(self):
        instance = EngineInstance(engine=MagicMock(), profile=get_network_config("localhost"), ready=False)

        with pytest.raises(FhevmNotReadyError):
            await request_decryption(instance, "bad", "")

    @pytest.mark.asyncio
    async def test_engine_without_decrypt(self):
        instance = _mock_instance(MagicMock(spec=["get_public_key"]))

        with pytest.raises(DecryptionError, match="Decryption not supported by this instance"):
            await request_decryption(instance, CONTRACT, HANDLE)

    @pytest.mark.asyncio
    async def test_engine_result_coerced(self):
        engine = MagicMock()
        engine.decrypt = AsyncMock(return_value="0x2a")
        instance = _mock_instance(engine)

        assert await request_decryption(instance, CONTRACT, HANDLE, "euint64") == 42
        engine.decrypt.assert_awaited_once_with(CONTRACT, HANDLE)


class TestDecryptionWithSignature:
    @pytest.mark.asyncio
    async def test_with_issued_signature(self, instance):
        handle = await _stored(instance, 77, "uint16")
        signature = await generate_permission(instance, CONTRACT)

        value = await request_decryption_with_signature(instance, CONTRACT, handle, signature, "euint16")

        assert value == 77

    @pytest.mark.asyncio
    async def test_with_unknown_signature(self, instance):
        handle = await _stored(instance, 77, "uint16")

        with pytest.raises(DecryptionError, match="Failed to decrypt with signature: Invalid permit signature"):
            await request_decryption_with_signature(instance, CONTRACT, handle, "0xforged")

    @pytest.mark.asyncio
    async def test_signature_forwarded(self):
        engine = MagicMock()
        engine.decrypt = AsyncMock(return_value=True)
        instance = _mock_instance(engine)

        await request_decryption_with_signature(instance, CONTRACT, HANDLE, "0xsig")

        engine.decrypt.assert_awaited_once_with(CONTRACT, HANDLE, "0xsig")


class TestBatchDecryption:
    @pytest.mark.asyncio
    async def test_batch_in_order(self, instance):
        h1 = await _stored(instance, 1, "uint8")
        h2 = await _stored(instance, False, "bool")

        results = await request_batch_decryption(
            instance,
            [
                DecryptionRequest(contract_address=CONTRACT, handle=h1, expected_type="euint8"),
                {"contract_address": CONTRACT, "handle": h2, "expected_type": "ebool"},
            ],
        )

        assert results == [1, False]

    @pytest.mark.asyncio
    async def test_single_failure_fails_batch(self, instance):
        h1 = await _stored(instance, 1, "uint8")

        with pytest.raises(DecryptionError, match="Unknown handle"):
            await request_batch_decryption(
                instance,
                [
                    {"contract_address": CONTRACT, "handle": h1},
                    {"contract_address": CONTRACT, "handle": HANDLE},
                ],
            )

    @pytest.mark.asyncio
    async def test_validation_failure_wrapped(self, instance):
        with pytest.raises(DecryptionError) as exc_info:
            await request_batch_decryption(instance, [{"contract_address": "0x12", "handle": HANDLE}])

        assert "Batch decryption failed" in exc_info.value.message
        assert "Invalid contract address" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_request(self, instance):
        with pytest.raises(DecryptionError, match="Batch decryption failed"):
            await request_batch_decryption(instance, [{"handle": HANDLE}])


class TestParseDecryptionResult:
    def test_bool(self):
        assert parse_decryption_result(1, "ebool") is True

    def test_small_uint_range(self):
        assert parse_decryption_result(255, "euint8") == 255

        with pytest.raises(DecryptionError, match="out of range"):
            parse_decryption_result(256, "euint8")

    def test_hex_string(self):
        assert parse_decryption_result("0x10", "euint128") == 16

    def test_not_a_number(self):
        with pytest.raises(DecryptionError, match="Cannot interpret result as euint32"):
            parse_decryption_result("nope", "euint32")

    def test_passthrough(self):
        sentinel = object()

        assert parse_decryption_result(sentinel) is sentinel


class TestWaitForDecryption:
    @pytest.mark.asyncio
    async def test_retries_until_ready(self, instance):
        handle = await _stored(instance, 5, "uint8", ready_after=2)

        value = await wait_for_decryption(instance, CONTRACT, handle, timeout=2.0, interval=0.01)

        assert value == 5
        assert instance.engine.decrypt_calls == 3

    @pytest.mark.asyncio
    async def test_timeout(self, instance):
        handle = await _stored(instance, 5, "uint8", ready_after=1_000_000)

        start = time.monotonic()
        with pytest.raises(DecryptionError) as exc_info:
            await wait_for_decryption(instance, CONTRACT, handle, timeout=0.1, interval=0.05)
        elapsed = time.monotonic() - start

        assert "0.1" in exc_info.value.message
        assert "timeout" in exc_info.value.message
        assert instance.engine.decrypt_calls >= 2
        assert exc_info.value.details["attempts"] >= 2
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self, instance):
        with pytest.raises(DecryptionError, match="Unknown handle"):
            await wait_for_decryption(instance, CONTRACT, HANDLE, timeout=5.0, interval=0.01)

        assert instance.engine.decrypt_calls == 1

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self, instance):
        with pytest.raises(ValidationError):
            await wait_for_decryption(instance, "0x12", HANDLE, timeout=1.0, interval=0.01)

    @pytest.mark.asyncio
    async def test_custom_strategy(self, instance):
        handle = await _stored(instance, 3, "uint8", ready_after=3)
        strategy = ExponentialBackoffPolling(base=0.001, factor=2.0, max_interval=0.01)

        assert await wait_for_decryption(instance, CONTRACT, handle, timeout=2.0, strategy=strategy) == 3

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, instance, settings):
        handle = await _stored(instance, 8, "uint8", ready_after=1)

        assert await wait_for_decryption(instance, CONTRACT, handle, settings=settings) == 8


class TestPollingStrategies:
    def test_fixed(self):
        strategy = FixedIntervalPolling(0.5)

        assert [strategy.next_interval(n) for n in (1, 2, 10)] == [0.5, 0.5, 0.5]

    def test_exponential_capped(self):
        strategy = ExponentialBackoffPolling(base=1.0, factor=2.0, max_interval=5.0)

        assert [strategy.next_interval(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


class TestIsDecryptionReady:
    @pytest.mark.asyncio
    async def test_ready(self, instance):
        handle = await _stored(instance, 1, "uint8")

        assert await is_decryption_ready(instance, CONTRACT, handle)

    @pytest.mark.asyncio
    async def test_pending(self, instance):
        handle = await _stored(instance, 1, "uint8", ready_after=5)

        assert not await is_decryption_ready(instance, CONTRACT, handle)

    @pytest.mark.asyncio
    async def test_any_failure_is_false(self, instance):
        assert not await is_decryption_ready(instance, "invalid", HANDLE)


class TestDecryptionWrappers:
    @pytest.mark.asyncio
    async def test_with_timeout_returns_value(self, instance):
        handle = await _stored(instance, 21, "uint8")

        assert await decrypt_with_timeout(instance, CONTRACT, handle, timeout=1.0, expected_type="euint8") == 21

    @pytest.mark.asyncio
    async def test_with_timeout_cancels_slow_request(self):
        async def slow_decrypt(*args):
            await asyncio.sleep(5)
            return 1

        engine = MagicMock()
        engine.decrypt = slow_decrypt
        instance = _mock_instance(engine)

        start = time.monotonic()
        with pytest.raises(DecryptionError) as exc_info:
            await decrypt_with_timeout(instance, CONTRACT, HANDLE, timeout=0.05)

        assert "timeout after 0.05s" in exc_info.value.message
        assert exc_info.value.details == {"timeout": 0.05, "handle": HANDLE}
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_with_timeout_propagates_failure(self, instance):
        with pytest.raises(DecryptionError, match="Unknown handle"):
            await decrypt_with_timeout(instance, CONTRACT, HANDLE, timeout=1.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw,expected", [(42, 42), ("0x2a", 42), ("42", 42), (True, 1)])
    async def test_to_int(self, raw, expected):
        engine = MagicMock()
        engine.decrypt = AsyncMock(return_value=raw)

        assert await decrypt_to_int(_mock_instance(engine), CONTRACT, HANDLE) == expected

    @pytest.mark.asyncio
    async def test_to_int_uninterpretable(self):
        engine = MagicMock()
        engine.decrypt = AsyncMock(return_value="not a number")

        with pytest.raises(DecryptionError, match="Cannot interpret result as integer"):
            await decrypt_to_int(_mock_instance(engine), CONTRACT, HANDLE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,expected",
        [(True, True), (False, False), (0, False), (7, True), ("0x0", False), ("0x01", True)],
    )
    async def test_to_bool(self, raw, expected):
        engine = MagicMock()
        engine.decrypt = AsyncMock(return_value=raw)

        assert await decrypt_to_bool(_mock_instance(engine), CONTRACT, HANDLE) is expected

    @pytest.mark.asyncio
    async def test_to_bool_round_trip(self, instance):
        handle = await _stored(instance, True, "bool")

        assert await decrypt_to_bool(instance, CONTRACT, handle) is True
