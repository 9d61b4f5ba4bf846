"""
Unit tests for permission management.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fhevm_sdk.exceptions import FhevmNotReadyError, PermissionError, ValidationError
from fhevm_sdk.instance import EngineInstance
from fhevm_sdk.network import get_network_config
from fhevm_sdk.permissions import (
    InMemoryAccessControl,
    UnimplementedAccessControl,
    check_permission,
    generate_permission,
    get_permitted_addresses,
    grant_permission,
    request_permission,
    revoke_permission,
)

CONTRACT = "0x1234567890123456789012345678901234567890"
TARGET = "0x00000000000000000000000000000000000000FF"
HANDLE = "0x" + "cd" * 32


class TestGeneratePermission:
    """Tests for generate_permission."""

    @pytest.mark.asyncio
    async def test_uses_signer_address(self, instance, user_address):
        instance.engine.generate_permit_signature = AsyncMock(return_value="0xsig")

        signature = await generate_permission(instance, CONTRACT)

        assert signature == "0xsig"
        instance.engine.generate_permit_signature.assert_awaited_once_with(CONTRACT, user_address)

    @pytest.mark.asyncio
    async def test_explicit_user_address(self, instance):
        instance.engine.generate_permit_signature = AsyncMock(return_value="0xsig")

        await generate_permission(instance, CONTRACT, TARGET)

        instance.engine.generate_permit_signature.assert_awaited_once_with(CONTRACT, TARGET)

    @pytest.mark.asyncio
    async def test_toy_signature_is_deterministic(self, instance):
        first = await generate_permission(instance, CONTRACT)
        second = await generate_permission(instance, CONTRACT)

        assert first == second
        assert first.startswith("0x")

    @pytest.mark.asyncio
    async def test_invalid_user_address(self, instance):
        with pytest.raises(PermissionError, match="Invalid user address"):
            await generate_permission(instance, CONTRACT, "0xnope")

    @pytest.mark.asyncio
    async def test_engine_without_signing(self, signer):
        engine = MagicMock(spec=["get_public_key"])
        instance = EngineInstance(engine=engine, profile=get_network_config("localhost"), signer=signer)

        with pytest.raises(PermissionError, match="not supported"):
            await generate_permission(instance, CONTRACT)

    @pytest.mark.asyncio
    async def test_signer_failure_wrapped(self, instance):
        failing = MagicMock()
        failing.get_address = AsyncMock(side_effect=RuntimeError("wallet locked"))
        instance = EngineInstance(engine=instance.engine, profile=instance.profile, signer=failing)

        with pytest.raises(PermissionError, match="Failed to generate permission: wallet locked"):
            await generate_permission(instance, CONTRACT)

    @pytest.mark.asyncio
    async def test_not_ready(self):
        instance = EngineInstance(engine=MagicMock(), profile=get_network_config("localhost"), ready=False)

        with pytest.raises(FhevmNotReadyError):
            await generate_permission(instance, CONTRACT)

    @pytest.mark.asyncio
    async def test_invalid_contract(self, instance):
        with pytest.raises(ValidationError):
            await generate_permission(instance, "0x12")


class TestDefaultAccessControl:
    """Behaviour with no backing ACL authority."""

    @pytest.mark.asyncio
    async def test_check_permission_always_true(self, instance):
        """Documents a known gap: without an ACL every check passes."""
        assert await check_permission(instance, CONTRACT, HANDLE) is True
        assert await check_permission(instance, CONTRACT, HANDLE, TARGET) is True

    @pytest.mark.asyncio
    async def test_check_permission_not_ready(self):
        instance = EngineInstance(engine=MagicMock(), profile=get_network_config("localhost"), ready=False)

        assert await check_permission(instance, CONTRACT, HANDLE) is False

    @pytest.mark.asyncio
    async def test_check_permission_unresolvable_user(self, instance):
        failing = MagicMock()
        failing.get_address = AsyncMock(side_effect=RuntimeError("no wallet"))
        instance = EngineInstance(engine=instance.engine, profile=instance.profile, signer=failing)

        assert await check_permission(instance, CONTRACT, HANDLE) is False

    @pytest.mark.asyncio
    async def test_grant_not_implemented(self, instance):
        with pytest.raises(PermissionError, match="Permission granting not yet implemented"):
            await grant_permission(instance, CONTRACT, TARGET, HANDLE)

    @pytest.mark.asyncio
    async def test_revoke_not_implemented(self, instance):
        with pytest.raises(PermissionError, match="Permission revocation not yet implemented"):
            await revoke_permission(instance, CONTRACT, TARGET, HANDLE)

    @pytest.mark.asyncio
    async def test_request_not_implemented(self, instance):
        with pytest.raises(PermissionError, match="ACL-based permissions not yet implemented"):
            await request_permission(instance, CONTRACT, HANDLE)

    @pytest.mark.asyncio
    async def test_permitted_addresses_empty(self, instance):
        assert await get_permitted_addresses(instance, CONTRACT, HANDLE) == []

    @pytest.mark.asyncio
    async def test_invalid_target(self, instance):
        with pytest.raises(PermissionError, match="Invalid target address"):
            await grant_permission(instance, CONTRACT, "0x123", HANDLE, acl=UnimplementedAccessControl())


class TestInMemoryAccessControl:
    @pytest.fixture
    def acl(self):
        return InMemoryAccessControl()

    @pytest.mark.asyncio
    async def test_grant_then_check(self, instance, acl):
        assert await check_permission(instance, CONTRACT, HANDLE, TARGET, acl=acl) is False

        await grant_permission(instance, CONTRACT, TARGET, HANDLE, acl=acl)

        assert await check_permission(instance, CONTRACT, HANDLE, TARGET, acl=acl) is True
        assert await get_permitted_addresses(instance, CONTRACT, HANDLE, acl=acl) == [TARGET.lower()]

    @pytest.mark.asyncio
    async def test_case_insensitive(self, instance, acl):
        await grant_permission(instance, CONTRACT.upper().replace("0X", "0x"), TARGET, HANDLE.upper(), acl=acl)

        assert await check_permission(instance, CONTRACT, HANDLE, TARGET.lower(), acl=acl) is True

    @pytest.mark.asyncio
    async def test_revoke(self, instance, acl):
        await grant_permission(instance, CONTRACT, TARGET, HANDLE, acl=acl)
        await revoke_permission(instance, CONTRACT, TARGET, HANDLE, acl=acl)

        assert await check_permission(instance, CONTRACT, HANDLE, TARGET, acl=acl) is False

    @pytest.mark.asyncio
    async def test_revoke_without_grant(self, instance, acl):
        with pytest.raises(PermissionError, match="holds no permission"):
            await revoke_permission(instance, CONTRACT, TARGET, HANDLE, acl=acl)

    @pytest.mark.asyncio
    async def test_request_recorded_and_cleared_by_grant(self, instance, acl, user_address):
        await request_permission(instance, CONTRACT, HANDLE, acl=acl)

        assert len(acl.pending_requests) == 1
        assert acl.pending_requests[0].grantee_address == user_address

        await grant_permission(instance, CONTRACT, user_address, HANDLE, acl=acl)

        assert acl.pending_requests == []

    @pytest.mark.asyncio
    async def test_check_defaults_to_signer(self, instance, acl, user_address):
        await grant_permission(instance, CONTRACT, user_address, HANDLE, acl=acl)

        assert await check_permission(instance, CONTRACT, HANDLE, acl=acl) is True

    @pytest.mark.asyncio
    async def test_acl_failure_wrapped(self, instance):
        acl = MagicMock(spec=InMemoryAccessControl)
        acl.is_permitted = AsyncMock(side_effect=RuntimeError("acl contract unreachable"))

        with pytest.raises(PermissionError, match="Failed to check permission: acl contract unreachable"):
            await check_permission(instance, CONTRACT, HANDLE, TARGET, acl=acl)
