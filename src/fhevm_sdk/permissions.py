"""
Permission management.

Authorization signatures for decryption requests, and grant/revoke/check of
decryption rights through an access-control list (ACL).

The ACL is a pluggable interface keyed by (contract_address, handle). The
default backing, UnimplementedAccessControl, keeps the current behaviour of
the SDK: checks always pass and mutations are not implemented. Use
InMemoryAccessControl for an off-chain store that actually enforces grants.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .engine import call_engine, get_capability
from .exceptions import PermissionError, wrap_error
from .instance import EngineInstance, ensure_ready, is_instance_ready, resolve_signer_address
from .validation import is_valid_address, normalize_address, validate_contract_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionRecord:
    """A decryption right (or a request for one) on a ciphertext handle."""

    contract_address: str
    grantee_address: str
    handle: str
    signature: Optional[str] = None


class AccessControlList(ABC):
    """Authority deciding which addresses may decrypt a handle."""

    @abstractmethod
    async def is_permitted(self, contract_address: str, handle: str, address: str) -> bool:
        pass

    @abstractmethod
    async def grant(self, contract_address: str, handle: str, address: str) -> None:
        pass

    @abstractmethod
    async def revoke(self, contract_address: str, handle: str, address: str) -> None:
        pass

    @abstractmethod
    async def permitted_addresses(self, contract_address: str, handle: str) -> List[str]:
        pass

    @abstractmethod
    async def request(self, contract_address: str, handle: str, address: str) -> None:
        pass


class UnimplementedAccessControl(AccessControlList):
    """
    Placeholder ACL with no backing authority.

    Checks always pass, nobody is listed, and grant/revoke/request raise
    PermissionError.
    """

    async def is_permitted(self, contract_address: str, handle: str, address: str) -> bool:
        return True

    async def grant(self, contract_address: str, handle: str, address: str) -> None:
        raise PermissionError("Permission granting not yet implemented")

    async def revoke(self, contract_address: str, handle: str, address: str) -> None:
        raise PermissionError("Permission revocation not yet implemented")

    async def permitted_addresses(self, contract_address: str, handle: str) -> List[str]:
        return []

    async def request(self, contract_address: str, handle: str, address: str) -> None:
        raise PermissionError("ACL-based permissions not yet implemented")


class InMemoryAccessControl(AccessControlList):
    """Process-local ACL. Addresses and handles are compared lower-cased."""

    def __init__(self):
        self._grants: Dict[Tuple[str, str], Set[str]] = {}
        self.pending_requests: List[PermissionRecord] = []

    @staticmethod
    def _key(contract_address: str, handle: str) -> Tuple[str, str]:
        return contract_address.lower(), handle.lower()

    async def is_permitted(self, contract_address: str, handle: str, address: str) -> bool:
        return address.lower() in self._grants.get(self._key(contract_address, handle), set())

    async def grant(self, contract_address: str, handle: str, address: str) -> None:
        key = self._key(contract_address, handle)
        self._grants.setdefault(key, set()).add(address.lower())
        self.pending_requests = [
            r
            for r in self.pending_requests
            if not (self._key(r.contract_address, r.handle) == key and r.grantee_address == address.lower())
        ]

    async def revoke(self, contract_address: str, handle: str, address: str) -> None:
        grantees = self._grants.get(self._key(contract_address, handle), set())
        if address.lower() not in grantees:
            raise PermissionError(f"{address} holds no permission on handle {handle}")
        grantees.discard(address.lower())

    async def permitted_addresses(self, contract_address: str, handle: str) -> List[str]:
        return sorted(self._grants.get(self._key(contract_address, handle), set()))

    async def request(self, contract_address: str, handle: str, address: str) -> None:
        self.pending_requests.append(
            PermissionRecord(
                contract_address=contract_address.lower(),
                grantee_address=address.lower(),
                handle=handle.lower(),
            )
        )


_DEFAULT_ACL = UnimplementedAccessControl()


def _validate_target(address: str) -> str:
    if not is_valid_address(address):
        raise PermissionError(f"Invalid target address: {address}")
    return normalize_address(address)


async def generate_permission(
    instance: EngineInstance,
    contract_address: str,
    user_address: Optional[str] = None,
) -> str:
    """
    Generate an EIP-712 style permission signature for decryption.

    Args:
        instance: Ready FHEVM instance
        contract_address: Contract the permission is bound to
        user_address: User requesting permission (defaults to the signer)

    Returns:
        The signature, to be passed to request_decryption_with_signature

    Raises:
        FhevmNotReadyError: If the instance is not ready
        ValidationError: If the contract address is malformed
        PermissionError: If the engine cannot sign or the user address is invalid
    """
    ensure_ready(instance)
    validate_contract_address(contract_address)

    try:
        address = user_address or await resolve_signer_address(instance)
        if not is_valid_address(address):
            raise PermissionError(f"Invalid user address: {address}")

        sign = get_capability(instance.engine, "generate_permit_signature")
        if sign is None:
            raise PermissionError("Permission signature generation not supported by this instance")

        signature = await call_engine(sign, contract_address, address)
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to generate permission")

    logger.debug("Generated permission for contract %s", contract_address)
    return signature


async def request_permission(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    acl: Optional[AccessControlList] = None,
) -> None:
    """
    Ask the ACL for permission to decrypt a handle on behalf of the signer.

    Raises:
        PermissionError: If the ACL rejects or does not support the request
    """
    ensure_ready(instance)
    validate_contract_address(contract_address)
    acl = acl or _DEFAULT_ACL

    try:
        address = await resolve_signer_address(instance)
        await acl.request(contract_address, handle, normalize_address(address))
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to request permission")


async def check_permission(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    user_address: Optional[str] = None,
    acl: Optional[AccessControlList] = None,
) -> bool:
    """
    Check whether a user may decrypt a handle.

    Returns False when the instance is not ready or the user address cannot
    be resolved. With the default ACL every other check returns True.

    Raises:
        ValidationError: If the contract address is malformed
    """
    if not is_instance_ready(instance):
        return False
    validate_contract_address(contract_address)
    acl = acl or _DEFAULT_ACL

    try:
        address = user_address or await resolve_signer_address(instance)
        address = normalize_address(address)
    except Exception as e:
        logger.debug("Could not resolve user address for permission check: %s", e)
        return False

    try:
        return await acl.is_permitted(contract_address, handle, address)
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to check permission")


async def grant_permission(
    instance: EngineInstance,
    contract_address: str,
    target_address: str,
    handle: str,
    acl: Optional[AccessControlList] = None,
) -> None:
    """
    Grant another address permission to decrypt a handle.

    Raises:
        PermissionError: If the target is invalid or the ACL refuses the grant
    """
    ensure_ready(instance)
    validate_contract_address(contract_address)
    target = _validate_target(target_address)
    acl = acl or _DEFAULT_ACL

    try:
        await acl.grant(contract_address, handle, target)
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to grant permission")

    logger.info("Granted decryption permission", extra={"contract": contract_address, "grantee": target})


async def revoke_permission(
    instance: EngineInstance,
    contract_address: str,
    target_address: str,
    handle: str,
    acl: Optional[AccessControlList] = None,
) -> None:
    """
    Revoke an address's permission to decrypt a handle.

    Raises:
        PermissionError: If the target is invalid or the ACL refuses the revocation
    """
    ensure_ready(instance)
    validate_contract_address(contract_address)
    target = _validate_target(target_address)
    acl = acl or _DEFAULT_ACL

    try:
        await acl.revoke(contract_address, handle, target)
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to revoke permission")

    logger.info("Revoked decryption permission", extra={"contract": contract_address, "grantee": target})


async def get_permitted_addresses(
    instance: EngineInstance,
    contract_address: str,
    handle: str,
    acl: Optional[AccessControlList] = None,
) -> List[str]:
    """Addresses permitted to decrypt a handle (always empty with the default ACL)."""
    ensure_ready(instance)
    validate_contract_address(contract_address)
    acl = acl or _DEFAULT_ACL

    try:
        return await acl.permitted_addresses(contract_address, handle)
    except Exception as e:
        raise wrap_error(e, PermissionError, "Failed to get permitted addresses")
