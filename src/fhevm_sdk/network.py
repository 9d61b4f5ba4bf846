"""
Network profile resolution for the FHEVM SDK.

A network profile identifies a deployment target: chain id, node (JSON-RPC)
endpoint, gateway endpoint and the access-control-list contract address.
Profiles come from the built-in table below, optionally overridden by the
caller, or are supplied whole.
"""

import logging
from typing import Dict, Optional, Union

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

_URL_ADAPTER = TypeAdapter(AnyUrl)


class NetworkProfile(BaseModel):
    """Immutable description of a network an instance binds to."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Network name")
    chain_id: int = Field(description="EIP-155 chain id")
    node_url: str = Field(description="JSON-RPC endpoint of the node")
    gateway_url: str = Field(description="Decryption gateway endpoint")
    acl_address: Optional[str] = Field(default=None, description="ACL contract address")


NETWORK_PROFILES: Dict[str, NetworkProfile] = {
    "sepolia": NetworkProfile(
        name="sepolia",
        chain_id=11155111,
        node_url="https://sepolia.infura.io/v3/",
        gateway_url="https://gateway.sepolia.zama.ai",
        acl_address="0x9d6f6d3D3D3D3D3D3D3D3D3D3D3D3D3D3D3D3D3D",
    ),
    "mainnet": NetworkProfile(
        name="mainnet",
        chain_id=1,
        node_url="https://mainnet.infura.io/v3/",
        gateway_url="https://gateway.zama.ai",
        acl_address="0x0000000000000000000000000000000000000000",
    ),
    "localhost": NetworkProfile(
        name="localhost",
        chain_id=31337,
        node_url="http://localhost:8545",
        gateway_url="http://localhost:3000",
    ),
    # Placeholder: only usable once endpoints and chain id are overridden
    "custom": NetworkProfile(
        name="custom",
        chain_id=0,
        node_url="",
        gateway_url="",
    ),
}


def is_supported_network(network: str) -> bool:
    """Check if a network name is in the built-in table."""
    return network in NETWORK_PROFILES


def get_network_config(network: str) -> NetworkProfile:
    """
    Get a built-in network profile by name.

    Args:
        network: Network name (sepolia, mainnet, localhost, custom)

    Returns:
        The matching NetworkProfile

    Raises:
        NetworkError: If the name is not a built-in network
    """
    profile = NETWORK_PROFILES.get(network)
    if profile is None:
        raise NetworkError(f"Unknown network: {network}", details={"network": network})
    return profile


def _is_valid_url(url: str) -> bool:
    if not url:
        return False
    try:
        _URL_ADAPTER.validate_python(url)
    except PydanticValidationError:
        return False
    return True


def validate_network_config(profile: NetworkProfile) -> None:
    """
    Validate a network profile.

    Raises:
        NetworkError: If the chain id is not positive or an endpoint is not a URL
    """
    if not profile.chain_id or profile.chain_id <= 0:
        raise NetworkError("Invalid chainId", details={"chain_id": profile.chain_id})

    if not _is_valid_url(profile.node_url):
        raise NetworkError("Invalid RPC URL", details={"node_url": profile.node_url})

    if not _is_valid_url(profile.gateway_url):
        raise NetworkError("Invalid gateway URL", details={"gateway_url": profile.gateway_url})


def _with_overrides(base: NetworkProfile, updates: Dict[str, object]) -> NetworkProfile:
    if not updates:
        return base
    try:
        return NetworkProfile.model_validate({**base.model_dump(), **updates})
    except PydanticValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise NetworkError(f"Invalid network override: {', '.join(fields)}", details={"fields": fields})


def merge_network_config(network: str, **overrides) -> NetworkProfile:
    """
    Merge overrides into a built-in profile and validate the result.

    Args:
        network: Built-in network name
        **overrides: NetworkProfile fields to replace; None values are ignored

    Returns:
        Validated NetworkProfile
    """
    base = get_network_config(network)
    updates = {k: v for k, v in overrides.items() if v is not None and k in NetworkProfile.model_fields}
    merged = _with_overrides(base, updates)
    validate_network_config(merged)
    return merged


def resolve_network(
    network: Union[str, NetworkProfile],
    gateway_url: Optional[str] = None,
    chain_id: Optional[int] = None,
    acl_address: Optional[str] = None,
) -> NetworkProfile:
    """
    Resolve a network name or profile into a complete, validated profile.

    A name is looked up in the built-in table; a full profile is taken as
    is. The gateway URL, chain id and ACL address overrides are applied to
    either before validation.

    Raises:
        NetworkError: For unknown names or invalid profiles
    """
    overrides = {"gateway_url": gateway_url, "chain_id": chain_id, "acl_address": acl_address}

    if isinstance(network, NetworkProfile):
        updates = {k: v for k, v in overrides.items() if v is not None}
        profile = _with_overrides(network, updates)
        validate_network_config(profile)
        return profile

    profile = merge_network_config(network, **overrides)
    logger.debug("Resolved network %s (chain %d)", profile.name, profile.chain_id)
    return profile


def get_chain_id(network: str) -> int:
    """Get the chain id of a built-in network."""
    return get_network_config(network).chain_id


def get_gateway_url(network: str) -> str:
    """Get the gateway URL of a built-in network."""
    return get_network_config(network).gateway_url
