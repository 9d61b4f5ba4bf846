"""
Wallet/provider layer.

A minimal asynchronous JSON-RPC provider for the node endpoint of a network
profile. It is used to default an omitted user address in permission
operations (the node's first unlocked account) and to check that the node
is on the chain the profile expects.
"""

import itertools
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

from .exceptions import NetworkError
from .network import NetworkProfile

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

_request_ids = itertools.count(1)


@runtime_checkable
class Signer(Protocol):
    """Anything that can report the address it signs for."""

    async def get_address(self) -> str:
        ...


class JsonRpcProvider:
    """
    Async JSON-RPC client for a node endpoint.

    Example:
        >>> async with JsonRpcProvider("http://localhost:8545") as provider:
        ...     chain_id = await provider.get_chain_id()
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            url: Node JSON-RPC endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.url = url
        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "User-Agent": "fhevm-sdk/0.1.0",
            },
        )

    async def __aenter__(self) -> "JsonRpcProvider":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Send a JSON-RPC request and return its result.

        Raises:
            NetworkError: On transport failures, HTTP errors or JSON-RPC errors
        """
        payload: Dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "params": params or [],
            "id": next(_request_ids),
        }

        try:
            response = await self._http_client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"{method} failed with HTTP {e.response.status_code}",
                details={"method": method, "status_code": e.response.status_code},
            )
        except httpx.RequestError as e:
            raise NetworkError(f"{method} request to {self.url} failed: {e}", details={"method": method})
        except ValueError as e:
            raise NetworkError(f"{method} returned invalid JSON: {e}", details={"method": method})

        error = data.get("error")
        if error:
            raise NetworkError(
                f"{method} returned error {error.get('code')}: {error.get('message')}",
                details={"method": method, "rpc_code": error.get("code")},
            )
        return data.get("result")

    async def get_chain_id(self) -> int:
        """Chain id reported by the node."""
        result = await self.request("eth_chainId")
        try:
            return int(result, 16) if isinstance(result, str) else int(result)
        except (TypeError, ValueError):
            raise NetworkError(f"eth_chainId returned malformed chain id: {result!r}")

    async def get_accounts(self) -> List[str]:
        """Accounts the node can sign for."""
        return list(await self.request("eth_accounts") or [])

    def get_signer(self, index: int = 0) -> "JsonRpcSigner":
        """Signer for one of the node's accounts."""
        return JsonRpcSigner(self, index)

    def __repr__(self) -> str:
        return f"JsonRpcProvider(url={self.url!r})"


class JsonRpcSigner:
    """Signer backed by an account unlocked on the node."""

    def __init__(self, provider: JsonRpcProvider, index: int = 0):
        self.provider = provider
        self.index = index

    async def get_address(self) -> str:
        """
        Address of the account at ``index``.

        Raises:
            NetworkError: If the node exposes no such account
        """
        accounts = await self.provider.get_accounts()
        if len(accounts) <= self.index:
            raise NetworkError(
                f"Node at {self.provider.url} exposes no account at index {self.index}",
                details={"accounts": len(accounts)},
            )
        return accounts[self.index]


async def verify_chain_id(profile: NetworkProfile, provider: Optional[JsonRpcProvider] = None) -> None:
    """
    Check that the profile's node reports the profile's chain id.

    Args:
        profile: Network profile to check
        provider: Provider to use; one is opened on profile.node_url otherwise

    Raises:
        NetworkError: On mismatch or if the node cannot be reached
    """
    owned = provider is None
    provider = provider or JsonRpcProvider(profile.node_url)
    try:
        chain_id = await provider.get_chain_id()
    finally:
        if owned:
            await provider.close()

    if chain_id != profile.chain_id:
        raise NetworkError(
            f"Connected node is on chain {chain_id}, expected {profile.chain_id}",
            details={"actual": chain_id, "expected": profile.chain_id},
        )
    logger.debug("Node %s confirmed on chain %d", profile.node_url, chain_id)
