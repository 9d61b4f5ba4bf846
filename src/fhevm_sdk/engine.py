"""
Cryptographic engine interface.

The engine performs the actual homomorphic encryption primitives and talks
to the decryption gateway. The SDK treats it as a black box with a fixed
capability surface:

- one encrypt primitive per supported type
- get_public_key() and generate_keypair()
- optional decrypt(contract_address, handle, signature=None)
- optional generate_permit_signature(contract_address, user_address)

Engine methods may be plain functions or coroutines; callers go through
``call_engine`` which awaits whatever needs awaiting. Optional capabilities
are looked up with ``get_capability`` so that their absence surfaces as a
typed SDK error instead of an AttributeError.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineBinding:
    """Endpoints an engine binds to at initialization."""

    node_url: str
    gateway_url: str
    chain_id: int
    acl_address: Optional[str] = None


@dataclass(frozen=True)
class KeyPair:
    """Key pair produced by the engine for user decryption."""

    public_key: str
    private_key: str

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key[:10]!r}..., private_key='[REDACTED]')"


class FhevmEngine(ABC):
    """Abstract base for cryptographic engines."""

    @abstractmethod
    def encrypt_bool(self, value: bool) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint8(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint16(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint32(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint64(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint128(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_uint256(self, value: int) -> bytes:
        pass

    @abstractmethod
    def encrypt_address(self, value: str) -> bytes:
        pass

    @abstractmethod
    def encrypt_bytes256(self, value: str) -> bytes:
        pass

    @abstractmethod
    def get_public_key(self) -> Optional[str]:
        """Return the network public key, or None if not yet available."""
        pass

    @abstractmethod
    def generate_keypair(self) -> KeyPair:
        pass


EngineFactory = Callable[[EngineBinding], Union[FhevmEngine, Awaitable[FhevmEngine]]]

_ENGINE_FACTORIES: Dict[str, EngineFactory] = {}


async def call_engine(func: Callable[..., Any], *args: Any) -> Any:
    """Call an engine method and await the result if it is awaitable."""
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def get_capability(engine: Any, name: str) -> Optional[Callable[..., Any]]:
    """Return an optional engine capability, or None if the engine lacks it."""
    capability = getattr(engine, name, None)
    return capability if callable(capability) else None


def register_engine(name: str, factory: EngineFactory) -> None:
    """
    Register an engine factory under a name.

    The name can then be selected with the FHEVM_ENGINE setting.
    """
    _ENGINE_FACTORIES[name] = factory
    logger.debug("Registered engine factory %r", name)


def get_engine_factory(name: str) -> EngineFactory:
    """
    Look up a registered engine factory.

    Raises:
        KeyError: If no factory is registered under the name
    """
    try:
        return _ENGINE_FACTORIES[name]
    except KeyError:
        available = ", ".join(sorted(_ENGINE_FACTORIES)) or "none"
        raise KeyError(f"No engine registered as {name!r} (available: {available})")


def list_engines() -> list:
    """Names of the registered engine factories."""
    return sorted(_ENGINE_FACTORIES)
