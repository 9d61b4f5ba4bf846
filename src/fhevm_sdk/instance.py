"""
FHEVM instance creation and lifecycle.

An EngineInstance binds one network profile to one engine. Instances are
immutable values: reinitialization produces a new instance with a higher
generation and leaves the old one untouched, so callers should keep a
single current reference (see FhevmClient).

State machine:
    UNINITIALIZED -> INITIALIZING -> READY
                     INITIALIZING -> FAILED (the raised error; no instance)
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Union

from .config import FhevmConfig, FhevmSettings, build_config, get_settings
from .engine import EngineBinding, EngineFactory, KeyPair, call_engine, get_engine_factory
from .exceptions import FhevmError, FhevmNotReadyError, wrap_error
from .network import NetworkProfile, resolve_network
from .provider import JsonRpcProvider, verify_chain_id

logger = logging.getLogger(__name__)


class InstanceState(str, Enum):
    """Lifecycle state of an FHEVM instance."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class EngineInstance:
    """A ready binding between a network profile and an engine."""

    engine: Any
    profile: NetworkProfile
    ready: bool = True
    generation: int = 1
    signer: Optional[Any] = field(default=None, repr=False)
    config: Optional[FhevmConfig] = field(default=None, repr=False, compare=False)
    engine_factory: Optional[EngineFactory] = field(default=None, repr=False, compare=False)
    # Public key is fetched lazily; the cache is the only mutable part
    _key_cache: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    @property
    def public_key(self) -> Optional[str]:
        """Cached public key, if already known."""
        return self._key_cache.get("public_key")

    @property
    def state(self) -> InstanceState:
        return InstanceState.READY if self.ready else InstanceState.UNINITIALIZED


ConfigInput = Union[FhevmConfig, NetworkProfile, str, Dict[str, Any], None]


def _to_config(config: ConfigInput, settings: FhevmSettings) -> FhevmConfig:
    if config is None:
        return FhevmConfig(network=settings.default_network)
    if isinstance(config, FhevmConfig):
        return config
    if isinstance(config, (str, NetworkProfile)):
        return FhevmConfig(network=config)
    return build_config(dict(config))


def is_instance_ready(instance: Optional[EngineInstance]) -> bool:
    """True iff the instance exists and is ready."""
    return instance is not None and instance.ready


def ensure_ready(instance: Optional[EngineInstance]) -> EngineInstance:
    """
    Return the instance if it is ready.

    Raises:
        FhevmNotReadyError: If the instance is missing or not ready
    """
    if not is_instance_ready(instance):
        raise FhevmNotReadyError()
    return instance


async def create_instance(
    config: ConfigInput = None,
    engine_factory: Optional[EngineFactory] = None,
    settings: Optional[FhevmSettings] = None,
    _generation: int = 1,
) -> EngineInstance:
    """
    Create a new FHEVM instance.

    Resolves the network profile, optionally checks the node's chain id,
    binds an engine to the profile's endpoints and reads its public key.

    Args:
        config: FhevmConfig, network name, NetworkProfile or dict of config fields
        engine_factory: Callable building an engine from an EngineBinding;
            defaults to the factory registered under settings.engine
        settings: SDK settings (loaded from the environment if omitted)

    Returns:
        A ready EngineInstance

    Raises:
        NetworkError: If the network profile is unknown or invalid
        FhevmError: If the engine fails to initialize

    Example:
        >>> instance = await create_instance("sepolia")
        >>> instance = await create_instance(FhevmConfig(network="localhost", chain_id=1337))
    """
    settings = settings or get_settings()
    config = _to_config(config, settings)

    profile = resolve_network(
        config.network,
        gateway_url=config.gateway_url,
        chain_id=config.chain_id,
        acl_address=config.acl_address,
    )

    verify = settings.verify_chain_id if config.verify_chain_id is None else config.verify_chain_id
    if verify:
        async with JsonRpcProvider(profile.node_url, timeout=settings.rpc_timeout) as provider:
            await verify_chain_id(profile, provider)

    if engine_factory is None:
        try:
            engine_factory = get_engine_factory(settings.engine)
        except KeyError as e:
            raise FhevmError(f"Failed to create FHEVM instance: {e.args[0]}")

    binding = EngineBinding(
        node_url=profile.node_url,
        gateway_url=profile.gateway_url,
        chain_id=profile.chain_id,
        acl_address=profile.acl_address,
    )

    logger.debug(
        "Initializing FHEVM instance",
        extra={"network": profile.name, "chain_id": profile.chain_id, "state": InstanceState.INITIALIZING.value},
    )

    try:
        engine = await call_engine(engine_factory, binding)
        public_key = config.public_key or await call_engine(engine.get_public_key)
    except Exception as e:
        logger.warning("FHEVM instance initialization failed on %s: %s", profile.name, e)
        raise wrap_error(e, FhevmError, "Failed to create FHEVM instance")

    logger.info(
        "FHEVM instance ready",
        extra={"network": profile.name, "chain_id": profile.chain_id, "generation": _generation},
    )

    return EngineInstance(
        engine=engine,
        profile=profile,
        ready=True,
        generation=_generation,
        signer=config.signer,
        config=config,
        engine_factory=engine_factory,
        _key_cache={"public_key": public_key} if public_key else {},
    )


async def get_public_key(instance: EngineInstance) -> str:
    """
    Get the engine public key, fetching and caching it on first use.

    Raises:
        FhevmError: If the engine reports no public key
    """
    if not instance.public_key:
        try:
            key = await call_engine(instance.engine.get_public_key)
        except Exception as e:
            raise wrap_error(e, FhevmError, "Failed to read public key")
        if key:
            instance._key_cache["public_key"] = key

    if not instance.public_key:
        raise FhevmError("Public key not available")

    return instance.public_key


async def reinitialize_instance(
    instance: EngineInstance,
    engine_factory: Optional[EngineFactory] = None,
    settings: Optional[FhevmSettings] = None,
    **partial: Any,
) -> EngineInstance:
    """
    Create a new instance from the current profile merged with overrides.

    The old instance is neither mutated nor invalidated; callers must drop
    their reference to it.

    Args:
        instance: Current instance
        engine_factory: Factory for the new engine (defaults to the current one)
        settings: SDK settings
        **partial: FhevmConfig fields to override (network, gateway_url, ...)

    Returns:
        A new ready EngineInstance with generation + 1
    """
    base = instance.config or FhevmConfig(network=instance.profile)
    config = FhevmConfig(
        network=partial.pop("network", None) or instance.profile,
        signer=instance.signer,
        verify_chain_id=base.verify_chain_id,
    ).merged(**partial)

    logger.info(
        "Reinitializing FHEVM instance",
        extra={"network": instance.profile.name, "generation": instance.generation + 1},
    )
    return await create_instance(
        config,
        engine_factory=engine_factory or instance.engine_factory,
        settings=settings,
        _generation=instance.generation + 1,
    )


@asynccontextmanager
async def get_signer(instance: EngineInstance, settings: Optional[FhevmSettings] = None) -> AsyncIterator[Any]:
    """
    Get the signer for permission operations.

    Yields the configured signer, or a JsonRpcSigner on the profile's node
    whose provider is closed when the block exits.

    Usage:
        async with get_signer(instance) as signer:
            address = await signer.get_address()
    """
    if instance.signer is not None:
        yield instance.signer
        return

    settings = settings or get_settings()
    async with JsonRpcProvider(instance.profile.node_url, timeout=settings.rpc_timeout) as provider:
        yield provider.get_signer()


async def resolve_signer_address(instance: EngineInstance, settings: Optional[FhevmSettings] = None) -> str:
    """Address of the instance's signer (node account 0 if none configured)."""
    async with get_signer(instance, settings) as signer:
        return await signer.get_address()


async def generate_keypair(instance: EngineInstance) -> KeyPair:
    """
    Generate a user key pair with the engine.

    Raises:
        FhevmNotReadyError: If the instance is not ready
        FhevmError: If the engine fails
    """
    ensure_ready(instance)
    try:
        keypair = await call_engine(instance.engine.generate_keypair)
    except Exception as e:
        raise wrap_error(e, FhevmError, "Failed to generate key pair")

    if isinstance(keypair, dict):
        keypair = KeyPair(
            public_key=keypair.get("public_key") or keypair["publicKey"],
            private_key=keypair.get("private_key") or keypair["privateKey"],
        )
    return keypair
