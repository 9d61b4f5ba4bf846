"""
FhevmClient - high-level entry point for the FHEVM SDK.

The client owns the single current EngineInstance for one configuration
and exposes every SDK operation as a method. Reinitialization swaps that
reference; instances handed out earlier keep working against the old
engine but are no longer used by the client.
"""

from typing import Any, List, Optional, Sequence, Union

from .config import FhevmConfig, FhevmSettings, get_settings
from .decryption import (
    DecryptionRequest,
    PollingStrategy,
    TypeHint,
    request_batch_decryption,
    request_decryption,
    request_decryption_with_signature,
    wait_for_decryption,
)
from .encryption import BatchItem, EncryptedValue, encrypt_batch, encrypt_value
from .engine import EngineFactory, KeyPair
from .exceptions import FhevmNotReadyError
from .instance import (
    ConfigInput,
    EngineInstance,
    InstanceState,
    create_instance,
    generate_keypair,
    get_public_key,
    reinitialize_instance,
)
from .permissions import (
    AccessControlList,
    check_permission,
    generate_permission,
    get_permitted_addresses,
    grant_permission,
    request_permission,
    revoke_permission,
)
from .validation import InputType, PlainValue


class FhevmClient:
    """
    Primary entry point for the FHEVM SDK.

    Example:
        >>> async with FhevmClient(FhevmConfig(network="sepolia")) as client:
        ...     encrypted = await client.encrypt(42, "uint32")
        ...     value = await client.decrypt(contract_address, handle, "euint32")
    """

    def __init__(
        self,
        config: ConfigInput = None,
        engine_factory: Optional[EngineFactory] = None,
        acl: Optional[AccessControlList] = None,
        settings: Optional[FhevmSettings] = None,
    ):
        """
        Initialize the client. No engine is created until init().

        Args:
            config: FhevmConfig, network name, NetworkProfile or dict
            engine_factory: Engine factory (defaults to settings.engine)
            acl: Access-control list used by permission methods
            settings: SDK settings (loaded from FHEVM_* env vars if omitted)
        """
        self._settings = settings or get_settings()
        self._config = config
        self._engine_factory = engine_factory
        self._acl = acl
        self._instance: Optional[EngineInstance] = None
        self._state = InstanceState.UNINITIALIZED

    async def __aenter__(self) -> "FhevmClient":
        if self._instance is None:
            await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Drop the current instance."""
        self._instance = None
        self._state = InstanceState.UNINITIALIZED

    async def init(self) -> EngineInstance:
        """
        Create the engine instance.

        Raises:
            NetworkError: If the network profile is invalid
            FhevmError: If the engine fails to initialize
        """
        self._state = InstanceState.INITIALIZING
        try:
            self._instance = await create_instance(
                self._config,
                engine_factory=self._engine_factory,
                settings=self._settings,
            )
        except Exception:
            self._state = InstanceState.FAILED
            raise
        self._state = InstanceState.READY
        return self._instance

    async def reinitialize(self, **partial: Any) -> EngineInstance:
        """
        Replace the current instance with one built from the merged config.

        Args:
            **partial: FhevmConfig fields to override (network, gateway_url, chain_id, ...)
        """
        current = self._require_instance()
        self._state = InstanceState.INITIALIZING
        try:
            instance = await reinitialize_instance(current, settings=self._settings, **partial)
        except Exception:
            # The previous instance stays current
            self._state = InstanceState.READY
            raise
        self._instance = instance
        self._state = InstanceState.READY
        return instance

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def instance(self) -> Optional[EngineInstance]:
        """The current instance, or None before init()."""
        return self._instance

    @property
    def state(self) -> InstanceState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._instance is not None and self._instance.ready

    @property
    def generation(self) -> int:
        """Generation of the current instance (0 before init())."""
        return self._instance.generation if self._instance else 0

    def _require_instance(self) -> EngineInstance:
        if self._instance is None:
            raise FhevmNotReadyError(details={"state": self._state.value})
        return self._instance

    async def get_public_key(self) -> str:
        return await get_public_key(self._require_instance())

    async def generate_keypair(self) -> KeyPair:
        return await generate_keypair(self._require_instance())

    # ==========================================================================
    # Encryption
    # ==========================================================================

    async def encrypt(self, value: PlainValue, type_: Union[str, InputType]) -> EncryptedValue:
        """Encrypt a single value. See encrypt_value."""
        return await encrypt_value(self._require_instance(), value, type_)

    async def encrypt_batch(self, values: Sequence[BatchItem]) -> List[EncryptedValue]:
        """Encrypt several values, all or nothing. See encrypt_batch."""
        return await encrypt_batch(self._require_instance(), values)

    # ==========================================================================
    # Decryption
    # ==========================================================================

    async def decrypt(
        self,
        contract_address: str,
        handle: str,
        expected_type: TypeHint = None,
        signature: Optional[str] = None,
    ) -> Any:
        """Decrypt a handle, optionally with an explicit permission signature."""
        instance = self._require_instance()
        if signature is not None:
            return await request_decryption_with_signature(
                instance, contract_address, handle, signature, expected_type
            )
        return await request_decryption(instance, contract_address, handle, expected_type)

    async def decrypt_batch(self, requests: Sequence[Union[DecryptionRequest, dict]]) -> List[Any]:
        return await request_batch_decryption(self._require_instance(), requests)

    async def wait_for_decryption(
        self,
        contract_address: str,
        handle: str,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        expected_type: TypeHint = None,
        strategy: Optional[PollingStrategy] = None,
    ) -> Any:
        return await wait_for_decryption(
            self._require_instance(),
            contract_address,
            handle,
            timeout=timeout,
            interval=interval,
            expected_type=expected_type,
            strategy=strategy,
            settings=self._settings,
        )

    # ==========================================================================
    # Permissions
    # ==========================================================================

    async def generate_permission(self, contract_address: str, user_address: Optional[str] = None) -> str:
        return await generate_permission(self._require_instance(), contract_address, user_address)

    async def request_permission(self, contract_address: str, handle: str) -> None:
        await request_permission(self._require_instance(), contract_address, handle, acl=self._acl)

    async def check_permission(
        self,
        contract_address: str,
        handle: str,
        user_address: Optional[str] = None,
    ) -> bool:
        if self._instance is None:
            return False
        return await check_permission(self._instance, contract_address, handle, user_address, acl=self._acl)

    async def grant_permission(self, contract_address: str, target_address: str, handle: str) -> None:
        await grant_permission(self._require_instance(), contract_address, target_address, handle, acl=self._acl)

    async def revoke_permission(self, contract_address: str, target_address: str, handle: str) -> None:
        await revoke_permission(self._require_instance(), contract_address, target_address, handle, acl=self._acl)

    async def get_permitted_addresses(self, contract_address: str, handle: str) -> List[str]:
        return await get_permitted_addresses(self._require_instance(), contract_address, handle, acl=self._acl)

    def __repr__(self) -> str:
        network = self._instance.profile.name if self._instance else None
        return f"FhevmClient(network={network!r}, state={self._state.value!r}, generation={self.generation})"


async def create_client(
    config: Union[FhevmConfig, ConfigInput] = None,
    engine_factory: Optional[EngineFactory] = None,
    acl: Optional[AccessControlList] = None,
    settings: Optional[FhevmSettings] = None,
) -> FhevmClient:
    """Create and initialize an FhevmClient."""
    client = FhevmClient(config, engine_factory=engine_factory, acl=acl, settings=settings)
    await client.init()
    return client
