"""
FHEVM SDK - client-side toolkit for confidential smart contracts.

Encrypts typed plaintexts for submission to FHE-enabled contracts,
requests decryption of contract-held ciphertext handles through the
gateway, and manages decryption permissions.

Example:
    >>> from fhevm_sdk import FhevmClient, FhevmConfig
    >>>
    >>> # Engine selected with FHEVM_ENGINE (the toy engine needs FHEVM_TOY_ENGINE=1)
    >>> async with FhevmClient(FhevmConfig(network="sepolia")) as client:
    ...     encrypted = await client.encrypt(42, "uint32")
    ...     # submit encrypted.data to the contract, which returns a handle
    ...     value = await client.wait_for_decryption(contract_address, handle, timeout=30)
"""

__version__ = "0.1.0"

# Client
from .client import FhevmClient, create_client

# Configuration
from .config import FhevmConfig, FhevmSettings, get_settings

# Decryption
from .decryption import (
    DecryptionRequest,
    ExponentialBackoffPolling,
    FixedIntervalPolling,
    PollingStrategy,
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

# Encryption
from .encryption import (
    EncryptedValue,
    are_encrypted_values_equal,
    bytes_to_hex,
    encrypt_address,
    encrypt_batch,
    encrypt_bool,
    encrypt_value,
    get_encrypted_size,
    hex_to_bytes,
    to_contract_input,
    to_hex,
)

# Engines
from .engine import EngineBinding, FhevmEngine, KeyPair, get_engine_factory, list_engines, register_engine

# Exceptions
from .exceptions import (
    DecryptionError,
    EncryptionError,
    ErrorKind,
    FhevmError,
    FhevmNotReadyError,
    NetworkError,
    PermissionError,
    ValidationError,
)

# Instance lifecycle
from .instance import (
    EngineInstance,
    InstanceState,
    create_instance,
    generate_keypair,
    get_public_key,
    get_signer,
    is_instance_ready,
    reinitialize_instance,
)

# Logging
from .logging import configure_logging, get_logger

# Network profiles
from .network import (
    NETWORK_PROFILES,
    NetworkProfile,
    get_chain_id,
    get_gateway_url,
    get_network_config,
    is_supported_network,
    merge_network_config,
    resolve_network,
    validate_network_config,
)

# Permissions
from .permissions import (
    AccessControlList,
    InMemoryAccessControl,
    PermissionRecord,
    UnimplementedAccessControl,
    check_permission,
    generate_permission,
    get_permitted_addresses,
    grant_permission,
    request_permission,
    revoke_permission,
)

# Provider
from .provider import JsonRpcProvider, JsonRpcSigner, Signer, verify_chain_id

# Toy engine (registers itself as "toy")
from .toy_engine import ToyFhevmEngine, ToyModeNotEnabledError

# Validation
from .validation import (
    EncryptedType,
    InputType,
    get_encrypted_type,
    is_valid_address,
    is_valid_hex,
    normalize_address,
    normalize_value,
    validate_contract_address,
    validate_encryption_input,
    validate_handle,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "FhevmClient",
    "create_client",
    # Config
    "FhevmConfig",
    "FhevmSettings",
    "get_settings",
    # Network
    "NETWORK_PROFILES",
    "NetworkProfile",
    "get_network_config",
    "is_supported_network",
    "validate_network_config",
    "merge_network_config",
    "resolve_network",
    "get_chain_id",
    "get_gateway_url",
    # Validation
    "InputType",
    "EncryptedType",
    "get_encrypted_type",
    "is_valid_address",
    "is_valid_hex",
    "normalize_address",
    "normalize_value",
    "validate_contract_address",
    "validate_encryption_input",
    "validate_handle",
    # Engines
    "EngineBinding",
    "FhevmEngine",
    "KeyPair",
    "register_engine",
    "get_engine_factory",
    "list_engines",
    "ToyFhevmEngine",
    "ToyModeNotEnabledError",
    # Instance
    "EngineInstance",
    "InstanceState",
    "create_instance",
    "reinitialize_instance",
    "is_instance_ready",
    "get_public_key",
    "get_signer",
    "generate_keypair",
    # Encryption
    "EncryptedValue",
    "encrypt_value",
    "encrypt_bool",
    "encrypt_address",
    "encrypt_batch",
    "to_contract_input",
    "to_hex",
    "bytes_to_hex",
    "hex_to_bytes",
    "get_encrypted_size",
    "are_encrypted_values_equal",
    # Decryption
    "DecryptionRequest",
    "PollingStrategy",
    "FixedIntervalPolling",
    "ExponentialBackoffPolling",
    "request_decryption",
    "request_decryption_with_signature",
    "request_batch_decryption",
    "wait_for_decryption",
    "is_decryption_ready",
    "parse_decryption_result",
    "decrypt_with_timeout",
    "decrypt_to_int",
    "decrypt_to_bool",
    # Permissions
    "AccessControlList",
    "UnimplementedAccessControl",
    "InMemoryAccessControl",
    "PermissionRecord",
    "generate_permission",
    "request_permission",
    "check_permission",
    "grant_permission",
    "revoke_permission",
    "get_permitted_addresses",
    # Provider
    "JsonRpcProvider",
    "JsonRpcSigner",
    "Signer",
    "verify_chain_id",
    # Logging
    "configure_logging",
    "get_logger",
    # Exceptions
    "ErrorKind",
    "FhevmError",
    "FhevmNotReadyError",
    "EncryptionError",
    "DecryptionError",
    "NetworkError",
    "ValidationError",
    "PermissionError",
]
