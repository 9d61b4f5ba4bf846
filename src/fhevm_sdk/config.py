"""
FHEVM SDK configuration.

This module handles environment variables (``FHEVM_*``) and the in-memory
configuration passed when an instance is created.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from .exceptions import ValidationError
from .network import NetworkProfile


class FhevmSettings(BaseSettings):
    """Process-wide settings for the FHEVM SDK."""

    default_network: str = Field(
        default="sepolia",
        description="Network used when no network is passed explicitly",
    )
    engine: str = Field(
        default="toy",
        description="Name of the registered engine factory",
    )
    decryption_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Default timeout for wait_for_decryption in seconds",
    )
    poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Default interval between decryption polls in seconds",
    )
    rpc_timeout: float = Field(
        default=30.0,
        ge=1.0,
        description="Timeout for JSON-RPC node requests in seconds",
    )
    verify_chain_id: bool = Field(
        default=False,
        description="Check the node's chain id against the profile on create",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the fhevm_sdk logger tree",
    )
    log_json: Optional[bool] = Field(
        default=None,
        description="Force JSON log output (None: decide from FHEVM_ENVIRONMENT)",
    )

    model_config = {
        "env_prefix": "FHEVM_",
        "env_file": ".env",
        "extra": "ignore",
    }


def get_settings(**overrides: Any) -> FhevmSettings:
    """
    Get FHEVM SDK settings.

    Explicit keyword arguments override environment variables. Unknown keys
    and ``None`` values are ignored.

    Returns:
        FhevmSettings instance
    """
    settings = FhevmSettings()

    valid_fields = set(FhevmSettings.model_fields.keys())
    updates = {k: v for k, v in overrides.items() if k in valid_fields and v is not None}
    if updates:
        settings = settings.model_copy(update=updates)

    return settings


class FhevmConfig(BaseModel):
    """
    Configuration for creating an FHEVM instance.

    ``network`` is either a built-in network name or a complete profile.
    ``gateway_url``, ``chain_id`` and ``acl_address`` override the named
    profile's values.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    network: Union[str, NetworkProfile] = Field(
        default="sepolia",
        description="Network name or full network profile",
    )
    gateway_url: Optional[str] = Field(default=None, description="Gateway URL override")
    chain_id: Optional[int] = Field(default=None, description="Chain ID override")
    acl_address: Optional[str] = Field(default=None, description="ACL contract override")
    public_key: Optional[str] = Field(
        default=None,
        description="Known engine public key, skips the initial key read",
    )
    signer: Optional[Any] = Field(
        default=None,
        description="Object with an async get_address() used for permissions",
    )
    verify_chain_id: Optional[bool] = Field(
        default=None,
        description="Check the node's chain id (None: use FhevmSettings)",
    )

    def merged(self, **partial: Any) -> "FhevmConfig":
        """
        Return a validated copy with the given non-None fields replaced.

        Raises:
            ValidationError: If an override does not fit its field
        """
        updates = {k: v for k, v in partial.items() if v is not None}
        fields = {name: getattr(self, name) for name in type(self).model_fields}
        return build_config({**fields, **updates})


def build_config(values: Dict[str, Any]) -> FhevmConfig:
    """
    Validate a dict of config fields into an FhevmConfig.

    Raises:
        ValidationError: If a field has the wrong type or shape
    """
    try:
        return FhevmConfig.model_validate(values)
    except PydanticValidationError as e:
        errors = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]
        raise ValidationError(f"Invalid FHEVM configuration: {'; '.join(errors)}", details={"errors": errors})
