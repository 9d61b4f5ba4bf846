"""
FHEVM SDK exceptions.

This module defines the error taxonomy shared by every SDK component.
All errors include:
- A kind discriminant (ErrorKind) used for classification
- A machine-readable error code (e.g., FHEVM_DECRYPTION_ERROR)
- A human-readable message
- Structured details (NEVER plaintext values, keys or signatures)
"""

from enum import Enum
from typing import Any, Dict, Optional, Type


class ErrorKind(str, Enum):
    """Category of an SDK failure."""

    FHEVM = "fhevm"
    NOT_READY = "not_ready"
    ENCRYPTION = "encryption"
    DECRYPTION = "decryption"
    NETWORK = "network"
    VALIDATION = "validation"
    PERMISSION = "permission"


class FhevmError(Exception):
    """Base exception for FHEVM SDK errors."""

    kind: ErrorKind = ErrorKind.FHEVM
    prefix: str = ""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{self.prefix}{message}"
        super().__init__(message)
        self.message = message
        self.code = code or f"FHEVM_{self.kind.name}_ERROR"
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class FhevmNotReadyError(FhevmError):
    """Raised when an operation needs an instance that is not ready."""

    kind = ErrorKind.NOT_READY

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "FHEVM instance is not ready. Wait for initialization to complete.",
            code="FHEVM_NOT_READY",
            details=details,
        )


class EncryptionError(FhevmError):
    """Raised when encrypting a value fails."""

    kind = ErrorKind.ENCRYPTION
    prefix = "Encryption failed: "


class DecryptionError(FhevmError):
    """Raised when decrypting a handle fails."""

    kind = ErrorKind.DECRYPTION
    prefix = "Decryption failed: "


class NetworkError(FhevmError):
    """Raised for unknown or malformed network profiles and node failures."""

    kind = ErrorKind.NETWORK
    prefix = "Network error: "


class ValidationError(FhevmError):
    """Raised when an input does not match its declared type or shape."""

    kind = ErrorKind.VALIDATION
    prefix = "Validation error: "


class PermissionError(FhevmError):
    """Raised when a permission operation fails or is unsupported."""

    kind = ErrorKind.PERMISSION
    prefix = "Permission error: "


def wrap_error(
    error: BaseException,
    error_cls: Type[FhevmError],
    context: str,
    details: Optional[Dict[str, Any]] = None,
) -> FhevmError:
    """
    Rewrap a foreign exception into a typed SDK error.

    Errors that already belong to ``error_cls`` are returned unchanged so that
    a message is never prefixed twice.

    Args:
        error: The exception raised by the engine, gateway or node
        error_cls: SDK error class to produce
        context: Description of the attempted operation
        details: Structured metadata for the new error

    Returns:
        An instance of ``error_cls``
    """
    if isinstance(error, error_cls):
        return error
    description = error.message if isinstance(error, FhevmError) else str(error)
    return error_cls(f"{context}: {description}", details=details)


def is_not_ready_error(error: BaseException) -> bool:
    """Check whether a failure reports a not-ready (retryable) condition."""
    message = error.message if isinstance(error, FhevmError) else str(error)
    return "not ready" in message.lower()


__all__ = [
    "ErrorKind",
    "FhevmError",
    "FhevmNotReadyError",
    "EncryptionError",
    "DecryptionError",
    "NetworkError",
    "ValidationError",
    "PermissionError",
    "wrap_error",
    "is_not_ready_error",
]
