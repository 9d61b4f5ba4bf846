"""
Toy FHEVM engine.

Provides a pure-Python stand-in for the real engine so the SDK can be
exercised without a deployed network.

IMPORTANT: ToyFhevmEngine is NOT HOMOMORPHIC and NOT SECURE against the
gateway. It seals plaintexts with ChaCha20-Poly1305 under a key held by the
engine itself and plays the role of contract storage and gateway in
memory. It is intended only for:
- Development and testing
- API compatibility verification

To explicitly enable toy mode for development, set:
    FHEVM_TOY_ENGINE=1
"""

import hashlib
import hmac
import logging
import os
import secrets
import struct
from typing import Any, Dict, Optional, Set, Tuple, Union

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .engine import EngineBinding, FhevmEngine, KeyPair, register_engine
from .validation import EncryptedType

logger = logging.getLogger(__name__)

_TYPE_TAGS = list(EncryptedType)
_NONCE_SIZE = 12


def _toy_engine_enabled() -> bool:
    return os.environ.get("FHEVM_TOY_ENGINE", "0").lower() in ("1", "true", "yes")


class ToyModeNotEnabledError(RuntimeError):
    """Raised when the toy engine is used without explicit opt-in."""

    def __init__(self):
        super().__init__(
            "ToyFhevmEngine is not cryptographically secure and requires explicit opt-in. "
            "To enable toy mode for development/testing, set FHEVM_TOY_ENGINE=1 environment variable. "
            "For production, register a real engine with fhevm_sdk.register_engine()."
        )


class ToyFhevmEngine(FhevmEngine):
    """
    TOY engine for development and testing ONLY.

    Ciphertext layout: [u8 type tag][12-byte nonce][sealed plaintext + tag].
    The type tag and chain id are bound as associated data.

    Handles are issued by ``store``, which plays the contract receiving an
    encrypted input. ``ready_after`` makes ``decrypt`` report "not ready" for
    that many attempts, simulating gateway latency.
    """

    def __init__(
        self,
        binding: Optional[EngineBinding] = None,
        ready_after: int = 0,
        _force_enable: bool = False,
    ):
        """
        Initialize the toy engine.

        Args:
            binding: Network endpoints (only the chain id is used)
            ready_after: Default number of not-ready decrypt attempts per handle
            _force_enable: Internal flag to bypass env check (for tests only)
        """
        if not _force_enable and not _toy_engine_enabled():
            raise ToyModeNotEnabledError()

        self.binding = binding
        self.ready_after = ready_after
        self._chain_id = binding.chain_id if binding else 0
        self._aead = ChaCha20Poly1305(ChaCha20Poly1305.generate_key())
        self._secret = secrets.token_bytes(32)
        self._public_key = "0x" + hashlib.sha256(b"pk:" + self._secret).hexdigest()
        self._storage: Dict[Tuple[str, str], bytes] = {}
        self._pending: Dict[Tuple[str, str], int] = {}
        self._issued_signatures: Set[str] = set()
        self.decrypt_calls = 0

        logger.warning(
            "*** USING ToyFhevmEngine - NOT CRYPTOGRAPHICALLY SECURE! ***\n"
            "This is a simulation for development/testing only."
        )

    @classmethod
    def from_binding(cls, binding: EngineBinding) -> "ToyFhevmEngine":
        """Engine factory entry point."""
        return cls(binding=binding)

    # ==========================================================================
    # Sealing
    # ==========================================================================

    def _aad(self, tag: EncryptedType) -> bytes:
        return tag.value.encode() + struct.pack(">Q", self._chain_id)

    def _seal(self, tag: EncryptedType, plaintext: bytes) -> bytes:
        nonce = secrets.token_bytes(_NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext, self._aad(tag))
        return bytes([_TYPE_TAGS.index(tag)]) + nonce + sealed

    def _open(self, payload: bytes) -> Tuple[EncryptedType, bytes]:
        tag = _TYPE_TAGS[payload[0]]
        nonce = payload[1 : 1 + _NONCE_SIZE]
        plaintext = self._aead.decrypt(nonce, payload[1 + _NONCE_SIZE :], self._aad(tag))
        return tag, plaintext

    def _seal_uint(self, tag: EncryptedType, value: int, bits: int) -> bytes:
        return self._seal(tag, int(value).to_bytes(bits // 8, "big"))

    # ==========================================================================
    # Encrypt primitives
    # ==========================================================================

    def encrypt_bool(self, value: bool) -> bytes:
        return self._seal(EncryptedType.EBOOL, b"\x01" if value else b"\x00")

    def encrypt_uint8(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT8, value, 8)

    def encrypt_uint16(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT16, value, 16)

    def encrypt_uint32(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT32, value, 32)

    def encrypt_uint64(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT64, value, 64)

    def encrypt_uint128(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT128, value, 128)

    def encrypt_uint256(self, value: int) -> bytes:
        return self._seal_uint(EncryptedType.EUINT256, value, 256)

    def encrypt_address(self, value: str) -> bytes:
        return self._seal(EncryptedType.EADDRESS, bytes.fromhex(value[2:]))

    def encrypt_bytes256(self, value: str) -> bytes:
        digits = value[2:] if value.startswith("0x") else value
        if len(digits) % 2:
            digits = "0" + digits
        return self._seal(EncryptedType.EBYTES256, bytes.fromhex(digits))

    # ==========================================================================
    # Keys and permits
    # ==========================================================================

    def get_public_key(self) -> Optional[str]:
        return self._public_key

    def generate_keypair(self) -> KeyPair:
        return KeyPair(
            public_key="0x" + secrets.token_hex(32),
            private_key="0x" + secrets.token_hex(32),
        )

    async def generate_permit_signature(self, contract_address: str, user_address: str) -> str:
        message = f"{contract_address.lower()}:{user_address.lower()}:{self._chain_id}".encode()
        signature = "0x" + hmac.new(self._secret, message, hashlib.sha256).hexdigest()
        self._issued_signatures.add(signature)
        return signature

    # ==========================================================================
    # Simulated contract storage and gateway
    # ==========================================================================

    def store(self, contract_address: str, encrypted: Union[bytes, Any], ready_after: Optional[int] = None) -> str:
        """
        Store a ciphertext as a contract would and return its handle.

        Args:
            contract_address: Contract that holds the ciphertext
            encrypted: Ciphertext bytes or an EncryptedValue
            ready_after: Not-ready attempts before decryption succeeds

        Returns:
            Hex handle of the stored ciphertext
        """
        payload = bytes(getattr(encrypted, "data", encrypted))
        contract = contract_address.lower()
        handle = "0x" + hashlib.sha256(contract.encode() + payload).hexdigest()
        key = (contract, handle)
        self._storage[key] = payload
        self._pending[key] = self.ready_after if ready_after is None else ready_after
        return handle

    async def decrypt(self, contract_address: str, handle: str, signature: Optional[str] = None) -> Any:
        """Decrypt a stored handle, as the gateway would."""
        self.decrypt_calls += 1
        key = (contract_address.lower(), handle.lower() if handle.startswith("0x") else "0x" + handle.lower())

        payload = self._storage.get(key)
        if payload is None:
            raise LookupError(f"Unknown handle {handle} for contract {contract_address}")

        if self._pending.get(key, 0) > 0:
            self._pending[key] -= 1
            raise RuntimeError("Decryption not ready")

        if signature is not None and signature not in self._issued_signatures:
            raise ValueError("Invalid permit signature")

        tag, plaintext = self._open(payload)
        if tag is EncryptedType.EBOOL:
            return plaintext != b"\x00"
        if tag in (EncryptedType.EADDRESS, EncryptedType.EBYTES64, EncryptedType.EBYTES128, EncryptedType.EBYTES256):
            return "0x" + plaintext.hex()
        return int.from_bytes(plaintext, "big")


register_engine("toy", ToyFhevmEngine.from_binding)
