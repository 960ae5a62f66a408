"""ed25519 keypair value type."""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from pak.crypto.z32 import encode_z32
from pak.errors import InvalidKeyMaterialError

SECRET_KEY_LEN = 32


@dataclass(frozen=True)
class Keypair:
    secret_key: bytes

    def __post_init__(self) -> None:
        if len(self.secret_key) != SECRET_KEY_LEN:
            raise InvalidKeyMaterialError(
                f"secret key must be {SECRET_KEY_LEN} bytes, got {len(self.secret_key)}"
            )

    def __repr__(self) -> str:
        return f"Keypair(public_identity={self.public_identity!r})"

    @classmethod
    def random(cls) -> "Keypair":
        private = Ed25519PrivateKey.generate()
        return cls(private.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()))

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> "Keypair":
        return cls(bytes(secret_key))

    def _private(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self.secret_key)

    @property
    def public_key_bytes(self) -> bytes:
        return self._private().public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @property
    def public_identity(self) -> str:
        return encode_z32(self.public_key_bytes)

    def sign(self, message: bytes) -> bytes:
        return self._private().sign(message)

    def verify(self, signature: bytes, message: bytes) -> bool:
        return verify_signature(signature, message, self.public_key_bytes)


def verify_signature(signature: bytes, message: bytes, public_key: bytes) -> bool:
    """Check an ed25519 signature against raw 32-byte public key bytes."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True
