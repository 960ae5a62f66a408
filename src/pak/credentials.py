"""In-memory credential holder for a single pak invocation."""

from __future__ import annotations

import logging

from pak.config import PakConfig
from pak.crypto.keypair import SECRET_KEY_LEN, Keypair
from pak.errors import InvalidKeyMaterialError, NoKeypairError

logger = logging.getLogger(__name__)


def parse_secret_key_text(text: str) -> bytes:
    """Parse the comma-separated decimal byte format printed by `auth --generate`."""
    parts = [part.strip() for part in text.split(",")]
    try:
        values = [int(part, 10) for part in parts]
    except ValueError as exc:
        raise InvalidKeyMaterialError("secret key must be comma-separated decimal bytes") from exc
    if any(value < 0 or value > 255 for value in values):
        raise InvalidKeyMaterialError("secret key bytes must be in range 0..255")
    if len(values) != SECRET_KEY_LEN:
        raise InvalidKeyMaterialError(
            f"secret key must be {SECRET_KEY_LEN} bytes, got {len(values)}"
        )
    return bytes(values)


def format_secret_key(keypair: Keypair) -> str:
    return ",".join(str(byte) for byte in keypair.secret_key)


class CredentialManager:
    def __init__(self, keypair: Keypair | None = None) -> None:
        self._keypair = keypair

    @property
    def keypair(self) -> Keypair | None:
        return self._keypair

    @property
    def has_keypair(self) -> bool:
        return self._keypair is not None

    def generate(self) -> Keypair:
        self._keypair = Keypair.random()
        return self._keypair

    def import_from(self, raw_secret: bytes) -> Keypair:
        self._keypair = Keypair.from_secret_key(raw_secret)
        return self._keypair

    def import_from_text(self, text: str) -> Keypair:
        return self.import_from(parse_secret_key_text(text))

    def restore_from(self, config: PakConfig) -> None:
        if config.keypair is None:
            logger.debug("no saved keypair in config")
            return
        try:
            self._keypair = Keypair.from_secret_key(bytes(config.keypair))
        except (InvalidKeyMaterialError, ValueError) as exc:
            logger.warning("saved keypair is unusable, ignoring it")
            logger.debug("keypair restore error: %s", exc)
            return
        logger.debug("keypair loaded, public key: %s", self._keypair.public_identity)

    def public_identity(self) -> str:
        if self._keypair is None:
            raise NoKeypairError("no keypair held; generate or import one first")
        return self._keypair.public_identity

    def export_material(self) -> list[int]:
        if self._keypair is None:
            raise NoKeypairError("no keypair held; generate or import one first")
        return list(self._keypair.secret_key)
