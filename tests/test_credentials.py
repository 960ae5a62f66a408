from __future__ import annotations

import pytest

from pak.config import PakConfig
from pak.credentials import CredentialManager, format_secret_key, parse_secret_key_text
from pak.crypto.keypair import Keypair
from pak.crypto.z32 import ALPHABET, IDENTITY_LEN, decode_z32, validate_identity
from pak.errors import InvalidKeyMaterialError, NoKeypairError


def test_import_is_deterministic(secret_bytes) -> None:
    first = CredentialManager()
    second = CredentialManager()
    first.import_from(secret_bytes)
    second.import_from(secret_bytes)
    assert first.public_identity() == second.public_identity()


def test_public_identity_is_z32_of_public_key(secret_bytes) -> None:
    manager = CredentialManager()
    keypair = manager.import_from(secret_bytes)
    identity = manager.public_identity()

    assert len(identity) == IDENTITY_LEN
    assert set(identity) <= set(ALPHABET)
    assert decode_z32(identity) == keypair.public_key_bytes
    assert validate_identity(identity) is True


def test_import_rejects_wrong_length() -> None:
    with pytest.raises(InvalidKeyMaterialError):
        CredentialManager().import_from(b"\x01" * 31)


def test_import_from_text_accepts_printed_format(secret_bytes) -> None:
    manager = CredentialManager()
    keypair = manager.import_from(secret_bytes)
    printed = format_secret_key(keypair)

    other = CredentialManager()
    other.import_from_text(printed)
    assert other.public_identity() == manager.public_identity()


@pytest.mark.parametrize(
    "text",
    [
        "1,2,3",
        ",".join(["256"] * 32),
        ",".join(["a"] * 32),
        "",
    ],
)
def test_parse_secret_key_text_rejects_bad_input(text: str) -> None:
    with pytest.raises(InvalidKeyMaterialError):
        parse_secret_key_text(text)


def test_parse_secret_key_text_tolerates_whitespace(secret_bytes) -> None:
    text = ", ".join(str(byte) for byte in secret_bytes)
    assert parse_secret_key_text(text) == secret_bytes


def test_generate_replaces_held_keypair(secret_bytes) -> None:
    manager = CredentialManager()
    imported = manager.import_from(secret_bytes)
    generated = manager.generate()
    assert manager.keypair is generated
    assert generated.public_identity != imported.public_identity


def test_public_identity_without_keypair_raises() -> None:
    manager = CredentialManager()
    assert manager.has_keypair is False
    with pytest.raises(NoKeypairError):
        manager.public_identity()


def test_restore_from_config(secret_bytes) -> None:
    manager = CredentialManager()
    manager.restore_from(PakConfig(keypair=list(secret_bytes)))
    assert manager.has_keypair is True
    assert manager.export_material() == list(secret_bytes)


def test_restore_from_config_without_keypair_leaves_unset() -> None:
    manager = CredentialManager()
    manager.restore_from(PakConfig())
    assert manager.keypair is None


def test_keypair_repr_does_not_leak_secret(secret_bytes) -> None:
    keypair = CredentialManager().import_from(secret_bytes)
    assert str(list(secret_bytes)) not in repr(keypair)
    assert "secret_key" not in repr(keypair)


def test_keypair_verifies_its_own_signatures(secret_bytes) -> None:
    keypair = Keypair.from_secret_key(secret_bytes)
    signature = keypair.sign(b"payload")

    assert keypair.verify(signature, b"payload") is True
    assert keypair.verify(signature, b"tampered") is False
    assert Keypair.random().verify(signature, b"payload") is False
