"""z-base-32 codec used for Pubky public identities.

Identity format:
- 52 characters from the z-base-32 alphabet
- encodes the raw 32-byte ed25519 public key, most significant bit first
"""

from __future__ import annotations

ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
IDENTITY_LEN = 52

_INDEX = {char: index for index, char in enumerate(ALPHABET)}


def encode_z32(data: bytes) -> str:
    total_bits = len(data) * 8
    padding = (-total_bits) % 5
    value = int.from_bytes(data, "big") << padding
    total_bits += padding
    return "".join(
        ALPHABET[(value >> shift) & 0x1F] for shift in range(total_bits - 5, -1, -5)
    )


def decode_z32(text: str) -> bytes:
    value = 0
    for char in text:
        index = _INDEX.get(char)
        if index is None:
            raise ValueError(f"invalid z-base-32 character: {char!r}")
        value = (value << 5) | index

    total_bits = len(text) * 5
    byte_len = total_bits // 8
    padding = total_bits - byte_len * 8
    if value & ((1 << padding) - 1):
        raise ValueError("non-zero trailing bits in z-base-32 input")
    return (value >> padding).to_bytes(byte_len, "big")


def validate_identity(identity: str) -> bool:
    if len(identity) != IDENTITY_LEN:
        return False
    try:
        return len(decode_z32(identity)) == 32
    except ValueError:
        return False
