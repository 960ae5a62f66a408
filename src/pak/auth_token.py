"""Signed AuthToken bytes presented to a homeserver on signin and signup.

Layout:
- signature (64 bytes, ed25519 over every byte that follows it)
- namespace b"PUBKY:AUTH"
- version (1 byte, currently 0)
- timestamp (u64 big-endian, microseconds since the unix epoch)
- public key (32 bytes)
- capabilities (utf-8, comma separated, e.g. "/:rw")
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from pak.crypto.keypair import Keypair, verify_signature

AUTH_NAMESPACE = b"PUBKY:AUTH"
AUTH_VERSION = 0
ROOT_CAPABILITY = "/:rw"
SIGNATURE_LEN = 64

_HEADER_LEN = SIGNATURE_LEN + len(AUTH_NAMESPACE) + 1 + 8 + 32


@dataclass(frozen=True)
class AuthToken:
    signature: bytes
    timestamp_us: int
    public_key: bytes
    capabilities: tuple[str, ...]

    def signable(self) -> bytes:
        return build_signable(
            timestamp_us=self.timestamp_us,
            public_key=self.public_key,
            capabilities=self.capabilities,
        )

    def to_bytes(self) -> bytes:
        return self.signature + self.signable()

    def verify(self) -> bool:
        return verify_signature(self.signature, self.signable(), self.public_key)


def now_us() -> int:
    return time.time_ns() // 1_000


def build_signable(*, timestamp_us: int, public_key: bytes, capabilities: tuple[str, ...]) -> bytes:
    return (
        AUTH_NAMESPACE
        + bytes([AUTH_VERSION])
        + timestamp_us.to_bytes(8, "big")
        + public_key
        + ",".join(capabilities).encode("utf-8")
    )


def sign_auth_token(
    keypair: Keypair,
    *,
    capabilities: tuple[str, ...] = (ROOT_CAPABILITY,),
    timestamp_us: int | None = None,
) -> AuthToken:
    timestamp = now_us() if timestamp_us is None else timestamp_us
    public_key = keypair.public_key_bytes
    signable = build_signable(
        timestamp_us=timestamp,
        public_key=public_key,
        capabilities=capabilities,
    )
    return AuthToken(
        signature=keypair.sign(signable),
        timestamp_us=timestamp,
        public_key=public_key,
        capabilities=capabilities,
    )


def parse_auth_token(data: bytes) -> AuthToken:
    if len(data) < _HEADER_LEN:
        raise ValueError("auth token too short")
    signature = data[:SIGNATURE_LEN]
    cursor = SIGNATURE_LEN
    if data[cursor : cursor + len(AUTH_NAMESPACE)] != AUTH_NAMESPACE:
        raise ValueError("auth token namespace mismatch")
    cursor += len(AUTH_NAMESPACE)
    if data[cursor] != AUTH_VERSION:
        raise ValueError(f"unsupported auth token version: {data[cursor]}")
    cursor += 1
    timestamp_us = int.from_bytes(data[cursor : cursor + 8], "big")
    cursor += 8
    public_key = data[cursor : cursor + 32]
    cursor += 32
    raw_caps = data[cursor:].decode("utf-8")
    capabilities = tuple(cap for cap in raw_caps.split(",") if cap)
    return AuthToken(
        signature=signature,
        timestamp_us=timestamp_us,
        public_key=public_key,
        capabilities=capabilities,
    )
