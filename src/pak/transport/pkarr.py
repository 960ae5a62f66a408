"""Pkarr signed packets and relay access.

A signed packet is `signature(64) || seq(u64 big-endian, microseconds) || dns_packet`
where the signature covers the bencoded `3:seqi<seq>e1:v<len>:<dns_packet>`.
"""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass

import requests

from pak.crypto.keypair import Keypair, verify_signature
from pak.crypto.z32 import decode_z32
from pak.errors import HomeserverRequestError, HomeserverUnavailableError

logger = logging.getLogger(__name__)

PUBKY_RECORD_NAME = "_pubky"
DNS_TYPE_SVCB = 64
DNS_CLASS_IN = 1
DEFAULT_TTL = 7200
RELAY_CONTENT_TYPE = "application/pkarr.org/relays#payload"


def _encode_name(name: str) -> bytes:
    encoded = b""
    for label in name.strip(".").split("."):
        raw = label.encode("ascii")
        if not raw or len(raw) > 63:
            raise ValueError(f"invalid DNS label: {label!r}")
        encoded += bytes([len(raw)]) + raw
    return encoded + b"\x00"


def build_homeserver_packet(user_identity: str, homeserver: str, *, ttl: int = DEFAULT_TTL) -> bytes:
    """DNS response packet with one `_pubky` SVCB record aliasing the homeserver."""
    header = struct.pack("!HHHHHH", 0, 0x8400, 0, 1, 0, 0)
    rdata = struct.pack("!H", 0) + _encode_name(homeserver)
    answer = (
        _encode_name(f"{PUBKY_RECORD_NAME}.{user_identity}")
        + struct.pack("!HHIH", DNS_TYPE_SVCB, DNS_CLASS_IN, ttl, len(rdata))
        + rdata
    )
    return header + answer


def signable_bytes(seq: int, packet: bytes) -> bytes:
    return b"3:seqi%de1:v%d:" % (seq, len(packet)) + packet


@dataclass(frozen=True)
class SignedPacket:
    public_key: bytes
    signature: bytes
    seq: int
    packet: bytes

    def to_relay_payload(self) -> bytes:
        return self.signature + self.seq.to_bytes(8, "big") + self.packet

    def verify(self) -> bool:
        return verify_signature(
            self.signature,
            signable_bytes(self.seq, self.packet),
            self.public_key,
        )


def sign_packet(keypair: Keypair, packet: bytes, *, seq: int | None = None) -> SignedPacket:
    timestamp = time.time_ns() // 1_000 if seq is None else seq
    return SignedPacket(
        public_key=keypair.public_key_bytes,
        signature=keypair.sign(signable_bytes(timestamp, packet)),
        seq=timestamp,
        packet=packet,
    )


def parse_relay_payload(public_key: bytes, payload: bytes) -> SignedPacket:
    if len(payload) < 72:
        raise ValueError("pkarr relay payload too short")
    return SignedPacket(
        public_key=public_key,
        signature=payload[:64],
        seq=int.from_bytes(payload[64:72], "big"),
        packet=payload[72:],
    )


class PkarrRelayClient:
    def __init__(self, relay_url: str, *, session=None, timeout: float = 30.0) -> None:
        if session is None:
            session = requests.Session()
        self.relay_url = relay_url
        self.timeout = timeout
        self._session = session

    def _url(self, identity: str) -> str:
        return f"{self.relay_url.rstrip('/')}/{identity}"

    def publish(self, identity: str, signed: SignedPacket) -> None:
        url = self._url(identity)
        logger.debug("PUT %s (seq=%d)", url, signed.seq)
        try:
            response = self._session.request(
                "PUT",
                url,
                data=signed.to_relay_payload(),
                headers={"content-type": RELAY_CONTENT_TYPE},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise HomeserverUnavailableError(f"pkarr relay unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise HomeserverRequestError(
                f"pkarr relay rejected record: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

    def resolve(self, identity: str) -> SignedPacket | None:
        public_key = decode_z32(identity)
        url = self._url(identity)
        logger.debug("GET %s", url)
        try:
            response = self._session.request("GET", url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise HomeserverUnavailableError(f"pkarr relay unreachable: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise HomeserverRequestError(
                f"pkarr relay request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return parse_relay_payload(public_key, response.content)

    def close(self) -> None:
        self._session.close()
