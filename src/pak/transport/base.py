"""Identity & transport client contract consumed by the pak core."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol

from pak.crypto.keypair import Keypair


@dataclass(frozen=True)
class SessionInfo:
    identity: str
    capabilities: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> object:
        return json.loads(self.text)


class TransportClient(Protocol):
    def signin(self, keypair: Keypair) -> None: ...

    def signup(self, keypair: Keypair, homeserver: str, signup_token: str | None = None) -> None: ...

    def session(self, identity: str) -> SessionInfo | None: ...

    def fetch(
        self,
        address: str,
        *,
        method: str = "GET",
        body: bytes | str | None = None,
    ) -> TransportResponse: ...

    def list(self, address: str) -> list[str]: ...

    def republish_homeserver(self, keypair: Keypair, homeserver: str) -> None: ...

    def close(self) -> None: ...


__all__ = ["SessionInfo", "TransportClient", "TransportResponse"]
