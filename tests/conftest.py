from __future__ import annotations

import pytest

from pak.crypto.keypair import Keypair
from pak.errors import HomeserverRequestError
from pak.transport.base import SessionInfo, TransportResponse


class FakeTransport:
    """In-memory stand-in for HomeserverClient that records every call."""

    def __init__(
        self,
        *,
        registered: bool = True,
        signup_error: Exception | None = None,
        session_after_auth: bool = True,
        response: TransportResponse | None = None,
        listing: list[str] | None = None,
        **kwargs,
    ) -> None:
        self.kwargs = kwargs
        self.registered = registered
        self.signup_error = signup_error
        self.session_after_auth = session_after_auth
        self.response = response or TransportResponse(status_code=200, body=b"")
        self.listing = listing or []
        self.calls: list[tuple] = []
        self.closed = False
        self._authenticated: set[str] = set()

    def signin(self, keypair: Keypair) -> None:
        self.calls.append(("signin", keypair.public_identity))
        if not self.registered:
            raise HomeserverRequestError("signin failed: 404 user not found", status_code=404)
        self._authenticated.add(keypair.public_identity)

    def signup(self, keypair: Keypair, homeserver: str, signup_token: str | None = None) -> None:
        self.calls.append(("signup", keypair.public_identity, homeserver, signup_token))
        if self.signup_error is not None:
            raise self.signup_error
        self.registered = True
        self._authenticated.add(keypair.public_identity)

    def session(self, identity: str) -> SessionInfo | None:
        self.calls.append(("session", identity))
        if self.session_after_auth and identity in self._authenticated:
            return SessionInfo(identity=identity, capabilities=("/:rw",))
        return None

    def fetch(self, address: str, *, method: str = "GET", body=None) -> TransportResponse:
        self.calls.append(("fetch", address, method, body))
        return self.response

    def list(self, address: str) -> list[str]:
        self.calls.append(("list", address))
        return list(self.listing)

    def republish_homeserver(self, keypair: Keypair, homeserver: str) -> None:
        self.calls.append(("republish", keypair.public_identity, homeserver))
        self._authenticated.add(keypair.public_identity)

    def close(self) -> None:
        self.closed = True

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_transport_cls():
    return FakeTransport


@pytest.fixture
def secret_bytes() -> bytes:
    return bytes(range(32))
