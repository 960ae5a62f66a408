"""requests-backed homeserver client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pak.auth_token import sign_auth_token
from pak.crypto.keypair import Keypair
from pak.errors import HomeserverRequestError, HomeserverUnavailableError
from pak.transport.base import SessionInfo, TransportResponse
from pak.transport.pkarr import PkarrRelayClient, build_homeserver_packet, sign_packet

logger = logging.getLogger(__name__)

PUBKY_SCHEME = "pubky"
PUBKY_HOST_HEADER = "pubky-host"

_PATH_SAFE = "/:@!$&'()*+,;=-._~%?"

NETWORK_DEFAULTS = {
    "main": {
        "homeserver_url": "https://homeserver.pubky.app",
        "pkarr_relay": "https://pkarr.pubky.org",
    },
    "test": {
        "homeserver_url": "http://localhost:6286",
        "pkarr_relay": "http://localhost:15411",
    },
}


def split_address(address: str) -> tuple[str, str]:
    """Split `pubky://<owner>/<path>` into (owner, absolute request path).

    The path is percent-encoded for HTTP; `#` and other reserved characters
    stay part of the resource name and existing `%XX` escapes are kept.
    """
    prefix = f"{PUBKY_SCHEME}://"
    if not address.startswith(prefix):
        raise ValueError(f"not a {PUBKY_SCHEME}:// address: {address}")
    owner, _, path = address[len(prefix) :].partition("/")
    if not owner:
        raise ValueError(f"missing owner in address: {address}")
    return owner, quote(f"/{path}", safe=_PATH_SAFE)


@dataclass
class HomeserverClient:
    network: str = "main"
    homeserver_url: str | None = None
    pkarr_relay: str | None = None
    relay_url: str | None = None
    timeout: float = 30.0
    retries: int = 0

    def __post_init__(self) -> None:
        defaults = NETWORK_DEFAULTS.get(self.network)
        if defaults is None:
            raise ValueError(f"network must be one of: {', '.join(NETWORK_DEFAULTS)}")
        if not self.homeserver_url:
            self.homeserver_url = defaults["homeserver_url"]
        if not self.pkarr_relay:
            self.pkarr_relay = defaults["pkarr_relay"]

        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET", "PUT", "DELETE"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._relay = PkarrRelayClient(self.pkarr_relay, session=self._session, timeout=self.timeout)
        logger.debug(
            "homeserver client ready (network=%s, url=%s, relay=%s)",
            self.network,
            self.homeserver_url,
            self.pkarr_relay,
        )

    def _url(self, path: str) -> str:
        return f"{self.homeserver_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        owner: str | None = None,
        data: bytes | None = None,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        headers = {PUBKY_HOST_HEADER: owner} if owner else None
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            return self._session.request(
                method,
                url,
                data=data,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise HomeserverUnavailableError(f"homeserver unreachable: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        if response.status_code < 400:
            return
        raise HomeserverRequestError(
            f"{action} failed: {response.status_code} {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    def signin(self, keypair: Keypair) -> None:
        token = sign_auth_token(keypair)
        response = self._request("POST", "/session", data=token.to_bytes())
        self._raise_for_status(response, "signin")

    def signup(self, keypair: Keypair, homeserver: str, signup_token: str | None = None) -> None:
        logger.debug("signing up %s with homeserver %s", keypair.public_identity, homeserver)
        token = sign_auth_token(keypair)
        params = {"signup_token": signup_token} if signup_token else None
        response = self._request("POST", "/signup", data=token.to_bytes(), params=params)
        self._raise_for_status(response, "signup")

    def session(self, identity: str) -> SessionInfo | None:
        response = self._request("GET", "/session", owner=identity)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "session check")
        return SessionInfo(identity=identity)

    def fetch(
        self,
        address: str,
        *,
        method: str = "GET",
        body: bytes | str | None = None,
    ) -> TransportResponse:
        owner, path = split_address(address)
        data = body.encode("utf-8") if isinstance(body, str) else body
        response = self._request(method.upper(), path, owner=owner, data=data)
        return TransportResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    def list(self, address: str) -> list[str]:
        owner, path = split_address(address)
        if not path.endswith("/"):
            path = f"{path}/"
        response = self._request("GET", path, owner=owner)
        self._raise_for_status(response, "list")
        prefix = f"{PUBKY_SCHEME}://{owner}{path}"
        entries = []
        for line in response.text.splitlines():
            line = line.strip()
            if not line:
                continue
            entries.append(line[len(prefix) :] if line.startswith(prefix) else line)
        return entries

    def republish_homeserver(self, keypair: Keypair, homeserver: str) -> None:
        identity = keypair.public_identity
        packet = build_homeserver_packet(identity, homeserver)
        self._relay.publish(identity, sign_packet(keypair, packet))

    def close(self) -> None:
        logger.debug("closing homeserver client")
        self._session.close()


__all__ = ["HomeserverClient", "NETWORK_DEFAULTS", "split_address"]
