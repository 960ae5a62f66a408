"""Read-only client for the Nexus indexing service."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pak.errors import NexusRequestError, NexusUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class NexusClient:
    base_url: str
    timeout: float = 30.0
    retries: int = 2

    def __post_init__(self) -> None:
        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def url_for(self, endpoint: str, params: str | None = None) -> str:
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        url = f"{self.base_url.rstrip('/')}{path}"
        if params:
            url = f"{url}?{params.lstrip('?')}"
        return url

    def get(self, endpoint: str, params: str | None = None) -> object:
        url = self.url_for(endpoint, params)
        logger.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NexusUnavailableError(f"nexus unreachable: {exc}") from exc

        if response.status_code >= 400:
            try:
                body: object | None = response.json()
            except ValueError:
                body = response.text
            raise NexusRequestError(
                f"nexus request failed: {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        try:
            return response.json()
        except ValueError:
            return response.text

    def close(self) -> None:
        self._session.close()


__all__ = ["NexusClient"]
