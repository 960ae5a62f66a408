"""Resource addresses and payloads for homeserver operations."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass

from pak.errors import InvalidActionError, InvalidMethodError, MissingLabelError

SCHEME = "pubky"
APP_NAMESPACE = "pub/pubky.app"
RAW_METHODS = ("GET", "PUT", "DELETE")

SOCIAL_ACTIONS = ("follow", "unfollow", "mute", "unmute", "bookmark", "tag")

# action -> (collection, method, id source)
_SOCIAL_ROUTES = {
    "follow": ("follows", "PUT", "target"),
    "unfollow": ("follows", "DELETE", "target"),
    "mute": ("mutes", "PUT", "target"),
    "unmute": ("mutes", "DELETE", "target"),
    "bookmark": ("bookmarks", "PUT", "generated"),
    "tag": ("tags", "PUT", "generated"),
}


@dataclass(frozen=True)
class ResourceRequest:
    address: str
    method: str
    body: str | None = None

    @property
    def payload(self) -> dict | None:
        return json.loads(self.body) if self.body is not None else None


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def normalize_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def build_address(owner: str, path: str) -> str:
    return f"{SCHEME}://{owner}{normalize_path(path)}"


def build_raw_request(owner: str, method: str, path: str, data: str | None = None) -> ResourceRequest:
    verb = method.upper()
    if verb not in RAW_METHODS:
        raise InvalidMethodError(f"method must be one of: {', '.join(RAW_METHODS)}")
    if data is not None and verb != "PUT":
        raise InvalidMethodError("request data is only allowed with PUT")
    return ResourceRequest(address=build_address(owner, path), method=verb, body=data)


def generate_id(timestamp_ms: int) -> str:
    """Timestamp id for bookmarks and tags.

    Two calls within the same millisecond collide; the later write wins.
    """
    return str(timestamp_ms)


def build_social_request(
    owner: str,
    action: str,
    target: str,
    *,
    label: str | None = None,
    timestamp_ms: int | None = None,
) -> ResourceRequest:
    normalized = action.strip().lower()
    route = _SOCIAL_ROUTES.get(normalized)
    if route is None:
        raise InvalidActionError(f"invalid action; use: {', '.join(SOCIAL_ACTIONS)}")
    if normalized == "tag" and not label:
        raise MissingLabelError("tag label required; use --label")

    collection, method, id_source = route
    created_at = now_ms() if timestamp_ms is None else timestamp_ms
    resource_id = target if id_source == "target" else generate_id(created_at)
    address = build_address(owner, f"/{APP_NAMESPACE}/{collection}/{resource_id}")

    if method == "DELETE":
        return ResourceRequest(address=address, method=method)

    payload: dict[str, object] = {"target": target}
    if normalized == "tag":
        payload["label"] = label
    payload["created_at"] = created_at
    return ResourceRequest(address=address, method=method, body=json.dumps(payload))
