"""Configuration document for the pak CLI."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from pak.errors import ConfigIOError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".pak-config.json"
CONFIG_PATH_ENV_VAR = "PAK_CONFIG"

DEFAULT_HOMESERVER = "8pinxxgqs41n4aididenw5apqp1urfmzdztr8jt4abrkdn435ewo"
DEFAULT_NEXUS_ENDPOINT = "https://nexus.pubky.app"
DEFAULT_HTTP_RELAY = "https://httprelay.pubky.app/link"

KNOWN_HOMESERVERS = {
    "test": [("8pinxxgqs41n4aididenw5apqp1urfmzdztr8jt4abrkdn435ewo", "default testnet")],
    "main": [("8um71us3fyw6h8wbcxb5ar3rwusy1a6u49956ikzojg3gcwd1dty", "production")],
}

NetworkMode = Literal["main", "test"]

_REDACTED = "[REDACTED]"


class PakConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    homeserver: str = DEFAULT_HOMESERVER
    nexus_endpoint: str = Field(DEFAULT_NEXUS_ENDPOINT, alias="nexusEndpoint")
    testnet: bool = False
    http_relay: str = Field(DEFAULT_HTTP_RELAY, alias="httpRelay")
    homeserver_url: Optional[str] = Field(None, alias="homeserverUrl")
    pkarr_relay: Optional[str] = Field(None, alias="pkarrRelay")
    keypair: Optional[List[int]] = None
    authenticated: bool = False

    @field_validator("testnet", "authenticated", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any, info: ValidationInfo) -> bool:
        return to_bool(value, info.field_name)

    @field_validator("homeserver", "nexus_endpoint", "http_relay")
    @classmethod
    def _non_empty(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("keypair")
    @classmethod
    def _secret_key_bytes(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return None
        if len(value) != 32:
            raise ValueError("keypair must hold exactly 32 secret key bytes")
        if any(byte < 0 or byte > 255 for byte in value):
            raise ValueError("keypair bytes must be in range 0..255")
        return value

    @model_validator(mode="before")
    @classmethod
    def _authenticated_requires_keypair(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("keypair") is None:
            data = {**data, "authenticated": False}
        return data

    @property
    def network_mode(self) -> NetworkMode:
        return "test" if self.testnet else "main"

    def with_updates(self, **changes: Any) -> "PakConfig":
        merged = self.model_dump()
        merged.update(changes)
        return PakConfig.model_validate(merged)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def redacted(self) -> dict[str, Any]:
        document = self.to_document()
        if document.get("keypair") is not None:
            document["keypair"] = _REDACTED
        return document


def to_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    raise ValueError(f"{field_name} must be a boolean")


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path:
        return Path(path)
    env_path = os.getenv(CONFIG_PATH_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip())
    return DEFAULT_CONFIG_PATH


def _read_document(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigIOError(f"cannot read {path}: {exc}") from exc
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigIOError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ConfigIOError(f"{path} must contain a JSON object")
    return parsed


def load_config(path: str | Path | None = None) -> PakConfig:
    """Load the config document, falling back to defaults on any failure.

    On-disk keys override defaults; absent keys keep their default values.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        logger.debug("no config file at %s, using defaults", config_path)
        return PakConfig()

    logger.debug("loading config from %s", config_path)
    try:
        document = _read_document(config_path)
        merged = PakConfig().to_document()
        merged.update(document)
        return PakConfig.model_validate(merged)
    except (ConfigIOError, ValidationError) as exc:
        logger.warning("could not load config, using defaults")
        logger.debug("config load error: %s", exc)
        return PakConfig()


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def save_config(config: PakConfig, path: str | Path | None = None) -> bool:
    """Overwrite the config file with the full document.

    Returns False instead of raising when the file cannot be written; the
    caller keeps running with its in-memory state.
    """
    config_path = resolve_config_path(path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(
            json.dumps(config.to_document(), indent=2) + "\n",
            encoding="utf-8",
        )
        _chmod_owner_only(config_path)
    except OSError as exc:
        logger.error("error saving configuration: %s", exc)
        return False
    logger.debug("saved config to %s", config_path)
    return True
