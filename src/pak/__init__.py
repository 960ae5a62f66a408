"""pak public surface."""

from pak.config import PakConfig, load_config, save_config
from pak.credentials import CredentialManager
from pak.crypto.keypair import Keypair
from pak.errors import (
    ConfigIOError,
    HomeserverRequestError,
    HomeserverUnavailableError,
    InvalidActionError,
    InvalidKeyMaterialError,
    InvalidMethodError,
    InviteTokenRequiredError,
    MissingLabelError,
    NexusRequestError,
    NexusUnavailableError,
    NoCredentialError,
    NoKeypairError,
    PakError,
    SessionNotEstablishedError,
    SignupError,
    TransportError,
)
from pak.nexus import NexusClient
from pak.paths import ResourceRequest, build_address, build_raw_request, build_social_request
from pak.session import AuthStep, SessionCoordinator, SessionState
from pak.transport import HomeserverClient, SessionInfo, TransportClient, TransportResponse

__all__ = [
    "PakError",
    "ConfigIOError",
    "InvalidKeyMaterialError",
    "NoKeypairError",
    "NoCredentialError",
    "SignupError",
    "InviteTokenRequiredError",
    "SessionNotEstablishedError",
    "InvalidActionError",
    "MissingLabelError",
    "InvalidMethodError",
    "TransportError",
    "HomeserverUnavailableError",
    "HomeserverRequestError",
    "NexusUnavailableError",
    "NexusRequestError",
    "PakConfig",
    "load_config",
    "save_config",
    "Keypair",
    "CredentialManager",
    "SessionCoordinator",
    "SessionState",
    "AuthStep",
    "ResourceRequest",
    "build_address",
    "build_raw_request",
    "build_social_request",
    "HomeserverClient",
    "TransportClient",
    "TransportResponse",
    "SessionInfo",
    "NexusClient",
]
