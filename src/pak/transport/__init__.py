from pak.transport.base import SessionInfo, TransportClient, TransportResponse
from pak.transport.client import NETWORK_DEFAULTS, HomeserverClient, split_address
from pak.transport.pkarr import PkarrRelayClient

__all__ = [
    "HomeserverClient",
    "NETWORK_DEFAULTS",
    "PkarrRelayClient",
    "SessionInfo",
    "TransportClient",
    "TransportResponse",
    "split_address",
]
