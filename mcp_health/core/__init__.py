"""Core health-check components."""

from .client import CapabilityList, Connection, HandshakeInfo, ProtocolClient
from .deadline import LONG_TIMEOUT, SHORT_TIMEOUT, Deadline
from .http_transport import HTTPTransport
from .sse_transport import SSETransport
from .transport import MCPTransport, SessionTransport
from .transport_factory import TransportFactory

__all__ = [
    "ProtocolClient",
    "Connection",
    "HandshakeInfo",
    "CapabilityList",
    "Deadline",
    "SHORT_TIMEOUT",
    "LONG_TIMEOUT",
    "MCPTransport",
    "SessionTransport",
    "HTTPTransport",
    "SSETransport",
    "TransportFactory",
]
