"""
Transports for signalr_client.

A transport carries messages once the negotiate request has allocated a
session identifier.
"""

from __future__ import annotations

from .base import Transport, TransportDelegate
from .protocol import WebSocketCloseCode, WebSocketFrame, WebSocketFrameType, WebSocketProtocol
from .websockets import WebsocketsTransport

__all__ = [
    "Transport",
    "TransportDelegate",
    "WebSocketCloseCode",
    "WebSocketFrame",
    "WebSocketFrameType",
    "WebSocketProtocol",
    "WebsocketsTransport",
]
