"""
signalr_client - negotiate-then-connect client connections.

A Connection asks the server to allocate a session with an HTTP
``negotiate`` request, then opens a WebSocket carrying that session
identifier and relays its events to a delegate.
"""

from ._version import __version__

# Set default logging handler to avoid "No handler found" warnings.
import logging
from logging import NullHandler

logging.getLogger(__name__).addHandler(NullHandler())

from . import exceptions
from .connection import Connection, ConnectionDelegate, ConnectionState
from .http_client import DefaultHttpClient, HttpClient, HttpResponse
from .settings import ConnectionSettings
from .transport import Transport, TransportDelegate, WebsocketsTransport
from .util.timeout import Timeout

__all__ = (
    "Connection",
    "ConnectionDelegate",
    "ConnectionSettings",
    "ConnectionState",
    "DefaultHttpClient",
    "HttpClient",
    "HttpResponse",
    "InvalidStateError",
    "NoActiveTransportError",
    "SignalRError",
    "Timeout",
    "Transport",
    "TransportDelegate",
    "WebError",
    "WebSocketError",
    "WebsocketsTransport",
    "add_stderr_logger",
    "exceptions",
)

from .exceptions import (
    InvalidStateError,
    NoActiveTransportError,
    SignalRError,
    WebError,
    WebSocketError,
)


def add_stderr_logger(level=logging.DEBUG):
    """
    Helper for quickly adding a StreamHandler to the logger. Useful for
    debugging.

    Returns the handler after adding it.
    """
    # This method needs to be in this __init__.py to get the __name__ correct
    logger = logging.getLogger(__name__)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("Added a stderr logging handler to logger: %s", __name__)
    return handler
