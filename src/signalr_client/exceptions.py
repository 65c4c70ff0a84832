"""
Exceptions for signalr_client.

This module contains all exceptions raised by signalr_client.
"""

from __future__ import annotations


class SignalRError(Exception):
    """Base exception used by this module."""
    pass


class ConnectionStateError(SignalRError):
    """Base exception for operations that are invalid in the current state."""
    pass


class InvalidStateError(ConnectionStateError):
    """Raised when start() is called on a connection that is not idle."""

    def __init__(self, state=None):
        self.state = state
        message = "Connection cannot be started"
        if state is not None:
            message += f" from state {state.name}"
        super().__init__(message)


class NoActiveTransportError(ConnectionStateError):
    """Raised when sending while no transport is open."""

    def __init__(self, message="No active transport"):
        super().__init__(message)


class HTTPError(SignalRError):
    """Base exception for negotiate request failures."""
    pass


class WebError(HTTPError):
    """Raised when the negotiate request returns a status other than 200."""

    def __init__(self, status_code, contents=b""):
        self.status_code = status_code
        self.contents = contents
        super().__init__(f"Negotiate request failed with status code {status_code}")


class LocationValueError(ValueError, HTTPError):
    """Raised when there is something wrong with a given URL input."""
    pass


class LocationParseError(LocationValueError):
    """Raised when a URL cannot be parsed."""

    def __init__(self, location):
        message = f"Failed to parse: {location}"
        super().__init__(message)

        self.location = location


class URLSchemeUnknown(LocationValueError):
    """Raised when a URL input has an unsupported scheme."""

    def __init__(self, scheme):
        message = f"Not supported URL scheme {scheme}"
        super().__init__(message)

        self.scheme = scheme


class WebSocketError(SignalRError):
    """Base class for all WebSocket-related errors."""

    pass


class WebSocketHandshakeError(WebSocketError):
    """
    Raised when the WebSocket handshake fails.

    This can happen if the server doesn't support WebSockets or
    rejects the session identifier.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class WebSocketProtocolError(WebSocketError):
    """
    Raised when a WebSocket protocol error occurs.

    This can happen if invalid frames are received or if the
    protocol is violated in some other way. ``close_code`` is sent to the
    server in the close frame that ends the connection.
    """

    def __init__(self, message: str, close_code: int = 1002) -> None:
        super().__init__(message)
        self.close_code = close_code


class WebSocketTimeoutError(WebSocketError):
    """Raised when connecting the WebSocket times out."""

    pass


class WebSocketClosedError(WebSocketError):
    """
    Raised when trying to use a closed WebSocket, and reported as the close
    error when the server closes with an abnormal code.
    """

    def __init__(self, code: int = 1006, reason: str = "") -> None:
        message = f"WebSocket is closed (code={code}, reason={reason})"
        super().__init__(message)
        self.code = code
        self.reason = reason
