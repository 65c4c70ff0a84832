"""
SSL utilities for signalr_client.
"""

from __future__ import annotations

import socket
import ssl
from typing import Optional

import certifi

from ..exceptions import WebSocketError

# For mocking in tests
SSLContext = ssl.SSLContext


def create_client_context(
    ca_certs: Optional[str] = None,
    verify: bool = True,
) -> ssl.SSLContext:
    """
    Create the TLS context used for ``https`` negotiate requests and ``wss``
    transports.

    :param ca_certs:
        Path to a CA bundle. Defaults to the bundle shipped by ``certifi``.
    :param verify:
        When False, certificate and host name checks are disabled.
    """
    context = ssl.create_default_context(cafile=ca_certs or certifi.where())
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def ssl_wrap_socket(
    sock: socket.socket,
    server_hostname: str,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> ssl.SSLSocket:
    """
    Wrap ``sock`` for TLS, sending ``server_hostname`` for SNI.

    :raises WebSocketError: If the TLS handshake fails
    """
    context = ssl_context or create_client_context()
    try:
        return context.wrap_socket(sock, server_hostname=server_hostname)
    except ssl.SSLError as e:
        raise WebSocketError(f"TLS handshake failed: {e}") from e
