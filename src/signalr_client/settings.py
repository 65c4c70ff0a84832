"""
Settings shared by the default negotiate client and WebSocket transport.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .util.ssl_ import create_client_context
from .util.timeout import Timeout

log = logging.getLogger(__name__)


@dataclass
class ConnectionSettings:
    """
    Connection settings.

    This class encapsulates settings for the negotiate request and the
    transport opened after it.
    """

    # Extra headers sent with the negotiate request and the upgrade request
    headers: Dict[str, str] = field(default_factory=dict)

    # Connect/read timeout, None means block until the peer answers
    timeout: Union[float, Timeout, None] = None

    # CA bundle path, defaults to certifi's bundle
    ca_certs: Optional[str] = None

    # Verify server certificates
    verify: bool = True

    # Largest reassembled message accepted from the server
    max_message_size: int = 1024 * 1024  # 1 MB

    # Bytes read from the socket per recv() call
    receive_buffer_size: int = 4096

    def __post_init__(self):
        self.timeout = Timeout.from_float(self.timeout)
        if self.max_message_size <= 0:
            raise ValueError("max_message_size must be positive")
        if self.receive_buffer_size <= 0:
            raise ValueError("receive_buffer_size must be positive")
        if not self.verify:
            log.warning("Certificate verification is disabled")

    @property
    def connect_timeout(self) -> Optional[float]:
        return self.timeout.connect_timeout

    @property
    def read_timeout(self) -> Optional[float]:
        return self.timeout.read_timeout

    def ssl_context(self) -> ssl.SSLContext:
        """Create a TLS context from ``ca_certs`` and ``verify``."""
        return create_client_context(ca_certs=self.ca_certs, verify=self.verify)
