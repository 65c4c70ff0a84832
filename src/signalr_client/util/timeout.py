"""
Connect and read timeouts for the negotiate request and the WebSocket.
"""

from __future__ import annotations

from typing import Optional, Union


class Timeout:
    """
    Connect and read timeouts, in seconds.

    ``None`` for a phase means it falls back to ``total``; when that is
    ``None`` as well the socket blocks until the peer answers.
    """

    def __init__(
        self,
        total: Optional[float] = None,
        connect: Optional[float] = None,
        read: Optional[float] = None,
    ):
        """
        :param total: Used for connect and read when they are not set
        :param connect: Time allowed to open the TCP (and TLS) connection
        :param read: Time allowed for each read once connected
        """
        self.total = total
        self._connect = connect
        self._read = read

    @classmethod
    def from_float(cls, timeout: Union[float, "Timeout", None]) -> "Timeout":
        """Build a Timeout from a number, or pass an existing one through."""
        if isinstance(timeout, Timeout):
            return timeout
        if timeout is None:
            return cls()
        return cls(connect=timeout, read=timeout)

    @property
    def connect_timeout(self) -> Optional[float]:
        return self.total if self._connect is None else self._connect

    @property
    def read_timeout(self) -> Optional[float]:
        return self.total if self._read is None else self._read

    def __repr__(self):
        return f"{type(self).__name__}(connect={self._connect!r}, read={self._read!r}, total={self.total!r})"
