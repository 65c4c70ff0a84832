"""
Transport capability used by :class:`~signalr_client.connection.Connection`.
"""

from __future__ import annotations

import typing
from abc import ABC, abstractmethod


class TransportDelegate(ABC):
    """Receives the events a transport emits."""

    @abstractmethod
    def transport_did_open(self) -> None:
        """The duplex stream is established."""

    @abstractmethod
    def transport_did_receive_data(self, data: bytes) -> None:
        """A complete message arrived."""

    @abstractmethod
    def transport_did_close(self, error: BaseException | None) -> None:
        """The stream is gone; ``error`` is None for a clean close."""


class Transport(ABC):
    """
    A duplex byte stream opened from a URL and query string.

    Events are reported to ``delegate``. A transport is single use: once
    closed it is never started again.
    """

    delegate: typing.Optional[TransportDelegate] = None

    @abstractmethod
    def start(self, url: str, query: str) -> None:
        """
        Begin opening the stream. Returns immediately; the outcome is
        reported through ``transport_did_open`` or ``transport_did_close``.
        """

    @abstractmethod
    def send(self, data: str | bytes) -> None:
        """Send one message."""

    @abstractmethod
    def close(self) -> None:
        """Close the stream gracefully. Calling it again has no effect."""
