"""
Connection lifecycle for signalr_client.

A :class:`Connection` first issues an HTTP ``negotiate`` request that
allocates a session identifier, then opens a transport with ``id=<session>``
added to its query string. Transport events are relayed to a
:class:`ConnectionDelegate`.

The connection only holds a weak reference to its delegate, and the
transport only holds a weak reference to the connection.
"""

from __future__ import annotations

import functools
import logging
import threading
import typing
import weakref
from enum import Enum, auto

from .exceptions import InvalidStateError, LocationValueError, NoActiveTransportError, WebError
from .http_client import DefaultHttpClient, HttpClient, HttpResponse
from .settings import ConnectionSettings
from .transport.base import Transport, TransportDelegate
from .transport.websockets import WebsocketsTransport
from .util.url import amend_query, append_path_segment, encode_query

log = logging.getLogger(__name__)

NEGOTIATE_PATH = "negotiate"


class ConnectionState(Enum):
    """Lifecycle state of a :class:`Connection`."""

    IDLE = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    STOPPING = auto()
    STOPPED = auto()


class ConnectionDelegate:
    """
    Receives connection lifecycle events.

    Subclass and override the callbacks you need. Callbacks run on the
    thread that produced the event (the negotiate or transport thread for
    the default implementations).
    """

    def connection_did_open(self, connection: Connection) -> None:
        pass

    def connection_did_receive_data(self, connection: Connection, data: bytes) -> None:
        pass

    def connection_did_close(self, error: BaseException | None) -> None:
        pass

    def connection_did_fail_to_open(self, error: BaseException) -> None:
        pass


class Connection:
    """
    Client connection with a negotiate-then-open handshake.

    Usage::

        connection = Connection("http://example.com/signalr", "token=abc")
        connection.delegate = my_delegate
        connection.start()
        ...
        connection.send("hello")
        connection.stop()

    A connection is started once; after it stops, create a new one.
    """

    def __init__(
        self,
        url: str,
        query: str | None = None,
        *,
        settings: ConnectionSettings | None = None,
        http_client: HttpClient | None = None,
        transport_factory: typing.Callable[[], Transport] | None = None,
    ) -> None:
        """
        Initialize a new Connection.

        :param url: Base URL of the server; ``negotiate`` is appended to it
        :param query: Query string sent with both requests, percent-encoded here
        :param settings: Options for the default HTTP client and transport
        :param http_client: Client used for the negotiate request
        :param transport_factory: Callable returning a fresh, unstarted transport
        """
        self.url = url
        self.settings = settings or ConnectionSettings()
        self._query = encode_query(query)
        self._http_client = http_client or DefaultHttpClient(self.settings)
        self._transport_factory = transport_factory or functools.partial(
            WebsocketsTransport, self.settings
        )

        self._state = ConnectionState.IDLE
        self._state_lock = threading.Lock()
        self._transport: Transport | None = None
        self._transport_delegate: ConnectionTransportDelegate | None = None
        self._delegate: weakref.ReferenceType[ConnectionDelegate] | None = None

    @property
    def delegate(self) -> ConnectionDelegate | None:
        """The registered delegate, or None once it has been garbage collected."""
        if self._delegate is None:
            return None
        return self._delegate()

    @delegate.setter
    def delegate(self, delegate: ConnectionDelegate | None) -> None:
        self._delegate = weakref.ref(delegate) if delegate is not None else None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def query(self) -> str:
        """The encoded query; includes ``id=<session>`` once negotiate succeeded."""
        return self._query

    def start(self) -> None:
        """
        Negotiate a session and open the transport.

        Returns immediately. The outcome is reported to the delegate through
        ``connection_did_open`` or ``connection_did_fail_to_open``. Calling
        this on a connection that is not idle reports
        :class:`~signalr_client.exceptions.InvalidStateError` and leaves the
        connection as it was.
        """
        if not self._change_state(ConnectionState.IDLE, ConnectionState.CONNECTING):
            state = self._state
            log.warning(f"start() called in state {state.name}")
            self._notify_fail_to_open(InvalidStateError(state))
            return

        self._transport_delegate = ConnectionTransportDelegate(self)
        self._transport = self._transport_factory()
        self._transport.delegate = self._transport_delegate

        try:
            negotiate_url = append_path_segment(self.url, NEGOTIATE_PATH, self._query)
        except LocationValueError as e:
            self._fail_open(e)
            return

        log.debug(f"Negotiating: GET {negotiate_url}")
        self._http_client.get(negotiate_url, self._negotiate_completed)

    def _negotiate_completed(
        self, response: HttpResponse | None, error: BaseException | None
    ) -> None:
        if self._state is not ConnectionState.CONNECTING:
            self._discard_negotiate_result()
            return

        if error is not None:
            log.warning(f"Negotiate request failed: {error!r}")
            self._fail_open(error)
            return

        if response.status_code != 200:
            log.warning(
                f"Negotiate request failed. status code: {response.status_code}, "
                f"contents: {response.contents[:200]!r}"
            )
            self._fail_open(WebError(response.status_code, response.contents))
            return

        try:
            session_id = response.contents.decode("utf-8")
        except UnicodeDecodeError:
            log.warning("Negotiate response is not valid UTF-8, using an empty session id")
            session_id = ""

        self._query = amend_query(self._query, session_id)
        log.debug(f"Negotiated session, starting transport with query {self._query!r}")

        try:
            self._transport.start(self.url, self._query)
        except Exception as e:
            if self._state is not ConnectionState.CONNECTING:
                self._discard_negotiate_result()
                return
            self._fail_open(e)
            return

        if self._state in (ConnectionState.STOPPING, ConnectionState.STOPPED):
            # stop() ran while the transport was starting
            log.debug("Connection stopped during transport start, closing transport")
            self._transport.close()

    def _discard_negotiate_result(self) -> None:
        log.info(f"Negotiate completed in state {self._state.name}, discarding result")
        if self._change_state(ConnectionState.STOPPING, ConnectionState.STOPPED):
            self._notify_close(None)

    def _fail_open(self, error: BaseException) -> None:
        self._change_state(None, ConnectionState.STOPPED)
        self._notify_fail_to_open(error)

    def send(self, data: str | bytes) -> None:
        """
        Send ``data`` over the open transport.

        :raises NoActiveTransportError: If the connection is not connected
        """
        transport = self._transport
        if transport is None or self._state is not ConnectionState.CONNECTED:
            raise NoActiveTransportError(
                f"Cannot send data in state {self._state.name}"
            )
        transport.send(data)

    def stop(self) -> None:
        """
        Close the transport.

        The connection becomes ``STOPPED`` when the transport reports that it
        closed, which is relayed as ``connection_did_close``.
        """
        transport = self._transport
        if transport is None:
            log.debug(f"stop() called in state {self._state.name} with no transport")
            return

        if not self._change_state(ConnectionState.CONNECTING, ConnectionState.STOPPING):
            self._change_state(ConnectionState.CONNECTED, ConnectionState.STOPPING)
        transport.close()

    def _change_state(
        self, from_state: ConnectionState | None, to_state: ConnectionState
    ) -> bool:
        """
        Move to ``to_state`` if the current state is ``from_state``, or
        unconditionally when ``from_state`` is None.
        """
        with self._state_lock:
            if from_state is not None and self._state is not from_state:
                return False
            log.debug(f"Connection state {self._state.name} -> {to_state.name}")
            self._state = to_state
            return True

    def _notify_fail_to_open(self, error: BaseException) -> None:
        delegate = self.delegate
        if delegate is not None:
            delegate.connection_did_fail_to_open(error)

    def _notify_close(self, error: BaseException | None) -> None:
        delegate = self.delegate
        if delegate is not None:
            delegate.connection_did_close(error)

    def _transport_did_open(self) -> None:
        if not self._change_state(ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            log.debug(f"Transport opened in state {self._state.name}")
        delegate = self.delegate
        if delegate is not None:
            delegate.connection_did_open(self)

    def _transport_did_receive_data(self, data: bytes) -> None:
        delegate = self.delegate
        if delegate is not None:
            delegate.connection_did_receive_data(self, data)

    def _transport_did_close(self, error: BaseException | None) -> None:
        self._change_state(None, ConnectionState.STOPPED)
        self._notify_close(error)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.url} state={self._state.name}>"


class ConnectionTransportDelegate(TransportDelegate):
    """
    Forwards transport events to a connection without keeping it alive.

    Once the connection is garbage collected every event is dropped. The
    close event is forwarded at most once.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = weakref.ref(connection)
        self._lock = threading.Lock()
        self._closed = False

    def transport_did_open(self) -> None:
        connection = self._connection()
        if connection is not None:
            connection._transport_did_open()

    def transport_did_receive_data(self, data: bytes) -> None:
        connection = self._connection()
        if connection is not None:
            connection._transport_did_receive_data(data)

    def transport_did_close(self, error: BaseException | None) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        connection = self._connection()
        if connection is not None:
            connection._transport_did_close(error)
