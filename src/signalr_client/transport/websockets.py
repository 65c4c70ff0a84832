"""
WebSocket transport for signalr_client.

This module provides the default :class:`~.base.Transport`: an RFC 6455
client that performs the upgrade handshake on a background thread and then
reports every complete message to its delegate.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import socket
import threading
import typing

from ..exceptions import (
    WebSocketClosedError,
    WebSocketError,
    WebSocketHandshakeError,
    WebSocketProtocolError,
    WebSocketTimeoutError,
)
from ..settings import ConnectionSettings
from ..util.ssl_ import ssl_wrap_socket
from ..util.url import Host, parse_host, request_target, to_websocket_url
from .base import Transport, TransportDelegate
from .protocol import (
    CLEAN_CLOSE_CODES,
    IncompleteFrame,
    WebSocketCloseCode,
    WebSocketFrame,
    WebSocketFrameType,
    WebSocketProtocol,
)

log = logging.getLogger(__name__)

USER_AGENT = "signalr-client"

# Largest handshake response head accepted
MAX_HANDSHAKE_SIZE = 64 * 1024

# Opcode, length and masking key of the largest frame header
MAX_FRAME_HEADER_SIZE = 14


class WebsocketsTransport(Transport):
    """
    WebSocket client transport.

    Single use: ``start`` may be called once, and after the close event has
    been reported the transport stays closed.
    """

    # WebSocket handshake constants
    WS_VERSION = 13
    WS_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"

    # Seconds to wait for the server to answer our close frame
    CLOSE_TIMEOUT = 5.0

    def __init__(self, settings: ConnectionSettings | None = None) -> None:
        """
        Initialize a new WebsocketsTransport.

        :param settings: Headers, timeouts and TLS options for the handshake
        """
        self.settings = settings or ConnectionSettings()
        self.delegate: typing.Optional[TransportDelegate] = None
        self.url: str | None = None

        self._protocol = WebSocketProtocol(mask_frames=True)
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._started = False
        self._closing = False
        self._closed = False
        self._close_timer: threading.Timer | None = None
        self._receiver_thread: threading.Thread | None = None

        # Message reassembly
        self._fragments: list[bytes] = []
        self._fragments_size = 0

    @property
    def connected(self) -> bool:
        """Check if the handshake completed and the stream is still open."""
        return self._sock is not None and not self._closing and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, url: str, query: str) -> None:
        """
        Open the WebSocket at ``url`` with ``query`` on a background thread.

        :raises WebSocketError: If the transport was already started or closed
        """
        with self._lock:
            if self._started or self._closing or self._closed:
                raise WebSocketError("WebSocket transport cannot be restarted")
            self._started = True

        self.url = to_websocket_url(url, query)
        self._receiver_thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="signalr-websocket",
        )
        self._receiver_thread.start()

    def _run(self) -> None:
        try:
            sock, buffer = self._connect()
        except Exception as e:
            log.debug(f"WebSocket connection to {self.url} failed: {e!r}")
            self._finish(None if self._closing else e)
            return

        with self._lock:
            closing = self._closing
            if not closing:
                self._sock = sock

        if closing:
            # close() was called while the handshake was in flight
            sock.close()
            self._finish(None)
            return

        log.debug(f"WebSocket connected to {self.url}")
        self._notify("transport_did_open")
        self._receiver_loop(sock, buffer)

    def _create_socket(self, host: Host) -> socket.socket:
        return socket.create_connection(
            (host.host, host.port), timeout=self.settings.connect_timeout
        )

    def _connect(self) -> tuple[socket.socket, bytearray]:
        host = parse_host(self.url)
        try:
            sock = self._create_socket(host)
        except socket.timeout as e:
            raise WebSocketTimeoutError(f"WebSocket connection timed out: {e}") from e

        try:
            if host.scheme == "wss":
                sock = ssl_wrap_socket(sock, host.host, self.settings.ssl_context())
            buffer = self._handshake(sock, host)
        except socket.timeout as e:
            sock.close()
            raise WebSocketTimeoutError(f"WebSocket handshake timed out: {e}") from e
        except BaseException:
            sock.close()
            raise

        sock.settimeout(None)
        return sock, buffer

    def _handshake(self, sock: socket.socket, host: Host) -> bytearray:
        """
        Send the upgrade request and validate the server's answer.

        :return: Bytes received after the response head
        :raises WebSocketHandshakeError: If the server refuses the upgrade
        """
        ws_key = base64.b64encode(os.urandom(16)).decode()

        handshake_headers = {
            "Host": host.netloc,
            "Upgrade": "websocket",
            "Connection": "Upgrade",
            "Sec-WebSocket-Key": ws_key,
            "Sec-WebSocket-Version": str(self.WS_VERSION),
            "User-Agent": USER_AGENT,
        }
        handshake_headers.update(self.settings.headers)

        lines = [f"GET {request_target(self.url)} HTTP/1.1"]
        lines.extend(f"{name}: {value}" for name, value in handshake_headers.items())
        sock.sendall(("\r\n".join(lines) + "\r\n\r\n").encode("utf-8"))

        buffer = bytearray()
        while b"\r\n\r\n" not in buffer:
            chunk = sock.recv(self.settings.receive_buffer_size)
            if not chunk:
                raise WebSocketHandshakeError("Connection closed during WebSocket handshake")
            buffer.extend(chunk)
            if len(buffer) > MAX_HANDSHAKE_SIZE:
                raise WebSocketHandshakeError("WebSocket handshake response too large")

        head, _, rest = bytes(buffer).partition(b"\r\n\r\n")
        status, reason, headers = _parse_response_head(head)

        if status != 101:
            raise WebSocketHandshakeError(
                f"WebSocket handshake failed: {status} {reason}", status=status
            )

        if headers.get("upgrade", "").lower() != "websocket":
            raise WebSocketHandshakeError(
                "WebSocket handshake failed: 'Upgrade' header is not 'websocket'", status=status
            )

        connection_tokens = {t.strip().lower() for t in headers.get("connection", "").split(",")}
        if "upgrade" not in connection_tokens:
            raise WebSocketHandshakeError(
                "WebSocket handshake failed: 'Connection' header is not 'upgrade'", status=status
            )

        accept_key = base64.b64encode(
            hashlib.sha1((ws_key + self.WS_GUID).encode()).digest()
        ).decode()
        if headers.get("sec-websocket-accept") != accept_key:
            raise WebSocketHandshakeError(
                "WebSocket handshake failed: Invalid 'Sec-WebSocket-Accept' header", status=status
            )

        return bytearray(rest)

    def _receiver_loop(self, sock: socket.socket, buffer: bytearray) -> None:
        error: BaseException | None = None
        try:
            while True:
                while True:
                    try:
                        frame, consumed = self._protocol.decode_frame(buffer)
                    except IncompleteFrame:
                        if len(buffer) > self.settings.max_message_size + MAX_FRAME_HEADER_SIZE:
                            raise WebSocketProtocolError(
                                f"Frame exceeds {self.settings.max_message_size} bytes",
                                close_code=WebSocketCloseCode.MESSAGE_TOO_BIG,
                            )
                        break
                    del buffer[:consumed]
                    if frame.opcode == WebSocketFrameType.CLOSE:
                        error = self._handle_close_frame(sock, frame)
                        return
                    self._handle_frame(sock, frame)

                data = sock.recv(self.settings.receive_buffer_size)
                if not data:
                    if not self._closing:
                        error = WebSocketClosedError(
                            code=WebSocketCloseCode.ABNORMAL,
                            reason="Connection closed without a close frame",
                        )
                    return
                buffer.extend(data)

        except WebSocketProtocolError as e:
            log.warning(f"WebSocket protocol error: {e}")
            self._send_close_quietly(sock, e.close_code)
            error = e
        except OSError as e:
            if not self._closing:
                error = WebSocketError(f"WebSocket receive error: {e}")
        finally:
            self._finish(error)

    def _handle_frame(self, sock: socket.socket, frame: WebSocketFrame) -> None:
        if frame.opcode == WebSocketFrameType.PING:
            self._write(sock, WebSocketFrame.create_pong(frame.payload))
            return

        if frame.opcode == WebSocketFrameType.PONG:
            return

        if frame.opcode == WebSocketFrameType.CONTINUATION:
            if not self._fragments:
                raise WebSocketProtocolError("Received continuation frame with no message to continue")
        elif self._fragments:
            raise WebSocketProtocolError("Received new message before previous was complete")

        self._fragments_size += len(frame.payload)
        if self._fragments_size > self.settings.max_message_size:
            raise WebSocketProtocolError(
                f"Message exceeds {self.settings.max_message_size} bytes",
                close_code=WebSocketCloseCode.MESSAGE_TOO_BIG,
            )

        self._fragments.append(frame.payload)
        if not frame.fin:
            return

        payload = b"".join(self._fragments)
        self._fragments = []
        self._fragments_size = 0
        self._notify("transport_did_receive_data", payload)

    def _handle_close_frame(
        self, sock: socket.socket, frame: WebSocketFrame
    ) -> BaseException | None:
        code, reason = frame.parse_close()
        log.debug(f"WebSocket close frame received (code={code}, reason={reason!r})")

        if not self._closing:
            # Echo the close frame if we didn't initiate the close
            echo_code = WebSocketCloseCode.NORMAL if code == WebSocketCloseCode.NO_STATUS else code
            self._send_close_quietly(sock, echo_code)

        if code in CLEAN_CLOSE_CODES:
            return None
        return WebSocketClosedError(code=code, reason=reason)

    def _write(self, sock: socket.socket, frame: WebSocketFrame) -> None:
        data = self._protocol.encode_frame(frame)
        with self._send_lock:
            sock.sendall(data)

    def _send_close_quietly(self, sock: socket.socket, code: int) -> None:
        try:
            self._write(sock, WebSocketFrame.create_close(code))
        except OSError as e:
            log.debug(f"Could not send close frame: {e}")

    def _finish(self, error: BaseException | None) -> None:
        """Release the socket and report the close event, once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sock, self._sock = self._sock, None
            timer = self._close_timer

        if timer is not None:
            timer.cancel()

        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                log.debug(f"Error closing WebSocket socket: {e}")

        log.debug(f"WebSocket to {self.url} closed (error={error!r})")
        self._notify("transport_did_close", error)

    def _abort(self) -> None:
        """Shut the socket down so a blocked receiver wakes up."""
        with self._lock:
            sock = self._sock
        if sock is None:
            return
        log.debug("WebSocket close handshake timed out")
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            log.debug(f"Error shutting down WebSocket socket: {e}")

    def _notify(self, event: str, *args: object) -> None:
        delegate = self.delegate
        if delegate is None:
            return
        try:
            getattr(delegate, event)(*args)
        except Exception:
            log.exception(f"Unhandled error in transport delegate {event}")

    def send(self, data: str | bytes) -> None:
        """
        Send data over the WebSocket.

        :param data: str is sent as a text frame, bytes as a binary frame
        :raises WebSocketClosedError: If the transport is closing or closed
        :raises WebSocketError: If the handshake has not completed or the write fails
        """
        if isinstance(data, str):
            frame = WebSocketFrame.create_text(data)
        else:
            frame = WebSocketFrame.create_binary(data)

        with self._lock:
            if self._closing or self._closed:
                raise WebSocketClosedError(code=WebSocketCloseCode.NORMAL, reason="Transport closed")
            sock = self._sock

        if sock is None:
            raise WebSocketError("WebSocket is not connected")

        try:
            self._write(sock, frame)
        except OSError as e:
            raise WebSocketError(f"Error sending WebSocket frame: {e}") from e

    def close(self) -> None:
        """
        Start the closing handshake.

        The close event is reported once the server answers, the socket
        drops or ``CLOSE_TIMEOUT`` elapses. A transport that was never
        started is closed silently.
        """
        with self._lock:
            if self._closing or self._closed:
                return
            self._closing = True
            if not self._started:
                self._closed = True
                return
            sock = self._sock

        if sock is None:
            # Still connecting, _run reports the close
            return

        try:
            self._write(sock, WebSocketFrame.create_close(WebSocketCloseCode.NORMAL))
        except OSError as e:
            log.debug(f"Could not send close frame: {e}")
            self._abort()
            return

        timer = threading.Timer(self.CLOSE_TIMEOUT, self._abort)
        timer.daemon = True
        with self._lock:
            if self._closed:
                return
            self._close_timer = timer
        timer.start()


def _parse_response_head(head: bytes) -> tuple[int, str, dict[str, str]]:
    lines = head.decode("latin-1").split("\r\n")
    parts = lines[0].split(" ", 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):
        raise WebSocketHandshakeError(f"Invalid handshake status line: {lines[0]!r}")
    try:
        status = int(parts[1])
    except ValueError:
        raise WebSocketHandshakeError(f"Invalid handshake status line: {lines[0]!r}") from None
    reason = parts[2] if len(parts) > 2 else ""

    headers: dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return status, reason, headers
