"""
WebSocket frame codec as defined in RFC 6455.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from enum import IntEnum

from ..exceptions import WebSocketProtocolError

# Close codes that count as a clean shutdown
CLEAN_CLOSE_CODES = frozenset({1000, 1005})


class WebSocketFrameType(IntEnum):
    """WebSocket frame types as defined in RFC 6455."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA

    @property
    def is_control(self) -> bool:
        return self >= 0x8


class WebSocketCloseCode(IntEnum):
    """WebSocket close codes as defined in RFC 6455."""

    NORMAL = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    NO_STATUS = 1005
    ABNORMAL = 1006
    INVALID_PAYLOAD = 1007
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    EXTENSION_REQUIRED = 1010
    UNEXPECTED_CONDITION = 1011
    TLS_HANDSHAKE_FAILED = 1015


class IncompleteFrame(Exception):
    """Raised by the decoder when the buffer does not hold a whole frame yet."""


@dataclass
class WebSocketFrame:
    """A single WebSocket frame."""

    opcode: WebSocketFrameType
    payload: bytes
    fin: bool = True

    @classmethod
    def create_text(cls, text: str) -> "WebSocketFrame":
        return cls(WebSocketFrameType.TEXT, text.encode("utf-8"))

    @classmethod
    def create_binary(cls, data: bytes) -> "WebSocketFrame":
        return cls(WebSocketFrameType.BINARY, bytes(data))

    @classmethod
    def create_close(
        cls, code: int = WebSocketCloseCode.NORMAL, reason: str = ""
    ) -> "WebSocketFrame":
        """
        Create a close frame.

        :param code: The close code
        :param reason: The close reason
        """
        payload = struct.pack("!H", code) + reason.encode("utf-8")
        return cls(WebSocketFrameType.CLOSE, payload)

    @classmethod
    def create_pong(cls, data: bytes = b"") -> "WebSocketFrame":
        return cls(WebSocketFrameType.PONG, data)

    def parse_close(self) -> tuple[int, str]:
        """
        Return the close code and reason carried by a close frame.

        A close frame without a payload yields ``NO_STATUS``.
        """
        if len(self.payload) < 2:
            return WebSocketCloseCode.NO_STATUS, ""
        code = struct.unpack("!H", self.payload[:2])[0]
        return code, self.payload[2:].decode("utf-8", errors="replace")


class WebSocketProtocol:
    """
    Encodes and decodes WebSocket frames.

    Clients must mask every frame they send, so ``mask_frames`` defaults to
    True.
    """

    def __init__(self, mask_frames: bool = True) -> None:
        self.mask_frames = mask_frames

    def encode_frame(self, frame: WebSocketFrame) -> bytes:
        """
        Encode a WebSocket frame to bytes.

        :param frame: The frame to encode
        :return: The encoded frame
        """
        first_byte = (0x80 if frame.fin else 0) | (frame.opcode & 0x0F)
        mask_bit = 0x80 if self.mask_frames else 0

        payload_len = len(frame.payload)
        if payload_len < 126:
            header = struct.pack("!BB", first_byte, payload_len | mask_bit)
        elif payload_len < 65536:
            header = struct.pack("!BBH", first_byte, 126 | mask_bit, payload_len)
        else:
            header = struct.pack("!BBQ", first_byte, 127 | mask_bit, payload_len)

        if not self.mask_frames:
            return header + frame.payload

        mask_key = os.urandom(4)
        return header + mask_key + self._apply_mask(frame.payload, mask_key)

    def decode_frame(self, data: bytes | bytearray) -> tuple[WebSocketFrame, int]:
        """
        Decode one WebSocket frame from the start of ``data``.

        :return: The decoded frame and the number of bytes consumed
        :raises IncompleteFrame: If ``data`` ends before the frame does
        :raises WebSocketProtocolError: If the frame is malformed
        """
        if len(data) < 2:
            raise IncompleteFrame()

        first_byte, second_byte = data[0], data[1]
        if first_byte & 0x70:
            raise WebSocketProtocolError("Reserved bits set without a negotiated extension")

        try:
            opcode = WebSocketFrameType(first_byte & 0x0F)
        except ValueError:
            raise WebSocketProtocolError(
                f"Received frame with unknown opcode: {first_byte & 0x0F:#x}"
            ) from None

        fin = bool(first_byte & 0x80)
        masked = bool(second_byte & 0x80)
        payload_len = second_byte & 0x7F

        header_len = 2
        if payload_len == 126:
            header_len = 4
            if len(data) < header_len:
                raise IncompleteFrame()
            payload_len = struct.unpack("!H", data[2:4])[0]
        elif payload_len == 127:
            header_len = 10
            if len(data) < header_len:
                raise IncompleteFrame()
            payload_len = struct.unpack("!Q", data[2:10])[0]

        if opcode.is_control and (payload_len > 125 or not fin):
            raise WebSocketProtocolError(f"Invalid control frame: {opcode.name}")

        mask_key = b""
        if masked:
            if len(data) < header_len + 4:
                raise IncompleteFrame()
            mask_key = bytes(data[header_len:header_len + 4])
            header_len += 4

        end = header_len + payload_len
        if len(data) < end:
            raise IncompleteFrame()

        payload = bytes(data[header_len:end])
        if masked:
            payload = self._apply_mask(payload, mask_key)

        return WebSocketFrame(opcode=opcode, payload=payload, fin=fin), end

    def _apply_mask(self, data: bytes, mask_key: bytes) -> bytes:
        if not data:
            return b""
        # XOR against the key repeated to the payload length
        key = (mask_key * (len(data) // 4 + 1))[:len(data)]
        return (int.from_bytes(data, "big") ^ int.from_bytes(key, "big")).to_bytes(
            len(data), "big"
        )
