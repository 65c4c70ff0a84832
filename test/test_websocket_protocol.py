"""
Tests for the WebSocket frame codec.
"""

from __future__ import annotations

import struct

import pytest

from signalr_client.exceptions import WebSocketProtocolError
from signalr_client.transport.protocol import (
    IncompleteFrame,
    WebSocketCloseCode,
    WebSocketFrame,
    WebSocketFrameType,
    WebSocketProtocol,
)


class TestDecodeFrame:
    """Tests for WebSocketProtocol.decode_frame."""

    def test_unmasked_text_frame(self):
        """Test unmasked text frame."""
        protocol = WebSocketProtocol(mask_frames=False)

        frame, consumed = protocol.decode_frame(b"\x81\x05hello")

        assert frame.opcode == WebSocketFrameType.TEXT
        assert frame.fin is True
        assert frame.payload == b"hello"
        assert consumed == 7

    def test_masked_frame_from_rfc(self):
        """Test masked frame from rfc."""
        # RFC 6455 section 5.7: masked "Hello"
        data = bytes([0x81, 0x85, 0x37, 0xFA, 0x21, 0x3D, 0x7F, 0x9F, 0x4D, 0x51, 0x58])

        frame, consumed = WebSocketProtocol().decode_frame(data)

        assert frame.payload == b"Hello"
        assert consumed == len(data)

    def test_trailing_bytes_are_not_consumed(self):
        """Test trailing bytes are not consumed."""
        frame, consumed = WebSocketProtocol().decode_frame(b"\x82\x02ab\x81")

        assert frame.opcode == WebSocketFrameType.BINARY
        assert consumed == 4

    def test_extended_16_bit_length(self):
        """Test extended 16 bit length."""
        payload = b"x" * 300
        data = b"\x82\x7e" + struct.pack("!H", 300) + payload

        frame, consumed = WebSocketProtocol().decode_frame(data)

        assert frame.payload == payload
        assert consumed == 304

    @pytest.mark.parametrize(
        "data",
        [b"", b"\x81", b"\x81\x05hel", b"\x82\x7e\x01", b"\x81\x85\x00\x00"],
    )
    def test_incomplete(self, data):
        """Test short input raises IncompleteFrame."""
        with pytest.raises(IncompleteFrame):
            WebSocketProtocol().decode_frame(data)

    def test_unknown_opcode(self):
        """Test unknown opcode."""
        with pytest.raises(WebSocketProtocolError):
            WebSocketProtocol().decode_frame(b"\x83\x00")

    def test_reserved_bits(self):
        """Test reserved bits."""
        with pytest.raises(WebSocketProtocolError):
            WebSocketProtocol().decode_frame(b"\xc1\x00")

    def test_fragmented_control_frame(self):
        """Test fragmented control frame."""
        with pytest.raises(WebSocketProtocolError):
            WebSocketProtocol().decode_frame(b"\x09\x00")


class TestEncodeFrame:
    """Tests for WebSocketProtocol.encode_frame."""

    def test_client_frames_are_masked(self):
        """Test client frames are masked."""
        data = WebSocketProtocol().encode_frame(WebSocketFrame.create_text("hi"))

        assert data[0] == 0x81
        assert data[1] == 0x80 | 2
        assert len(data) == 2 + 4 + 2

    def test_masked_frame_decodes_to_original(self):
        """Test masked frame decodes to original."""
        protocol = WebSocketProtocol()
        payload = bytes(range(256)) * 2

        frame, _ = protocol.decode_frame(protocol.encode_frame(WebSocketFrame.create_binary(payload)))

        assert frame.payload == payload

    def test_unmasked_64_bit_length_header(self):
        """Test unmasked 64 bit length header."""
        data = WebSocketProtocol(mask_frames=False).encode_frame(
            WebSocketFrame.create_binary(b"\x00" * 70000)
        )

        assert data[1] == 127
        assert struct.unpack("!Q", data[2:10])[0] == 70000

    def test_continuation_frame_without_fin(self):
        """Test continuation frame without fin."""
        data = WebSocketProtocol(mask_frames=False).encode_frame(
            WebSocketFrame(WebSocketFrameType.TEXT, b"part", fin=False)
        )

        assert data[0] == 0x01


class TestCloseFrame:
    """Tests for close frame payloads."""

    def test_create_close(self):
        """Test create close."""
        frame = WebSocketFrame.create_close(WebSocketCloseCode.GOING_AWAY, "bye")

        assert frame.opcode == WebSocketFrameType.CLOSE
        assert frame.payload == b"\x03\xe9bye"

    def test_parse_close(self):
        """Test parse close."""
        frame = WebSocketFrame(WebSocketFrameType.CLOSE, b"\x03\xf3oops")

        assert frame.parse_close() == (1011, "oops")

    def test_parse_empty_close(self):
        """Test parse empty close."""
        frame = WebSocketFrame(WebSocketFrameType.CLOSE, b"")

        assert frame.parse_close() == (WebSocketCloseCode.NO_STATUS, "")
