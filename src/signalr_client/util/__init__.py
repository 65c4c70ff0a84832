from __future__ import annotations

from .ssl_ import create_client_context, ssl_wrap_socket
from .timeout import Timeout
from .url import (
    Host,
    amend_query,
    append_path_segment,
    encode_query,
    parse_host,
    request_target,
    to_websocket_url,
)

__all__ = (
    "Host",
    "Timeout",
    "amend_query",
    "append_path_segment",
    "create_client_context",
    "encode_query",
    "parse_host",
    "request_target",
    "ssl_wrap_socket",
    "to_websocket_url",
)
