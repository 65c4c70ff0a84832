"""
URL helpers for the negotiate and transport requests.
"""

from __future__ import annotations

import typing
from urllib.parse import quote, urlsplit, urlunsplit

import idna

from ..exceptions import LocationParseError, URLSchemeUnknown

# Characters allowed to appear unescaped in a URL query, besides the
# unreserved set that quote() never escapes.
QUERY_ALLOWED_CHARS = "!$&'()*+,;=:@/?"

DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}

WEBSOCKET_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


class Host(typing.NamedTuple):
    scheme: str
    host: str
    port: int

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if DEFAULT_PORTS.get(self.scheme) == self.port:
            return host
        return f"{host}:{self.port}"


def encode_query(query: str | None) -> str:
    """
    Percent-encode every character of ``query`` that is not allowed in a URL
    query. Separators such as ``&`` and ``=`` are kept; ``%`` is escaped.
    """
    if not query:
        return ""
    return quote(query, safe=QUERY_ALLOWED_CHARS)


def amend_query(query: str, session_id: str) -> str:
    """Append ``id=<session_id>`` to an already encoded query."""
    if query:
        return f"{query}&id={session_id}"
    return f"id={session_id}"


def _idna_encode(name: str) -> str:
    if not name.isascii():
        try:
            return idna.encode(name.lower(), uts46=True).decode("ascii")
        except idna.IDNAError:
            raise LocationParseError(f"Name '{name}' is not a valid IDNA label") from None
    return name.lower()


def _split(url: str):
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise LocationParseError(url) from e
    if not parts.scheme or not parts.netloc:
        raise LocationParseError(url)
    return parts


def append_path_segment(url: str, segment: str, query: str = "") -> str:
    """
    Return ``url`` with ``segment`` appended to its path and its query
    replaced by ``query`` (expected to be percent-encoded already).
    """
    parts = _split(url)
    path = parts.path
    if not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path + segment, query, ""))


def parse_host(url: str) -> Host:
    """
    Split ``url`` into its scheme, IDNA-encoded host name and port.

    :raises URLSchemeUnknown: If the scheme is not http(s) or ws(s)
    :raises LocationParseError: If the URL has no host or an invalid port
    """
    parts = _split(url)
    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise URLSchemeUnknown(scheme)

    try:
        port = parts.port
    except ValueError as e:
        raise LocationParseError(url) from e

    if not parts.hostname:
        raise LocationParseError(url)

    return Host(scheme, _idna_encode(parts.hostname), port or DEFAULT_PORTS[scheme])


def request_target(url: str) -> str:
    """Return the path and query of ``url`` as sent in an HTTP request line."""
    parts = _split(url)
    target = parts.path or "/"
    if parts.query:
        target += f"?{parts.query}"
    return target


def to_websocket_url(url: str, query: str = "") -> str:
    """
    Build the transport URL: ``http``/``https`` become ``ws``/``wss`` and the
    query is replaced by ``query``.
    """
    parts = _split(url)
    scheme = parts.scheme.lower()
    if scheme not in WEBSOCKET_SCHEMES:
        raise URLSchemeUnknown(scheme)
    return urlunsplit((WEBSOCKET_SCHEMES[scheme], parts.netloc, parts.path or "/", query, ""))
