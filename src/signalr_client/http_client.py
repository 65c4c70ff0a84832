"""
Negotiate request client for signalr_client.

The connection only needs one capability from HTTP: perform a GET and report
the status code and body, or the error that prevented it. ``HttpClient``
describes that capability and ``DefaultHttpClient`` implements it on top of
the standard library's ``http.client``.
"""

from __future__ import annotations

import http.client
import logging
import threading
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .settings import ConnectionSettings
from .util.url import parse_host, request_target

log = logging.getLogger(__name__)

USER_AGENT = "signalr-client"


@dataclass
class HttpResponse:
    """Status code and body of a completed HTTP request."""

    status_code: int
    contents: bytes = b""
    reason: str = ""
    headers: typing.Dict[str, str] = field(default_factory=dict)


CompletionHandler = typing.Callable[
    [typing.Optional[HttpResponse], typing.Optional[BaseException]], None
]


class HttpClient(ABC):
    """Performs GET requests and reports the outcome asynchronously."""

    @abstractmethod
    def get(self, url: str, completion_handler: CompletionHandler) -> None:
        """
        Issue a GET for ``url``.

        ``completion_handler`` is called exactly once, with
        ``(response, None)`` when a response was received (whatever its
        status) or ``(None, error)`` when the request could not be made.
        """


class DefaultHttpClient(HttpClient):
    """
    Runs each GET on its own daemon thread.

    Timeouts, extra headers and TLS verification come from
    :class:`~signalr_client.settings.ConnectionSettings`.
    """

    def __init__(self, settings: ConnectionSettings | None = None) -> None:
        self.settings = settings or ConnectionSettings()

    def get(self, url: str, completion_handler: CompletionHandler) -> None:
        thread = threading.Thread(
            target=self._run,
            args=(url, completion_handler),
            daemon=True,
            name="signalr-http",
        )
        thread.start()

    def _run(self, url: str, completion_handler: CompletionHandler) -> None:
        try:
            response = self.request("GET", url)
        except Exception as e:
            log.debug(f"GET {url} failed: {e!r}")
            self._complete(completion_handler, None, e)
        else:
            self._complete(completion_handler, response, None)

    def _complete(
        self,
        completion_handler: CompletionHandler,
        response: HttpResponse | None,
        error: BaseException | None,
    ) -> None:
        try:
            completion_handler(response, error)
        except Exception:
            log.exception("Unhandled error in HTTP completion handler")

    def _new_conn(self, url: str) -> http.client.HTTPConnection:
        host = parse_host(url)
        timeout = self.settings.connect_timeout
        if host.scheme == "https":
            return http.client.HTTPSConnection(
                host.host,
                host.port,
                timeout=timeout,
                context=self.settings.ssl_context(),
            )
        return http.client.HTTPConnection(host.host, host.port, timeout=timeout)

    def request(self, method: str, url: str) -> HttpResponse:
        """
        Perform a request synchronously and read the whole body.

        :raises OSError: On network failures (DNS, refused, timeouts)
        :raises http.client.HTTPException: On malformed responses
        """
        conn = self._new_conn(url)
        headers = {"User-Agent": USER_AGENT, "Accept": "*/*"}
        headers.update(self.settings.headers)

        try:
            conn.request(method, request_target(url), headers=headers)
            if conn.sock is not None and self.settings.read_timeout is not None:
                conn.sock.settimeout(self.settings.read_timeout)
            resp = conn.getresponse()
            contents = resp.read()
        finally:
            conn.close()

        log.debug(f"{method} {url} -> {resp.status} ({len(contents)} bytes)")
        return HttpResponse(
            status_code=resp.status,
            contents=contents,
            reason=resp.reason,
            headers=dict(resp.getheaders()),
        )
