"""Sends one request over HTTP/1.1 and reads back the whole response.
There is no connection pooling and no redirect handling, every
exchange opens a fresh connection and closes it afterwards.
"""
import logging
import ssl
import typing
import urllib.parse

import certifi
import h11
import trio

from .exceptions import ConfigurationError
from .models import RawResponse
from .utils import MAX_BUFFER_SIZE, BytesChunker

log = logging.getLogger(__name__)

DEFAULT_PORT_BY_SCHEME: typing.Dict[str, int] = {
    "http": 80,
    "https": 443,
}
# Headers the transport sets itself based on the body and connection.
FRAMING_HEADERS = frozenset(
    ("host", "content-length", "transfer-encoding", "connection")
)

StreamFactory = typing.Callable[
    [str, str, int], typing.Awaitable[trio.abc.Stream]
]


class Transport:
    async def send(
        self,
        method: str,
        url: str,
        headers: typing.Mapping[str, str],
        body: bytes,
    ) -> RawResponse:
        """Performs one exchange and returns the response, whatever its status.
        Failures to reach the server or read its response are raised as-is
        and classified by the caller.
        """
        raise NotImplementedError()

    def validate_url(self, url: str) -> None:
        """Raises 'ConfigurationError' if the transport can't send to the URL"""


class HTTP11Transport(Transport):
    def __init__(
        self,
        *,
        ca_certs: typing.Optional[str] = certifi.where(),
        stream_factory: typing.Optional[StreamFactory] = None,
        read_size: int = 65536,
        chunk_size: int = MAX_BUFFER_SIZE,
    ):
        self.ca_certs = ca_certs
        self.stream_factory = stream_factory or self.open_stream
        self.read_size = read_size
        self.chunk_size = chunk_size
        self._ssl_context: typing.Optional[ssl.SSLContext] = None

    @property
    def ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = ssl.create_default_context(cafile=self.ca_certs)
        return self._ssl_context

    def validate_url(self, url: str) -> None:
        _split_url(url)

    async def open_stream(self, scheme: str, host: str, port: int) -> trio.abc.Stream:
        if scheme == "https":
            return await trio.open_ssl_over_tcp_stream(
                host, port, ssl_context=self.ssl_context
            )
        return await trio.open_tcp_stream(host, port)

    async def send(
        self,
        method: str,
        url: str,
        headers: typing.Mapping[str, str],
        body: bytes,
    ) -> RawResponse:
        scheme, host, port, target = _split_url(url)
        host_header = host
        if port != DEFAULT_PORT_BY_SCHEME[scheme]:
            host_header += f":{port}"

        # Put the 'Host' header first in the request as it's required.
        h11_headers = [("Host", host_header)]
        for k, v in headers.items():
            if k.lower() not in FRAMING_HEADERS:
                h11_headers.append((k, v))
        h11_headers.append(("Content-Length", str(len(body))))
        h11_headers.append(("Connection", "close"))

        log.debug("sending %s %s (%d bytes)", method, url, len(body))
        stream = await self.stream_factory(scheme, host, port)
        async with stream:
            conn = h11.Connection(h11.CLIENT)
            await stream.send_all(
                conn.send(
                    h11.Request(method=method, target=target, headers=h11_headers)
                )
            )
            for chunk in BytesChunker(self.chunk_size).feed(body):
                await stream.send_all(conn.send(h11.Data(data=chunk)))
            await stream.send_all(conn.send(h11.EndOfMessage()))

            return await self._receive_response(conn, stream)

    async def _receive_response(
        self, conn: h11.Connection, stream: trio.abc.Stream
    ) -> RawResponse:
        response: typing.Optional[h11.Response] = None
        data = bytearray()

        while True:
            event = conn.next_event()
            if event is h11.NEED_DATA:
                conn.receive_data(await stream.receive_some(self.read_size))
            elif isinstance(event, h11.InformationalResponse):
                continue
            elif isinstance(event, h11.Response):
                response = event
            elif isinstance(event, h11.Data):
                data += event.data
            elif isinstance(event, (h11.EndOfMessage, h11.ConnectionClosed)):
                break
            else:
                raise h11.RemoteProtocolError(f"unexpected event {event!r}")

        if response is None:
            raise h11.RemoteProtocolError("connection closed before a response")

        raw = RawResponse(
            status_code=response.status_code,
            headers=[
                (k.decode("latin-1"), v.decode("latin-1"))
                for k, v in response.headers
            ],
            data=bytes(data),
            http_version=f"HTTP/{response.http_version.decode()}",
        )
        log.debug("received status %d (%d bytes)", raw.status_code, len(raw.data))
        return raw


def _split_url(url: str) -> typing.Tuple[str, str, int, str]:
    parsed = urllib.parse.urlsplit(url)
    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORT_BY_SCHEME:
        raise ConfigurationError(f"unsupported scheme '{parsed.scheme}' in {url!r}")
    if not parsed.hostname:
        raise ConfigurationError(f"no host in {url!r}")

    try:
        port = parsed.port or DEFAULT_PORT_BY_SCHEME[scheme]
    except ValueError as e:
        raise ConfigurationError(f"invalid port in {url!r}", error=e) from e
    target = parsed.path or "/"
    if parsed.query:
        target += f"?{parsed.query}"
    return scheme, parsed.hostname, port, target
