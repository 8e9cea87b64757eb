import h11
import pytest
import imagic


@pytest.mark.trio
async def test_send(memory_server):
    transport = imagic.HTTP11Transport(stream_factory=memory_server.stream_factory)

    raw = await transport.send(
        "POST",
        "https://example.com:8443/imagic?depth=a&background=b",
        {"Content-Type": "multipart/form-data;boundary=x", "Accept": "*/*"},
        b"body bytes",
    )

    assert raw.status_code == 200
    assert raw.data == b"composited"
    assert raw.http_version == "HTTP/1.1"
    assert ("content-type", "image/png") in raw.headers
    assert memory_server.connections == [("https", "example.com", 8443)]

    [(request, body)] = memory_server.requests
    assert request.method == b"POST"
    assert request.target == b"/imagic?depth=a&background=b"
    headers = dict(request.headers)
    assert headers[b"host"] == b"example.com:8443"
    assert headers[b"content-length"] == b"10"
    assert headers[b"content-type"] == b"multipart/form-data;boundary=x"
    assert headers[b"connection"] == b"close"
    assert request.headers[0] == (b"host", b"example.com:8443")
    assert body == b"body bytes"


@pytest.mark.trio
async def test_default_port_and_target(memory_server):
    transport = imagic.HTTP11Transport(stream_factory=memory_server.stream_factory)

    await transport.send("POST", "http://example.com", {}, b"")

    assert memory_server.connections == [("http", "example.com", 80)]
    [(request, body)] = memory_server.requests
    assert request.target == b"/"
    assert dict(request.headers)[b"host"] == b"example.com"
    assert body == b""


@pytest.mark.trio
async def test_framing_headers_are_replaced(memory_server):
    transport = imagic.HTTP11Transport(
        stream_factory=memory_server.stream_factory, chunk_size=3
    )

    await transport.send(
        "POST",
        "https://example.com/imagic",
        {"Content-Length": "999", "Host": "evil.example", "Transfer-Encoding": "gzip"},
        b"0123456789",
    )

    [(request, body)] = memory_server.requests
    headers = dict(request.headers)
    assert headers[b"host"] == b"example.com"
    assert headers[b"content-length"] == b"10"
    assert b"transfer-encoding" not in headers
    assert body == b"0123456789"


@pytest.mark.trio
async def test_error_status_is_returned(memory_server):
    memory_server.status_code = 500
    memory_server.body = b"out of memory"
    transport = imagic.HTTP11Transport(stream_factory=memory_server.stream_factory)

    raw = await transport.send("POST", "https://example.com/imagic", {}, b"")

    assert raw.status_code == 500
    assert raw.data == b"out of memory"
    assert not raw.is_success


@pytest.mark.trio
async def test_server_hangs_up(memory_server):
    memory_server.hang_up = True
    transport = imagic.HTTP11Transport(stream_factory=memory_server.stream_factory)

    with pytest.raises(h11.RemoteProtocolError):
        await transport.send("POST", "https://example.com/imagic", {}, b"")

    assert type(imagic.classify_error(h11.RemoteProtocolError("x"))) is imagic.Unknown


@pytest.mark.parametrize(
    "url",
    [
        "ftp://example.com/",
        "example.com/imagic",
        "https://",
        "https://example.com:port/",
    ],
)
def test_validate_url(url):
    with pytest.raises(imagic.ConfigurationError):
        imagic.HTTP11Transport().validate_url(url)


def test_base_transport_accepts_any_url():
    imagic.Transport().validate_url("anything")
