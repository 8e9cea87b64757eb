import h11
import pytest
import trio
import trio.testing


class MemoryServer:
    """Answers every connection from an HTTP11Transport with one canned
    response over an in-memory stream. Received requests are kept.
    """

    def __init__(self, nursery):
        self.nursery = nursery
        self.status_code = 200
        self.headers = [("Content-Type", "image/png")]
        self.body = b"composited"
        self.hang_up = False

        self.connections = []
        self.requests = []

    async def stream_factory(self, scheme, host, port):
        self.connections.append((scheme, host, port))
        client_stream, server_stream = trio.testing.memory_stream_pair()
        self.nursery.start_soon(self.serve, server_stream)
        return client_stream

    async def serve(self, stream):
        conn = h11.Connection(h11.SERVER)
        request = None
        data = bytearray()
        async with stream:
            while True:
                event = conn.next_event()
                if event is h11.NEED_DATA:
                    conn.receive_data(await stream.receive_some(65536))
                elif isinstance(event, h11.Request):
                    request = event
                elif isinstance(event, h11.Data):
                    data += event.data
                elif isinstance(event, h11.EndOfMessage):
                    break
            self.requests.append((request, bytes(data)))
            if self.hang_up:
                return

            headers = list(self.headers)
            headers.append(("Content-Length", str(len(self.body))))
            await stream.send_all(
                conn.send(h11.Response(status_code=self.status_code, headers=headers))
            )
            await stream.send_all(conn.send(h11.Data(data=self.body)))
            await stream.send_all(conn.send(h11.EndOfMessage()))


@pytest.fixture
async def memory_server(nursery):
    return MemoryServer(nursery)
