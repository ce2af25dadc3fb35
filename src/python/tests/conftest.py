"""
Stub transports standing in for the network in tests.
"""

import ssl
from typing import Callable

import h2.config
import h2.connection
import h2.events
import pytest


DEFAULT_CIPHER = "TLS_AES_256_GCM_SHA384"


class CannedTransport:
    """Replays scripted response bytes and records everything the client writes."""

    def __init__(self, responses: list[bytes] = (), protocol: str | None = "http/1.1", cipher: str | None = DEFAULT_CIPHER):
        self.responses = list(responses)
        self.protocol = protocol
        self.cipher = cipher
        self.written = bytearray()
        self.connected_to = None
        self.connect_calls = 0
        self.close_calls = 0

    async def connect(self, host: str, port: int) -> None:
        self.connect_calls += 1
        self.connected_to = (host, port)

    async def write(self, data: bytes) -> None:
        self.written += data

    async def read(self, max_bytes: int = 65536) -> bytes:
        if not self.responses:
            return b""
        return self.responses.pop(0)

    def negotiated_protocol(self) -> str | None:
        return self.protocol

    def negotiated_cipher(self) -> str | None:
        return self.cipher

    async def close(self) -> None:
        self.close_calls += 1


class H2ServerTransport:
    """Answers one HTTP/2 request using a server-side h2 connection."""

    def __init__(
        self,
        status: int = 200,
        body_chunks: list[bytes] = (),
        headers: list[tuple[str, str]] = (),
        reset: bool = False,
        protocol: str | None = "h2",
        cipher: str | None = DEFAULT_CIPHER,
    ):
        self.server = h2.connection.H2Connection(
            config=h2.config.H2Configuration(client_side=False, header_encoding="utf-8")
        )
        self.status = status
        self.body_chunks = [chunk for chunk in body_chunks if chunk]
        self.response_headers = list(headers)
        self.reset = reset
        self.protocol = protocol
        self.cipher = cipher
        self.outbound = bytearray()
        self.request_headers: list[tuple[str, str]] | None = None
        self.request_body = bytearray()
        self.connected_to = None
        self.connect_calls = 0
        self.close_calls = 0
        self.goaway_received = False

    async def connect(self, host: str, port: int) -> None:
        self.connect_calls += 1
        self.connected_to = (host, port)
        self.server.initiate_connection()
        self.outbound += self.server.data_to_send()

    async def write(self, data: bytes) -> None:
        for event in self.server.receive_data(data):
            if isinstance(event, h2.events.RequestReceived):
                self.request_headers = event.headers
            elif isinstance(event, h2.events.DataReceived):
                self.request_body += event.data
                self.server.acknowledge_received_data(event.flow_controlled_length, event.stream_id)
            elif isinstance(event, h2.events.StreamEnded):
                self._respond(event.stream_id)
            elif isinstance(event, h2.events.ConnectionTerminated):
                self.goaway_received = True
        self.outbound += self.server.data_to_send()

    def _respond(self, stream_id: int) -> None:
        if self.reset:
            self.server.reset_stream(stream_id)
            return

        headers = [(":status", str(self.status))] + self.response_headers
        self.server.send_headers(stream_id, headers, end_stream=not self.body_chunks)
        for index, chunk in enumerate(self.body_chunks):
            self.server.send_data(stream_id, chunk, end_stream=index == len(self.body_chunks) - 1)

    async def read(self, max_bytes: int = 65536) -> bytes:
        data = bytes(self.outbound)
        self.outbound.clear()
        return data

    def negotiated_protocol(self) -> str | None:
        return self.protocol

    def negotiated_cipher(self) -> str | None:
        return self.cipher

    async def close(self) -> None:
        self.close_calls += 1


class CountingFactory:
    """Transport factory that remembers every transport and context it handed out."""

    def __init__(self, make: Callable[[], object]):
        self._make = make
        self.transports = []
        self.contexts: list[ssl.SSLContext] = []

    def __call__(self, context: ssl.SSLContext):
        self.contexts.append(context)
        transport = self._make()
        self.transports.append(transport)
        return transport

    @property
    def connections(self) -> int:
        return sum(t.connect_calls for t in self.transports)


async def _all_ciphers() -> frozenset[str]:
    return frozenset({
        "tls_aes_256_gcm_sha384",
        "tls_chacha20_poly1305_sha256",
        "tls_aes_128_gcm_sha256",
        "ecdhe-rsa-aes256-gcm-sha384",
    })


@pytest.fixture
def cipher_catalog():
    return _all_ciphers


@pytest.fixture
def canned_factory() -> Callable[..., CountingFactory]:
    def _factory(responses: list[bytes], **kwargs) -> CountingFactory:
        return CountingFactory(lambda: CannedTransport(responses, **kwargs))
    return _factory


@pytest.fixture
def h2_factory() -> Callable[..., CountingFactory]:
    def _factory(**kwargs) -> CountingFactory:
        return CountingFactory(lambda: H2ServerTransport(**kwargs))
    return _factory
