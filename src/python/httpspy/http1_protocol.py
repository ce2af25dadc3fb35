import logging
import re
from typing import Callable

from .aggregator import ByteAggregator
from .errors import ConnectionClosedError, HttpParseError, TransportError
from .http_protocol import (
    ConnectionParameters,
    Dispatcher,
    HttpMethod,
    ResponseEnvelope,
    ResponseHead,
    build_envelope,
    close_transport,
    collect_headers,
)
from .target import RequestTarget
from .tls import build_ssl_context, ensure_negotiated
from .tls_transport import TlsTransport
from .transport import Transport, TransportFactory

logger = logging.getLogger(__name__)

_DIGITS = re.compile(rb"^[0-9]+$")
_HEX_DIGITS = re.compile(rb"^[0-9A-Fa-f]+$")


class _ResponseReader:
    def __init__(self, transport: Transport, read_size: int = 65536):
        self._transport = transport
        self._read_size = read_size
        self._buffer = bytearray()

    async def _fill(self) -> bool:
        data = await self._transport.read(self._read_size)
        if not data:
            return False
        self._buffer += data
        return True

    async def read_until(self, separator: bytes, limit: int) -> bytes | None:
        """Return everything up to and including ``separator``, or None on a clean EOF."""
        start = 0
        while True:
            pos = self._buffer.find(separator, start)
            if pos != -1:
                end = pos + len(separator)
                data = bytes(self._buffer[:end])
                del self._buffer[:end]
                return data

            if len(self._buffer) > limit:
                raise HttpParseError(f"Response line or header block exceeds {limit} bytes.")
            start = max(0, len(self._buffer) - len(separator) + 1)

            if not await self._fill():
                if not self._buffer:
                    return None
                raise ConnectionClosedError("Connection closed in the middle of a response line.")

    async def read_line(self, limit: int = 8192) -> bytes:
        line = await self.read_until(b"\r\n", limit)
        if line is None:
            raise ConnectionClosedError("Connection closed before the line terminator was received.")
        return line[:-2]

    async def stream_exact(self, size: int, sink: Callable[[bytes], None]) -> None:
        remaining = size
        while remaining > 0:
            if not self._buffer and not await self._fill():
                raise ConnectionClosedError("Connection closed before full content length was received.")
            piece = bytes(self._buffer[:remaining])
            del self._buffer[:len(piece)]
            remaining -= len(piece)
            sink(piece)

    async def stream_to_eof(self, sink: Callable[[bytes], None]) -> None:
        if self._buffer:
            sink(bytes(self._buffer))
            self._buffer.clear()
        while True:
            data = await self._transport.read(self._read_size)
            if not data:
                return
            sink(data)


class Http1Dispatcher(Dispatcher):
    _ALPN_PROTOCOLS = ("http/1.1",)
    _HEADER_SEPARATOR = b"\r\n\r\n"
    _MAX_HEADER_SIZE = 64 * 1024

    def __init__(self, transport_factory: TransportFactory = TlsTransport):
        self._transport_factory = transport_factory

    async def dispatch(self, target: RequestTarget, params: ConnectionParameters) -> ResponseEnvelope:
        context = build_ssl_context(params.tls, self._ALPN_PROTOCOLS)
        transport = self._transport_factory(context)
        try:
            await transport.connect(target.host, target.effective_port)
            ensure_negotiated(transport, params.tls, self._ALPN_PROTOCOLS, require_alpn=False)

            await transport.write(self._build_request(target, params))

            reader = _ResponseReader(transport)
            head = await self._read_head(reader)
            logger.debug("HTTP/1.1 %s %s -> %d", params.method.value, target.request_path, head.status_code)

            aggregator = ByteAggregator()
            try:
                await self._read_body(reader, head, params.method, aggregator)
            except TransportError as e:
                aggregator.fail(e)
                raise
            return build_envelope(head, aggregator, params)
        finally:
            await close_transport(transport)

    def _build_request(self, target: RequestTarget, params: ConnectionParameters) -> bytes:
        buffer = bytearray()
        buffer += f"{params.method.value} {target.request_path} HTTP/1.1\r\n".encode("ascii")

        supplied = {key.lower() for key, _ in params.headers}
        lines = []
        if "host" not in supplied:
            lines.append(("Host", target.authority))
        lines.extend(params.headers)
        if params.payload is not None and "content-length" not in supplied:
            lines.append(("Content-Length", str(len(params.payload))))
        if "connection" not in supplied:
            lines.append(("Connection", "close"))

        for key, value in lines:
            header_line = f"{key}: {value}\r\n"
            buffer += header_line.encode("latin-1")

        buffer += b"\r\n"

        if params.payload is not None:
            buffer += params.payload
        return bytes(buffer)

    async def _read_head(self, reader: _ResponseReader) -> ResponseHead:
        while True:
            block = await reader.read_until(self._HEADER_SEPARATOR, self._MAX_HEADER_SIZE)
            if block is None:
                raise ConnectionClosedError("Connection closed before a response was received.")

            head = self._parse_head(block)
            # Interim responses (100 Continue, 103 Early Hints) precede the real one.
            if 100 <= head.status_code < 200 and head.status_code != 101:
                continue
            return head

    def _parse_head(self, block: bytes) -> ResponseHead:
        lines = block[:-len(self._HEADER_SEPARATOR)].split(b"\r\n")
        status_line = lines[0]

        parts = status_line.split(b" ", 2)
        if len(parts) < 2 or not parts[0].startswith(b"HTTP/"):
            raise HttpParseError("Could not parse status line.")

        if len(parts[1]) != 3 or not _DIGITS.match(parts[1]):
            raise HttpParseError("Invalid status code in status line.")
        status_code = int(parts[1])

        pairs = []
        for line in lines[1:]:
            colon_pos = line.find(b":")
            if colon_pos <= 0:
                continue
            key = line[:colon_pos].decode("latin-1")
            value = line[colon_pos + 1:].strip(b" \t").decode("latin-1")
            pairs.append((key, value))

        return ResponseHead(status_code=status_code, headers=collect_headers(pairs))

    async def _read_body(
        self,
        reader: _ResponseReader,
        head: ResponseHead,
        method: HttpMethod,
        aggregator: ByteAggregator,
    ) -> None:
        status = head.status_code
        if method is HttpMethod.HEAD or status < 200 or status in (204, 304):
            return

        if self._is_chunked(head):
            await self._read_chunked(reader, aggregator)
            return

        content_length = self._content_length(head)
        if content_length is not None:
            await reader.stream_exact(content_length, aggregator.append)
        else:
            await reader.stream_to_eof(aggregator.append)

    @staticmethod
    def _last_value(head: ResponseHead, name: str) -> str | None:
        value = head.headers.get(name)
        if isinstance(value, list):
            return value[-1]
        return value

    def _is_chunked(self, head: ResponseHead) -> bool:
        transfer_encoding = self._last_value(head, "transfer-encoding")
        if transfer_encoding is None:
            return False
        codings = [coding.strip().lower() for coding in transfer_encoding.split(",")]
        return codings[-1] == "chunked"

    def _content_length(self, head: ResponseHead) -> int | None:
        value = head.headers.get("content-length")
        if value is None:
            return None

        candidates = set(value if isinstance(value, list) else [value])
        if len(candidates) != 1:
            raise HttpParseError("Conflicting Content-Length values.")

        content_length = candidates.pop().strip()
        if not _DIGITS.match(content_length.encode("latin-1")):
            raise HttpParseError("Invalid Content-Length value")
        return int(content_length)

    async def _read_chunked(self, reader: _ResponseReader, aggregator: ByteAggregator) -> None:
        while True:
            size_line = await reader.read_line()
            size_field = size_line.split(b";", 1)[0].strip()
            if not _HEX_DIGITS.match(size_field):
                raise HttpParseError(f"Invalid chunk size {size_field!r}.")
            size = int(size_field, 16)

            if size == 0:
                # Trailer fields are read and dropped.
                while await reader.read_line():
                    pass
                return

            await reader.stream_exact(size, aggregator.append)

            terminator = bytearray()
            await reader.stream_exact(2, terminator.extend)
            if terminator != b"\r\n":
                raise HttpParseError("Chunk data is not followed by CRLF.")
