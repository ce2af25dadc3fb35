import logging

import h2.config
import h2.connection
import h2.events
import h2.exceptions

from .aggregator import ByteAggregator
from .errors import ConnectionClosedError, HttpParseError, StreamResetError, TransportError
from .http_protocol import (
    ConnectionParameters,
    Dispatcher,
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

# Connection-specific fields that HTTP/2 forbids (RFC 9113, section 8.2.2).
_CONNECTION_HEADERS = frozenset({"connection", "keep-alive", "proxy-connection", "transfer-encoding", "upgrade"})


class _StreamState:
    def __init__(self, stream_id: int):
        self.stream_id = stream_id
        self.head: ResponseHead | None = None
        self.aggregator = ByteAggregator()
        self.ended = False


class _Session:
    """One h2 connection bound to one transport, serving a single stream."""

    def __init__(self, transport: Transport, read_size: int = 65536):
        self._transport = transport
        self._read_size = read_size
        self.conn = h2.connection.H2Connection(
            config=h2.config.H2Configuration(client_side=True, header_encoding="utf-8")
        )
        self._started = False
        self._closed = False

    async def start(self) -> None:
        self.conn.initiate_connection()
        self._started = True
        await self.flush()

    async def flush(self) -> None:
        data = self.conn.data_to_send()
        if data:
            await self._transport.write(data)

    async def pump(self, stream: _StreamState) -> None:
        data = await self._transport.read(self._read_size)
        if not data:
            raise ConnectionClosedError("Connection closed before the HTTP/2 stream ended.")

        try:
            events = self.conn.receive_data(data)
        except h2.exceptions.ProtocolError as e:
            raise HttpParseError(f"HTTP/2 protocol error: {e}") from e

        for event in events:
            self._handle_event(event, stream)
        await self.flush()

    def _handle_event(self, event: h2.events.Event, stream: _StreamState) -> None:
        if isinstance(event, h2.events.ConnectionTerminated):
            if not stream.ended:
                raise ConnectionClosedError(f"Server terminated the HTTP/2 session: {event.error_code!r}")
            return

        if getattr(event, "stream_id", None) != stream.stream_id:
            return

        if isinstance(event, h2.events.ResponseReceived):
            stream.head = self._parse_head(event.headers)
        elif isinstance(event, h2.events.DataReceived):
            stream.aggregator.append(event.data)
            self.conn.acknowledge_received_data(event.flow_controlled_length, event.stream_id)
        elif isinstance(event, h2.events.StreamEnded):
            stream.ended = True
        elif isinstance(event, h2.events.StreamReset):
            raise StreamResetError(f"Stream {event.stream_id} reset by peer: {event.error_code!r}")

    @staticmethod
    def _parse_head(headers: list[tuple[str, str]]) -> ResponseHead:
        status_code = 0
        pairs = []
        for name, value in headers:
            if name == ":status":
                try:
                    status_code = int(value)
                except ValueError as e:
                    raise HttpParseError(f"Invalid :status value {value!r}.") from e
            elif not name.startswith(":"):
                pairs.append((name, value))
        return ResponseHead(status_code=status_code, headers=collect_headers(pairs))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._started:
            try:
                self.conn.close_connection()
                await self.flush()
            except (TransportError, h2.exceptions.ProtocolError) as e:
                logger.debug("Could not send GOAWAY while closing session: %s", e)
        await close_transport(self._transport)


class Http2Dispatcher(Dispatcher):
    _ALPN_PROTOCOLS = ("h2",)

    def __init__(self, transport_factory: TransportFactory = TlsTransport):
        self._transport_factory = transport_factory

    async def dispatch(self, target: RequestTarget, params: ConnectionParameters) -> ResponseEnvelope:
        context = build_ssl_context(params.tls, self._ALPN_PROTOCOLS)
        transport = self._transport_factory(context)
        session = _Session(transport)
        try:
            await transport.connect(target.host, target.effective_port)
            ensure_negotiated(transport, params.tls, self._ALPN_PROTOCOLS, require_alpn=True)
            await session.start()

            stream = _StreamState(session.conn.get_next_available_stream_id())
            try:
                await self._send_request(session, stream, target, params)
                while not stream.ended:
                    await session.pump(stream)
            except TransportError as e:
                stream.aggregator.fail(e)
                raise

            head = stream.head or ResponseHead()
            logger.debug("HTTP/2 %s %s -> %d", params.method.value, target.request_path, head.status_code)
            return build_envelope(head, stream.aggregator, params)
        finally:
            await session.close()

    def _request_headers(self, target: RequestTarget, params: ConnectionParameters) -> list[tuple[str, str]]:
        authority = target.authority
        regular = []
        for key, value in params.headers:
            name = key.lower()
            if name == "host":
                authority = value
            elif name in _CONNECTION_HEADERS:
                logger.debug("Dropping connection-specific header '%s' on HTTP/2", key)
            elif name == "te" and value.strip(" \t").lower() != "trailers":
                # HTTP/2 only allows "TE: trailers".
                logger.debug("Dropping header '%s: %s' on HTTP/2", key, value)
            else:
                regular.append((name, value.strip(" \t")))

        pseudo = [
            (":method", params.method.value),
            (":path", target.request_path),
            (":scheme", "https"),
            (":authority", authority),
        ]
        return pseudo + regular

    async def _send_request(
        self,
        session: _Session,
        stream: _StreamState,
        target: RequestTarget,
        params: ConnectionParameters,
    ) -> None:
        payload = params.payload or b""
        headers = self._request_headers(target, params)
        try:
            session.conn.send_headers(stream.stream_id, headers, end_stream=not payload)
        except h2.exceptions.ProtocolError as e:
            raise HttpParseError(f"Could not frame request headers: {e}") from e
        await session.flush()

        offset = 0
        while offset < len(payload):
            window = min(
                session.conn.local_flow_control_window(stream.stream_id),
                session.conn.max_outbound_frame_size,
            )
            if window <= 0:
                # Wait for WINDOW_UPDATE frames; the response may also start early.
                await session.pump(stream)
                if stream.ended:
                    return
                continue

            chunk = payload[offset:offset + window]
            offset += len(chunk)
            session.conn.send_data(stream.stream_id, chunk, end_stream=offset >= len(payload))
            await session.flush()
