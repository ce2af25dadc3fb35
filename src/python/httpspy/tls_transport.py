import asyncio
import logging
import socket
import ssl

from .errors import (
    TransportError,
    DnsFailureError,
    SocketConnectError,
    TlsHandshakeError,
    SocketWriteError,
    SocketReadError,
    SocketCloseFailure,
)
from .transport import Transport

logger = logging.getLogger(__name__)


class TlsTransport(Transport):
    def __init__(self, ssl_context: ssl.SSLContext) -> None:
        self._ssl_context = ssl_context
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def connect(self, host: str, port: int) -> None:
        if self._writer is not None:
            raise TransportError("Transport is already connected.")

        logger.debug("Connecting to %s:%d", host, port)
        try:
            self._reader, self._writer = await asyncio.open_connection(
                host, port, ssl=self._ssl_context, server_hostname=host
            )
        except socket.gaierror as e:
            raise DnsFailureError(f"DNS Failure for host '{host}'") from e
        except ssl.SSLError as e:
            raise TlsHandshakeError(f"TLS handshake with '{host}' failed: {e}") from e
        except OSError as e:
            raise SocketConnectError(f"Socket connection failed: {e}") from e

        sock = self._writer.get_extra_info("socket")
        if sock is not None and sock.family in (socket.AF_INET, socket.AF_INET6):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    async def write(self, data: bytes) -> None:
        if self._writer is None:
            raise TransportError("Cannot write on a disconnected transport.")

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise SocketWriteError(f"Socket write failed: {e}") from e

    async def read(self, max_bytes: int = 65536) -> bytes:
        if self._reader is None:
            raise TransportError("Cannot read from a disconnected transport.")

        try:
            return await self._reader.read(max_bytes)
        except OSError as e:
            raise SocketReadError(f"Socket read failed: {e}") from e

    def negotiated_protocol(self) -> str | None:
        ssl_object = self._ssl_object()
        if ssl_object is None:
            return None
        return ssl_object.selected_alpn_protocol()

    def negotiated_cipher(self) -> str | None:
        ssl_object = self._ssl_object()
        if ssl_object is None:
            return None
        cipher = ssl_object.cipher()
        return cipher[0] if cipher else None

    async def close(self) -> None:
        if self._writer is not None:
            writer = self._writer
            self._writer = None
            self._reader = None
            try:
                writer.close()
                await writer.wait_closed()
            except OSError as e:
                raise SocketCloseFailure(f"Socket close failed: {e}") from e

    def _ssl_object(self) -> ssl.SSLObject | None:
        if self._writer is None:
            return None
        return self._writer.get_extra_info("ssl_object")
