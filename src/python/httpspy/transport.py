import ssl
from typing import Callable, Protocol


class Transport(Protocol):
    async def connect(self, host: str, port: int) -> None:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def read(self, max_bytes: int = 65536) -> bytes:
        ...

    def negotiated_protocol(self) -> str | None:
        ...

    def negotiated_cipher(self) -> str | None:
        ...

    async def close(self) -> None:
        ...


TransportFactory = Callable[[ssl.SSLContext], Transport]
