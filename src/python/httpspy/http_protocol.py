import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol

from .aggregator import ByteAggregator
from .decoding import BodyKind, decode
from .errors import SocketCloseFailure
from .target import RequestTarget
from .tls import TLSPolicy
from .transport import Transport

logger = logging.getLogger(__name__)


class HttpMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass(frozen=True)
class ConnectionParameters:
    tls: TLSPolicy
    method: HttpMethod = HttpMethod.GET
    headers: tuple[tuple[str, str], ...] = ()
    payload: bytes | None = None
    expected_kind: BodyKind = BodyKind.RAW_BYTES


@dataclass
class ResponseHead:
    status_code: int = 0
    headers: dict[str, str | list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResponseEnvelope:
    status_code: int
    headers: dict[str, str | list[str]]
    body: Any


class Dispatcher(Protocol):
    async def dispatch(self, target: RequestTarget, params: ConnectionParameters) -> ResponseEnvelope:
        ...


def collect_headers(pairs: Iterable[tuple[str, str]]) -> dict[str, str | list[str]]:
    headers: dict[str, str | list[str]] = {}
    for name, value in pairs:
        key = name.lower()
        existing = headers.get(key)
        if existing is None:
            headers[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            headers[key] = [existing, value]
    return headers


def build_envelope(head: ResponseHead, aggregator: ByteAggregator, params: ConnectionParameters) -> ResponseEnvelope:
    body = decode(aggregator.complete(), params.expected_kind)
    return ResponseEnvelope(status_code=head.status_code, headers=head.headers, body=body)


async def close_transport(transport: Transport) -> None:
    try:
        await transport.close()
    except SocketCloseFailure as e:
        logger.debug("Ignoring failure while closing transport: %s", e)
