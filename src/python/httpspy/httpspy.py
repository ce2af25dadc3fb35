import logging
from typing import Any, Mapping

from .decoding import infer_kind
from .http1_protocol import Http1Dispatcher
from .http2_protocol import Http2Dispatcher
from .http_protocol import Dispatcher, ResponseEnvelope
from .options import RequestOptions, resolve, to_connection_parameters
from .target import RequestTarget
from .tls import supported_cipher_names
from .tls_transport import TlsTransport
from .transport import TransportFactory
from .validation import CipherCatalog, validate

logger = logging.getLogger(__name__)

Options = Mapping[str, Any] | RequestOptions | None


class HttpsClient:
    def __init__(self, dispatcher: Dispatcher, cipher_catalog: CipherCatalog = supported_cipher_names):
        self._dispatcher = dispatcher
        self._cipher_catalog = cipher_catalog

    async def request(self, target: str | RequestTarget, options: Options = None) -> ResponseEnvelope:
        resolved = resolve(options)
        request_target = RequestTarget.from_url(target)
        await validate(request_target, resolved, self._cipher_catalog)

        expected_kind = resolved.expected_kind or infer_kind(request_target.path)
        params = to_connection_parameters(resolved, expected_kind)

        logger.debug("%s %s expecting %s", params.method.value, request_target.authority, expected_kind.name)
        return await self._dispatcher.dispatch(request_target, params)


async def request_over_http1(
    target: str | RequestTarget,
    options: Options = None,
    *,
    transport_factory: TransportFactory = TlsTransport,
) -> ResponseEnvelope:
    """Perform one request over HTTP/1.1 with TLS and return the decoded response.

    ``options`` is merged field by field over the secure defaults (TLS 1.3
    only, two AEAD suites, hybrid post-quantum key exchange first). The body
    is decoded as ``options["expected_kind"]`` or, when absent, inferred from
    the target path: ``.json`` is parsed, ``.txt`` is text, anything else is
    returned as bytes.

    Raises a ``ConfigError`` subclass before any connection is opened when
    the target or the options are rejected, ``TransportError`` for network,
    TLS and framing failures, and ``BodyDecodeError`` when a structured body
    does not parse.
    """
    client = HttpsClient(Http1Dispatcher(transport_factory))
    return await client.request(target, options)


async def request_over_http2(
    target: str | RequestTarget,
    options: Options = None,
    *,
    transport_factory: TransportFactory = TlsTransport,
) -> ResponseEnvelope:
    """Same as :func:`request_over_http1`, over an HTTP/2 session negotiated with ALPN ``h2`` only."""
    client = HttpsClient(Http2Dispatcher(transport_factory))
    return await client.request(target, options)
