__version__ = "0.1.0"

from .decoding import BodyKind
from .errors import (
    HttpspyError,
    ConfigError,
    InvalidTarget,
    SchemeNotAllowed,
    InvalidConfig,
    UnsupportedCipher,
    UnsupportedKeyExchangeGroup,
    PayloadNotAllowedForMethod,
    TransportError,
    BodyDecodeError,
)
from .http_protocol import HttpMethod, ResponseEnvelope
from .httpspy import HttpsClient, request_over_http1, request_over_http2
from .options import RequestOptions, resolve
from .tls import TLSPolicy, TlsVersion

__all__ = [
    "BodyKind",
    "BodyDecodeError",
    "ConfigError",
    "HttpMethod",
    "HttpsClient",
    "HttpspyError",
    "InvalidConfig",
    "InvalidTarget",
    "PayloadNotAllowedForMethod",
    "RequestOptions",
    "ResponseEnvelope",
    "SchemeNotAllowed",
    "TLSPolicy",
    "TlsVersion",
    "TransportError",
    "UnsupportedCipher",
    "UnsupportedKeyExchangeGroup",
    "request_over_http1",
    "request_over_http2",
    "resolve",
]
