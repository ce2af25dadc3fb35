class HttpspyError(Exception):
    """Base exception for the httpspy library."""
    pass

# --- Configuration Errors ---

class ConfigError(HttpspyError):
    """The request was rejected before any network I/O took place."""
    pass

class InvalidTarget(ConfigError): pass
class SchemeNotAllowed(ConfigError): pass
class InvalidConfig(ConfigError): pass
class UnsupportedCipher(ConfigError): pass
class UnsupportedKeyExchangeGroup(ConfigError): pass
class PayloadNotAllowedForMethod(ConfigError): pass

# --- Transport Errors ---

class TransportError(HttpspyError):
    """A generic error occurred in the transport layer."""
    pass

class DnsFailureError(TransportError): pass
class SocketConnectError(TransportError): pass
class TlsHandshakeError(TransportError): pass
class AlpnNegotiationError(TransportError): pass
class SocketWriteError(TransportError): pass
class SocketReadError(TransportError): pass
class ConnectionClosedError(TransportError): pass
class SocketCloseFailure(TransportError): pass
class StreamResetError(TransportError): pass

class HttpParseError(TransportError):
    """The peer sent bytes that do not form a valid HTTP message."""
    pass

# --- Decoding Errors ---

class BodyDecodeError(HttpspyError):
    """The response body could not be decoded into the expected kind."""
    pass
