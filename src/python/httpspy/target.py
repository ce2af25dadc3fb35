from dataclasses import dataclass
from urllib.parse import quote, urlsplit

from .errors import InvalidTarget

DEFAULT_TLS_PORT = 443

# Characters left as-is when percent-encoding a path or query.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"


@dataclass(frozen=True)
class RequestTarget:
    scheme: str
    host: str
    port: int | None = None
    path: str = "/"
    query: str = ""

    @classmethod
    def from_url(cls, url: "str | RequestTarget") -> "RequestTarget":
        if isinstance(url, RequestTarget):
            return url
        if not isinstance(url, str):
            raise InvalidTarget(f"Target must be an absolute URL string, got {type(url).__name__}.")

        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as e:
            raise InvalidTarget(f"Malformed target URL '{url}': {e}") from e

        if not parts.scheme or not parts.hostname:
            raise InvalidTarget(f"Target URL '{url}' is not absolute.")

        host = parts.hostname
        if not host.isascii():
            try:
                host = host.encode("idna").decode("ascii")
            except UnicodeError as e:
                raise InvalidTarget(f"Invalid host name in '{url}': {e}") from e

        return cls(
            scheme=parts.scheme.lower(),
            host=host,
            port=port,
            path=quote(parts.path or "/", safe=_PATH_SAFE),
            query=quote(parts.query, safe=_QUERY_SAFE),
        )

    @property
    def request_path(self) -> str:
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path

    @property
    def authority(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{host}:{self.port}"
        return host

    @property
    def effective_port(self) -> int:
        return self.port if self.port is not None else DEFAULT_TLS_PORT
