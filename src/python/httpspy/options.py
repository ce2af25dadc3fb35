import platform
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from . import __version__
from .decoding import BodyKind
from .errors import InvalidConfig
from .http_protocol import ConnectionParameters, HttpMethod
from .tls import DEFAULT_TLS_POLICY, TLSPolicy, TlsVersion

DEFAULT_METHOD = HttpMethod.GET
DEFAULT_HEADERS: Mapping[str, str] = {
    "User-Agent": f"python/{platform.python_version()} {sys.platform} {platform.machine()} httpspy/{__version__}",
}
BODY_METHODS = frozenset({
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.PATCH,
    HttpMethod.OPTIONS,
})

_OPTION_FIELDS = frozenset({"tls", "headers", "method", "payload", "expected_kind"})
_TLS_FIELDS = frozenset({"enforce_tls", "min_version", "max_version", "cipher_suites", "key_exchange_groups"})


@dataclass(frozen=True)
class RequestOptions:
    tls: TLSPolicy = DEFAULT_TLS_POLICY
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    method: HttpMethod = DEFAULT_METHOD
    payload: bytes | str | None = None
    expected_kind: BodyKind | None = None


def _coerce(enum_type: type[Enum], value: Any, normalize=lambda v: v) -> Any:
    # Unrecognised values are left for the validator to report in order.
    if isinstance(value, enum_type) or not isinstance(value, str):
        return value
    for member in enum_type:
        if normalize(member.value) == normalize(value):
            return member
    return value


def _as_tuple(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value


def _check_fields(supplied: Mapping[str, Any], allowed: frozenset[str], where: str) -> None:
    unknown = sorted(set(supplied) - allowed)
    if unknown:
        raise InvalidConfig(f"Unknown {where} option(s): {', '.join(unknown)}")


def _resolve_tls(user_tls: Any) -> TLSPolicy:
    if user_tls is None:
        return DEFAULT_TLS_POLICY
    if isinstance(user_tls, TLSPolicy):
        return user_tls
    if not isinstance(user_tls, Mapping):
        raise InvalidConfig(f"TLS options must be a mapping or TLSPolicy, got {type(user_tls).__name__}.")

    _check_fields(user_tls, _TLS_FIELDS, "TLS")
    overrides = dict(user_tls)
    for name in ("min_version", "max_version"):
        if name in overrides:
            overrides[name] = _coerce(TlsVersion, overrides[name], str.lower)
    for name in ("cipher_suites", "key_exchange_groups"):
        if name in overrides:
            overrides[name] = _as_tuple(overrides[name])
    return replace(DEFAULT_TLS_POLICY, **overrides)


def resolve(user_options: "Mapping[str, Any] | RequestOptions | None" = None) -> RequestOptions:
    """Merge caller options over the secure defaults, one field at a time.

    ``tls`` overrides are merged per TLS field, so supplying only
    ``cipher_suites`` keeps every other TLS default. ``headers`` replaces
    the default header map as a whole.
    """
    if user_options is None:
        return RequestOptions()
    if isinstance(user_options, RequestOptions):
        return user_options
    if not isinstance(user_options, Mapping):
        raise InvalidConfig(f"Options must be a mapping, got {type(user_options).__name__}.")

    _check_fields(user_options, _OPTION_FIELDS, "request")
    overrides: dict[str, Any] = {}

    if "tls" in user_options:
        overrides["tls"] = _resolve_tls(user_options["tls"])
    if "headers" in user_options:
        headers = user_options["headers"]
        overrides["headers"] = dict(headers) if isinstance(headers, Mapping) else headers
    if "method" in user_options:
        overrides["method"] = _coerce(HttpMethod, user_options["method"], str.upper)
    if "payload" in user_options:
        overrides["payload"] = user_options["payload"]
    if "expected_kind" in user_options:
        overrides["expected_kind"] = _coerce(BodyKind, user_options["expected_kind"], str.lower)

    return RequestOptions(**overrides)


def to_connection_parameters(options: RequestOptions, expected_kind: BodyKind) -> ConnectionParameters:
    payload = options.payload
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    elif payload is not None:
        payload = bytes(payload)

    return ConnectionParameters(
        tls=options.tls,
        method=options.method,
        headers=tuple(options.headers.items()),
        payload=payload,
        expected_kind=expected_kind,
    )
