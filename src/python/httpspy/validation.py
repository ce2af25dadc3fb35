"""Ordered, fail-fast checks run before any connection is attempted.

The order of the checks is part of the contract: once the options have
been resolved, a plain-HTTP target is reported as ``SchemeNotAllowed`` even
when the option values are also malformed. Unknown option names never get
this far; ``resolve`` rejects them first.
"""

import re
from collections.abc import Mapping
from typing import Awaitable, Callable

from .decoding import BodyKind
from .errors import (
    InvalidConfig,
    PayloadNotAllowedForMethod,
    SchemeNotAllowed,
    UnsupportedCipher,
    UnsupportedKeyExchangeGroup,
)
from .http_protocol import HttpMethod
from .options import BODY_METHODS, RequestOptions
from .target import RequestTarget
from .tls import TLSPolicy, TlsVersion, supported_cipher_names, usable_key_exchange_groups

CipherCatalog = Callable[[], Awaitable[frozenset[str]]]

_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


def _check_scheme(target: RequestTarget, tls: TLSPolicy) -> None:
    if tls.enforce_tls is not False and target.scheme != "https":
        raise SchemeNotAllowed(f"HTTPS is enforced, but the target scheme is '{target.scheme}'.")


def _check_headers(headers: object) -> None:
    if not isinstance(headers, Mapping):
        raise InvalidConfig("Headers must be a mapping of strings to strings.")

    for name, value in headers.items():
        if not isinstance(name, str) or not isinstance(value, str):
            raise InvalidConfig(f"Header {name!r} must map a string to a string.")
        if not _TOKEN.match(name):
            raise InvalidConfig(f"Invalid header name {name!r}.")
        if _FORBIDDEN_VALUE_CHARS.search(value):
            raise InvalidConfig(f"Header {name!r} contains control characters.")
        try:
            value.encode("latin-1")
        except UnicodeEncodeError as e:
            raise InvalidConfig(f"Header {name!r} is not Latin-1 encodable.") from e


def _check_tls(tls: TLSPolicy) -> None:
    if not isinstance(tls.enforce_tls, bool):
        raise InvalidConfig("enforce_tls must be a boolean.")
    for name in ("min_version", "max_version"):
        if not isinstance(getattr(tls, name), TlsVersion):
            raise InvalidConfig(f"{name} must be one of {[v.value for v in TlsVersion]}.")
    if tls.min_version.ssl_version > tls.max_version.ssl_version:
        raise InvalidConfig(f"min_version {tls.min_version.value} is above max_version {tls.max_version.value}.")
    for name in ("cipher_suites", "key_exchange_groups"):
        values = getattr(tls, name)
        if not isinstance(values, (tuple, list)) or not values:
            raise InvalidConfig(f"{name} must be a non-empty list of names.")
        if not all(isinstance(item, str) and item for item in values):
            raise InvalidConfig(f"{name} must only contain non-empty strings.")


def _check_request_shape(options: RequestOptions) -> None:
    if not isinstance(options.method, HttpMethod):
        raise InvalidConfig(f"Unsupported HTTP method {options.method!r}.")
    if options.payload is not None and not isinstance(options.payload, (str, bytes, bytearray, memoryview)):
        raise InvalidConfig("Payload must be text or bytes.")
    if options.expected_kind is not None and not isinstance(options.expected_kind, BodyKind):
        raise InvalidConfig(f"Unsupported expected body kind {options.expected_kind!r}.")


async def _check_ciphers(tls: TLSPolicy, cipher_catalog: CipherCatalog) -> None:
    available = {name.lower() for name in await cipher_catalog()}
    for name in tls.cipher_suites:
        if name.lower() not in available:
            raise UnsupportedCipher(f"Cipher suite '{name}' is not supported by this platform.")


def _check_key_exchange_groups(tls: TLSPolicy) -> None:
    if not usable_key_exchange_groups(tls.key_exchange_groups):
        raise UnsupportedKeyExchangeGroup(
            f"None of the key exchange groups {list(tls.key_exchange_groups)} are supported by this platform."
        )


def _check_payload(options: RequestOptions) -> None:
    if options.payload is not None and options.method not in BODY_METHODS:
        raise PayloadNotAllowedForMethod(
            f"Request payload is not allowed for {options.method.value}; "
            f"use one of {sorted(m.value for m in BODY_METHODS)}."
        )


async def validate(
    target: RequestTarget,
    options: RequestOptions,
    cipher_catalog: CipherCatalog = supported_cipher_names,
) -> None:
    _check_scheme(target, options.tls)
    _check_headers(options.headers)
    _check_tls(options.tls)
    _check_request_shape(options)
    await _check_ciphers(options.tls, cipher_catalog)
    _check_key_exchange_groups(options.tls)
    _check_payload(options)
