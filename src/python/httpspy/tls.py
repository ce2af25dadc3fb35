"""TLS policy model and its mapping onto ``ssl.SSLContext``.

The policy is resolved into a client context before a connection is
opened. Settings the ``ssl`` module can not express directly (the TLS 1.3
cipher suite list) are checked against the negotiated session right after
the handshake, so a connection outside the policy is refused rather than
used.
"""

import asyncio
import logging
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .errors import AlpnNegotiationError, TlsHandshakeError, UnsupportedCipher, UnsupportedKeyExchangeGroup
from .transport import Transport

logger = logging.getLogger(__name__)


class TlsVersion(Enum):
    TLS1_2 = "TLSv1.2"
    TLS1_3 = "TLSv1.3"

    @property
    def ssl_version(self) -> ssl.TLSVersion:
        if self is TlsVersion.TLS1_2:
            return ssl.TLSVersion.TLSv1_2
        return ssl.TLSVersion.TLSv1_3


@dataclass(frozen=True)
class TLSPolicy:
    enforce_tls: bool = True
    min_version: TlsVersion = TlsVersion.TLS1_3
    max_version: TlsVersion = TlsVersion.TLS1_3
    cipher_suites: tuple[str, ...] = ("TLS_AES_256_GCM_SHA384", "TLS_CHACHA20_POLY1305_SHA256")
    key_exchange_groups: tuple[str, ...] = ("X25519MLKEM768", "X25519")


DEFAULT_TLS_POLICY = TLSPolicy()


def is_tls13_suite(name: str) -> bool:
    # OpenSSL names TLS 1.3 suites with the IANA "TLS_" prefix and 1.2 ones without it.
    return name.upper().startswith("TLS_")


def _platform_cipher_names() -> frozenset[str]:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.set_ciphers("ALL")
    return frozenset(cipher["name"].lower() for cipher in context.get_ciphers())


async def supported_cipher_names() -> frozenset[str]:
    """Lower-cased names of every cipher suite the local OpenSSL build offers."""
    return await asyncio.to_thread(_platform_cipher_names)


def usable_key_exchange_groups(groups: Iterable[str]) -> tuple[str, ...]:
    """The entries of ``groups``, in order, that this interpreter can configure."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    setter = getattr(context, "set_groups", None) or context.set_ecdh_curve
    usable = []
    for group in groups:
        try:
            setter(group)
        except (ValueError, ssl.SSLError):
            continue
        usable.append(group)
    return tuple(usable)


def _apply_key_exchange_groups(context: ssl.SSLContext, groups: tuple[str, ...]) -> None:
    usable = usable_key_exchange_groups(groups)
    if not usable:
        raise UnsupportedKeyExchangeGroup(f"None of the key exchange groups {list(groups)} are supported here.")
    skipped = [group for group in groups if group not in usable]
    if skipped:
        logger.warning("Key exchange groups %s are not supported here, offering %s", skipped, list(usable))

    set_groups = getattr(context, "set_groups", None)
    if set_groups is not None:
        set_groups(":".join(usable))
        return

    # set_ecdh_curve takes exactly one group.
    if len(usable) > 1:
        logger.warning("Offering only key exchange group '%s', dropping %s", usable[0], list(usable[1:]))
    context.set_ecdh_curve(usable[0])


def build_ssl_context(policy: TLSPolicy, alpn_protocols: Iterable[str]) -> ssl.SSLContext:
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.minimum_version = policy.min_version.ssl_version
    context.maximum_version = policy.max_version.ssl_version

    legacy_suites = [name for name in policy.cipher_suites if not is_tls13_suite(name)]
    if legacy_suites:
        try:
            context.set_ciphers(":".join(legacy_suites))
        except ssl.SSLError as e:
            raise UnsupportedCipher(f"OpenSSL rejected cipher list '{':'.join(legacy_suites)}'") from e

    _apply_key_exchange_groups(context, policy.key_exchange_groups)
    context.set_alpn_protocols(list(alpn_protocols))
    return context


def ensure_negotiated(
    transport: Transport,
    policy: TLSPolicy,
    alpn_protocols: tuple[str, ...],
    require_alpn: bool,
) -> None:
    protocol = transport.negotiated_protocol()
    if protocol is None:
        if require_alpn:
            raise AlpnNegotiationError(f"Server did not negotiate any of {list(alpn_protocols)} via ALPN.")
    elif protocol not in alpn_protocols:
        raise AlpnNegotiationError(f"Server negotiated '{protocol}', expected one of {list(alpn_protocols)}.")

    cipher = transport.negotiated_cipher()
    allowed = {name.lower() for name in policy.cipher_suites}
    if cipher is None or cipher.lower() not in allowed:
        raise TlsHandshakeError(f"Negotiated cipher suite '{cipher}' is outside the configured policy.")

    logger.debug("Negotiated protocol=%s cipher=%s", protocol, cipher)
