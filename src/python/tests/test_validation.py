import asyncio
from unittest.mock import Mock

import pytest

from httpspy.errors import (
    InvalidConfig,
    PayloadNotAllowedForMethod,
    SchemeNotAllowed,
    UnsupportedCipher,
    UnsupportedKeyExchangeGroup,
)
from httpspy.httpspy import HttpsClient
from httpspy.options import resolve
from httpspy.target import RequestTarget
from httpspy.tls import supported_cipher_names
from httpspy.validation import validate

HTTPS_TARGET = RequestTarget.from_url("https://example.test/data.json")
HTTP_TARGET = RequestTarget.from_url("http://example.test/")


def _validate(target, user_options, catalog):
    return asyncio.run(validate(target, resolve(user_options), catalog))


def test_defaults_are_valid(cipher_catalog):
    _validate(HTTPS_TARGET, None, cipher_catalog)


def test_defaults_are_valid_against_platform_ciphers():
    asyncio.run(validate(HTTPS_TARGET, resolve()))


def test_platform_cipher_names_are_lowercase():
    names = asyncio.run(supported_cipher_names())
    assert names
    assert all(name == name.lower() for name in names)


def test_plain_http_rejected_when_tls_enforced(cipher_catalog):
    with pytest.raises(SchemeNotAllowed):
        _validate(HTTP_TARGET, None, cipher_catalog)


def test_plain_http_allowed_when_enforcement_disabled(cipher_catalog):
    _validate(HTTP_TARGET, {"tls": {"enforce_tls": False}}, cipher_catalog)


def test_scheme_checked_before_everything_else(cipher_catalog):
    user_options = {
        "headers": {"Bad\nName": "x"},
        "method": "DELETE",
        "payload": b"x",
        "tls": {"cipher_suites": ["NOT_A_CIPHER"]},
    }
    with pytest.raises(SchemeNotAllowed):
        _validate(HTTP_TARGET, user_options, cipher_catalog)


def test_non_boolean_enforcement_still_enforces(cipher_catalog):
    with pytest.raises(SchemeNotAllowed):
        _validate(HTTP_TARGET, {"tls": {"enforce_tls": "no"}}, cipher_catalog)
    with pytest.raises(InvalidConfig, match="enforce_tls"):
        _validate(HTTPS_TARGET, {"tls": {"enforce_tls": "no"}}, cipher_catalog)


@pytest.mark.parametrize("headers", [
    {"X-Test": "line\r\nInjected: yes"},
    {"X-Test": "nul\x00byte"},
    {"X-Test": "delete\x7f"},
    {"Bad Name": "value"},
    {"": "value"},
    {"X-Test": 5},
    {"X-Test": "snowman ☃"},
    "User-Agent: me",
])
def test_malformed_headers_rejected(headers, cipher_catalog):
    with pytest.raises(InvalidConfig):
        _validate(HTTPS_TARGET, {"headers": headers}, cipher_catalog)


def test_tab_and_latin1_values_accepted(cipher_catalog):
    _validate(HTTPS_TARGET, {"headers": {"X-Test": "a\tb café"}}, cipher_catalog)


@pytest.mark.parametrize("tls", [
    {"min_version": "TLSv1.1"},
    {"max_version": "SSLv3"},
    {"min_version": "TLSv1.3", "max_version": "TLSv1.2"},
    {"cipher_suites": []},
    {"key_exchange_groups": []},
    {"key_exchange_groups": ["X25519", 7]},
])
def test_malformed_tls_policy_rejected(tls, cipher_catalog):
    with pytest.raises(InvalidConfig):
        _validate(HTTPS_TARGET, {"tls": tls}, cipher_catalog)


def test_tls12_floor_below_tls13_ceiling_accepted(cipher_catalog):
    _validate(HTTPS_TARGET, {"tls": {"min_version": "TLSv1.2", "max_version": "TLSv1.3"}}, cipher_catalog)


@pytest.mark.parametrize("user_options", [
    {"method": "TRACE"},
    {"payload": 12},
    {"expected_kind": "xml"},
])
def test_malformed_request_fields_rejected(user_options, cipher_catalog):
    with pytest.raises(InvalidConfig):
        _validate(HTTPS_TARGET, user_options, cipher_catalog)


def test_unknown_cipher_rejected(cipher_catalog):
    with pytest.raises(UnsupportedCipher, match="TLS_FAKE_SUITE"):
        _validate(HTTPS_TARGET, {"tls": {"cipher_suites": ["TLS_AES_256_GCM_SHA384", "TLS_FAKE_SUITE"]}}, cipher_catalog)


def test_cipher_names_compared_case_insensitively(cipher_catalog):
    _validate(HTTPS_TARGET, {"tls": {"cipher_suites": ["tls_aes_128_gcm_sha256"]}}, cipher_catalog)


def test_cipher_catalog_queried_once():
    calls = []

    async def catalog():
        calls.append(1)
        return frozenset({"tls_aes_256_gcm_sha384", "tls_chacha20_poly1305_sha256"})

    _validate(HTTPS_TARGET, None, catalog)
    assert len(calls) == 1


@pytest.mark.parametrize("method", ["DELETE", "HEAD"])
def test_payload_rejected_for_bodyless_methods(method, cipher_catalog):
    with pytest.raises(PayloadNotAllowedForMethod):
        _validate(HTTPS_TARGET, {"method": method, "payload": b"data"}, cipher_catalog)


def test_empty_payload_still_counts_as_present(cipher_catalog):
    with pytest.raises(PayloadNotAllowedForMethod):
        _validate(HTTPS_TARGET, {"method": "DELETE", "payload": ""}, cipher_catalog)


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "PATCH", "OPTIONS"])
def test_payload_accepted_for_body_methods(method, cipher_catalog):
    _validate(HTTPS_TARGET, {"method": method, "payload": "data"}, cipher_catalog)


def test_unsupported_cipher_reported_before_payload_violation(cipher_catalog):
    user_options = {"method": "HEAD", "payload": b"x", "tls": {"cipher_suites": ["NOPE"]}}
    with pytest.raises(UnsupportedCipher):
        _validate(HTTPS_TARGET, user_options, cipher_catalog)


def test_unusable_key_exchange_groups_rejected(cipher_catalog):
    with pytest.raises(UnsupportedKeyExchangeGroup, match="NOT-A-GROUP"):
        _validate(HTTPS_TARGET, {"tls": {"key_exchange_groups": ["NOT-A-GROUP"]}}, cipher_catalog)


def test_partially_usable_key_exchange_groups_accepted(cipher_catalog):
    _validate(HTTPS_TARGET, {"tls": {"key_exchange_groups": ["NOT-A-GROUP", "X25519"]}}, cipher_catalog)


def test_unknown_option_name_rejected_before_scheme_check():
    with pytest.raises(InvalidConfig):
        resolve({"retries": 3})
    with pytest.raises(InvalidConfig):
        asyncio.run(HttpsClient(Mock()).request("http://example.test/", {"retries": 3}))
