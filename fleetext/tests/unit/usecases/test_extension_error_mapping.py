from __future__ import annotations

from fleetext.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    ApiTimeoutError,
)
from fleetext.domain.errors import NotInstalledError
from fleetext.usecases.error_mapping import describe, map_api_error


def test_extension_errors_pass_through():
    err = NotInstalledError("no extension with name x found.")

    assert map_api_error(err, default_code="QUERY_FAILED") is err


def test_adapter_errors_map_to_gateway_statuses():
    timeout = map_api_error(ApiTimeoutError("Timeout contacting x"), default_code="X")
    auth = map_api_error(ApiClientError("denied", status=401), default_code="X")
    client = map_api_error(ApiClientError("missing", status=404), default_code="X")
    server = map_api_error(ApiServerError("boom", status=503), default_code="X")
    other = map_api_error(ApiError("weird"), default_code="X")

    assert (timeout.code, timeout.status) == ("REQUEST_TIMEOUT", 504)
    assert (auth.code, auth.status) == ("AUTH_FAILED", 502)
    assert (client.code, client.status) == ("REQUEST_FAILED", 502)
    assert (server.code, server.status) == ("TARGET_ERROR", 502)
    assert (other.code, other.status) == ("API_ERROR", 502)


def test_unknown_errors_use_default_code():
    err = map_api_error(RuntimeError("kaputt"), default_code="INSTALL_FAILED")

    assert (err.code, err.status, err.message) == ("INSTALL_FAILED", 500, "kaputt")


def test_describe_prefers_message_attribute():
    assert describe(NotInstalledError("gone")) == "gone"
    assert describe(KeyError()) == "KeyError"
