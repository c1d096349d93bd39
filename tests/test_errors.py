"""
tests/test_errors.py -- Tests for the error taxonomy and ldap3 error translation.
"""

from __future__ import annotations

import socket
from datetime import datetime

import pytest
from ldap3.core.exceptions import (
    LDAPResponseTimeoutError,
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
    communication_exception_factory,
)

from dirauth.constants import PUBLIC_MESSAGES, REJECTED_CODES, UNAVAILABLE_CODES
from dirauth.ldap.errors import (
    AD_ERROR_CODES,
    AmbiguousMatch,
    ConfigurationError,
    ConnectionRefused,
    DirectoryError,
    InvalidCredentials,
    NotFound,
    ServiceError,
    Timeout,
    parse_ad_error_code,
    translate_exception,
    translate_result,
)

AD_LOCKED_MESSAGE = (
    "80090308: LdapErr: DSID-0C09042A, comment: AcceptSecurityContext error, "
    "data 775, v3839"
)


# ---------------------------------------------------------------------------
# AD sub-status parsing
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("message,expected", [
    ("AcceptSecurityContext error, data 52e, v4563", 0x52e),
    (AD_LOCKED_MESSAGE, 0x775),
    ("data 533,", 0x533),
    ("invalid credentials", None),
    ("", None),
    (None, None),
])
def test_parse_ad_error_code(message, expected):
    assert parse_ad_error_code(message) == expected


# ---------------------------------------------------------------------------
# translate_result
# ---------------------------------------------------------------------------


def test_result_49_is_invalid_credentials_with_ad_status():
    error = translate_result({
        "result": 49,
        "description": "invalidCredentials",
        "message": AD_LOCKED_MESSAGE,
    })

    assert isinstance(error, InvalidCredentials)
    assert error.ad_status == AD_ERROR_CODES[0x775] == "ERROR_ACCOUNT_LOCKED_OUT"
    assert "775" in error.detail


def test_result_49_without_ad_data_has_no_status():
    error = translate_result({"result": 49, "description": "invalidCredentials", "message": ""})

    assert isinstance(error, InvalidCredentials)
    assert error.ad_status is None


def test_result_49_with_unknown_ad_code():
    error = translate_result({"result": 49, "message": "data 999,"})

    assert isinstance(error, InvalidCredentials)
    assert error.ad_status is None


@pytest.mark.parametrize("code,expected", [
    (32, NotFound),
    (3, Timeout),
    (50, ServiceError),
    (53, ServiceError),
    (None, ServiceError),
])
def test_result_code_mapping(code, expected):
    assert type(translate_result({"result": code, "description": "x"})) is expected


def test_translate_result_handles_missing_result():
    assert isinstance(translate_result(None), ServiceError)


# ---------------------------------------------------------------------------
# translate_exception
# ---------------------------------------------------------------------------


def test_directory_error_passes_through():
    original = AmbiguousMatch("two entries")
    assert translate_exception(original) is original


def test_response_timeout_is_timeout():
    error = translate_exception(LDAPResponseTimeoutError("no response from server"))
    assert isinstance(error, Timeout)
    assert error.retryable


def test_socket_receive_timeout_is_timeout():
    exc_class = communication_exception_factory(LDAPSocketReceiveError, socket.timeout("timed out"))
    error = translate_exception(exc_class("error receiving data: timed out"))
    assert isinstance(error, Timeout)


def test_receive_eagain_is_timeout():
    exc_class = communication_exception_factory(
        LDAPSocketReceiveError, BlockingIOError("[Errno 11] Resource temporarily unavailable"),
    )
    error = translate_exception(exc_class("error receiving data: [Errno 11] Resource temporarily unavailable"))
    assert isinstance(error, Timeout)


def test_plain_socket_timeout_is_timeout():
    assert isinstance(translate_exception(socket.timeout("timed out")), Timeout)


def test_socket_open_refused_is_connection_refused():
    inner = ConnectionRefusedError(111, "Connection refused")
    history = [(datetime.now(), ConnectionRefusedError, inner, ("127.0.0.1", 1))]
    error = translate_exception(LDAPSocketOpenError("unable to open socket", history))

    assert isinstance(error, ConnectionRefused)
    assert error.retryable


def test_socket_open_timeout_in_history_is_timeout():
    inner = socket.timeout("timed out")
    history = [(datetime.now(), socket.timeout, inner, ("10.255.255.1", 389))]
    error = translate_exception(LDAPSocketOpenError("unable to open socket", history))

    assert isinstance(error, Timeout)


def test_refused_found_through_cause():
    try:
        try:
            raise ConnectionRefusedError(111, "Connection refused")
        except ConnectionRefusedError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        error = translate_exception(outer)

    assert isinstance(error, ConnectionRefused)


def test_unexpected_exception_is_service_error():
    error = translate_exception(ValueError("boom"))

    assert isinstance(error, ServiceError)
    assert not error.retryable
    assert error.detail == "ValueError: boom"


# ---------------------------------------------------------------------------
# DirectoryError
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("cls", [
    InvalidCredentials, NotFound, AmbiguousMatch, Timeout,
    ConnectionRefused, ConfigurationError, ServiceError,
])
def test_public_message_hides_detail(cls):
    error = cls("raw server text: data 52e, secret=hunter2")

    assert isinstance(error, DirectoryError)
    assert str(error) == PUBLIC_MESSAGES[error.code]
    assert error.message == str(error)
    assert "hunter2" not in str(error)


def test_every_code_is_rejected_or_unavailable():
    assert REJECTED_CODES.isdisjoint(UNAVAILABLE_CODES)
    assert REJECTED_CODES | UNAVAILABLE_CODES == set(PUBLIC_MESSAGES)
