"""
tests/test_connection.py -- Tests for the connection lifecycle and timeouts.
"""

from __future__ import annotations

import socket
import time

import pytest
from ldap3 import Connection
from ldap3.core.exceptions import LDAPSocketReceiveError, communication_exception_factory

from conftest import BASE_DN, JDOE_DN, JDOE_PASSWORD, RecordingConnector, make_config
from dirauth.constants import TIMEOUT
from dirauth.ldap.errors import InvalidCredentials, Timeout
from dirauth.models import ServiceUnavailable
from dirauth.service import DirectoryAuthService


def receive_timeout():
    exc_class = communication_exception_factory(LDAPSocketReceiveError, socket.timeout("timed out"))
    return exc_class("error receiving data: timed out")


def test_connect_bind_search_close(connector):
    with connector.connect(JDOE_DN, JDOE_PASSWORD) as conn:
        conn.bind()
        entries = conn.search(BASE_DN, "(uid=jdoe)")
        assert [e["dn"] for e in entries] == [JDOE_DN]
        assert not conn.closed

    assert conn.closed


def test_missing_search_base_returns_empty(connector):
    with connector.service_connection() as conn:
        assert conn.search("ou=missing," + BASE_DN, "(objectClass=*)") == []


def test_bind_wrong_password(connector):
    with connector.connect(JDOE_DN, "nope") as conn:
        with pytest.raises(InvalidCredentials):
            conn.bind()


def test_close_is_idempotent(connector):
    conn = connector.connect()
    conn.close()
    conn.close()

    assert conn.closed


def test_close_swallows_unbind_failure(connector, monkeypatch):
    conn = connector.connect()

    def broken_unbind(self):
        raise OSError("socket already gone")

    monkeypatch.setattr(Connection, "unbind", broken_unbind)
    conn.close()

    assert conn.closed


def test_operations_require_open_connection(connector):
    conn = connector.connect()
    conn.close()

    with pytest.raises(RuntimeError):
        conn.search(BASE_DN, "(objectClass=*)")


def test_search_timeout_raises_timeout(connector, monkeypatch):
    def stalled(self, *args, **kwargs):
        raise receive_timeout()

    monkeypatch.setattr(Connection, "search", stalled)

    with connector.connect() as conn:
        with pytest.raises(Timeout):
            conn.search(BASE_DN, "(objectClass=*)")


def test_authenticate_timeout_is_bounded_and_closes(service, connector, monkeypatch):
    def stalled(self, *args, **kwargs):
        time.sleep(0.2)
        raise receive_timeout()

    monkeypatch.setattr(Connection, "search", stalled)

    start = time.monotonic()
    outcome = service.authenticate("jdoe", JDOE_PASSWORD)
    elapsed = time.monotonic() - start

    assert isinstance(outcome, ServiceUnavailable)
    assert outcome.reason == TIMEOUT
    assert elapsed < 2.0
    assert connector.opened and all(conn.closed for conn in connector.opened)


def test_connections_are_not_shared(connector):
    first = connector.connect()
    second = connector.connect()
    try:
        assert first is not second
        assert first.connection is not second.connection
    finally:
        first.close()
        second.close()


def test_silent_directory_times_out_on_operation_timeout(silent_directory):
    config = make_config(url=silent_directory, timeout_ms=2000, operation_timeout_ms=500)
    connector = RecordingConnector(config)
    service = DirectoryAuthService(config, connector=connector)

    start = time.monotonic()
    outcome = service.authenticate("jdoe", JDOE_PASSWORD)
    elapsed = time.monotonic() - start

    assert isinstance(outcome, ServiceUnavailable)
    assert outcome.reason == TIMEOUT
    # 500 ms rounds up to a one second receive timeout
    assert config.operation_timeout == 1
    assert 0.8 <= elapsed < config.operation_timeout + 2.0
    assert connector.opened and all(conn.closed for conn in connector.opened)


def test_silent_directory_lookup_raises_timeout(silent_directory):
    config = make_config(url=silent_directory, operation_timeout_ms=1000)
    connector = RecordingConnector(config)

    with pytest.raises(Timeout):
        DirectoryAuthService(config, connector=connector).lookup("jdoe")

    assert all(conn.closed for conn in connector.opened)
