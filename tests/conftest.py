"""
tests/conftest.py -- Shared fixtures for dirauth tests.

The fake directory is an ldap3 MOCK_SYNC server. Mock connections created
against the same Server object share its DIT, so the service can open as
many connections as it likes and still see the seeded entries.

Directory layout (base dc=example,dc=com):
  - cn=service,ou=system      service account
  - uid=jdoe,ou=people        OpenLDAP-style user with groups
  - cn=Alice Smith,ou=people  AD-style user (sAMAccountName/userPrincipalName)
  - uid=staylor1 / staylor2   two users sharing cn=Sam Taylor
  - cn=printer-1,ou=devices   entry with no login alias besides cn
  - cn=Odd Login,ou=people    uid containing filter metacharacters
"""

from __future__ import annotations

import socket

import pytest
from ldap3 import MOCK_SYNC, NONE, Connection, Server

from dirauth.config import DirectoryConfig
from dirauth.ldap.connection import DirectoryConnector
from dirauth.service import DirectoryAuthService

BASE_DN = "dc=example,dc=com"
SERVICE_DN = "cn=service,ou=system,dc=example,dc=com"
SERVICE_PASSWORD = "service-secret"

JDOE_DN = "uid=jdoe,ou=people,dc=example,dc=com"
JDOE_PASSWORD = "jdoe-pass"
JDOE_GROUPS = [
    "cn=zeta,ou=groups,dc=example,dc=com",
    "cn=alpha,ou=groups,dc=example,dc=com",
    "cn=mid,ou=groups,dc=example,dc=com",
]

ASMITH_DN = "cn=Alice Smith,ou=people,dc=example,dc=com"
ASMITH_PASSWORD = "asmith-pass"

STAYLOR1_DN = "uid=staylor1,ou=people,dc=example,dc=com"
STAYLOR2_DN = "uid=staylor2,ou=people,dc=example,dc=com"

PRINTER_DN = "cn=printer-1,ou=devices,dc=example,dc=com"
PRINTER_PASSWORD = "printer-pass"

# uid containing filter metacharacters
ODD_DN = "cn=Odd Login,ou=people,dc=example,dc=com"
ODD_LOGIN = "a*)(b"
ODD_PASSWORD = "odd-pass"


class RecordingConnector(DirectoryConnector):
    """DirectoryConnector that remembers every connection it opened."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.opened = []

    def connect(self, user=None, password=None):
        conn = super().connect(user, password)
        self.opened.append(conn)
        return conn

    @property
    def bind_identities(self):
        return [conn.user for conn in self.opened]


def seed_directory(server: Server) -> None:
    """Populate the mock server's DIT."""
    seed = Connection(server, client_strategy=MOCK_SYNC)
    add = seed.strategy.add_entry

    add(BASE_DN, {"objectClass": ["top", "domain"], "dc": "example"})
    add("ou=system," + BASE_DN, {"objectClass": ["organizationalUnit"], "ou": "system"})
    add("ou=people," + BASE_DN, {"objectClass": ["organizationalUnit"], "ou": "people"})
    add("ou=devices," + BASE_DN, {"objectClass": ["organizationalUnit"], "ou": "devices"})

    add(SERVICE_DN, {
        "objectClass": ["person"],
        "cn": "service",
        "sn": "service",
        "userPassword": SERVICE_PASSWORD,
    })
    add(JDOE_DN, {
        "objectClass": ["inetOrgPerson"],
        "uid": "jdoe",
        "cn": "jdoe",
        "sn": "Doe",
        "displayName": "John Doe",
        "mail": "jdoe@example.com",
        "memberOf": JDOE_GROUPS,
        "userPassword": JDOE_PASSWORD,
    })
    add(ASMITH_DN, {
        "objectClass": ["user"],
        "cn": "Alice Smith",
        "sAMAccountName": "asmith",
        "userPrincipalName": "asmith@example.com",
        "mail": "alice.smith@example.com",
        "userPassword": ASMITH_PASSWORD,
    })
    add(STAYLOR1_DN, {
        "objectClass": ["inetOrgPerson"],
        "uid": "staylor1",
        "cn": "Sam Taylor",
        "sn": "Taylor",
        "userPassword": "taylor-one",
    })
    add(STAYLOR2_DN, {
        "objectClass": ["inetOrgPerson"],
        "uid": "staylor2",
        "cn": "Sam Taylor",
        "sn": "Taylor",
        "userPassword": "taylor-two",
    })
    add(PRINTER_DN, {
        "objectClass": ["device"],
        "cn": "printer-1",
        "userPassword": PRINTER_PASSWORD,
    })
    add(ODD_DN, {
        "objectClass": ["inetOrgPerson"],
        "uid": ODD_LOGIN,
        "cn": "Odd Login",
        "sn": "Login",
        "userPassword": ODD_PASSWORD,
    })


def make_config(**overrides) -> DirectoryConfig:
    values = {
        "url": "ldap://directory.example.com:389",
        "base_dn": BASE_DN,
        "service_dn": SERVICE_DN,
        "service_password": SERVICE_PASSWORD,
        "timeout_ms": 2000,
    }
    values.update(overrides)
    return DirectoryConfig(**values)


@pytest.fixture
def directory_server() -> Server:
    server = Server("fake_directory", get_info=NONE)
    seed_directory(server)
    return server


@pytest.fixture
def config() -> DirectoryConfig:
    return make_config()


@pytest.fixture
def connector(config, directory_server) -> RecordingConnector:
    return RecordingConnector(config, server=directory_server, client_strategy=MOCK_SYNC)


@pytest.fixture
def service(config, connector) -> DirectoryAuthService:
    return DirectoryAuthService(config, connector=connector)


@pytest.fixture
def make_service(directory_server):
    """Build a service against the fake directory with config overrides."""
    def _make(**overrides):
        cfg = make_config(**overrides)
        conn = RecordingConnector(cfg, server=directory_server, client_strategy=MOCK_SYNC)
        return DirectoryAuthService(cfg, connector=conn)
    return _make


@pytest.fixture
def silent_directory():
    """A TCP endpoint on 127.0.0.1 that accepts connections and never answers.

    Yields the ldap:// URL. Connections complete through the listen backlog,
    so every bind or search against it waits out the receive timeout.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(16)
    host, port = listener.getsockname()
    try:
        yield f"ldap://{host}:{port}"
    finally:
        listener.close()
