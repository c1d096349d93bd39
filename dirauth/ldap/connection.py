"""Directory connection lifecycle: open, bind, search and guaranteed close."""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ldap3 import NO_ATTRIBUTES, NONE, SUBTREE, SYNC, Connection, Server
from ldap3.core.exceptions import LDAPException

from ..constants import RESULT_NO_SUCH_OBJECT, RESULT_SIZE_LIMIT_EXCEEDED, RESULT_SUCCESS
from .errors import ConfigurationError, InvalidCredentials, translate_exception, translate_result

if TYPE_CHECKING:
    from ..config import DirectoryConfig

logger = logging.getLogger(__name__)


class DirectoryConnection:
    """
    One transport session to the directory.

    Attributes:
        server: The ldap3 Server object
        connection: The ldap3 Connection object (None until open() is called
            and again after close())

    Every failure is raised as a DirectoryError subclass; ldap3 and socket
    exceptions never escape. Use as a context manager so the session is
    closed on every exit path.

    Example:
        with connector.connect() as conn:
            conn.bind()
            entries = conn.search(base_dn, '(uid=jdoe)')
    """

    def __init__(
        self,
        server: Server,
        user: Optional[str] = None,
        password: Optional[str] = None,
        operation_timeout: Optional[int] = None,
        time_limit: int = 0,
        client_strategy: str = SYNC,
    ):
        """
        Initialize a connection configuration.

        Args:
            server: ldap3 Server to connect to
            user: DN to bind as (None for an anonymous bind)
            password: Password for the bind DN
            operation_timeout: Socket receive timeout in whole seconds
            time_limit: Server-side search time limit in seconds (0 = none)
            client_strategy: ldap3 client strategy (tests use MOCK_SYNC)
        """
        self.server = server
        self.user = user
        self.password = password
        self.operation_timeout = operation_timeout
        self.time_limit = time_limit
        self.client_strategy = client_strategy

        self.connection: Optional[Connection] = None

    @property
    def closed(self) -> bool:
        return self.connection is None

    def open(self) -> "DirectoryConnection":
        """Open the transport session. Returns self for chaining."""
        try:
            self.connection = Connection(
                self.server,
                user=self.user,
                password=self.password,
                client_strategy=self.client_strategy,
                receive_timeout=self.operation_timeout,
                raise_exceptions=False,
                read_only=True,
            )
            self.connection.open()
        except (LDAPException, OSError) as e:
            self.close()
            raise translate_exception(e) from e
        logger.debug("Opened directory connection to %s", self.server)
        return self

    def close(self) -> None:
        """Unbind and drop the session. Idempotent; never raises."""
        conn, self.connection = self.connection, None
        if conn is None:
            return
        try:
            conn.unbind()
        except Exception as e:
            logger.warning("Error closing directory connection to %s: %s", self.server, e)

    def __enter__(self) -> "DirectoryConnection":
        """Context manager entry."""
        if self.closed:
            return self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Context manager exit."""
        self.close()
        return False

    def _require(self) -> Connection:
        if self.connection is None:
            raise RuntimeError("Not connected. Call open() first or use as context manager.")
        return self.connection

    def bind(self) -> None:
        """
        Bind with the configured identity.

        Raises:
            InvalidCredentials: the directory returned invalidCredentials (49)
            DirectoryError: any other bind or transport failure
        """
        conn = self._require()
        try:
            ok = conn.bind()
        except (LDAPException, OSError) as e:
            raise translate_exception(e) from e
        if not ok:
            raise translate_result(conn.result)
        logger.debug("Bound to %s as %s", self.server, self.user or "<anonymous>")

    def search(
        self,
        search_base: str,
        search_filter: str,
        scope=SUBTREE,
        attributes: Optional[List[str]] = None,
        size_limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Perform an LDAP search.

        Args:
            search_base: DN where the search starts
            search_filter: LDAP filter string (values already escaped)
            scope: Search scope (BASE, LEVEL, SUBTREE)
            attributes: List of attributes to retrieve (default: none, DN only)
            size_limit: Maximum entries to return (0 = server default)

        Returns:
            List of {'dn': str, 'attributes': dict} in directory order. A
            missing search base yields an empty list; hitting the size limit
            yields the entries received so far.
        """
        conn = self._require()
        try:
            conn.search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=scope,
                attributes=attributes or [NO_ATTRIBUTES],
                size_limit=size_limit,
                time_limit=self.time_limit,
            )
        except (LDAPException, OSError) as e:
            raise translate_exception(e) from e

        result = conn.result or {}
        code = result.get("result", RESULT_SUCCESS)
        entries = [
            {"dn": item.get("dn"), "attributes": dict(item.get("attributes") or {})}
            for item in (conn.response or [])
            if item.get("type") == "searchResEntry"
        ]
        logger.debug(
            "Search base=%s filter=%s returned %d entries (result %s)",
            search_base, search_filter, len(entries), code,
        )
        if code in (RESULT_SUCCESS, RESULT_SIZE_LIMIT_EXCEEDED):
            return entries
        if code == RESULT_NO_SUCH_OBJECT:
            return []
        raise translate_result(result)


class DirectoryConnector:
    """
    Factory for per-call directory connections.

    A new ldap3 Server is built for every connection unless one is injected,
    so no session state is shared between authentication calls.
    """

    def __init__(
        self,
        config: "DirectoryConfig",
        server: Optional[Server] = None,
        client_strategy: str = SYNC,
    ):
        """
        Args:
            config: Directory configuration
            server: Fixed ldap3 Server to use (tests pass a mock server)
            client_strategy: ldap3 client strategy (tests use MOCK_SYNC)
        """
        self.config = config
        self._server = server
        self.client_strategy = client_strategy

    def _make_server(self) -> Server:
        if self._server is not None:
            return self._server
        return Server(self.config.url, connect_timeout=self.config.connect_timeout, get_info=NONE)

    def connect(self, user: Optional[str] = None, password: Optional[str] = None) -> DirectoryConnection:
        """
        Open a new connection that will bind as ``user`` (anonymous if None).

        Raises:
            ConnectionRefused: the endpoint could not be reached
            Timeout: the connection was not established within the timeout
        """
        conn = DirectoryConnection(
            self._make_server(),
            user=user,
            password=password,
            operation_timeout=self.config.operation_timeout,
            time_limit=self.config.time_limit,
            client_strategy=self.client_strategy,
        )
        return conn.open()

    def service_connection(self) -> DirectoryConnection:
        """
        Open a connection bound as the service account, or anonymously.

        Raises:
            ConfigurationError: the directory rejected the service account
            DirectoryError: any other connect or bind failure
        """
        conn = self.connect(self.config.service_dn, self.config.service_password)
        try:
            conn.bind()
        except InvalidCredentials as e:
            conn.close()
            raise ConfigurationError(f"Service account bind rejected: {e.detail}") from e
        except BaseException:
            conn.close()
            raise
        return conn
