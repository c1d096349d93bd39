"""Credential verification by binding as the end user."""

import logging

from .connection import DirectoryConnector
from .errors import InvalidCredentials

logger = logging.getLogger(__name__)


def verify_credentials(connector: DirectoryConnector, dn: str, password: str) -> bool:
    """
    Check a password by binding as ``dn`` on a dedicated connection.

    The connection is opened for this bind only and closed right after it,
    whatever the outcome. It is never handed back for further queries.

    Args:
        connector: Factory for fresh directory connections
        dn: Resolved DN of the user
        password: Password to test

    Returns:
        True if the directory accepted the bind

    Raises:
        InvalidCredentials: wrong password (result code 49), carrying the AD
            sub-status (e.g. 'ERROR_ACCOUNT_DISABLED') when the server sent one
        DirectoryError: transport, timeout or protocol failure
    """
    # A simple bind with an empty password is an unauthenticated bind and
    # succeeds on most servers, so it never reaches the directory.
    if not password:
        raise InvalidCredentials("empty password")

    with connector.connect(dn, password) as conn:
        try:
            conn.bind()
        except InvalidCredentials as e:
            logger.info("Bind rejected for %s (%s)", dn, e.ad_status or "invalidCredentials")
            raise
    logger.debug("Bind accepted for %s", dn)
    return True
