"""Resolve a login name to exactly one distinguished name."""

import logging
from typing import Iterable, List

from ldap3 import SUBTREE
from ldap3.utils.conv import escape_filter_chars

from ..constants import DEFAULT_LOGIN_ATTRIBUTES
from .connection import DirectoryConnection
from .errors import AmbiguousMatch, NotFound

logger = logging.getLogger(__name__)


def escape_filter_value(value: str) -> str:
    """Escape the RFC 4515 filter metacharacters \\ * ( ) and NUL as \\XX."""
    return escape_filter_chars(value)


def build_login_filter(token: str, attributes: Iterable[str] = DEFAULT_LOGIN_ATTRIBUTES) -> str:
    """
    Build an OR filter matching the login token against every login attribute.

    Example:
        >>> build_login_filter("jdoe", ["uid", "cn"])
        '(|(uid=jdoe)(cn=jdoe))'
    """
    value = escape_filter_value(token)
    return "(|" + "".join(f"({attr}={value})" for attr in attributes) + ")"


def build_substring_filter(query: str, attributes: Iterable[str]) -> str:
    """Build an OR filter with ``*query*`` substring assertions; the query is escaped."""
    value = escape_filter_value(query)
    return "(|" + "".join(f"({attr}=*{value}*)" for attr in attributes) + ")"


def find_dns(
    connection: DirectoryConnection,
    base_dn: str,
    token: str,
    attributes: Iterable[str] = DEFAULT_LOGIN_ATTRIBUTES,
) -> List[str]:
    """Return the DNs of all entries whose login attributes equal ``token``."""
    search_filter = build_login_filter(token, attributes)
    entries = connection.search(base_dn, search_filter, scope=SUBTREE)
    return [entry["dn"] for entry in entries if entry.get("dn")]


def resolve_dn(
    connection: DirectoryConnection,
    base_dn: str,
    token: str,
    attributes: Iterable[str] = DEFAULT_LOGIN_ATTRIBUTES,
) -> str:
    """
    Find the single entry under ``base_dn`` that the login token names.

    Args:
        connection: Open connection, bound anonymously or as the service account
        base_dn: Root of the subtree to search
        token: Login name exactly as the user typed it
        attributes: Login attributes compared against the token

    Returns:
        The entry's DN

    Raises:
        NotFound: no entry matched
        AmbiguousMatch: more than one entry matched; none of them is chosen
        DirectoryError: the search itself failed (no retry is attempted)
    """
    dns = find_dns(connection, base_dn, token, attributes)
    if not dns:
        logger.debug("No directory entry for login %r", token)
        raise NotFound(f"no entry for login {token!r} under {base_dn}")
    if len(dns) > 1:
        logger.warning("Login %r matches %d entries: %s", token, len(dns), "; ".join(dns))
        raise AmbiguousMatch(f"login {token!r} matches {len(dns)} entries")
    return dns[0]
