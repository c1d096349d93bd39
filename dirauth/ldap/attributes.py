"""Map directory entry attributes into a schema-agnostic user profile."""

from typing import Any, Dict, List, Optional

from ldap3 import BASE
from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn

from ..models import DirectoryUser
from .connection import DirectoryConnection
from .errors import NotFound

# Profile field -> attribute aliases, first non-empty value wins.
# uid is the OpenLDAP/FreeIPA name, sAMAccountName and userPrincipalName are AD.
ATTRIBUTE_ALIASES = {
    "username": ("uid", "sAMAccountName", "userPrincipalName"),
    "display_name": ("displayName", "cn"),
    "email": ("mail",),
}
GROUP_ATTRIBUTE = "memberOf"

PROFILE_ATTRIBUTES = [
    "uid",
    "sAMAccountName",
    "userPrincipalName",
    "cn",
    "displayName",
    "mail",
    GROUP_ATTRIBUTE,
]


def _values(raw: Any) -> List[str]:
    """Normalize an ldap3 attribute value (scalar or list) into a list of strings."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = raw
    else:
        items = [raw]
    values = []
    for item in items:
        if isinstance(item, bytes):
            item = item.decode("utf-8", errors="replace")
        if item is None:
            continue
        values.append(str(item))
    return values


def _first(attrs: Dict[str, List[str]], aliases) -> Optional[str]:
    for alias in aliases:
        for value in attrs.get(alias.lower(), []):
            if value.strip():
                return value
    return None


def rdn_value(dn: str) -> Optional[str]:
    """Return the value of the leftmost RDN ('jdoe' for 'uid=jdoe,ou=people,...')."""
    try:
        components = parse_dn(dn)
    except LDAPInvalidDnError:
        return None
    return components[0][1] if components else None


def map_attributes(dn: str, attributes: Dict[str, Any]) -> DirectoryUser:
    """
    Fold raw attributes into a DirectoryUser.

    Attribute names are matched case-insensitively. Group memberships keep
    the order the directory returned them in. If no username alias is set,
    the value of the DN's first RDN is used.
    """
    attrs = {name.lower(): _values(value) for name, value in attributes.items()}

    username = _first(attrs, ATTRIBUTE_ALIASES["username"]) or rdn_value(dn) or dn
    return DirectoryUser(
        dn=dn,
        username=username,
        email=_first(attrs, ATTRIBUTE_ALIASES["email"]),
        display_name=_first(attrs, ATTRIBUTE_ALIASES["display_name"]),
        groups=attrs.get(GROUP_ATTRIBUTE.lower(), []),
    )


def fetch_profile(connection: DirectoryConnection, dn: str) -> DirectoryUser:
    """
    Read the allow-listed attributes of ``dn`` (base scope) and map them.

    Raises:
        NotFound: the entry does not exist (e.g. deleted after resolution)
        DirectoryError: the search failed
    """
    entries = connection.search(dn, "(objectClass=*)", scope=BASE, attributes=PROFILE_ATTRIBUTES)
    if not entries:
        raise NotFound(f"entry {dn} disappeared before its attributes were read")
    return map_attributes(entries[0]["dn"] or dn, entries[0]["attributes"])
