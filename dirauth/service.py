"""Directory authentication service: the public entry point of the package."""

import logging
from typing import List, Optional

from ldap3 import SUBTREE

from .config import DirectoryConfig
from .constants import REJECTED_CODES
from .ldap.attributes import ATTRIBUTE_ALIASES, PROFILE_ATTRIBUTES, fetch_profile, map_attributes
from .ldap.auth import verify_credentials
from .ldap.connection import DirectoryConnector
from .ldap.errors import DirectoryError, InvalidCredentials, NotFound, ServiceError
from .ldap.health import probe
from .ldap.resolver import build_substring_filter, resolve_dn
from .models import Authenticated, AuthOutcome, DirectoryUser, HealthReport, Rejected, ServiceUnavailable

logger = logging.getLogger(__name__)

# Attributes matched by search_users() besides the login attributes
SEARCH_EXTRA_ATTRIBUTES = ("cn", "displayName", "mail")


class DirectoryAuthService:
    """
    Authenticate users and read their profiles from an LDAP/AD directory.

    Every call opens its own connections and closes them before returning,
    so one instance can be shared freely between threads. No directory data
    is cached.

    Example:
        service = DirectoryAuthService(config_from_env())
        outcome = service.authenticate("jdoe", "s3cret")
        if outcome.success:
            print(outcome.user.display_name)
    """

    def __init__(self, config: DirectoryConfig, connector: Optional[DirectoryConnector] = None):
        self.config = config
        self.connector = connector or DirectoryConnector(config)

    def authenticate(self, username: str, password: str) -> AuthOutcome:
        """
        Verify a username/password pair.

        Steps: service (or anonymous) bind, DN resolution, user bind on a
        separate connection, profile read on the service connection.

        Returns:
            Authenticated(user), Rejected(reason) or ServiceUnavailable(reason).
            Never raises.
        """
        username = (username or "").strip()
        if not username or not password:
            return Rejected.from_code(InvalidCredentials.code)

        try:
            user = self._authenticate(username, password)
        except DirectoryError as e:
            return self._outcome_for(e, username)
        except Exception as e:
            logger.exception("Unexpected error authenticating %r", username)
            return self._outcome_for(ServiceError(f"{type(e).__name__}: {e}"), username)

        logger.info("Authenticated %r as %s", username, user.dn)
        return Authenticated(user)

    def _authenticate(self, username: str, password: str) -> DirectoryUser:
        with self.connector.service_connection() as conn:
            dn = resolve_dn(conn, self.config.base_dn, username, self.config.login_attributes)
            # The user bind gets its own connection; conn stays bound as the service identity
            verify_credentials(self.connector, dn, password)
            return fetch_profile(conn, dn)

    def _outcome_for(self, error: DirectoryError, username: str) -> AuthOutcome:
        if error.code in REJECTED_CODES:
            logger.info("Rejected %r: %s (%s)", username, error.code, error.detail)
            return Rejected.from_code(error.code, ad_status=getattr(error, "ad_status", None))
        if isinstance(error, ServiceError):
            logger.error("Directory error authenticating %r: %s", username, error.detail)
        else:
            logger.warning("Directory unavailable authenticating %r: %s (%s)", username, error.code, error.detail)
        return ServiceUnavailable.from_code(error.code)

    def lookup(self, username: str) -> DirectoryUser:
        """
        Read a user's profile without a password.

        Raises:
            NotFound: no entry (or a blank username)
            AmbiguousMatch: several entries match
            DirectoryError: any other failure, already translated
        """
        username = (username or "").strip()
        if not username:
            raise NotFound("empty username")
        try:
            with self.connector.service_connection() as conn:
                dn = resolve_dn(conn, self.config.base_dn, username, self.config.login_attributes)
                return fetch_profile(conn, dn)
        except DirectoryError:
            raise
        except Exception as e:
            logger.exception("Unexpected error looking up %r", username)
            raise ServiceError(f"{type(e).__name__}: {e}") from e

    def user_exists(self, username: str) -> bool:
        """
        Check whether exactly one entry matches ``username``.

        Only NotFound reads as False; an unreachable directory still raises.
        """
        try:
            self.lookup(username)
        except NotFound:
            return False
        return True

    def search_users(self, query: str, limit: Optional[int] = None) -> List[DirectoryUser]:
        """
        Find users whose login, name or mail contains ``query``.

        Args:
            query: Text to look for (escaped before use)
            limit: Maximum number of results, capped by the configured size limit

        Returns:
            Profiles in directory order; entries without a username attribute
            are skipped. Reaching the limit returns the partial list.

        Raises:
            ValueError: limit is zero or negative
        """
        if limit is not None and limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")
        query = (query or "").strip()
        if not query:
            return []
        size_limit = self.config.search_size_limit if limit is None else min(limit, self.config.search_size_limit)
        attributes = list(dict.fromkeys([*self.config.login_attributes, *SEARCH_EXTRA_ATTRIBUTES]))
        search_filter = build_substring_filter(query, attributes)

        try:
            with self.connector.service_connection() as conn:
                entries = conn.search(
                    self.config.base_dn,
                    search_filter,
                    scope=SUBTREE,
                    attributes=PROFILE_ATTRIBUTES,
                    size_limit=size_limit,
                )
        except DirectoryError:
            raise
        except Exception as e:
            logger.exception("Unexpected error searching for %r", query)
            raise ServiceError(f"{type(e).__name__}: {e}") from e

        users = []
        for entry in entries[:size_limit]:
            if not _has_username(entry["attributes"]):
                continue
            users.append(map_attributes(entry["dn"], entry["attributes"]))
        return users

    def health_check(self) -> HealthReport:
        """Probe the directory stage by stage. Never raises."""
        return probe(self.connector)


def _has_username(attributes) -> bool:
    names = {name.lower() for name, value in attributes.items() if value}
    return any(alias.lower() in names for alias in ATTRIBUTE_ALIASES["username"])
