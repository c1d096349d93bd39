"""Directory configuration: environment, INI file and command-line sources."""

import argparse
import configparser
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

from .constants import (
    DEFAULT_LOGIN_ATTRIBUTES,
    DEFAULT_SIZE_LIMIT,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_URL,
)
from .ldap.errors import ConfigurationError


SUPPORTED_SCHEMES = ("ldap", "ldaps")

DEFAULT_CONFIG_TEMPLATE = """\
# dirauth Configuration File
# --------------------------
# Every value can also come from the environment (LDAP_URL, LDAP_BASE_DN,
# LDAP_ADMIN_DN, LDAP_ADMIN_PASSWORD, LDAP_TIMEOUT, ...). Command-line
# options override both.

[directory]
# Directory endpoint (ldap:// or ldaps://)
url = ldap://localhost:389
# Root of the subtree searched for users (REQUIRED)
base_dn = dc=example,dc=com
# Service account used to search for users. Leave BOTH empty to search
# anonymously; setting only one of them is a configuration error.
bind_dn =
bind_password =
# Connect timeout in milliseconds
timeout = 5000
# Per-operation (bind/search) timeout in milliseconds, defaults to timeout
operation_timeout =
# Attributes compared against the login name, in order
login_attributes = uid, sAMAccountName, cn, userPrincipalName
# Maximum number of entries returned by user searches
size_limit = 50
"""

# Environment variable -> config key
ENV_KEYS = {
    "LDAP_URL": "url",
    "LDAP_BASE_DN": "base_dn",
    "LDAP_ADMIN_DN": "bind_dn",
    "LDAP_ADMIN_PASSWORD": "bind_password",
    "LDAP_TIMEOUT": "timeout",
    "LDAP_OPERATION_TIMEOUT": "operation_timeout",
    "LDAP_LOGIN_ATTRIBUTES": "login_attributes",
    "LDAP_SIZE_LIMIT": "size_limit",
}


@dataclass(frozen=True)
class DirectoryConfig:
    """Immutable settings for talking to the directory, loaded once at startup."""
    url: str
    base_dn: str
    service_dn: Optional[str] = None
    service_password: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    operation_timeout_ms: Optional[int] = None
    login_attributes: Tuple[str, ...] = DEFAULT_LOGIN_ATTRIBUTES
    search_size_limit: int = DEFAULT_SIZE_LIMIT

    def __post_init__(self):
        if self.operation_timeout_ms is None:
            object.__setattr__(self, "operation_timeout_ms", self.timeout_ms)
        validate_config(self)

    @property
    def anonymous(self) -> bool:
        """True when searches run without a service account."""
        return not self.service_dn

    @property
    def connect_timeout(self) -> float:
        """Connect timeout in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def operation_timeout(self) -> int:
        """
        Operation timeout in whole seconds, rounded up (at least 1).

        ldap3 packs the socket receive timeout as an integer, so sub-second
        precision is not available.
        """
        return max(1, math.ceil(self.operation_timeout_ms / 1000))

    @property
    def time_limit(self) -> int:
        """Server-side search time limit in whole seconds."""
        return self.operation_timeout

    def masked(self) -> Dict[str, Any]:
        """Config values safe to print; the secret is reduced to its last 4 chars."""
        password = self.service_password
        return {
            "url": self.url,
            "base_dn": self.base_dn,
            "bind_dn": self.service_dn or "(anonymous)",
            "bind_password": ("****" + password[-4:]) if password else "NOT SET",
            "timeout_ms": self.timeout_ms,
            "operation_timeout_ms": self.operation_timeout_ms,
            "login_attributes": list(self.login_attributes),
            "size_limit": self.search_size_limit,
        }


def validate_config(config: DirectoryConfig) -> None:
    """Raise ConfigurationError if the configuration cannot work."""
    parsed = urlparse(config.url or "")
    if parsed.scheme.lower() not in SUPPORTED_SCHEMES or not parsed.hostname:
        raise ConfigurationError(f"Unsupported directory URL: {config.url!r}")
    if not config.base_dn or not config.base_dn.strip():
        raise ConfigurationError("Base DN is required")
    if config.timeout_ms <= 0 or config.operation_timeout_ms <= 0:
        raise ConfigurationError("Timeouts must be positive milliseconds")
    if config.search_size_limit <= 0:
        raise ConfigurationError("Size limit must be positive")
    if not config.login_attributes:
        raise ConfigurationError("At least one login attribute is required")
    # Anonymous mode needs neither; a half-configured service account is a mistake
    if bool(config.service_dn) != bool(config.service_password):
        if config.service_dn:
            raise ConfigurationError(f"Service account {config.service_dn!r} has no password")
        raise ConfigurationError("Service account password set without a bind DN")


def _parse_int(key: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from None


def _parse_attributes(value: Any) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    attrs = tuple(item.strip() for item in items if item and item.strip())
    return attrs or None


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_env_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Read configuration values from environment variables.

    LDAP_PASSWORD is accepted as an alias for LDAP_ADMIN_PASSWORD. When
    LDAP_ADMIN_DN is unset but LDAP_LOGIN and LDAP_BASE_DN are, the bind DN
    is built as ``cn=<login>,cn=Users,<base_dn>`` (the AD default container).

    Returns a dict with only the keys that were set.
    """
    environ = os.environ if environ is None else environ
    result: Dict[str, Any] = {}

    for env_key, key in ENV_KEYS.items():
        value = _blank_to_none(environ.get(env_key))
        if value is not None:
            result[key] = value

    if "bind_password" not in result:
        password = _blank_to_none(environ.get("LDAP_PASSWORD"))
        if password is not None:
            result["bind_password"] = password

    if "bind_dn" not in result:
        login = _blank_to_none(environ.get("LDAP_LOGIN"))
        if login and result.get("base_dn"):
            result["bind_dn"] = f"cn={login},cn=Users,{result['base_dn']}"

    return result


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from INI file.

    Returns a dict with the values of the [directory] section, leaving out
    keys that are empty.
    """
    config = configparser.ConfigParser(interpolation=None)
    if not config.read(config_path):
        raise ConfigurationError(f"Cannot read config file: {config_path}")

    result: Dict[str, Any] = {}
    if config.has_section('directory'):
        for key in ['url', 'base_dn', 'bind_dn', 'bind_password', 'timeout',
                    'operation_timeout', 'login_attributes', 'size_limit']:
            value = _blank_to_none(config.get('directory', key, fallback=None))
            if value is not None:
                result[key] = value

    return result


def merge_config_with_args(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """
    Merge config values with CLI args. CLI args take precedence.
    """
    merged = dict(config)
    for key in ['url', 'base_dn', 'bind_dn', 'bind_password', 'timeout', 'operation_timeout']:
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value
    return merged


def build_config(values: Dict[str, Any]) -> DirectoryConfig:
    """
    Build and validate a DirectoryConfig from merged config values.

    Raises:
        ConfigurationError: if a value is missing or invalid
    """
    timeout = _parse_int("timeout", values.get("timeout"))
    operation_timeout = _parse_int("operation_timeout", values.get("operation_timeout"))
    size_limit = _parse_int("size_limit", values.get("size_limit"))
    login_attributes = _parse_attributes(values.get("login_attributes"))

    return DirectoryConfig(
        url=_blank_to_none(values.get("url")) or DEFAULT_URL,
        base_dn=_blank_to_none(values.get("base_dn")) or "",
        service_dn=_blank_to_none(values.get("bind_dn")),
        service_password=values.get("bind_password") or None,
        timeout_ms=timeout if timeout is not None else DEFAULT_TIMEOUT_MS,
        operation_timeout_ms=operation_timeout,
        login_attributes=login_attributes or DEFAULT_LOGIN_ATTRIBUTES,
        search_size_limit=size_limit if size_limit is not None else DEFAULT_SIZE_LIMIT,
    )


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> DirectoryConfig:
    """Build the process-wide DirectoryConfig from the environment."""
    return build_config(load_env_config(environ))


def generate_config_file(output_path: Optional[str] = None) -> str:
    """Generate a template configuration file."""
    if output_path:
        with open(output_path, 'w') as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
        return f"Configuration template written to: {output_path}"
    else:
        return DEFAULT_CONFIG_TEMPLATE
