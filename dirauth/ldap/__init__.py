"""LDAP building blocks for directory authentication."""

from .errors import (
    AD_ERROR_CODES,
    AD_ERROR_CODE_RE,
    parse_ad_error_code,
    DirectoryError,
    InvalidCredentials,
    NotFound,
    AmbiguousMatch,
    Timeout,
    ConnectionRefused,
    ConfigurationError,
    ServiceError,
    translate_exception,
    translate_result,
)
from .connection import DirectoryConnection, DirectoryConnector
from .resolver import build_login_filter, escape_filter_value, resolve_dn
from .auth import verify_credentials
from .attributes import PROFILE_ATTRIBUTES, fetch_profile, map_attributes
from .health import probe

__all__ = [
    "AD_ERROR_CODES",
    "AD_ERROR_CODE_RE",
    "parse_ad_error_code",
    "DirectoryError",
    "InvalidCredentials",
    "NotFound",
    "AmbiguousMatch",
    "Timeout",
    "ConnectionRefused",
    "ConfigurationError",
    "ServiceError",
    "translate_exception",
    "translate_result",
    "DirectoryConnection",
    "DirectoryConnector",
    "build_login_filter",
    "escape_filter_value",
    "resolve_dn",
    "verify_credentials",
    "PROFILE_ATTRIBUTES",
    "fetch_profile",
    "map_attributes",
    "probe",
]
