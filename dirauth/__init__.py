"""
dirauth - Directory Authentication

Verify usernames and passwords against an LDAP / Active Directory server,
resolve the user's DN, read a normalized profile and report failures through
a small closed error taxonomy.
"""

__version__ = "1.0.0"

from .constants import (
    Colors,
    INVALID_CREDENTIALS,
    NOT_FOUND,
    AMBIGUOUS_MATCH,
    TIMEOUT,
    CONNECTION_REFUSED,
    CONFIGURATION_ERROR,
    SERVICE_ERROR,
)
from .models import (
    DirectoryUser,
    Authenticated,
    Rejected,
    ServiceUnavailable,
    AuthOutcome,
    StageResult,
    HealthReport,
)
from .ldap import (
    DirectoryError,
    InvalidCredentials,
    NotFound,
    AmbiguousMatch,
    Timeout,
    ConnectionRefused,
    ConfigurationError,
    ServiceError,
    DirectoryConnection,
    DirectoryConnector,
    AD_ERROR_CODES,
)
from .config import DirectoryConfig, build_config, config_from_env, load_config, load_env_config
from .service import DirectoryAuthService
from .cli import main

__all__ = [
    # Version
    "__version__",
    # Constants
    "Colors",
    "INVALID_CREDENTIALS",
    "NOT_FOUND",
    "AMBIGUOUS_MATCH",
    "TIMEOUT",
    "CONNECTION_REFUSED",
    "CONFIGURATION_ERROR",
    "SERVICE_ERROR",
    # Models
    "DirectoryUser",
    "Authenticated",
    "Rejected",
    "ServiceUnavailable",
    "AuthOutcome",
    "StageResult",
    "HealthReport",
    # Errors
    "DirectoryError",
    "InvalidCredentials",
    "NotFound",
    "AmbiguousMatch",
    "Timeout",
    "ConnectionRefused",
    "ConfigurationError",
    "ServiceError",
    "AD_ERROR_CODES",
    # LDAP
    "DirectoryConnection",
    "DirectoryConnector",
    # Config
    "DirectoryConfig",
    "build_config",
    "config_from_env",
    "load_config",
    "load_env_config",
    # Service
    "DirectoryAuthService",
    # CLI
    "main",
]
