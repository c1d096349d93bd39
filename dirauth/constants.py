"""Constants used throughout the application."""


class Colors:
    """ANSI color codes for terminal output."""
    NC = '\033[0m'
    RED = '\033[0;31m'
    BLUE = '\033[0;34m'
    GREEN = '\033[0;32m'
    LBLUE = '\033[1;34m'
    ORANGE = '\033[0;33m'

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.NC = cls.RED = cls.BLUE = cls.GREEN = cls.LBLUE = cls.ORANGE = ''


# Closed error taxonomy. These codes are the only failure values callers
# may branch on.
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
NOT_FOUND = "NOT_FOUND"
AMBIGUOUS_MATCH = "AMBIGUOUS_MATCH"
TIMEOUT = "TIMEOUT"
CONNECTION_REFUSED = "CONNECTION_REFUSED"
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
SERVICE_ERROR = "SERVICE_ERROR"

# Codes reported as Rejected (the end user or the directory data is at fault)
REJECTED_CODES = {
    INVALID_CREDENTIALS,
    NOT_FOUND,
    AMBIGUOUS_MATCH,
}

# Codes reported as ServiceUnavailable (infrastructure or setup is at fault)
UNAVAILABLE_CODES = {
    TIMEOUT,
    CONNECTION_REFUSED,
    CONFIGURATION_ERROR,
    SERVICE_ERROR,
}

# Codes that a caller may safely retry
RETRYABLE_CODES = {
    TIMEOUT,
    CONNECTION_REFUSED,
}

# Fixed caller-facing messages; raw protocol text never leaves the core.
PUBLIC_MESSAGES = {
    INVALID_CREDENTIALS: "Invalid username or password",
    NOT_FOUND: "User not found in directory",
    AMBIGUOUS_MATCH: "Username matches more than one directory entry",
    TIMEOUT: "Timed out talking to the directory server",
    CONNECTION_REFUSED: "Could not connect to the directory server",
    CONFIGURATION_ERROR: "Directory service is misconfigured",
    SERVICE_ERROR: "Directory authentication failed",
}

# LDAP result codes (RFC 4511, section 4.1.9)
RESULT_SUCCESS = 0
RESULT_TIME_LIMIT_EXCEEDED = 3
RESULT_SIZE_LIMIT_EXCEEDED = 4
RESULT_NO_SUCH_OBJECT = 32
RESULT_INVALID_CREDENTIALS = 49

# Login attributes tried by the DN resolver, across LDAP and AD schemas
DEFAULT_LOGIN_ATTRIBUTES = ("uid", "sAMAccountName", "cn", "userPrincipalName")

DEFAULT_URL = "ldap://localhost:389"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_SIZE_LIMIT = 50
