"""Directory error taxonomy, AD sub-status parsing and ldap3 error translation."""

import re
import socket
from typing import Any, Dict, Optional

from ldap3.core.exceptions import (
    LDAPResponseTimeoutError,
    LDAPSocketOpenError,
)

from ..constants import (
    AMBIGUOUS_MATCH,
    CONFIGURATION_ERROR,
    CONNECTION_REFUSED,
    INVALID_CREDENTIALS,
    NOT_FOUND,
    PUBLIC_MESSAGES,
    RESULT_INVALID_CREDENTIALS,
    RESULT_NO_SUCH_OBJECT,
    RESULT_TIME_LIMIT_EXCEEDED,
    RETRYABLE_CODES,
    SERVICE_ERROR,
    TIMEOUT,
)

# AD sub-error codes extracted from LDAP error messages (hex values after "data")
# These are Windows System Error Codes (Win32)
# Reference: https://docs.microsoft.com/en-us/windows/win32/debug/system-error-codes
AD_ERROR_CODES = {
    0x525: "ERROR_NO_SUCH_USER",           # 1317 - The specified account does not exist
    0x52e: "ERROR_LOGON_FAILURE",          # 1326 - Unknown user name or bad password
    0x530: "ERROR_INVALID_LOGON_HOURS",    # 1328 - Account logon time restriction violation
    0x531: "ERROR_INVALID_WORKSTATION",    # 1329 - Account not allowed to log on from this computer
    0x532: "ERROR_PASSWORD_EXPIRED",       # 1330 - The password has expired
    0x533: "ERROR_ACCOUNT_DISABLED",       # 1331 - Account currently disabled
    0x534: "ERROR_LOGON_TYPE_NOT_GRANTED", # 1332 - Logon type not granted
    0x701: "ERROR_ACCOUNT_EXPIRED",        # 1793 - The user's account has expired
    0x773: "ERROR_PASSWORD_MUST_CHANGE",   # 1907 - User must change password before first logon
    0x775: "ERROR_ACCOUNT_LOCKED_OUT",     # 1909 - Account is currently locked out
}

# Regex to extract AD-specific error code from LDAP bind error messages
# Matches patterns like: "data 52e," or "data 775,"
AD_ERROR_CODE_RE = re.compile(r"data\s+([0-9a-fA-F]+)")


def parse_ad_error_code(error_message: str) -> Optional[int]:
    """Extract the AD-specific error code from an LDAP error message."""
    match = AD_ERROR_CODE_RE.search(error_message or "")
    return int(match.group(1), 16) if match else None


class DirectoryError(Exception):
    """
    Base class for every failure that crosses the public boundary.

    ``str(error)`` is the fixed caller-facing message for ``code``. The raw
    protocol text, when there is one, lives in ``detail`` and is meant for
    server-side logs only.
    """
    code = SERVICE_ERROR

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(PUBLIC_MESSAGES[self.code])

    @property
    def message(self) -> str:
        return PUBLIC_MESSAGES[self.code]

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES


class InvalidCredentials(DirectoryError):
    """The directory rejected the password (result code 49)."""
    code = INVALID_CREDENTIALS

    def __init__(self, detail: Optional[str] = None, ad_status: Optional[str] = None):
        super().__init__(detail)
        self.ad_status = ad_status


class NotFound(DirectoryError):
    code = NOT_FOUND


class AmbiguousMatch(DirectoryError):
    code = AMBIGUOUS_MATCH


class Timeout(DirectoryError):
    code = TIMEOUT


class ConnectionRefused(DirectoryError):
    code = CONNECTION_REFUSED


class ConfigurationError(DirectoryError):
    code = CONFIGURATION_ERROR


class ServiceError(DirectoryError):
    code = SERVICE_ERROR


def _walk(exc: BaseException):
    """Yield the exception, its causes and any exceptions nested in its args.

    ldap3 reports a failed socket open as ``LDAPSocketOpenError('unable to open
    socket', history)`` where history holds (time, type, value, address)
    tuples, so the underlying OS error is only reachable through ``args``.
    """
    seen = set()
    stack = [exc]
    while stack:
        item = stack.pop()
        if id(item) in seen:
            continue
        seen.add(id(item))
        if isinstance(item, BaseException):
            yield item
            stack.extend(item.args)
            if item.__cause__ is not None:
                stack.append(item.__cause__)
            if item.__context__ is not None:
                stack.append(item.__context__)
        elif isinstance(item, type) and issubclass(item, BaseException):
            yield item
        elif isinstance(item, (list, tuple)):
            stack.extend(item)


def _matches(exc: BaseException, types, text: str) -> bool:
    for item in _walk(exc):
        if isinstance(item, type):
            if issubclass(item, types):
                return True
            continue
        if isinstance(item, types) or text in str(item).lower():
            return True
    return False


def is_timeout(exc: BaseException) -> bool:
    """Check whether an exception was caused by a connect or receive timeout.

    On Linux ldap3 applies the receive timeout with SO_RCVTIMEO on a blocking
    socket, so an expired receive surfaces as EAGAIN (BlockingIOError) rather
    than socket.timeout.
    """
    return _matches(
        exc,
        (socket.timeout, TimeoutError, BlockingIOError, LDAPResponseTimeoutError),
        "timed out",
    )


def is_refused(exc: BaseException) -> bool:
    """Check whether an exception was caused by a refused connection."""
    return _matches(exc, (ConnectionRefusedError,), "refused")


def translate_exception(exc: BaseException) -> DirectoryError:
    """
    Map an ldap3, socket or unexpected exception into the closed taxonomy.

    Args:
        exc: The exception raised by ldap3 or the socket layer

    Returns:
        The matching DirectoryError (``exc`` itself if it already is one)
    """
    if isinstance(exc, DirectoryError):
        return exc
    detail = f"{type(exc).__name__}: {exc}"
    if is_timeout(exc):
        return Timeout(detail)
    if is_refused(exc) or isinstance(exc, (LDAPSocketOpenError, ConnectionError)):
        return ConnectionRefused(detail)
    # Protocol errors, malformed DNs and anything unexpected
    return ServiceError(detail)


def translate_result(result: Optional[Dict[str, Any]]) -> DirectoryError:
    """
    Map an unsuccessful ldap3 result dictionary into the closed taxonomy.

    Args:
        result: ``Connection.result`` after a failed operation

    Returns:
        The matching DirectoryError. Invalid credentials carry the AD
        sub-status name (e.g. 'ERROR_ACCOUNT_LOCKED_OUT') when present.
    """
    result = result or {}
    code = result.get("result")
    description = result.get("description") or ""
    message = result.get("message") or ""
    detail = f"{code} {description}: {message}".strip()

    if code == RESULT_INVALID_CREDENTIALS:
        ad_code = parse_ad_error_code(message)
        ad_status = AD_ERROR_CODES.get(ad_code) if ad_code is not None else None
        return InvalidCredentials(detail, ad_status=ad_status)
    if code == RESULT_NO_SUCH_OBJECT:
        return NotFound(detail)
    if code == RESULT_TIME_LIMIT_EXCEEDED:
        return Timeout(detail)
    return ServiceError(detail)
