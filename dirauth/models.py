"""Data models for directory authentication results."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union

from .constants import PUBLIC_MESSAGES


@dataclass(frozen=True)
class DirectoryUser:
    """Normalized profile of one directory entry, rebuilt on every lookup."""
    dn: str
    username: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    groups: List[str] = field(default_factory=list)  # directory order, not deduplicated

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Authenticated:
    """The password was accepted and the profile was read."""
    user: DirectoryUser

    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "user": self.user.to_dict()}


@dataclass(frozen=True)
class Rejected:
    """
    The credentials or the directory data do not allow a login.

    reason is one of INVALID_CREDENTIALS, NOT_FOUND or AMBIGUOUS_MATCH.
    Callers that must not reveal account existence should treat all three
    the same way.
    """
    reason: str
    message: str = ""
    ad_status: Optional[str] = None  # AD sub-status, e.g. ERROR_ACCOUNT_LOCKED_OUT

    success = False

    @classmethod
    def from_code(cls, reason: str, ad_status: Optional[str] = None) -> "Rejected":
        return cls(reason=reason, message=PUBLIC_MESSAGES[reason], ad_status=ad_status)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.reason, "message": self.message}


@dataclass(frozen=True)
class ServiceUnavailable:
    """
    The directory could not give a verdict.

    reason is one of TIMEOUT, CONNECTION_REFUSED, CONFIGURATION_ERROR or
    SERVICE_ERROR.
    """
    reason: str
    message: str = ""

    success = False

    @classmethod
    def from_code(cls, reason: str) -> "ServiceUnavailable":
        return cls(reason=reason, message=PUBLIC_MESSAGES[reason])

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.reason, "message": self.message}


AuthOutcome = Union[Authenticated, Rejected, ServiceUnavailable]


@dataclass(frozen=True)
class StageResult:
    """Outcome of one health probe stage."""
    name: str
    ok: bool
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HealthReport:
    """Stage-by-stage result of a health probe."""
    reachable: bool
    stages: List[StageResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return bool(self.stages) and all(stage.ok for stage in self.stages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reachable": self.reachable,
            "healthy": self.healthy,
            "stages": [s.to_dict() for s in self.stages],
        }
