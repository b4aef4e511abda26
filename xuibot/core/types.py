"""Type definitions for the x-ui bot."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List


class UserState(str, Enum):
    """User state. Flat enum, every transition is explicit."""
    
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"
    SUSPENDED = "suspended"
    PENDING_VERIFICATION = "pending_verification"
    DELETED = "deleted"
    ADDING_HOST = "adding_host"  # transient, host-add dialog only


class ExpectedAction(str, Enum):
    """What the system is waiting for from the user."""
    
    NONE = "none"
    VERIFY_EMAIL = "verify_email"
    COMPLETE_PROFILE = "complete_profile"
    ADD_PAYMENT = "add_payment"
    CONTACT_SUPPORT = "contact_support"
    WAIT_APPROVAL = "wait_approval"
    INPUT_HOST_DATA = "input_host_data"


@dataclass
class HostData:
    """Parsed host-add input."""
    host: str
    login: str
    password: str
    secret_key: str = ""


@dataclass
class ProbeOutcome:
    """Result of one authenticated reachability check."""
    reachable: bool
    error: str = ""
    accounts: int = 0


@dataclass
class HostCheckResult:
    """One probe of one host during a sweep. Not persisted."""
    host_id: int
    host_name: str
    host_url: str
    success: bool
    was_active: bool
    checked_at: datetime
    error: str = ""


@dataclass
class SweepReport:
    """Summary of one check-all-hosts sweep."""
    started_at: datetime
    checked: int = 0
    failed: List[HostCheckResult] = field(default_factory=list)
    reactivated: List[HostCheckResult] = field(default_factory=list)
    
    def summary(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "failed": len(self.failed),
            "reactivated": len(self.reactivated),
        }
