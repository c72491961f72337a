"""
Data models for stale deployment reclamation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ReclamationError(RuntimeError):
    """Base error for the reclamation subsystem."""


class EnumerationError(ReclamationError):
    """Listing stacks, hosted zones or record sets failed; the run must abort."""


class UnitStatus(Enum):
    """Coarse lifecycle state of a deployment unit."""
    ACTIVE = "active"
    TERMINAL = "terminal"
    OTHER = "other"


class IdentityKind(Enum):
    """Shape of a deployment unit name."""
    VERSIONED = "versioned"
    PULL_REQUEST = "pull_request"
    UNRECOGNIZED = "unrecognized"


class Decision(Enum):
    KEEP = "keep"
    DELETE = "delete"


class Reason(Enum):
    """Why a unit was kept or deleted. Logged with every decision."""
    UNRECOGNIZED = "unrecognized"
    EMBARGO = "embargo"
    ACTIVE_VERSION_UNKNOWN = "active_version_unknown"
    VERSION_ACTIVE = "version_active"
    VERSION_SUPERSEDED = "version_superseded"
    SETTLING = "settling"
    PR_OPEN = "pr_open"
    PR_CLOSED = "pr_closed"
    PR_UNKNOWN = "pr_unknown"
    ZONE_NOT_FOUND = "zone_not_found"
    RECORD_NOT_FOUND = "record_not_found"


class PullRequestState(Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DeploymentUnit:
    """A deployed, named stack as reported by the deployment store."""
    name: str
    status: UnitStatus
    created_at: datetime
    raw_status: str = ""  # provider status string, e.g. "CREATE_COMPLETE"


@dataclass(frozen=True)
class DeploymentIdentity:
    """Structured identity parsed from a deployment unit name."""
    base_name: str
    kind: IdentityKind
    version: Optional[str] = None
    pull_request_id: Optional[str] = None
    is_sandbox_variant: bool = False

    def __post_init__(self):
        if self.kind is IdentityKind.UNRECOGNIZED:
            return
        # exactly one of version / pull_request_id
        if (self.version is None) == (self.pull_request_id is None):
            raise ValueError(
                f"{self.kind.value} identity needs exactly one of version or pull_request_id"
            )


@dataclass(frozen=True)
class ActiveVersionSnapshot:
    """Point-in-time view of which versions are live."""
    base_environment_version: str
    sandbox_environment_version: Optional[str] = None


@dataclass(frozen=True)
class AliasRecord:
    """A Route 53 CNAME record set, kept whole so it can be deleted exactly."""
    name: str
    type: str = "CNAME"
    record_set: Dict[str, Any] = field(default_factory=dict)

    def as_change_record_set(self) -> Dict[str, Any]:
        if self.record_set:
            return dict(self.record_set)
        return {"Name": self.name, "Type": self.type}


@dataclass(frozen=True)
class UnitDecision:
    name: str
    decision: Decision
    reason: Reason


@dataclass
class ReclamationReport:
    """Outcome of one sweep."""
    sweep: str
    dry_run: bool = False
    decisions: List[UnitDecision] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    alias_failed: List[str] = field(default_factory=list)
    alias_records_deleted: int = 0
    # deleted stacks whose CNAME cleanup found nothing, with the reason
    alias_skipped: Dict[str, Reason] = field(default_factory=dict)
    skipped_settling: bool = False
    cancelled: bool = False

    def record(self, name: str, decision: Decision, reason: Reason) -> UnitDecision:
        unit_decision = UnitDecision(name=name, decision=decision, reason=reason)
        self.decisions.append(unit_decision)
        return unit_decision

    def to_delete(self) -> List[str]:
        return [d.name for d in self.decisions if d.decision is Decision.DELETE]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sweep": self.sweep,
            "dry_run": self.dry_run,
            "decisions": [
                {"name": d.name, "decision": d.decision.value, "reason": d.reason.value}
                for d in self.decisions
            ],
            "deleted": list(self.deleted),
            "failed": list(self.failed),
            "alias_failed": list(self.alias_failed),
            "alias_records_deleted": self.alias_records_deleted,
            "alias_skipped": {name: reason.value for name, reason in self.alias_skipped.items()},
            "skipped_settling": self.skipped_settling,
            "cancelled": self.cancelled,
        }
