"""
Stack and DNS record cleanup for reclaimed deployments.
"""

from .dns import AliasDirectory, AliasIndex
from .models import (
    ActiveVersionSnapshot,
    AliasRecord,
    Decision,
    DeploymentIdentity,
    DeploymentUnit,
    EnumerationError,
    IdentityKind,
    PullRequestState,
    Reason,
    ReclamationError,
    ReclamationReport,
    UnitDecision,
    UnitStatus,
)
from .proxygen import LambdaInvocationError, ProxygenInstanceStore
from .stacks import DeploymentEnumerator

__all__ = [
    "AliasDirectory",
    "AliasIndex",
    "ActiveVersionSnapshot",
    "AliasRecord",
    "Decision",
    "DeploymentEnumerator",
    "DeploymentIdentity",
    "DeploymentUnit",
    "EnumerationError",
    "IdentityKind",
    "LambdaInvocationError",
    "ProxygenInstanceStore",
    "PullRequestState",
    "Reason",
    "ReclamationError",
    "ReclamationReport",
    "UnitDecision",
    "UnitStatus",
]
