"""
Retention rules deciding whether a versioned deployment can be reclaimed.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from .cleanup.models import (
    ActiveVersionSnapshot,
    Decision,
    DeploymentIdentity,
    DeploymentUnit,
    IdentityKind,
    Reason,
)
from .names import normalize_version, parse

logger = logging.getLogger(__name__)

EMBARGO_WINDOW = timedelta(hours=24)


def is_embargoed(created_at: Optional[datetime], now: datetime, embargo: timedelta = EMBARGO_WINDOW) -> bool:
    """
    Check whether a deployment is still inside its rollback window.

    Args:
        created_at: Deployment creation time (timezone-aware)
        now: Current time (timezone-aware)
        embargo: Length of the embargo window

    Returns:
        True if the deployment was created less than ``embargo`` ago
    """
    if created_at is None:
        return False
    return now - created_at < embargo


def decide(
    identity: DeploymentIdentity,
    created_at: datetime,
    now: datetime,
    active_versions: ActiveVersionSnapshot,
    embargo: timedelta = EMBARGO_WINDOW,
) -> Tuple[Decision, Reason]:
    """
    Decide whether a versioned deployment is kept or deleted.

    Pull request deployments are gated by their review state, not by this
    policy, and are rejected.

    Args:
        identity: Parsed deployment identity
        created_at: Deployment creation time
        now: Current time
        active_versions: Snapshot of the live versions
        embargo: Length of the embargo window

    Returns:
        Tuple of (decision, reason)

    Raises:
        ValueError: If the identity is a pull request deployment
    """
    if identity.kind is IdentityKind.PULL_REQUEST:
        raise ValueError(f"Pull request deployment {identity.pull_request_id} is decided by review state")

    if identity.kind is IdentityKind.UNRECOGNIZED:
        return Decision.KEEP, Reason.UNRECOGNIZED

    if is_embargoed(created_at, now, embargo):
        return Decision.KEEP, Reason.EMBARGO

    if identity.is_sandbox_variant:
        current = active_versions.sandbox_environment_version
    else:
        current = active_versions.base_environment_version

    if not current:
        return Decision.KEEP, Reason.ACTIVE_VERSION_UNKNOWN

    if normalize_version(identity.version) == normalize_version(current):
        return Decision.KEEP, Reason.VERSION_ACTIVE

    return Decision.DELETE, Reason.VERSION_SUPERSEDED


def find_active_unit(
    units: Iterable[DeploymentUnit],
    base_name: str,
    active_versions: ActiveVersionSnapshot,
) -> Optional[DeploymentUnit]:
    """Find the non-sandbox unit serving the active base-environment version."""
    if not active_versions.base_environment_version:
        return None
    active = normalize_version(active_versions.base_environment_version)
    for unit in units:
        identity = parse(unit.name, base_name)
        if identity.kind is not IdentityKind.VERSIONED or identity.is_sandbox_variant:
            continue
        if identity.version == active:
            return unit
    return None


def active_version_settled(
    units: Iterable[DeploymentUnit],
    base_name: str,
    active_versions: ActiveVersionSnapshot,
    now: datetime,
    embargo: timedelta = EMBARGO_WINDOW,
) -> bool:
    """
    Check that the active base-environment version has been live long enough
    for its predecessors to be reclaimed.

    Only non-sandbox units are inspected; sandbox promotions do not hold back
    the sweep.

    Returns:
        True if the active version's own unit exists and is outside its embargo
    """
    active_unit = find_active_unit(units, base_name, active_versions)
    if active_unit is None:
        logger.info(
            f"No deployment found for active version {active_versions.base_environment_version}, "
            "skipping deletion of superseded stacks"
        )
        return False
    if is_embargoed(active_unit.created_at, now, embargo):
        logger.info(
            f"Active version {active_versions.base_environment_version} deployed less than "
            f"{embargo} ago ({active_unit.name}), skipping deletion of superseded stacks"
        )
        return False
    return True
