"""
Deployment name parsing utilities.
"""

import re

from .cleanup.models import DeploymentIdentity, IdentityKind


def normalize_version(version: str) -> str:
    """
    Normalize a version string for comparison against stack names.

    Args:
        version: Version as reported by a status endpoint (e.g. "v1.2.3")

    Returns:
        str: Version with dots replaced by hyphens (e.g. "v1-2-3")
    """
    return version.replace(".", "-")


def _pull_request_pattern(base_name: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(base_name)}-pr-(?P<pull_request_id>\d+)(?P<sandbox>-sandbox)?$")


def _versioned_pattern(base_name: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(base_name)}(?P<sandbox>-sandbox)?-(?P<version>[\da-z-]+)$")


def parse(name: str, base_name: str) -> DeploymentIdentity:
    """
    Parse a deployment unit name into a structured identity.

    Recognized shapes:
        {base}-{version}                   versioned
        {base}-sandbox-{version}           versioned, sandbox variant
        {base}-pr-{digits}[-sandbox]       pull request

    Args:
        name: Deployment unit name
        base_name: Literal stack name prefix

    Returns:
        DeploymentIdentity: Parsed identity, UNRECOGNIZED when no shape matches
    """
    unrecognized = DeploymentIdentity(base_name=base_name, kind=IdentityKind.UNRECOGNIZED)
    if not base_name:
        return unrecognized

    # PR names must never fall through to the versioned pattern
    match = _pull_request_pattern(base_name).match(name)
    if match:
        return DeploymentIdentity(
            base_name=base_name,
            kind=IdentityKind.PULL_REQUEST,
            pull_request_id=match.group("pull_request_id"),
            is_sandbox_variant=match.group("sandbox") is not None,
        )

    match = _versioned_pattern(base_name).match(name)
    if not match:
        return unrecognized

    version = match.group("version")
    if version.startswith("pr-") or version == "sandbox":
        return unrecognized

    return DeploymentIdentity(
        base_name=base_name,
        kind=IdentityKind.VERSIONED,
        version=version,
        is_sandbox_variant=match.group("sandbox") is not None,
    )

