"""
Active version lookup from the live API status endpoints.
"""

import logging
from typing import Optional

import requests

from ..cleanup.models import ActiveVersionSnapshot, ReclamationError
from ..config import EnvironmentProfile

logger = logging.getLogger(__name__)


class ActiveVersionError(ReclamationError):
    """The status endpoint did not report a version."""


class ActiveVersionOracle:
    """Reads the currently live version from ``https://{domain}/{base_path}/_status``."""

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None, timeout: float = 30):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_active_version(self, domain: str, base_path: str) -> str:
        """
        Fetch the version currently served by an environment.

        Args:
            domain: Environment domain (e.g. "int.api.service.nhs.uk")
            base_path: API base path

        Returns:
            str: Version number reported by the health check

        Raises:
            ActiveVersionError: If the request failed, returned non-2xx or had a malformed body
        """
        url = f"https://{domain}/{base_path.strip('/')}/_status"
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key

        logger.info(f"Checking live api status endpoint at {url} for active version")
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ActiveVersionError(f"Failed to fetch active version from {url}: {e}") from e
        if not response.ok:
            raise ActiveVersionError(
                f"Failed to fetch active version from {url}: {response.status_code} {response.text}"
            )

        try:
            return response.json()["checks"]["healthcheck"]["outcome"]["versionNumber"]
        except (ValueError, KeyError, TypeError) as e:
            raise ActiveVersionError(f"Malformed status response from {url}: {e}") from e

    def get_active_versions(self, profile: EnvironmentProfile, base_path: str) -> ActiveVersionSnapshot:
        """
        Build the active version snapshot for an environment.

        A failure on the base environment propagates. A failure on the sandbox
        environment is logged and leaves the sandbox version unknown.
        """
        base_version = self.get_active_version(profile.domain, base_path)

        sandbox_version = None
        if profile.has_sandbox:
            try:
                sandbox_version = self.get_active_version(profile.sandbox_domain, base_path)
            except ActiveVersionError as e:
                logger.warning(f"Failed to get active version for sandbox environment: {e}")

        logger.info(f"Active versions for {profile.name}: base={base_version} sandbox={sandbox_version}")
        return ActiveVersionSnapshot(
            base_environment_version=base_version,
            sandbox_environment_version=sandbox_version,
        )
