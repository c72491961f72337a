"""
Pull request state lookup against the GitHub REST API.
"""

import logging
from typing import Optional

import requests

from ..cleanup.models import PullRequestState

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class ReviewStateChecker:
    """Tells whether the pull request behind a deployment has been closed."""

    def __init__(
        self,
        repository: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30,
    ):
        self.repository = repository
        self.token = token
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def get_state(self, pull_request_id: str) -> PullRequestState:
        """
        Fetch the state of a pull request.

        Any failure resolves to UNKNOWN; nothing is raised.
        """
        url = f"{self.base_url}/repos/{self.repository}/pulls/{pull_request_id}"
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.info(f"Checking pull request id {pull_request_id}")
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch PR {pull_request_id}: {e}")
            return PullRequestState.UNKNOWN

        if not response.ok:
            logger.warning(f"Failed to fetch PR {pull_request_id}: {response.status_code} {response.text}")
            return PullRequestState.UNKNOWN

        try:
            state = response.json().get("state")
        except (ValueError, AttributeError) as e:
            logger.warning(f"Malformed response for PR {pull_request_id}: {e}")
            return PullRequestState.UNKNOWN

        if state == "closed":
            return PullRequestState.CLOSED
        if state == "open":
            return PullRequestState.OPEN
        logger.warning(f"Unexpected state {state!r} for PR {pull_request_id}")
        return PullRequestState.UNKNOWN

    def is_closed(self, pull_request_id: str) -> bool:
        return self.get_state(pull_request_id) is PullRequestState.CLOSED
