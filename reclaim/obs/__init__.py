"""
Lookups against the live signals reclamation depends on: the active API
version per environment and the review state of pull requests.
"""

from .reviews import ReviewStateChecker
from .versions import ActiveVersionError, ActiveVersionOracle

__all__ = [
    "ActiveVersionOracle",
    "ActiveVersionError",
    "ReviewStateChecker",
]
