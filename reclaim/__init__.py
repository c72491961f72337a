"""
Reclaim - Stale deployment reclamation for versioned CloudFormation stacks.

This package decides which previously deployed stacks are safe to delete
(superseded versions, closed pull requests) and removes their Route 53
CNAME aliases.
"""

__version__ = "0.1.0"
__author__ = "Reclaim Maintainers"
