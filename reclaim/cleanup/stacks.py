"""
CloudFormation stack enumeration and deletion.
"""

import logging
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import DeploymentUnit, EnumerationError, UnitStatus

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"DELETE_COMPLETE"}


def _unit_status(raw_status: str) -> UnitStatus:
    if raw_status in TERMINAL_STATUSES:
        return UnitStatus.TERMINAL
    if raw_status.endswith("_COMPLETE") and not raw_status.startswith("DELETE"):
        return UnitStatus.ACTIVE
    return UnitStatus.OTHER


class DeploymentEnumerator:
    """Lists and deletes stacks through the CloudFormation API."""

    def __init__(self, client=None, region: Optional[str] = None):
        self.client = client or boto3.client("cloudformation", region_name=region)

    def list_all(self) -> List[DeploymentUnit]:
        """
        List every non-terminal stack in the account and region.

        Returns:
            List of deployment units, in the order the API returned them

        Raises:
            EnumerationError: If any page could not be fetched
        """
        units: List[DeploymentUnit] = []
        try:
            paginator = self.client.get_paginator("list_stacks")
            for page in paginator.paginate():
                for summary in page.get("StackSummaries", []):
                    name = summary.get("StackName")
                    if not name:
                        continue
                    raw_status = summary.get("StackStatus", "")
                    status = _unit_status(raw_status)
                    if status is UnitStatus.TERMINAL:
                        continue
                    units.append(DeploymentUnit(
                        name=name,
                        status=status,
                        created_at=summary["CreationTime"],
                        raw_status=raw_status,
                    ))
        except (ClientError, BotoCoreError) as e:
            raise EnumerationError(f"Failed to list CloudFormation stacks: {e}") from e

        logger.info(f"Found {len(units)} CloudFormation stacks")
        return units

    def get_export(self, export_name: str) -> str:
        """
        Look up the value of a CloudFormation export.

        Raises:
            EnumerationError: If exports could not be listed or the export does not exist
        """
        try:
            paginator = self.client.get_paginator("list_exports")
            for page in paginator.paginate():
                for export in page.get("Exports", []):
                    if export.get("Name") == export_name and export.get("Value"):
                        return export["Value"]
        except (ClientError, BotoCoreError) as e:
            raise EnumerationError(f"Failed to list CloudFormation exports: {e}") from e

        raise EnumerationError(f"CloudFormation export {export_name} not found")

    def delete(self, name: str) -> None:
        """
        Request deletion of a stack.

        Deleting a stack that no longer exists is not an error.

        Raises:
            ClientError: If CloudFormation rejected the request
        """
        try:
            self.client.delete_stack(StackName=name)
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message", "")
            if "does not exist" in message:
                logger.info(f"Stack {name} already gone")
                return
            raise
        logger.info(f"Requested deletion of stack {name}")
