"""
Route 53 alias (CNAME) lookup and cleanup.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import AliasRecord, EnumerationError

logger = logging.getLogger(__name__)


def _fqdn(name: str) -> str:
    return name if name.endswith(".") else name + "."


@dataclass
class AliasIndex:
    """CNAME records of one hosted zone, queryable by deployment name."""
    zone_id: Optional[str] = None
    records: List[AliasRecord] = field(default_factory=list)
    zone_name: Optional[str] = None

    def matching(self, deployment_name: str) -> List[AliasRecord]:
        """
        Records carrying the deployment name as a whole label.

        ``api-pr-1.zone.`` and ``www.api-pr-1.zone.`` match ``api-pr-1``;
        ``api-pr-12.zone.`` does not.
        """
        pattern = re.compile(rf"(^|\.){re.escape(deployment_name)}\.")
        return [r for r in self.records if pattern.search(r.name)]


class AliasDirectory:
    """Resolves a hosted zone and removes the CNAME records of deleted stacks."""

    def __init__(self, client=None):
        self.client = client or boto3.client("route53")

    def find_zone(self, zone_name: str) -> Optional[str]:
        """
        Resolve a hosted zone id by exact name.

        Returns:
            Zone id, or None if no zone has this name

        Raises:
            EnumerationError: If the zone lookup failed
        """
        try:
            response = self.client.list_hosted_zones_by_name(DNSName=zone_name, MaxItems="1")
        except (ClientError, BotoCoreError) as e:
            raise EnumerationError(f"Failed to look up hosted zone {zone_name}: {e}") from e

        for zone in response.get("HostedZones", []):
            if _fqdn(zone.get("Name", "")) == _fqdn(zone_name):
                return zone["Id"]
        return None

    def build_index(self, zone_name: Optional[str]) -> AliasIndex:
        """
        Load every CNAME record of a hosted zone.

        An empty index is returned when no zone name is configured or the
        zone does not exist; record cleanup then becomes a no-op.

        Raises:
            EnumerationError: If listing records failed
        """
        if not zone_name:
            logger.info("No hosted zone configured, CNAME records will not be deleted")
            return AliasIndex()

        zone_id = self.find_zone(zone_name)
        if not zone_id:
            logger.warning(f"Hosted zone {zone_name} not found, CNAME records will not be deleted")
            return AliasIndex(zone_name=zone_name)

        records: List[AliasRecord] = []
        try:
            paginator = self.client.get_paginator("list_resource_record_sets")
            for page in paginator.paginate(HostedZoneId=zone_id):
                for record_set in page.get("ResourceRecordSets", []):
                    if record_set.get("Type") != "CNAME":
                        continue
                    records.append(AliasRecord(
                        name=record_set["Name"],
                        type="CNAME",
                        record_set=record_set,
                    ))
        except (ClientError, BotoCoreError) as e:
            raise EnumerationError(f"Failed to list records in hosted zone {zone_name}: {e}") from e

        logger.info(f"Loaded {len(records)} CNAME records from hosted zone {zone_name}")
        return AliasIndex(zone_id=zone_id, records=records, zone_name=zone_name)

    def delete_matching(self, index: AliasIndex, deployment_name: str) -> int:
        """
        Delete every CNAME record carrying the deployment name as a label,
        in a single change batch.

        Returns:
            Number of records deleted

        Raises:
            ClientError: If Route 53 rejected the change batch
        """
        if not index.zone_id:
            return 0

        matches = index.matching(deployment_name)
        if not matches:
            logger.info(f"No CNAME records found for {deployment_name}")
            return 0

        for record in matches:
            logger.info(f"** going to delete CNAME record {record.name} **")

        self.client.change_resource_record_sets(
            HostedZoneId=index.zone_id,
            ChangeBatch={
                "Changes": [
                    {"Action": "DELETE", "ResourceRecordSet": record.as_change_record_set()}
                    for record in matches
                ]
            },
        )
        # drop deleted records so a later match cannot resubmit them
        index.records = [r for r in index.records if r not in matches]
        logger.info(f"Deleted {len(matches)} CNAME records for {deployment_name}")
        return len(matches)
