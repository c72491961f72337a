"""
Basic tests for stack enumeration and CNAME cleanup.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from reclaim.cleanup.dns import AliasDirectory, AliasIndex
from reclaim.cleanup.models import AliasRecord, EnumerationError, UnitStatus
from reclaim.cleanup.stacks import DeploymentEnumerator

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
ZONE = "dev.example.com."


def client_error(code, message, operation="DeleteStack"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def stack(name, status="CREATE_COMPLETE"):
    return {"StackName": name, "StackStatus": status, "CreationTime": CREATED}


def cname(name):
    return {"Name": name, "Type": "CNAME", "TTL": 300, "ResourceRecords": [{"Value": "target.example.com"}]}


class TestDeploymentEnumerator:
    """Test CloudFormation stack listing and deletion."""

    def make_client(self, pages):
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = pages
        return client

    def test_list_all_pages(self):
        client = self.make_client([
            {"StackSummaries": [stack("api-v1-2-3")], "NextToken": "token-1"},
            {"StackSummaries": [stack("api-pr-789")]},
        ])
        units = DeploymentEnumerator(client=client).list_all()

        client.get_paginator.assert_called_once_with("list_stacks")
        assert [u.name for u in units] == ["api-v1-2-3", "api-pr-789"]
        assert units[0].created_at == CREATED
        assert units[0].status == UnitStatus.ACTIVE

    def test_terminal_stacks_skipped(self):
        client = self.make_client([
            {"StackSummaries": [stack("api-v1-2-2", "DELETE_COMPLETE"), stack("api-v1-2-3", "UPDATE_IN_PROGRESS")]},
        ])
        units = DeploymentEnumerator(client=client).list_all()

        assert [u.name for u in units] == ["api-v1-2-3"]
        assert units[0].status == UnitStatus.OTHER
        assert units[0].raw_status == "UPDATE_IN_PROGRESS"

    def test_empty_pages(self):
        client = self.make_client([{}])
        assert DeploymentEnumerator(client=client).list_all() == []

    def test_listing_failure_is_fatal(self):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = client_error("Throttling", "Rate exceeded", "ListStacks")

        with pytest.raises(EnumerationError, match="Failed to list CloudFormation stacks"):
            DeploymentEnumerator(client=client).list_all()

    def test_delete(self):
        client = MagicMock()
        DeploymentEnumerator(client=client).delete("api-v1-2-2")
        client.delete_stack.assert_called_once_with(StackName="api-v1-2-2")

    def test_delete_missing_stack_is_noop(self):
        client = MagicMock()
        client.delete_stack.side_effect = client_error("ValidationError", "Stack with id api-v1-2-2 does not exist")

        DeploymentEnumerator(client=client).delete("api-v1-2-2")

    def test_delete_other_errors_raise(self):
        client = MagicMock()
        client.delete_stack.side_effect = client_error("Throttling", "Rate exceeded")

        with pytest.raises(ClientError):
            DeploymentEnumerator(client=client).delete("api-v1-2-2")


class TestAliasDirectory:
    """Test hosted zone lookup and CNAME deletion."""

    def make_client(self, zones, record_pages=None):
        client = MagicMock()
        client.list_hosted_zones_by_name.return_value = {"HostedZones": zones}
        client.get_paginator.return_value.paginate.return_value = record_pages or []
        return client

    def test_build_index_keeps_only_cnames(self):
        client = self.make_client(
            [{"Id": "/hostedzone/Z123", "Name": ZONE}],
            [
                {"ResourceRecordSets": [cname(f"api-pr-123.{ZONE}"), {"Name": ZONE, "Type": "NS"}]},
                {"ResourceRecordSets": [cname(f"api-v1-2-2.{ZONE}"), {"Name": f"x.{ZONE}", "Type": "A"}]},
            ],
        )
        index = AliasDirectory(client=client).build_index(ZONE)

        assert index.zone_id == "/hostedzone/Z123"
        assert [r.name for r in index.records] == [f"api-pr-123.{ZONE}", f"api-v1-2-2.{ZONE}"]
        client.get_paginator.assert_called_once_with("list_resource_record_sets")
        client.get_paginator.return_value.paginate.assert_called_once_with(HostedZoneId="/hostedzone/Z123")

    def test_zone_name_matched_exactly(self):
        client = self.make_client([{"Id": "/hostedzone/Z999", "Name": "other.example.com."}])
        index = AliasDirectory(client=client).build_index(ZONE)

        assert index.zone_id is None
        assert index.records == []
        client.get_paginator.assert_not_called()

    def test_zone_name_without_trailing_dot(self):
        client = self.make_client([{"Id": "/hostedzone/Z123", "Name": ZONE}])
        assert AliasDirectory(client=client).find_zone("dev.example.com") == "/hostedzone/Z123"

    def test_no_zone_configured(self):
        client = MagicMock()
        index = AliasDirectory(client=client).build_index(None)

        assert index.zone_id is None
        client.list_hosted_zones_by_name.assert_not_called()

    def test_zone_lookup_failure_is_fatal(self):
        client = MagicMock()
        client.list_hosted_zones_by_name.side_effect = client_error("AccessDenied", "denied", "ListHostedZonesByName")

        with pytest.raises(EnumerationError):
            AliasDirectory(client=client).build_index(ZONE)

    def test_delete_matching_single_batch(self):
        client = MagicMock()
        records = [
            AliasRecord(name=f"api-pr-123.{ZONE}", record_set=cname(f"api-pr-123.{ZONE}")),
            AliasRecord(name=f"www.api-pr-123.{ZONE}", record_set=cname(f"www.api-pr-123.{ZONE}")),
            AliasRecord(name=f"api-pr-456.{ZONE}", record_set=cname(f"api-pr-456.{ZONE}")),
        ]
        index = AliasIndex(zone_id="Z123", records=records)

        deleted = AliasDirectory(client=client).delete_matching(index, "api-pr-123")

        assert deleted == 2
        client.change_resource_record_sets.assert_called_once_with(
            HostedZoneId="Z123",
            ChangeBatch={"Changes": [
                {"Action": "DELETE", "ResourceRecordSet": cname(f"api-pr-123.{ZONE}")},
                {"Action": "DELETE", "ResourceRecordSet": cname(f"www.api-pr-123.{ZONE}")},
            ]},
        )
        assert [r.name for r in index.records] == [f"api-pr-456.{ZONE}"]

    def test_matching_requires_whole_label(self):
        index = AliasIndex(zone_id="Z123", records=[
            AliasRecord(name=f"api-pr-1.{ZONE}"),
            AliasRecord(name=f"api-pr-12.{ZONE}"),
            AliasRecord(name=f"api-pr-100.{ZONE}"),
            AliasRecord(name=f"www.api-pr-1.{ZONE}"),
            AliasRecord(name=f"old-api-pr-1.{ZONE}"),
        ])

        assert [r.name for r in index.matching("api-pr-1")] == [f"api-pr-1.{ZONE}", f"www.api-pr-1.{ZONE}"]

    def test_superseded_version_leaves_longer_version_alias(self):
        index = AliasIndex(zone_id="Z123", records=[
            AliasRecord(name=f"api-v1.{ZONE}"),
            AliasRecord(name=f"api-v1-2-3.{ZONE}"),
        ])

        assert [r.name for r in index.matching("api-v1")] == [f"api-v1.{ZONE}"]

    def test_missing_zone_keeps_zone_name(self):
        client = self.make_client([])
        index = AliasDirectory(client=client).build_index(ZONE)

        assert index.zone_id is None
        assert index.zone_name == ZONE

    def test_delete_matching_no_records(self):
        client = MagicMock()
        index = AliasIndex(zone_id="Z123", records=[AliasRecord(name=f"api-pr-456.{ZONE}")])

        assert AliasDirectory(client=client).delete_matching(index, "api-pr-123") == 0
        client.change_resource_record_sets.assert_not_called()

    def test_delete_matching_without_zone(self):
        client = MagicMock()
        index = AliasIndex(zone_id=None, records=[AliasRecord(name=f"api-pr-123.{ZONE}")])

        assert AliasDirectory(client=client).delete_matching(index, "api-pr-123") == 0
        client.change_resource_record_sets.assert_not_called()

    def test_bare_record_change_set(self):
        record = AliasRecord(name=f"api-pr-1.{ZONE}")
        assert record.as_change_record_set() == {"Name": f"api-pr-1.{ZONE}", "Type": "CNAME"}


class TestExports:
    """Test CloudFormation export lookup."""

    def make_client(self, pages):
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = pages
        return client

    def test_get_export(self):
        client = self.make_client([
            {"Exports": [{"Name": "other", "Value": "x"}], "NextToken": "token-1"},
            {"Exports": [{"Name": "account-resources:proxygenKey", "Value": "arn:proxygen-key"}]},
        ])

        assert DeploymentEnumerator(client=client).get_export("account-resources:proxygenKey") == "arn:proxygen-key"
        client.get_paginator.assert_called_once_with("list_exports")

    def test_missing_export(self):
        client = self.make_client([{"Exports": []}])

        with pytest.raises(EnumerationError, match="export account-resources:proxygenKey not found"):
            DeploymentEnumerator(client=client).get_export("account-resources:proxygenKey")
