"""Tests for cached EC2 lookups."""

import pytest
from prometheus_client import CollectorRegistry

from alb_controller.cache import CacheMetrics
from alb_controller.ec2 import Ec2Lookups
from alb_controller.errors import InputError, RemoteCallError
from aws_mock import MockEc2Client


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


def make_lookups(client: MockEc2Client, registry: CollectorRegistry) -> Ec2Lookups:
    return Ec2Lookups(client, metrics=CacheMetrics(registry), vpc_ttl_seconds=3600)


class TestGetVpcId:
    """Tests for Ec2Lookups.get_vpc_id."""

    def test_resolves_and_caches(self, registry: CollectorRegistry) -> None:
        """Test that a VPC id is resolved once and then served from cache."""
        client = MockEc2Client({"subnet-1": "vpc-abc", "subnet-2": "vpc-abc"})
        lookups = make_lookups(client, registry)

        assert lookups.get_vpc_id(["subnet-1", "subnet-2"]) == "vpc-abc"
        assert lookups.get_vpc_id(["subnet-1", "subnet-2"]) == "vpc-abc"

        assert client.describe_subnets_calls == 1
        labels = {"cache": "vpc"}
        assert registry.get_sample_value("aws_cache_total", {**labels, "action": "miss"}) == 1.0
        assert registry.get_sample_value("aws_cache_total", {**labels, "action": "hit"}) == 1.0

    def test_cache_keyed_on_first_subnet(self, registry: CollectorRegistry) -> None:
        """Test that the cache is keyed on the first subnet of the request."""
        client = MockEc2Client({"subnet-1": "vpc-abc", "subnet-2": "vpc-abc"})
        lookups = make_lookups(client, registry)

        lookups.get_vpc_id(["subnet-1"])
        lookups.get_vpc_id(["subnet-1", "subnet-2"])
        lookups.get_vpc_id(["subnet-2"])

        assert client.describe_subnets_calls == 2

    def test_empty_subnets_is_input_error(self, registry: CollectorRegistry) -> None:
        """Test that an empty subnet list is rejected without a remote call."""
        client = MockEc2Client()

        with pytest.raises(InputError):
            make_lookups(client, registry).get_vpc_id([])

        assert client.describe_subnets_calls == 0

    def test_unknown_subnet(self, registry: CollectorRegistry) -> None:
        """Test that an unknown subnet surfaces as a DescribeSubnets error."""
        with pytest.raises(RemoteCallError) as exc_info:
            make_lookups(MockEc2Client(), registry).get_vpc_id(["subnet-404"])

        assert exc_info.value.operation == "DescribeSubnets"

    def test_remote_failure_is_translated_and_not_cached(
        self, registry: CollectorRegistry
    ) -> None:
        """Test that a failed lookup is translated and not cached."""
        client = MockEc2Client({"subnet-1": "vpc-abc"})
        client.fail_with = "UnauthorizedOperation"
        lookups = make_lookups(client, registry)

        with pytest.raises(RemoteCallError) as exc_info:
            lookups.get_vpc_id(["subnet-1"])

        assert exc_info.value.code == "UnauthorizedOperation"

        client.fail_with = None
        assert lookups.get_vpc_id(["subnet-1"]) == "vpc-abc"
        assert client.describe_subnets_calls == 2
