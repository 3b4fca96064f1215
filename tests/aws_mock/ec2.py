"""Mock EC2 subnet lookups."""

from __future__ import annotations

from typing import Any

from .elbv2 import client_error


class MockEc2Client:
    """In-memory ``ec2`` client answering DescribeSubnets."""

    def __init__(self, subnets: dict[str, str] | None = None) -> None:
        """Initialize with a subnet id to VPC id mapping."""
        self._subnets = dict(subnets or {})
        self.describe_subnets_calls = 0
        self.fail_with: str | None = None

    def describe_subnets(self, **kwargs: Any) -> dict[str, Any]:
        self.describe_subnets_calls += 1
        if self.fail_with:
            raise client_error("DescribeSubnets", self.fail_with, "Simulated failure")

        return {
            "Subnets": [
                {"SubnetId": subnet_id, "VpcId": self._subnets[subnet_id]}
                for subnet_id in kwargs.get("SubnetIds", [])
                if subnet_id in self._subnets
            ]
        }
