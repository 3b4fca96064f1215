"""EC2 lookups needed by the controller, cached.

Only the subnet to VPC resolution is needed today. The load balancer's
subnets rarely move between VPCs, so the answer is cached for
``Config.vpc_cache_ttl_seconds``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .cache import CacheMetrics, TTLCache, get_cache_metrics
from .config import DEFAULT_VPC_CACHE_TTL_SECONDS, Config
from .elbv2 import build_botocore_config, remote_error
from .errors import InputError, RemoteCallError

logger = logging.getLogger(__name__)

VPC_CACHE_NAME = "vpc"


class Ec2Lookups:
    """Read-through EC2 describe calls."""

    def __init__(
        self,
        client: Any,
        cache: TTLCache | None = None,
        metrics: CacheMetrics | None = None,
        vpc_ttl_seconds: int = DEFAULT_VPC_CACHE_TTL_SECONDS,
    ) -> None:
        self._client = client
        self._vpc_ttl_seconds = vpc_ttl_seconds
        self._cache = cache or TTLCache(
            VPC_CACHE_NAME,
            default_ttl=vpc_ttl_seconds,
            metrics=metrics or get_cache_metrics(),
        )

    @classmethod
    def from_config(cls, config: Config) -> Ec2Lookups:
        return cls(
            boto3.client("ec2", config=build_botocore_config(config)),
            vpc_ttl_seconds=config.vpc_cache_ttl_seconds,
        )

    def get_vpc_id(self, subnet_ids: Sequence[str]) -> str:
        """Resolve the VPC the given subnets belong to.

        The cache is keyed on the first subnet; all subnets of a load
        balancer live in the same VPC.

        Raises:
            InputError: If no subnets are given.
            RemoteCallError: If DescribeSubnets fails or returns nothing.
        """
        if not subnet_ids:
            raise InputError("Empty subnet list provided to get_vpc_id")

        key = f"{subnet_ids[0]}-vpc"
        return self._cache.get_or_load(
            key,
            lambda: self._describe_vpc_id(subnet_ids),
            ttl=self._vpc_ttl_seconds,
        )

    def _describe_vpc_id(self, subnet_ids: Sequence[str]) -> str:
        try:
            response = self._client.describe_subnets(SubnetIds=list(subnet_ids))
        except (ClientError, BotoCoreError) as e:
            raise remote_error("DescribeSubnets", e) from e

        subnets = response.get("Subnets") or []
        if not subnets:
            raise RemoteCallError("DescribeSubnets", "DescribeSubnets returned no subnets")

        vpc_id = subnets[0]["VpcId"]
        logger.debug(
            "Resolved VPC from subnets",
            extra={"subnet_ids": list(subnet_ids), "vpc_id": vpc_id},
        )
        return vpc_id
