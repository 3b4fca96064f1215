"""ELBv2 rule client.

The reconciler talks to the remote control plane through the ``RuleClient``
protocol. ``Elbv2RuleClient`` implements it on top of a boto3 ``elbv2``
client and translates every botocore failure, including connect and read
timeouts, into ``RemoteCallError`` so callers handle a single error type.

Retries for throttling and transient network errors are left to botocore's
retry configuration; this module never retries on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import Config
from .errors import RemoteCallError
from .models import ForwardAction, RuleCondition, RuleSnapshot

logger = logging.getLogger(__name__)

# Upper bound on DescribeRules pages for one listener
MAX_DESCRIBE_PAGES = 10
DESCRIBE_PAGE_SIZE = 100


class RuleClient(Protocol):
    """Remote operations on listener rules."""

    def create_rule(
        self,
        listener_arn: str,
        priority: int,
        conditions: Sequence[RuleCondition],
        target_group_arn: str,
    ) -> RuleSnapshot: ...

    def modify_rule(self, rule_arn: str, conditions: Sequence[RuleCondition]) -> RuleSnapshot: ...

    def delete_rule(self, rule_arn: str) -> None: ...

    def describe_rules(self, listener_arn: str) -> list[RuleSnapshot]: ...


def build_botocore_config(config: Config) -> BotoConfig:
    """Build the botocore client config shared by ELBv2 and EC2 clients."""
    return BotoConfig(
        region_name=config.region,
        connect_timeout=config.remote_timeout_seconds,
        read_timeout=config.remote_timeout_seconds,
        retries={"mode": "standard", "max_attempts": 5},
    )


def remote_error(operation: str, error: Exception) -> RemoteCallError:
    """Translate a botocore failure into RemoteCallError."""
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return RemoteCallError(
            operation,
            details.get("Message") or str(error),
            code=details.get("Code"),
        )
    return RemoteCallError(operation, str(error))


class Elbv2RuleClient:
    """``RuleClient`` backed by boto3."""

    def __init__(self, client: Any) -> None:
        """Wrap an existing boto3 ``elbv2`` client (or a compatible mock)."""
        self._client = client

    @classmethod
    def from_config(cls, config: Config) -> Elbv2RuleClient:
        return cls(boto3.client("elbv2", config=build_botocore_config(config)))

    def _call(self, operation: str, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return getattr(self._client, method)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise remote_error(operation, e) from e

    def create_rule(
        self,
        listener_arn: str,
        priority: int,
        conditions: Sequence[RuleCondition],
        target_group_arn: str,
    ) -> RuleSnapshot:
        response = self._call(
            "CreateRule",
            "create_rule",
            ListenerArn=listener_arn,
            Priority=priority,
            Conditions=[condition.to_api() for condition in conditions],
            Actions=[ForwardAction(target_group_arn=target_group_arn).to_api()],
        )
        return self._single_rule("CreateRule", response)

    def modify_rule(self, rule_arn: str, conditions: Sequence[RuleCondition]) -> RuleSnapshot:
        response = self._call(
            "ModifyRule",
            "modify_rule",
            RuleArn=rule_arn,
            Conditions=[condition.to_api() for condition in conditions],
        )
        return self._single_rule("ModifyRule", response)

    def delete_rule(self, rule_arn: str) -> None:
        self._call("DeleteRule", "delete_rule", RuleArn=rule_arn)

    def describe_rules(self, listener_arn: str) -> list[RuleSnapshot]:
        """List every rule on a listener, default rule included."""
        rules: list[RuleSnapshot] = []
        kwargs: dict[str, Any] = {"ListenerArn": listener_arn, "PageSize": DESCRIBE_PAGE_SIZE}

        for _ in range(MAX_DESCRIBE_PAGES):
            response = self._call("DescribeRules", "describe_rules", **kwargs)
            rules.extend(RuleSnapshot.model_validate(r) for r in response.get("Rules", []))
            marker = response.get("NextMarker")
            if not marker:
                break
            kwargs["Marker"] = marker
        else:
            logger.warning(
                "DescribeRules page limit reached, rule list may be incomplete",
                extra={"listener_arn": listener_arn, "max_pages": MAX_DESCRIBE_PAGES},
            )

        return rules

    @staticmethod
    def _single_rule(operation: str, response: dict[str, Any]) -> RuleSnapshot:
        rules = response.get("Rules") or []
        if not rules:
            raise RemoteCallError(operation, "response contained no rule")
        return RuleSnapshot.model_validate(rules[0])
