"""Service name to target group resolution.

A rule forwards to the target group registered for its service. When no
group matches, the rule is bound to the load balancer's first group instead
of failing the create: a load balancer always has at least its default
target group, and a degraded route is preferable to a missing one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import TargetGroupResolutionError
from .models import TargetGroupSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetGroup:
    """A target group known to the load balancer.

    Attributes:
        service_name: Logical backend service the group serves
        arn: Target group ARN used in forward actions
    """

    service_name: str
    arn: str


class TargetGroupResolver:
    """Looks up target groups by exact service name."""

    def __init__(self, target_groups: Sequence[TargetGroup]) -> None:
        self._target_groups = tuple(target_groups)

    @classmethod
    def from_specs(cls, specs: Iterable[TargetGroupSpec]) -> TargetGroupResolver:
        return cls([TargetGroup(service_name=s.service_name, arn=s.arn) for s in specs])

    @property
    def target_groups(self) -> tuple[TargetGroup, ...]:
        return self._target_groups

    def resolve(self, service_name: str) -> TargetGroup | None:
        """Return the group registered for ``service_name``, or None."""
        for target_group in self._target_groups:
            if target_group.service_name == service_name:
                return target_group
        return None

    def resolve_or_default(self, service_name: str) -> TargetGroup:
        """Resolve a service, falling back to the first registered group.

        Raises:
            TargetGroupResolutionError: If no target groups are registered at all.
        """
        if not self._target_groups:
            raise TargetGroupResolutionError(
                f"No target groups registered; cannot route service '{service_name}'"
            )

        target_group = self.resolve(service_name)
        if target_group is not None:
            return target_group

        fallback = self._target_groups[0]
        logger.warning(
            "Failed to locate target group for service, defaulting to first target group",
            extra={
                "service_name": service_name,
                "fallback_service_name": fallback.service_name,
                "fallback_target_group_arn": fallback.arn,
            },
        )
        return fallback
